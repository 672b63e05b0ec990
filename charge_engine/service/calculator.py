"""
Charge calculation service.

Flow for one transaction:
1. Validate the request and reject duplicates
2. Resolve the customer and its rule category
3. Load active rules for the category and filter them structurally
4. Record the transaction in the scope's transient counts
5. Dispatch each matched rule to its fee strategy and collect non-zero line items
6. Persist the transaction and line items (best-effort)
"""

import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from charge_engine.config import settings
from charge_engine.domain.counting import ChargeScope, PeriodCounter
from charge_engine.domain.exceptions import NotFoundError, RuleComputationError, ValidationError
from charge_engine.domain.fees import (
    ATM_WITHDRAWAL_OTHER,
    ATM_WITHDRAWAL_PARENT,
    DUPLICATE_CREDIT_CARD,
    DUPLICATE_DEBIT_CARD,
    FUNDS_TRANSFER,
    STATEMENT_PRINT,
    FeeContext,
    FeeRegistry,
    default_registry,
)
from charge_engine.domain.matching import filter_applicable
from charge_engine.domain.models import ChargeCalculationDetail, ChargeRule, Customer, TransactionRequest
from charge_engine.domain.ports import (
    BalanceProvider,
    CustomerDirectory,
    DuplicateGuard,
    PersistenceGateway,
    RuleCatalog,
)
from charge_engine.domain.results import (
    BulkCalculationResult,
    ChargeCalculationResult,
    ChargeTestResult,
    TransactionTestResult,
)
from charge_engine.infrastructure.observability.logging import log_calculation
from charge_engine.infrastructure.observability.metrics import (
    batch_size_histogram,
    calculation_latency_histogram,
    persistence_failure_counter,
    record_calculation,
    rule_failure_counter,
)
from charge_engine.schemas import BulkCalculationRequest, ChargeTestRequest
from charge_engine.utils.money import quantize_amount

ZERO = Decimal("0")


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class ChargeCalculator:
    """Evaluates charge rules for transactions within an explicit counting scope"""

    def __init__(
        self,
        catalog: RuleCatalog,
        customers: CustomerDirectory,
        counter: PeriodCounter,
        duplicates: DuplicateGuard,
        gateway: Optional[PersistenceGateway] = None,
        balances: Optional[BalanceProvider] = None,
        registry: Optional[FeeRegistry] = None,
        persist_single: Optional[bool] = None,
    ):
        self.catalog = catalog
        self.customers = customers
        self.counter = counter
        self.duplicates = duplicates
        self.gateway = gateway
        self.balances = balances
        self.registry = registry or default_registry
        self.persist_single = settings.persist_single_calculations if persist_single is None else persist_single

    def open_scope(self, label: Optional[str] = None) -> ChargeScope:
        """New counting scope; close it (or use it as a context manager) when the operation ends"""
        return ChargeScope(label)

    # ------------------------------------------------------------------
    # Single transaction
    # ------------------------------------------------------------------

    def calculate(
        self,
        request: TransactionRequest,
        scope: Optional[ChargeScope] = None,
        persist: Optional[bool] = None,
    ) -> ChargeCalculationResult:
        """
        Calculate charges for one transaction.

        Without a scope the call gets a private one, so transient counts do not
        outlive it. Pass the batch scope to let later transactions see earlier ones.
        """
        with calculation_latency_histogram.time():
            if scope is None:
                with self.open_scope() as own_scope:
                    return self._calculate(request, own_scope, persist)
            return self._calculate(request, scope, persist)

    def _calculate(self, request: TransactionRequest, scope: ChargeScope, persist: Optional[bool]) -> ChargeCalculationResult:
        start_time = time.time()
        result = ChargeCalculationResult.for_request(request)

        try:
            self._validate(request, scope)
            customer = self.customers.by_code(request.customer_code)
            if customer is None:
                raise NotFoundError(f"Customer not found: {request.customer_code}")
        except (ValidationError, NotFoundError) as e:
            result.mark_failed(str(e))
            logging.warning(
                f"Transaction rejected: {e}",
                extra={"transaction_id": request.transaction_id, "scope_id": scope.scope_id},
            )
            record_calculation(False, ZERO, [])
            return result

        as_of = request.timestamp
        rules = [rule for rule in self.catalog.active_rules_for(customer.category, as_of) if rule.is_effective(as_of)]
        applicable = filter_applicable(rules, request)

        # The current transaction counts toward its own tier
        self.counter.record(scope, customer.id, request.transaction_type, as_of, request.transaction_id)

        for rule in applicable:
            detail = self._evaluate_rule(request, customer, rule, scope)
            if detail is not None:
                result.add_charge(detail)

        result.success = True
        result.message = "Charges calculated successfully"
        result.generate_summary()

        should_persist = self.persist_single if persist is None else persist
        if should_persist and self.gateway is not None:
            outcome = self.gateway.record_transaction(request, customer, list(result.charges))
            if outcome.ok:
                self.counter.mark_committed(scope, customer.id, request.transaction_type, as_of)
            else:
                persistence_failure_counter.inc()
                logging.error(
                    f"Failed to record transaction: {outcome.error}",
                    extra={"transaction_id": request.transaction_id, "scope_id": scope.scope_id},
                )

        duration_ms = (time.time() - start_time) * 1000
        record_calculation(True, result.total_charges, [c.rule_code for c in result.charges])
        log_calculation(
            scope.scope_id,
            request.transaction_id,
            request.customer_code,
            True,
            result.total_charges,
            result.applicable_rules_count,
            duration_ms,
        )
        return result

    def _validate(self, request: TransactionRequest, scope: ChargeScope) -> None:
        if _is_blank(request.transaction_id):
            raise ValidationError("Transaction ID is required")
        if _is_blank(request.customer_code):
            raise ValidationError("Customer code is required")
        if _is_blank(request.transaction_type):
            raise ValidationError("Transaction type is required")
        if request.amount is None or not request.amount.is_finite() or request.amount <= 0:
            raise ValidationError("Transaction amount must be positive")
        if scope.has_seen(request.transaction_id) or self.duplicates.exists(request.transaction_id):
            raise ValidationError(f"Transaction ID already exists: {request.transaction_id}")

    def _evaluate_rule(
        self,
        request: TransactionRequest,
        customer: Customer,
        rule: ChargeRule,
        scope: ChargeScope,
    ) -> Optional[ChargeCalculationDetail]:
        """Line item for one rule, or None when it charges nothing or fails"""
        strategy = self.registry.resolve(rule.rule_code)
        period_count = None
        try:
            if strategy.window is not None:
                period_count = self.counter.count(
                    scope, customer.id, request.transaction_type, strategy.window, request.timestamp
                )
            outcome = strategy.compute(
                FeeContext(
                    transaction=request,
                    customer=customer,
                    rule=rule,
                    period_count=period_count,
                    balances=self.balances,
                )
            )
            amount = quantize_amount(outcome.amount)
            if amount < ZERO:
                raise RuleComputationError(f"Negative charge {amount} computed")
        except Exception as e:
            rule_failure_counter.labels(rule_code=rule.rule_code).inc()
            logging.error(
                f"Charge computation failed for rule {rule.rule_code}: {e}",
                extra={"transaction_id": request.transaction_id, "rule_code": rule.rule_code},
            )
            return None

        if amount == ZERO:
            return None

        return ChargeCalculationDetail(
            rule_id=rule.id,
            rule_code=rule.rule_code,
            rule_name=rule.rule_name,
            rule_category=rule.category,
            activity_type=rule.activity_type,
            fee_type=rule.fee_type,
            charge_amount=amount,
            currency=rule.currency,
            calculation_basis=f"Rule: {rule.rule_name}. {outcome.basis}",
            applied_rate=outcome.applied_rate,
            period_count=period_count,
        )

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def calculate_bulk(self, request: BulkCalculationRequest) -> BulkCalculationResult:
        """Evaluate a batch in one scope, optionally stopping at the first failure"""
        start_time = time.time()
        bulk = BulkCalculationResult(
            total_transactions=len(request.transactions),
            batch_id=request.batch_id,
            description=request.description,
        )
        batch_size_histogram.labels(kind="bulk").observe(len(request.transactions))

        with self.open_scope(request.batch_id) as scope:
            for payload in request.transactions:
                try:
                    result = self.calculate(payload.to_request(), scope=scope, persist=request.save_results)
                except Exception as e:
                    logging.error(
                        f"Bulk item failed: {e}",
                        extra={"transaction_id": payload.transaction_id, "scope_id": scope.scope_id},
                    )
                    bulk.add_failed_result(payload.transaction_id, str(e))
                    if request.stop_on_error:
                        break
                    continue

                if result.success:
                    bulk.add_successful_result(result)
                else:
                    bulk.add_failed_result(result.transaction_id, result.message)
                    if request.stop_on_error:
                        break

        bulk.processing_time_ms = int((time.time() - start_time) * 1000)
        bulk.generate_processing_message()
        logging.info(
            "Bulk calculation completed",
            extra={
                "batch_id": request.batch_id,
                "step": "bulk_complete",
                "successful": bulk.successful_calculations,
                "failed": bulk.failed_calculations,
                "total_charges": str(bulk.total_charges),
            },
        )
        return bulk

    def run_charge_test(self, request: ChargeTestRequest) -> ChargeTestResult:
        """Simulate transactions for a customer; results are only saved when requested"""
        test_result = ChargeTestResult(customer_code=request.customer_code, test_description=request.test_description)

        customer = self.customers.by_code(request.customer_code)
        if customer is None:
            test_result.test_successful = False
            test_result.test_summary = f"Test failed: Customer not found: {request.customer_code}"
            return test_result

        test_result.customer_name = customer.display_name
        test_result.customer_type = customer.customer_type.value
        batch_size_histogram.labels(kind="test").observe(len(request.test_transactions))

        run_stamp = int(time.time() * 1000)
        with self.open_scope(f"test_{request.customer_code}_{run_stamp}") as scope:
            for index, simulated in enumerate(request.test_transactions, start=1):
                transaction = TransactionRequest(
                    transaction_id=f"TEST_{request.customer_code}_{run_stamp}_{index}",
                    customer_code=request.customer_code,
                    transaction_type=simulated.transaction_type,
                    amount=simulated.amount,
                    currency=settings.default_currency,
                    channel=simulated.channel,
                    source_account=simulated.source_account,
                    destination_account=simulated.destination_account,
                )
                calculation = self.calculate(transaction, scope=scope, persist=request.save_results)

                transaction_result = TransactionTestResult(
                    transaction_type=simulated.transaction_type,
                    transaction_amount=simulated.amount,
                    channel=simulated.channel,
                    description=simulated.description,
                    calculation_successful=calculation.success,
                )
                if calculation.success:
                    transaction_result.applicable_charges = list(calculation.charges)
                    transaction_result.total_charge = calculation.total_charges
                    transaction_result.calculation_summary = calculation.summary
                else:
                    transaction_result.error_message = calculation.message
                    transaction_result.calculation_summary = f"Error: {calculation.message}"
                test_result.add_transaction_result(transaction_result)

        test_result.generate_test_summary()
        return test_result

    def test_scenarios(self) -> Dict[str, List[Dict[str, Any]]]:
        """Predefined sample transactions plus the active customers to try them with"""

        def scenario(transaction_type: str, amount: str, channel: str, description: str) -> Dict[str, Any]:
            return {
                "transaction_type": transaction_type,
                "amount": Decimal(amount),
                "channel": channel,
                "description": description,
            }

        return {
            "atm_scenarios": [
                scenario(ATM_WITHDRAWAL_PARENT, "1000", "ATM", "Normal ATM withdrawal from parent bank"),
                scenario(ATM_WITHDRAWAL_PARENT, "5000", "ATM", "High value ATM withdrawal"),
                scenario(ATM_WITHDRAWAL_OTHER, "2000", "ATM", "ATM withdrawal from other bank"),
            ],
            "transfer_scenarios": [
                scenario(FUNDS_TRANSFER, "500", "ONLINE", "Small online funds transfer"),
                scenario(FUNDS_TRANSFER, "10000", "ONLINE", "Medium online funds transfer"),
                scenario(FUNDS_TRANSFER, "50000", "BRANCH", "Large branch funds transfer"),
            ],
            "special_scenarios": [
                scenario(STATEMENT_PRINT, "1", "BRANCH", "Statement print request"),
                scenario(DUPLICATE_DEBIT_CARD, "1", "BRANCH", "Duplicate debit card request"),
                scenario(DUPLICATE_CREDIT_CARD, "1", "BRANCH", "Duplicate credit card request"),
            ],
            "sample_customers": [
                {
                    "code": customer.customer_code,
                    "name": customer.display_name,
                    "type": customer.customer_type.value,
                }
                for customer in self.customers.list_active()
            ],
        }
