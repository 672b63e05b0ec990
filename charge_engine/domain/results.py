"""Aggregation of line items into transaction, bulk and test-run results"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from charge_engine.domain.models import ChargeCalculationDetail, TransactionRequest
from charge_engine.utils.money import format_inr

ZERO = Decimal("0")


@dataclass
class ChargeCalculationResult:
    """Outcome of one calculation attempt"""

    transaction_id: Optional[str]
    customer_code: Optional[str]
    transaction_type: Optional[str]
    transaction_amount: Optional[Decimal]
    calculated_at: datetime = field(default_factory=datetime.now)
    charges: List[ChargeCalculationDetail] = field(default_factory=list)
    total_charges: Decimal = ZERO
    applicable_rules_count: int = 0
    success: bool = False
    message: str = ""
    summary: str = ""

    @classmethod
    def for_request(cls, request: TransactionRequest) -> "ChargeCalculationResult":
        return cls(
            transaction_id=request.transaction_id,
            customer_code=request.customer_code,
            transaction_type=request.transaction_type,
            transaction_amount=request.amount,
        )

    def add_charge(self, charge: ChargeCalculationDetail) -> None:
        """Append a line item and keep the total and count in step"""
        self.charges.append(charge)
        self.total_charges += charge.charge_amount
        self.applicable_rules_count = len(self.charges)

    def generate_summary(self) -> str:
        if not self.charges:
            self.summary = "No charges applicable for this transaction"
        else:
            parts = " + ".join(f"{c.rule_code}: {format_inr(c.charge_amount)}" for c in self.charges)
            self.summary = (
                f"Applied {len(self.charges)} rule(s). Total: {format_inr(self.total_charges)} ({parts})"
            )
        return self.summary

    def mark_failed(self, message: str) -> None:
        self.success = False
        self.message = f"Charge calculation failed: {message}"
        self.summary = f"Error: {message}"


@dataclass
class BulkCalculationResult:
    """Batch-level statistics for a bulk calculation run"""

    total_transactions: int = 0
    batch_id: Optional[str] = None
    description: Optional[str] = None
    processed_at: datetime = field(default_factory=datetime.now)
    results: List[ChargeCalculationResult] = field(default_factory=list)
    errors: List[Tuple[Optional[str], str]] = field(default_factory=list)
    successful_calculations: int = 0
    failed_calculations: int = 0
    total_charges: Decimal = ZERO
    transaction_type_counts: Counter = field(default_factory=Counter)
    charges_by_rule: Dict[str, Decimal] = field(default_factory=dict)
    overall_success: bool = True
    processing_time_ms: int = 0
    processing_message: str = ""

    def add_successful_result(self, result: ChargeCalculationResult) -> None:
        self.results.append(result)
        self.successful_calculations += 1
        self.total_charges += result.total_charges
        self.transaction_type_counts[result.transaction_type] += 1
        for charge in result.charges:
            self.charges_by_rule[charge.rule_code] = self.charges_by_rule.get(charge.rule_code, ZERO) + charge.charge_amount

    def add_failed_result(self, transaction_id: Optional[str], error: str) -> None:
        """Failures are kept in submission order; ids may be blank or repeated"""
        self.errors.append((transaction_id, error))
        self.failed_calculations += 1
        self.overall_success = False

    @property
    def processed_count(self) -> int:
        return self.successful_calculations + self.failed_calculations

    def generate_processing_message(self) -> str:
        message = (
            f"Processed {self.processed_count} of {self.total_transactions} transactions in {self.processing_time_ms}ms. "
            f"Success: {self.successful_calculations}, Failed: {self.failed_calculations}. "
            f"Total charges calculated: {format_inr(self.total_charges)}"
        )
        if self.failed_calculations:
            message += f". {self.failed_calculations} transactions failed processing."
        self.processing_message = message
        return message


@dataclass
class TransactionTestResult:
    """One simulated transaction within a charge test run"""

    transaction_type: str
    transaction_amount: Optional[Decimal]
    channel: Optional[str] = None
    description: Optional[str] = None
    applicable_charges: List[ChargeCalculationDetail] = field(default_factory=list)
    total_charge: Decimal = ZERO
    calculation_successful: bool = False
    calculation_summary: str = ""
    error_message: Optional[str] = None

    @property
    def rules_applied(self) -> int:
        return len(self.applicable_charges)


@dataclass
class ChargeTestResult:
    """What-if run of several transactions for one customer"""

    customer_code: str
    test_description: Optional[str] = None
    customer_name: Optional[str] = None
    customer_type: Optional[str] = None
    tested_at: datetime = field(default_factory=datetime.now)
    transaction_results: List[TransactionTestResult] = field(default_factory=list)
    total_charges: Decimal = ZERO
    transactions_with_charges: int = 0
    test_successful: bool = True
    test_summary: str = ""

    @property
    def total_transactions_tested(self) -> int:
        return len(self.transaction_results)

    def add_transaction_result(self, result: TransactionTestResult) -> None:
        self.transaction_results.append(result)
        if result.total_charge > ZERO:
            self.transactions_with_charges += 1
            self.total_charges += result.total_charge

    def generate_test_summary(self) -> str:
        summary = (
            f"Tested {self.total_transactions_tested} transactions for customer {self.customer_code}. "
            f"{self.transactions_with_charges} transactions incurred charges totaling {format_inr(self.total_charges)}."
        )
        if self.transactions_with_charges == 0:
            summary += " No charges applicable based on current rules and transaction history."
        self.test_summary = summary
        return summary
