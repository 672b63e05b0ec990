"""Data access layer for customers, charge rules and calculated transactions"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from charge_engine.domain.exceptions import InvalidRuleTransitionError, NotFoundError
from charge_engine.domain.models import (
    ActivityType,
    ChargeCalculationDetail,
    ChargeRule,
    Customer,
    CustomerStatus,
    CustomerType,
    FeeType,
    RuleCategory,
    RuleStatus,
    ThresholdPeriod,
    TransactionRequest,
)
from charge_engine.domain.ports import PersistenceOutcome
from charge_engine.infrastructure.database.models import (
    ChargeCalculationModel,
    ChargeRuleModel,
    CustomerModel,
    TransactionModel,
)
from charge_engine.utils.date_utils import month_start, next_month_start


def _customer_to_domain(row: CustomerModel) -> Customer:
    return Customer(
        id=row.id,
        customer_code=row.customer_code,
        customer_type=CustomerType(row.customer_type),
        status=CustomerStatus(row.status),
        first_name=row.first_name,
        last_name=row.last_name,
        company_name=row.company_name,
    )


def _rule_to_domain(row: ChargeRuleModel) -> ChargeRule:
    return ChargeRule(
        id=row.id,
        rule_code=row.rule_code,
        rule_name=row.rule_name,
        category=RuleCategory(row.category),
        activity_type=ActivityType(row.activity_type),
        fee_type=FeeType(row.fee_type),
        fee_value=Decimal(row.fee_value),
        conditions=dict(row.conditions or {}),
        currency=row.currency_code,
        min_amount=Decimal(row.min_amount) if row.min_amount is not None else None,
        max_amount=Decimal(row.max_amount) if row.max_amount is not None else None,
        threshold_count=row.threshold_count or 0,
        threshold_period=ThresholdPeriod(row.threshold_period),
        status=RuleStatus(row.status),
        effective_from=row.effective_from,
        effective_to=row.effective_to,
    )


class CustomerRepository:
    """Read access to customers (implements CustomerDirectory)"""

    def __init__(self, db: Session):
        self.db = db

    def by_code(self, customer_code: str) -> Optional[Customer]:
        row = (
            self.db.query(CustomerModel)
            .filter(CustomerModel.customer_code == customer_code)
            .first()
        )
        return _customer_to_domain(row) if row else None

    def list_active(self) -> List[Customer]:
        rows = (
            self.db.query(CustomerModel)
            .filter(CustomerModel.status == CustomerStatus.ACTIVE.value)
            .order_by(CustomerModel.customer_code)
            .all()
        )
        return [_customer_to_domain(row) for row in rows]

    def create_customer(
        self,
        customer_code: str,
        customer_type: CustomerType,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        company_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        status: CustomerStatus = CustomerStatus.ACTIVE,
    ) -> Customer:
        row = CustomerModel(
            customer_code=customer_code,
            customer_type=customer_type.value,
            first_name=first_name,
            last_name=last_name,
            company_name=company_name,
            email=email,
            phone=phone,
            status=status.value,
        )
        self.db.add(row)
        self.db.flush()  # Get ID without committing
        return _customer_to_domain(row)


class RuleRepository:
    """Charge rule catalog and lifecycle transitions (implements RuleCatalog)"""

    def __init__(self, db: Session):
        self.db = db

    def active_rules_for(self, category: RuleCategory, as_of: datetime) -> List[ChargeRule]:
        """ACTIVE rules effective at `as_of` for the category plus ALL-category rules"""
        rows = (
            self.db.query(ChargeRuleModel)
            .filter(ChargeRuleModel.category.in_([category.value, RuleCategory.ALL.value]))
            .filter(ChargeRuleModel.status == RuleStatus.ACTIVE.value)
            .filter(or_(ChargeRuleModel.effective_from.is_(None), ChargeRuleModel.effective_from <= as_of))
            .filter(or_(ChargeRuleModel.effective_to.is_(None), ChargeRuleModel.effective_to > as_of))
            .order_by(ChargeRuleModel.rule_code)
            .all()
        )
        return [_rule_to_domain(row) for row in rows]

    def by_code(self, rule_code: str) -> Optional[ChargeRule]:
        row = self._row(rule_code)
        return _rule_to_domain(row) if row else None

    def add_rule(
        self,
        rule_code: str,
        rule_name: str,
        category: RuleCategory,
        activity_type: ActivityType,
        fee_type: FeeType,
        fee_value: Decimal,
        conditions: Optional[Dict[str, Any]] = None,
        currency: str = "INR",
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        threshold_count: int = 0,
        threshold_period: ThresholdPeriod = ThresholdPeriod.MONTHLY,
        effective_from: Optional[datetime] = None,
        effective_to: Optional[datetime] = None,
    ) -> ChargeRule:
        """Create a rule in DRAFT; it takes effect only after approval"""
        row = ChargeRuleModel(
            rule_code=rule_code,
            rule_name=rule_name,
            category=category.value,
            activity_type=activity_type.value,
            fee_type=fee_type.value,
            fee_value=fee_value,
            conditions=conditions or {},
            currency_code=currency,
            min_amount=min_amount,
            max_amount=max_amount,
            threshold_count=threshold_count,
            threshold_period=threshold_period.value,
            status=RuleStatus.DRAFT.value,
            effective_from=effective_from,
            effective_to=effective_to,
        )
        self.db.add(row)
        self.db.flush()
        return _rule_to_domain(row)

    def approve(self, rule_code: str, at: Optional[datetime] = None) -> ChargeRule:
        """DRAFT -> ACTIVE"""
        row = self._transition(rule_code, RuleStatus.ACTIVE, required=RuleStatus.DRAFT)
        row.approved_at = at or datetime.now()
        self.db.flush()
        return _rule_to_domain(row)

    def deactivate(self, rule_code: str) -> ChargeRule:
        return _rule_to_domain(self._transition(rule_code, RuleStatus.INACTIVE))

    def reactivate(self, rule_code: str) -> ChargeRule:
        """INACTIVE -> ACTIVE; drafts go through approve()"""
        return _rule_to_domain(self._transition(rule_code, RuleStatus.ACTIVE, required=RuleStatus.INACTIVE))

    def archive(self, rule_code: str) -> ChargeRule:
        return _rule_to_domain(self._transition(rule_code, RuleStatus.ARCHIVED))

    def _row(self, rule_code: str) -> Optional[ChargeRuleModel]:
        return (
            self.db.query(ChargeRuleModel)
            .filter(ChargeRuleModel.rule_code == rule_code)
            .first()
        )

    def _transition(self, rule_code: str, target: RuleStatus, required: Optional[RuleStatus] = None) -> ChargeRuleModel:
        row = self._row(rule_code)
        if row is None:
            raise NotFoundError(f"Charge rule not found: {rule_code}")

        current = RuleStatus(row.status)
        if (required is not None and current != required) or not current.can_transition_to(target):
            raise InvalidRuleTransitionError(f"Rule {rule_code} cannot move from {current.value} to {target.value}")

        row.status = target.value
        self.db.flush()
        return row


class TransactionRepository:
    """
    Calculated transactions and their line items.

    Implements DurableCounter, DuplicateGuard and PersistenceGateway.
    """

    def __init__(self, db: Session):
        self.db = db

    def durable_count(
        self,
        customer_id: int,
        transaction_type: str,
        period_start: datetime,
        period_end: datetime,
    ) -> int:
        return (
            self.db.query(func.count(TransactionModel.id))
            .filter(TransactionModel.customer_id == customer_id)
            .filter(TransactionModel.transaction_type == transaction_type)
            .filter(TransactionModel.transaction_date >= period_start)
            .filter(TransactionModel.transaction_date < period_end)
            .scalar()
        ) or 0

    def exists(self, transaction_id: str) -> bool:
        return (
            self.db.query(TransactionModel.id)
            .filter(TransactionModel.transaction_id == transaction_id)
            .first()
        ) is not None

    def record_transaction(
        self,
        transaction: TransactionRequest,
        customer: Customer,
        line_items: Sequence[ChargeCalculationDetail],
    ) -> PersistenceOutcome:
        """Persist the transaction with its line items in one commit; errors become a failed outcome"""
        period_start = month_start(transaction.timestamp).date()
        period_end = (next_month_start(transaction.timestamp) - timedelta(days=1)).date()

        try:
            db_transaction = TransactionModel(
                transaction_id=transaction.transaction_id,
                customer_id=customer.id,
                transaction_type=transaction.transaction_type,
                amount=transaction.amount,
                currency_code=transaction.currency,
                transaction_date=transaction.timestamp,
                channel=transaction.channel,
                source_account=transaction.source_account,
                destination_account=transaction.destination_account,
                extra_data=dict(transaction.metadata) or None,
                status="PROCESSED",
                processed_at=datetime.now(),
            )
            self.db.add(db_transaction)
            self.db.flush()

            for item in line_items:
                self.db.add(
                    ChargeCalculationModel(
                        transaction_pk=db_transaction.id,
                        rule_id=item.rule_id,
                        rule_code=item.rule_code,
                        calculated_amount=item.charge_amount,
                        currency_code=item.currency,
                        calculation_basis=item.calculation_basis,
                        threshold_count_used=item.period_count or 0,
                        period_start=period_start,
                        period_end=period_end,
                    )
                )

            self.db.commit()
            return PersistenceOutcome.succeeded()

        except SQLAlchemyError as e:
            self.db.rollback()
            return PersistenceOutcome.failed(f"Failed to save charge calculation results: {e}")

    def recent_for_customer(self, customer_id: int, limit: int = 20) -> List[TransactionModel]:
        """Fetch recent transactions for a customer, newest first"""
        return (
            self.db.query(TransactionModel)
            .filter(TransactionModel.customer_id == customer_id)
            .order_by(TransactionModel.transaction_date.desc(), TransactionModel.id.desc())
            .limit(limit)
            .all()
        )
