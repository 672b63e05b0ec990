"""Collaborator interfaces the engine depends on"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence

from charge_engine.domain.exceptions import PersistenceError
from charge_engine.domain.models import (
    ChargeCalculationDetail,
    ChargeRule,
    Customer,
    RuleCategory,
    TransactionRequest,
)


@dataclass(frozen=True)
class PersistenceOutcome:
    """Result of a best-effort durable write: either ok, or the PersistenceError describing the failure"""

    ok: bool
    error: Optional[PersistenceError] = None

    @classmethod
    def succeeded(cls) -> "PersistenceOutcome":
        return cls(ok=True)

    @classmethod
    def failed(cls, message: str) -> "PersistenceOutcome":
        return cls(ok=False, error=PersistenceError(message))


class RuleCatalog(Protocol):
    def active_rules_for(self, category: RuleCategory, as_of: datetime) -> List[ChargeRule]:
        """ACTIVE, in-window rules for `category` plus all ALL-category rules."""

    def by_code(self, rule_code: str) -> Optional[ChargeRule]:
        """Rule with this code, or None."""


class CustomerDirectory(Protocol):
    def by_code(self, customer_code: str) -> Optional[Customer]:
        """Customer with this code, or None."""

    def list_active(self) -> List[Customer]:
        """All ACTIVE customers ordered by code."""


class DurableCounter(Protocol):
    def durable_count(
        self,
        customer_id: int,
        transaction_type: str,
        period_start: datetime,
        period_end: datetime,
    ) -> int:
        """Persisted transactions of this type in [period_start, period_end)."""


class DuplicateGuard(Protocol):
    def exists(self, transaction_id: str) -> bool:
        """True if a transaction with this id was already recorded."""


class PersistenceGateway(Protocol):
    def record_transaction(
        self,
        transaction: TransactionRequest,
        customer: Customer,
        line_items: Sequence[ChargeCalculationDetail],
    ) -> PersistenceOutcome:
        """Durably record a calculated transaction and its line items. Never raises."""


class BalanceProvider(Protocol):
    def average_balance(self, customer: Customer, start: datetime, end: datetime) -> Decimal:
        """
        Average daily balance of the customer's accounts over [start, end).

        Raises:
            BalanceServiceError: when the balance cannot be obtained
        """
