"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from charge_engine.utils.date_utils import to_naive_utc


class CustomerType(str, Enum):
    RETAIL = "RETAIL"
    CORPORATE = "CORPORATE"


class CustomerStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class RuleCategory(str, Enum):
    RETAIL_BANKING = "RETAIL_BANKING"
    CORP_BANKING = "CORP_BANKING"
    ALL = "ALL"


class ActivityType(str, Enum):
    """Descriptive grouping of a rule; fee dispatch is by rule code"""

    UNIT_WISE = "UNIT_WISE"
    RANGE_BASED = "RANGE_BASED"
    MONTHLY = "MONTHLY"
    SPECIAL = "SPECIAL"
    ADHOC = "ADHOC"


class FeeType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FLAT_AMOUNT = "FLAT_AMOUNT"
    TIERED = "TIERED"


class ThresholdPeriod(str, Enum):
    DAILY = "DAILY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class RuleStatus(str, Enum):
    """
    Rule lifecycle.

    DRAFT -> ACTIVE only through approval, ACTIVE <-> INACTIVE,
    anything but ARCHIVED -> ARCHIVED, and nothing leaves ARCHIVED.
    """

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"

    def can_transition_to(self, target: "RuleStatus") -> bool:
        return target in _RULE_TRANSITIONS[self]


_RULE_TRANSITIONS = {
    RuleStatus.DRAFT: {RuleStatus.ACTIVE, RuleStatus.ARCHIVED},
    RuleStatus.ACTIVE: {RuleStatus.INACTIVE, RuleStatus.ARCHIVED},
    RuleStatus.INACTIVE: {RuleStatus.ACTIVE, RuleStatus.ARCHIVED},
    RuleStatus.ARCHIVED: set(),
}


@dataclass
class Customer:
    """Customer profile owned by the customer-management system (read-only here)"""

    id: int
    customer_code: str
    customer_type: CustomerType
    status: CustomerStatus = CustomerStatus.ACTIVE
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None

    @property
    def category(self) -> RuleCategory:
        """Rule category that applies to this customer"""
        if self.customer_type == CustomerType.RETAIL:
            return RuleCategory.RETAIL_BANKING
        return RuleCategory.CORP_BANKING

    @property
    def display_name(self) -> str:
        if self.customer_type == CustomerType.RETAIL:
            return " ".join(part for part in (self.first_name, self.last_name) if part)
        return self.company_name or ""


@dataclass
class ChargeRule:
    """Configured charge rule; `rule_code` selects the fee strategy"""

    id: int
    rule_code: str
    rule_name: str
    category: RuleCategory
    activity_type: ActivityType
    fee_type: FeeType
    fee_value: Decimal
    conditions: Dict[str, Any] = field(default_factory=dict)
    currency: str = "INR"
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    threshold_count: int = 0
    threshold_period: ThresholdPeriod = ThresholdPeriod.MONTHLY
    status: RuleStatus = RuleStatus.DRAFT
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None

    def is_effective(self, as_of: datetime) -> bool:
        """Only ACTIVE rules inside [effective_from, effective_to) are eligible"""
        if self.status != RuleStatus.ACTIVE:
            return False
        if self.effective_from is not None and self.effective_from > as_of:
            return False
        if self.effective_to is not None and self.effective_to <= as_of:
            return False
        return True


@dataclass(frozen=True)
class TransactionRequest:
    """
    Incoming transaction to be charged. One request, one calculation attempt.

    Timestamps are held as naive UTC; aware values are converted on construction.
    """

    transaction_id: str
    customer_code: str
    transaction_type: str
    amount: Optional[Decimal]
    currency: str = "INR"
    channel: Optional[str] = None
    timestamp: Optional[datetime] = None
    source_account: Optional[str] = None
    destination_account: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        stamp = self.timestamp if self.timestamp is not None else datetime.now(timezone.utc)
        object.__setattr__(self, "timestamp", to_naive_utc(stamp))


@dataclass(frozen=True)
class ChargeCalculationDetail:
    """One rule's computed charge against one transaction"""

    rule_id: int
    rule_code: str
    rule_name: str
    rule_category: RuleCategory
    activity_type: ActivityType
    fee_type: FeeType
    charge_amount: Decimal
    currency: str
    calculation_basis: str
    applied_rate: Optional[Decimal] = None
    period_count: Optional[int] = None
