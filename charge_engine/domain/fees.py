"""
Fee computation strategies and the rule-code registry.

Threshold and tier logic (free band, then escalating charges) cannot be
expressed by a fee type and a single fee value, so each rule code maps to a
hand-written strategy. Codes without a strategy charge nothing.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Iterator, Mapping, Optional

from charge_engine.domain.counting import MONTHLY, CountWindow
from charge_engine.domain.exceptions import RuleComputationError
from charge_engine.domain.models import ChargeRule, Customer, CustomerType, TransactionRequest
from charge_engine.domain.ports import BalanceProvider
from charge_engine.utils.money import format_inr, percentage_of

ZERO = Decimal("0")

# Transaction types
ATM_WITHDRAWAL_PARENT = "ATM_WITHDRAWAL_PARENT"
ATM_WITHDRAWAL_OTHER = "ATM_WITHDRAWAL_OTHER"
MONTHLY_SAVINGS_CHARGE = "MONTHLY_SAVINGS_CHARGE"
CORPORATE_BIMONTHLY_CHARGE = "CORPORATE_BIMONTHLY_CHARGE"
FUNDS_TRANSFER = "FUNDS_TRANSFER"
STATEMENT_PRINT = "STATEMENT_PRINT"
DUPLICATE_DEBIT_CARD = "DUPLICATE_DEBIT_CARD"
DUPLICATE_CREDIT_CARD = "DUPLICATE_CREDIT_CARD"

# Rule codes
ATM_PARENT = "ATM_PARENT"
ATM_OTHER = "ATM_OTHER"
MSC_RETAIL = "MSC_RETAIL"
BMC_CORP = "BMC_CORP"
FT_TIER1 = "FT_TIER1"
FT_TIER2 = "FT_TIER2"
FT_TIER3 = "FT_TIER3"
FT_TIER4 = "FT_TIER4"
STMT_PRINT = "STMT_PRINT"
DUP_DEBIT = "DUP_DEBIT"
DUP_CREDIT = "DUP_CREDIT"

BIMONTHLY = CountWindow.rolling(60)


@dataclass(frozen=True)
class FeeContext:
    """Everything a strategy may look at. `period_count` includes the current transaction."""

    transaction: TransactionRequest
    customer: Customer
    rule: ChargeRule
    period_count: Optional[int] = None
    balances: Optional[BalanceProvider] = None


@dataclass(frozen=True)
class FeeOutcome:
    """Unrounded charge with its explanation"""

    amount: Decimal
    basis: str
    applied_rate: Optional[Decimal] = None


@dataclass(frozen=True)
class FeeStrategy:
    """
    Named fee computation.

    `window` is the counting period the strategy needs; the engine resolves
    the period count for it before calling `compute`. None means no count.
    """

    name: str
    compute: Callable[[FeeContext], FeeOutcome]
    window: Optional[CountWindow] = None


def _no_charge(ctx: FeeContext) -> FeeOutcome:
    return FeeOutcome(ZERO, f"No fee computation registered for rule {ctx.rule.rule_code}")


NO_CHARGE = FeeStrategy(name="no_charge", compute=_no_charge)


def _require_count(ctx: FeeContext) -> int:
    if ctx.period_count is None:
        raise RuleComputationError(f"Period count missing for rule {ctx.rule.rule_code}")
    return ctx.period_count


def flat_fee(fee: Decimal) -> FeeStrategy:
    """Same fee on every matching transaction"""

    def compute(ctx: FeeContext) -> FeeOutcome:
        return FeeOutcome(fee, f"Applied flat fee of {format_inr(fee)}")

    return FeeStrategy(name=f"flat_{fee}", compute=compute)


def percentage_above_free_count(free_count: int, rate_percent: Decimal, window: CountWindow = MONTHLY) -> FeeStrategy:
    """First `free_count` transactions in the window are free, later ones pay a percentage of the amount"""

    def compute(ctx: FeeContext) -> FeeOutcome:
        count = _require_count(ctx)
        if count <= free_count:
            return FeeOutcome(
                ZERO,
                f"Transaction #{count} {window.describe()} is within {free_count} free transactions",
            )
        amount = ctx.transaction.amount
        charge = percentage_of(amount, rate_percent)
        return FeeOutcome(
            charge,
            f"Transaction #{count} {window.describe()} exceeds {free_count} free transactions. "
            f"Applied {rate_percent}% on amount {format_inr(amount)} = {format_inr(charge)}",
            applied_rate=rate_percent,
        )

    return FeeStrategy(name=f"pct_{rate_percent}_after_{free_count}", compute=compute, window=window)


def flat_fee_in_count_band(low: int, high: Optional[int], fee: Decimal, window: CountWindow = MONTHLY) -> FeeStrategy:
    """Flat fee when the period count falls within [low, high]; `high=None` is unbounded"""
    band = f"{low}+" if high is None else f"{low}-{high}"

    def compute(ctx: FeeContext) -> FeeOutcome:
        count = _require_count(ctx)
        if count < low or (high is not None and count > high):
            return FeeOutcome(ZERO, f"Transaction #{count} {window.describe()} is outside band {band}")
        return FeeOutcome(
            fee,
            f"Transaction #{count} {window.describe()} falls in band {band}. Applied flat fee of {format_inr(fee)}",
        )

    return FeeStrategy(name=f"band_{band}", compute=compute, window=window)


def once_per_window_flat(fee: Decimal, customer_type: CustomerType, window: CountWindow = MONTHLY) -> FeeStrategy:
    """Flat fee charged on the first qualifying transaction of the window only"""

    def compute(ctx: FeeContext) -> FeeOutcome:
        if ctx.customer.customer_type != customer_type:
            return FeeOutcome(ZERO, f"Applies to {customer_type.value} customers only")
        count = _require_count(ctx)
        if count > 1:
            return FeeOutcome(ZERO, f"Already charged {window.describe()}")
        return FeeOutcome(fee, f"Applied periodic fee of {format_inr(fee)} for {window.describe()}")

    return FeeStrategy(name=f"once_{fee}", compute=compute, window=window)


def once_per_window_balance_percentage(
    rate_percent: Decimal,
    customer_type: CustomerType,
    window: CountWindow,
) -> FeeStrategy:
    """Percentage of the customer's average balance over the window, charged once per window"""

    def compute(ctx: FeeContext) -> FeeOutcome:
        if ctx.customer.customer_type != customer_type:
            return FeeOutcome(ZERO, f"Applies to {customer_type.value} customers only")
        count = _require_count(ctx)
        if count > 1:
            return FeeOutcome(ZERO, f"Already charged {window.describe()}")
        if ctx.balances is None:
            raise RuleComputationError("No balance provider configured for average balance charges")

        start, end = window.bounds(ctx.transaction.timestamp)
        average = ctx.balances.average_balance(ctx.customer, start, end)
        charge = percentage_of(average, rate_percent)
        return FeeOutcome(
            charge,
            f"Applied {rate_percent}% on average balance {format_inr(average)} "
            f"{window.describe()} = {format_inr(charge)}",
            applied_rate=rate_percent,
        )

    return FeeStrategy(name=f"balance_pct_{rate_percent}", compute=compute, window=window)


class FeeRegistry:
    """Rule code -> fee strategy. Unknown codes resolve to a zero-charge strategy."""

    def __init__(self, strategies: Optional[Mapping[str, FeeStrategy]] = None, default: FeeStrategy = NO_CHARGE):
        self._strategies: Dict[str, FeeStrategy] = dict(strategies or {})
        self.default = default

    def register(self, rule_code: str, strategy: FeeStrategy) -> None:
        self._strategies[rule_code] = strategy

    def resolve(self, rule_code: str) -> FeeStrategy:
        return self._strategies.get(rule_code, self.default)

    def __contains__(self, rule_code: object) -> bool:
        return rule_code in self._strategies

    def __iter__(self) -> Iterator[str]:
        return iter(self._strategies)

    def __len__(self) -> int:
        return len(self._strategies)


def build_default_registry() -> FeeRegistry:
    """Standard bank fee schedule"""
    return FeeRegistry(
        {
            ATM_PARENT: percentage_above_free_count(20, Decimal("2")),
            ATM_OTHER: percentage_above_free_count(5, Decimal("10")),
            MSC_RETAIL: once_per_window_flat(Decimal("25"), CustomerType.RETAIL),
            BMC_CORP: once_per_window_balance_percentage(Decimal("5"), CustomerType.CORPORATE, BIMONTHLY),
            FT_TIER1: flat_fee_in_count_band(1, 10, ZERO),
            FT_TIER2: flat_fee_in_count_band(11, 30, Decimal("100")),
            FT_TIER3: flat_fee_in_count_band(31, 50, Decimal("150")),
            FT_TIER4: flat_fee_in_count_band(51, None, Decimal("300")),
            STMT_PRINT: flat_fee(Decimal("50")),
            DUP_DEBIT: flat_fee(Decimal("150")),
            DUP_CREDIT: flat_fee(Decimal("450")),
        }
    )


default_registry = build_default_registry()
