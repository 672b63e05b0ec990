"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Generator, List, Optional, Sequence
from unittest.mock import Mock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from charge_engine.domain import fees
from charge_engine.domain.counting import PeriodCounter
from charge_engine.domain.models import (
    ActivityType,
    ChargeCalculationDetail,
    ChargeRule,
    Customer,
    CustomerType,
    FeeType,
    RuleCategory,
    RuleStatus,
    TransactionRequest,
)
from charge_engine.domain.ports import PersistenceOutcome
from charge_engine.infrastructure.database.models import Base
from charge_engine.infrastructure.database.seed import seed_reference_data
from charge_engine.service.calculator import ChargeCalculator
from charge_engine.service.dependencies import build_calculator

# Mid-month so a batch of transactions a minute apart stays in one calendar month
BASE_TIME = datetime(2024, 3, 10, 9, 0)


def make_transaction(
    transaction_id: str,
    transaction_type: str = fees.FUNDS_TRANSFER,
    amount: str = "1000",
    customer_code: str = "CUST001",
    timestamp: Optional[datetime] = None,
    channel: Optional[str] = "ONLINE",
) -> TransactionRequest:
    return TransactionRequest(
        transaction_id=transaction_id,
        customer_code=customer_code,
        transaction_type=transaction_type,
        amount=Decimal(amount),
        channel=channel,
        timestamp=timestamp or BASE_TIME,
    )


def make_rule(
    rule_code: str,
    transaction_type: Optional[str],
    category: RuleCategory = RuleCategory.ALL,
    fee_type: FeeType = FeeType.FLAT_AMOUNT,
    rule_id: int = 1,
    **overrides,
) -> ChargeRule:
    conditions = {"transaction_type": transaction_type} if transaction_type else {}
    values = dict(
        id=rule_id,
        rule_code=rule_code,
        rule_name=f"Rule {rule_code}",
        category=category,
        activity_type=ActivityType.UNIT_WISE,
        fee_type=fee_type,
        fee_value=Decimal("0"),
        conditions=conditions,
        status=RuleStatus.ACTIVE,
        effective_from=datetime(2000, 1, 1),
    )
    values.update(overrides)
    return ChargeRule(**values)


class InMemoryCatalog:
    def __init__(self, rules: List[ChargeRule]):
        self.rules = rules

    def active_rules_for(self, category: RuleCategory, as_of: datetime) -> List[ChargeRule]:
        return [
            r for r in self.rules
            if r.category in (category, RuleCategory.ALL) and r.is_effective(as_of)
        ]

    def by_code(self, rule_code: str) -> Optional[ChargeRule]:
        return next((r for r in self.rules if r.rule_code == rule_code), None)


class InMemoryCustomers:
    def __init__(self, customers: List[Customer]):
        self.customers = {c.customer_code: c for c in customers}

    def by_code(self, customer_code: str) -> Optional[Customer]:
        return self.customers.get(customer_code)

    def list_active(self) -> List[Customer]:
        return sorted(self.customers.values(), key=lambda c: c.customer_code)


class InMemoryLedger:
    """Durable counter, duplicate guard and persistence gateway backed by a list"""

    def __init__(self):
        self.recorded: List[tuple] = []
        self.count_queries = 0

    def durable_count(self, customer_id: int, transaction_type: str, period_start: datetime, period_end: datetime) -> int:
        self.count_queries += 1
        return sum(
            1 for txn, customer, _ in self.recorded
            if customer.id == customer_id
            and txn.transaction_type == transaction_type
            and period_start <= txn.timestamp < period_end
        )

    def exists(self, transaction_id: str) -> bool:
        return any(txn.transaction_id == transaction_id for txn, _, _ in self.recorded)

    def record_transaction(
        self,
        transaction: TransactionRequest,
        customer: Customer,
        line_items: Sequence[ChargeCalculationDetail],
    ) -> PersistenceOutcome:
        self.recorded.append((transaction, customer, list(line_items)))
        return PersistenceOutcome.succeeded()


@pytest.fixture
def retail_customer() -> Customer:
    return Customer(id=1, customer_code="CUST001", customer_type=CustomerType.RETAIL, first_name="Rajesh", last_name="Kumar")


@pytest.fixture
def corporate_customer() -> Customer:
    return Customer(id=2, customer_code="CORP001", customer_type=CustomerType.CORPORATE, company_name="TechCorp Solutions Pvt Ltd")


@pytest.fixture
def standard_rules() -> List[ChargeRule]:
    """The standard fee schedule as in-memory rules"""
    retail_only = {fees.ATM_PARENT, fees.ATM_OTHER, fees.MSC_RETAIL}
    corporate_only = {fees.BMC_CORP}
    trigger = {
        fees.ATM_PARENT: fees.ATM_WITHDRAWAL_PARENT,
        fees.ATM_OTHER: fees.ATM_WITHDRAWAL_OTHER,
        fees.MSC_RETAIL: fees.MONTHLY_SAVINGS_CHARGE,
        fees.BMC_CORP: fees.CORPORATE_BIMONTHLY_CHARGE,
        fees.FT_TIER1: fees.FUNDS_TRANSFER,
        fees.FT_TIER2: fees.FUNDS_TRANSFER,
        fees.FT_TIER3: fees.FUNDS_TRANSFER,
        fees.FT_TIER4: fees.FUNDS_TRANSFER,
        fees.STMT_PRINT: fees.STATEMENT_PRINT,
        fees.DUP_DEBIT: fees.DUPLICATE_DEBIT_CARD,
        fees.DUP_CREDIT: fees.DUPLICATE_CREDIT_CARD,
    }
    rules = []
    for rule_id, (code, txn_type) in enumerate(trigger.items(), start=1):
        if code in retail_only:
            category = RuleCategory.RETAIL_BANKING
        elif code in corporate_only:
            category = RuleCategory.CORP_BANKING
        else:
            category = RuleCategory.ALL
        rules.append(make_rule(code, txn_type, category=category, rule_id=rule_id))
    return rules


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def balances() -> Mock:
    """Balance provider returning a fixed average balance"""
    provider = Mock()
    provider.average_balance.return_value = Decimal("200000.00")
    return provider


@pytest.fixture
def calculator(standard_rules, retail_customer, corporate_customer, ledger, balances) -> ChargeCalculator:
    return ChargeCalculator(
        catalog=InMemoryCatalog(standard_rules),
        customers=InMemoryCustomers([retail_customer, corporate_customer]),
        counter=PeriodCounter(ledger),
        duplicates=ledger,
        gateway=ledger,
        balances=balances,
        persist_single=True,
    )


# Test database
@pytest.fixture
def db(tmp_path) -> Generator[Session, None, None]:
    """Create test database and session"""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def seeded_db(db: Session) -> Session:
    """Test database with default customers and the standard fee schedule"""
    seed_reference_data(db)
    return db


@pytest.fixture
def db_calculator(seeded_db: Session, balances: Mock) -> ChargeCalculator:
    """Calculator wired to SQLite-backed repositories"""
    return build_calculator(seeded_db, balances=balances)


def minutes_after(base: datetime, minutes: int) -> datetime:
    return base + timedelta(minutes=minutes)
