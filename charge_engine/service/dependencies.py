"""Wiring of the calculator to its database-backed collaborators"""

from typing import Optional

from sqlalchemy.orm import Session

from charge_engine.domain.counting import PeriodCounter
from charge_engine.domain.ports import BalanceProvider
from charge_engine.infrastructure.clients.balance import BalanceClient
from charge_engine.infrastructure.database.repositories import (
    CustomerRepository,
    RuleRepository,
    TransactionRepository,
)
from charge_engine.service.calculator import ChargeCalculator


def get_balance_client() -> BalanceClient:
    """Provide Balance API client instance"""
    return BalanceClient()


def build_calculator(db: Session, balances: Optional[BalanceProvider] = None) -> ChargeCalculator:
    """Calculator whose catalog, directory, counts and persistence share one session"""
    transactions = TransactionRepository(db)
    return ChargeCalculator(
        catalog=RuleRepository(db),
        customers=CustomerRepository(db),
        counter=PeriodCounter(transactions),
        duplicates=transactions,
        gateway=transactions,
        balances=balances if balances is not None else get_balance_client(),
    )
