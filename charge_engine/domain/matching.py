"""Structural matching of charge rules against a transaction"""

from typing import Iterable, List

from charge_engine.domain.models import ChargeRule, TransactionRequest

TRANSACTION_TYPE_CONDITION = "transaction_type"
CHANNEL_CONDITION = "channel"


def matches(rule: ChargeRule, transaction: TransactionRequest) -> bool:
    """
    Check a rule's structural conditions against a transaction.

    - `transaction_type` condition must equal the transaction type exactly
    - amount must fall within [min_amount, max_amount]; a missing bound is open
    - `channel` condition applies only when the transaction carries a channel

    A rule without conditions matches every transaction in its category.
    """
    conditions = rule.conditions or {}

    required_type = conditions.get(TRANSACTION_TYPE_CONDITION)
    if required_type is not None and str(required_type) != transaction.transaction_type:
        return False

    if rule.min_amount is not None and transaction.amount < rule.min_amount:
        return False
    if rule.max_amount is not None and transaction.amount > rule.max_amount:
        return False

    required_channel = conditions.get(CHANNEL_CONDITION)
    if required_channel is not None and transaction.channel is not None:
        if str(required_channel) != transaction.channel:
            return False

    return True


def filter_applicable(rules: Iterable[ChargeRule], transaction: TransactionRequest) -> List[ChargeRule]:
    """Rules that match the transaction, in catalog order"""
    return [rule for rule in rules if matches(rule, transaction)]
