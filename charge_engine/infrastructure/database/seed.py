"""Reference data: sample customers and the standard fee schedule"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from charge_engine.domain import fees
from charge_engine.domain.models import ActivityType, CustomerType, FeeType, RuleCategory, ThresholdPeriod
from charge_engine.infrastructure.database.repositories import CustomerRepository, RuleRepository

DEFAULT_CUSTOMERS: List[Dict[str, Any]] = [
    {"customer_code": "CUST001", "customer_type": CustomerType.RETAIL, "first_name": "Rajesh", "last_name": "Kumar",
     "email": "rajesh.kumar@email.com", "phone": "9876543210"},
    {"customer_code": "CUST002", "customer_type": CustomerType.RETAIL, "first_name": "Priya", "last_name": "Sharma",
     "email": "priya.sharma@email.com", "phone": "9876543211"},
    {"customer_code": "CUST003", "customer_type": CustomerType.RETAIL, "first_name": "Amit", "last_name": "Patel",
     "email": "amit.patel@email.com", "phone": "9876543212"},
    {"customer_code": "CORP001", "customer_type": CustomerType.CORPORATE, "company_name": "TechCorp Solutions Pvt Ltd",
     "email": "accounts@techcorp.com", "phone": "1234567890"},
    {"customer_code": "CORP002", "customer_type": CustomerType.CORPORATE, "company_name": "Global Industries Ltd",
     "email": "finance@globalind.com", "phone": "1234567891"},
]


def _rule(code, name, category, activity, fee_type, fee_value, txn_type, threshold_count=0):
    return {
        "rule_code": code,
        "rule_name": name,
        "category": category,
        "activity_type": activity,
        "fee_type": fee_type,
        "fee_value": Decimal(fee_value),
        "conditions": {"transaction_type": txn_type},
        "threshold_count": threshold_count,
    }


DEFAULT_RULES: List[Dict[str, Any]] = [
    _rule(fees.ATM_PARENT, "ATM Withdrawal - Parent Bank", RuleCategory.RETAIL_BANKING, ActivityType.RANGE_BASED,
          FeeType.PERCENTAGE, "2", fees.ATM_WITHDRAWAL_PARENT, threshold_count=20),
    _rule(fees.ATM_OTHER, "ATM Withdrawal - Other Bank", RuleCategory.RETAIL_BANKING, ActivityType.RANGE_BASED,
          FeeType.PERCENTAGE, "10", fees.ATM_WITHDRAWAL_OTHER, threshold_count=5),
    _rule(fees.MSC_RETAIL, "Monthly Savings Account Charge", RuleCategory.RETAIL_BANKING, ActivityType.MONTHLY,
          FeeType.FLAT_AMOUNT, "25", fees.MONTHLY_SAVINGS_CHARGE),
    _rule(fees.BMC_CORP, "Corporate Bi-Monthly Charge", RuleCategory.CORP_BANKING, ActivityType.MONTHLY,
          FeeType.PERCENTAGE, "5", fees.CORPORATE_BIMONTHLY_CHARGE),
    _rule(fees.FT_TIER1, "Funds Transfer 1-10 (Free)", RuleCategory.ALL, ActivityType.RANGE_BASED,
          FeeType.TIERED, "0", fees.FUNDS_TRANSFER, threshold_count=10),
    _rule(fees.FT_TIER2, "Funds Transfer 11-30", RuleCategory.ALL, ActivityType.RANGE_BASED,
          FeeType.TIERED, "100", fees.FUNDS_TRANSFER, threshold_count=30),
    _rule(fees.FT_TIER3, "Funds Transfer 31-50", RuleCategory.ALL, ActivityType.RANGE_BASED,
          FeeType.TIERED, "150", fees.FUNDS_TRANSFER, threshold_count=50),
    _rule(fees.FT_TIER4, "Funds Transfer 51+", RuleCategory.ALL, ActivityType.RANGE_BASED,
          FeeType.TIERED, "300", fees.FUNDS_TRANSFER),
    _rule(fees.STMT_PRINT, "Statement Print", RuleCategory.ALL, ActivityType.SPECIAL,
          FeeType.FLAT_AMOUNT, "50", fees.STATEMENT_PRINT),
    _rule(fees.DUP_DEBIT, "Duplicate Debit Card", RuleCategory.ALL, ActivityType.SPECIAL,
          FeeType.FLAT_AMOUNT, "150", fees.DUPLICATE_DEBIT_CARD),
    _rule(fees.DUP_CREDIT, "Duplicate Credit Card", RuleCategory.ALL, ActivityType.SPECIAL,
          FeeType.FLAT_AMOUNT, "450", fees.DUPLICATE_CREDIT_CARD),
]


def seed_reference_data(db: Session, effective_from: datetime = datetime(2000, 1, 1)) -> None:
    """Insert missing default customers and rules; seeded rules are approved immediately"""
    customers = CustomerRepository(db)
    created_customers = 0
    for entry in DEFAULT_CUSTOMERS:
        if customers.by_code(entry["customer_code"]) is None:
            customers.create_customer(**entry)
            created_customers += 1

    rules = RuleRepository(db)
    created_rules = 0
    for entry in DEFAULT_RULES:
        if rules.by_code(entry["rule_code"]) is None:
            rules.add_rule(threshold_period=ThresholdPeriod.MONTHLY, effective_from=effective_from, **entry)
            rules.approve(entry["rule_code"])
            created_rules += 1

    db.commit()
    logging.info(
        "Reference data seeded",
        extra={"step": "seed", "customers_created": created_customers, "rules_created": created_rules},
    )
