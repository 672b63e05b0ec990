"""SQLAlchemy ORM models for customers, rules, transactions and charge line items"""

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class CustomerModel(Base):
    """Customer profile mirrored from customer management"""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_code = Column(String(20), nullable=False, unique=True, index=True)
    customer_type = Column(Text, nullable=False)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    company_name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="ACTIVE")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    transactions = relationship("TransactionModel", back_populates="customer")


class ChargeRuleModel(Base):
    """Configured charge rule"""

    __tablename__ = "charge_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rule_code = Column(String(10), nullable=False, unique=True, index=True)
    rule_name = Column(String(100), nullable=False)
    category = Column(Text, nullable=False, index=True)
    activity_type = Column(Text, nullable=False)
    conditions = Column(JSON, nullable=False, default=dict)
    fee_type = Column(Text, nullable=False)
    fee_value = Column(Numeric(10, 4), nullable=False)
    currency_code = Column(String(3), nullable=False, default="INR")
    min_amount = Column(Numeric(15, 2), nullable=True)
    max_amount = Column(Numeric(15, 2), nullable=True)
    threshold_count = Column(Integer, nullable=False, default=0)
    threshold_period = Column(Text, nullable=False, default="MONTHLY")
    status = Column(Text, nullable=False, default="DRAFT", index=True)
    effective_from = Column(DateTime, nullable=True)
    effective_to = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())


class TransactionModel(Base):
    """Transaction that went through charge calculation"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(64), nullable=False, unique=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    transaction_type = Column(Text, nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    currency_code = Column(String(3), nullable=False, default="INR")
    transaction_date = Column(DateTime, nullable=False, index=True)
    channel = Column(Text, nullable=True)
    source_account = Column(Text, nullable=True)
    destination_account = Column(Text, nullable=True)
    extra_data = Column("metadata", JSON, nullable=True)
    status = Column(Text, nullable=False, default="PROCESSED")
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    customer = relationship("CustomerModel", back_populates="transactions")
    charges = relationship("ChargeCalculationModel", back_populates="transaction", cascade="all, delete-orphan")


class ChargeCalculationModel(Base):
    """One rule's charge against one transaction"""

    __tablename__ = "charge_calculations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_pk = Column(Integer, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False)
    rule_id = Column(Integer, ForeignKey("charge_rules.id"), nullable=False)
    rule_code = Column(String(10), nullable=False)
    calculated_amount = Column(Numeric(15, 2), nullable=False)
    currency_code = Column(String(3), nullable=False, default="INR")
    calculation_basis = Column(Text, nullable=True)
    threshold_count_used = Column(Integer, nullable=False, default=0)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default="CALCULATED")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    transaction = relationship("TransactionModel", back_populates="charges")
