"""Pydantic schemas for batch calculation and charge test requests"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from charge_engine.config import settings
from charge_engine.domain.models import TransactionRequest


class TransactionPayload(BaseModel):
    """
    Transaction as submitted in a batch.

    Fields are deliberately permissive: missing or blank values are rejected
    per item by the calculator's validation gate, not for the whole batch.
    """

    transaction_id: Optional[str] = None
    customer_code: Optional[str] = None
    transaction_type: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = Field(default_factory=lambda: settings.default_currency)
    channel: Optional[str] = None
    timestamp: Optional[datetime] = None
    source_account: Optional[str] = None
    destination_account: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_request(self) -> TransactionRequest:
        return TransactionRequest(
            transaction_id=self.transaction_id or "",
            customer_code=self.customer_code or "",
            transaction_type=self.transaction_type or "",
            amount=self.amount,
            currency=self.currency,
            channel=self.channel,
            timestamp=self.timestamp,
            source_account=self.source_account,
            destination_account=self.destination_account,
            metadata=dict(self.metadata),
        )


class BulkCalculationRequest(BaseModel):
    """Batch of transactions evaluated in one counting scope"""

    transactions: List[TransactionPayload] = Field(default_factory=list)
    save_results: bool = Field(default_factory=lambda: settings.bulk_save_results)
    stop_on_error: bool = Field(default_factory=lambda: settings.bulk_stop_on_error)
    batch_id: Optional[str] = None
    description: Optional[str] = None


class SimulatedTransaction(BaseModel):
    """Single simulated transaction in a charge test"""

    transaction_type: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    channel: Optional[str] = None
    description: Optional[str] = None
    source_account: Optional[str] = None
    destination_account: Optional[str] = None


class ChargeTestRequest(BaseModel):
    """What-if run of several transactions for one customer"""

    customer_code: str = Field(..., min_length=1)
    test_transactions: List[SimulatedTransaction] = Field(default_factory=list)
    save_results: bool = False
    test_description: Optional[str] = None
