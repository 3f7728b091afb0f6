# schemas/transaction.py
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict

from models import TransactionKind, TransactionStatus


class TransactionResponse(BaseModel):
     """Ledger entry of a payment link."""
     id: str
     link_id: str
     kind: TransactionKind
     amount: Decimal
     recipient: str
     status: TransactionStatus
     external_ref: Optional[str] = None
     note: Optional[str] = None
     created_at: datetime
     completed_at: Optional[datetime] = None

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "id": "5f0c1b5e-8a33-4d4c-9d1b-1d7e0f6c2a90",
                    "link_id": "0b6f6f0e-1c55-4bd7-9d6e-3f6f7b0d7a11",
                    "kind": "split_distribution",
                    "amount": "500.00",
                    "recipient": "0x1111111111111111111111111111111111111111",
                    "status": "completed",
                    "external_ref": "0x4e3a...",
                    "created_at": "2026-01-31T10:45:00",
                    "completed_at": "2026-01-31T10:45:02",
               }
          }
     )
