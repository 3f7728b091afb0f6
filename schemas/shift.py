# schemas/shift.py
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class ShiftCreate(BaseModel):
     """Raw shift request, bypassing payment links."""
     deposit_coin: str = Field(..., min_length=1)
     deposit_network: str = Field(..., min_length=1)
     settle_address: str = Field(..., min_length=1)
     refund_address: Optional[str] = None

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "deposit_coin": "ETH",
                    "deposit_network": "ethereum",
                    "settle_address": "0xdef0000000000000000000000000000000000002",
               }
          }
     )


class ShiftResponse(BaseModel):
     order_id: str
     deposit_address: str
     deposit_min: Optional[Decimal] = None
     deposit_max: Optional[Decimal] = None

     model_config = ConfigDict(from_attributes=True)


class ShiftStatusResponse(BaseModel):
     status: str
     deposit_amount: Optional[Decimal] = None
     settle_amount: Optional[Decimal] = None
     deposit_hash: Optional[str] = None
     settle_hash: Optional[str] = None
     settle_address: Optional[str] = None

     model_config = ConfigDict(from_attributes=True)


class AccountResponse(BaseModel):
     owner: str
     address: str
     is_deployed: bool
     balance: Decimal
