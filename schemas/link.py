# schemas/link.py
"""
Pydantic schemas for payment link API request/response validation.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models import LinkKind, LinkStatus
from schemas.transaction import TransactionResponse


class EscrowConditionIn(BaseModel):
     """Release condition for an escrow link."""
     type: str = Field(..., description="delivery, manual or time")
     tracking_number: Optional[str] = Field(None, description="Required for delivery conditions")
     release_date: Optional[str] = Field(None, description="ISO date, required for time conditions")
     description: Optional[str] = None


class SplitRecipient(BaseModel):
     """One row of a split table."""
     address: str
     percentage: Decimal
     label: Optional[str] = None


class LinkCreate(BaseModel):
     """
     Schema for creating a payment link.

     Field presence is checked by the settlement engine so every malformed
     request gets the same ValidationError treatment.
     """
     type: Optional[str] = Field(None, description="direct, escrow or split")
     owner: Optional[str] = Field(None, description="Owner wallet address")
     settle_address: Optional[str] = Field(None, description="Destination for direct and escrow links")
     deposit_coin: Optional[str] = Field(None, description="Coin the payer sends")
     deposit_network: Optional[str] = Field(None, description="Network the payer sends on")
     amount: Optional[Decimal] = Field(None, description="Advisory expected amount")
     label: Optional[str] = Field(None, max_length=255)
     escrow_condition: Optional[EscrowConditionIn] = None
     split_recipients: Optional[List[SplitRecipient]] = None
     refund_address: Optional[str] = None

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "type": "split",
                    "owner": "0xAbc0000000000000000000000000000000000001",
                    "deposit_coin": "ETH",
                    "deposit_network": "ethereum",
                    "label": "Band merch",
                    "split_recipients": [
                         {"address": "0x1111111111111111111111111111111111111111", "percentage": 50, "label": "Alice"},
                         {"address": "0x2222222222222222222222222222222222222222", "percentage": 30, "label": "Bob"},
                         {"address": "0x3333333333333333333333333333333333333333", "percentage": 20, "label": "Carol"},
                    ],
               }
          }
     )


class LinkResponse(BaseModel):
     """Schema for payment link response."""
     id: str
     kind: LinkKind
     status: LinkStatus
     owner: str
     label: Optional[str] = None
     settle_address: Optional[str] = None
     deposit_coin: str
     deposit_network: str
     deposit_address: str
     deposit_min: Optional[Decimal] = None
     deposit_max: Optional[Decimal] = None
     order_ref: str
     custody_address: str
     expected_amount: Optional[Decimal] = None
     received_amount: Optional[Decimal] = None
     settled_amount: Optional[Decimal] = None
     deposit_hash: Optional[str] = None
     settle_hash: Optional[str] = None
     escrow_condition: Optional[dict] = None
     recipients: List[SplitRecipient] = []
     condition_verified_at: Optional[datetime] = None
     condition_approved_by: Optional[str] = None
     release_attempts: int = 0
     needs_review: bool = False
     created_at: datetime
     updated_at: datetime

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "id": "0b6f6f0e-1c55-4bd7-9d6e-3f6f7b0d7a11",
                    "kind": "escrow",
                    "status": "awaiting_deposit",
                    "owner": "0xabc0000000000000000000000000000000000001",
                    "settle_address": "0xdef0000000000000000000000000000000000002",
                    "deposit_coin": "BTC",
                    "deposit_network": "bitcoin",
                    "deposit_address": "bc1qexampledepositaddress",
                    "order_ref": "a1b2c3d4e5f6",
                    "custody_address": "0x9f86d081884c7d659a2feaa0c55ad015a3bf4f1b",
                    "escrow_condition": {"type": "delivery", "tracking_number": "WIN123456"},
                    "recipients": [],
                    "release_attempts": 0,
                    "needs_review": False,
                    "created_at": "2026-01-31T10:30:00",
                    "updated_at": "2026-01-31T10:30:00",
               }
          }
     )


class LinkDetailResponse(LinkResponse):
     """Link with its transaction ledger."""
     transactions: List[TransactionResponse] = []


class LinkListResponse(BaseModel):
     links: List[LinkResponse]
     total: int


class StatusReportResponse(BaseModel):
     """What a link is waiting for, and which actions apply."""
     link_id: str
     kind: LinkKind
     status: LinkStatus
     blocking_reason: Optional[str] = None
     guidance: Optional[str] = None
     can_retry: bool = False
     can_release: bool = False
     needs_review: bool = False
     release_attempts: int = 0
     last_release_error: Optional[str] = None
     condition: Optional[dict] = None

     model_config = ConfigDict(
          from_attributes=True,
          json_schema_extra={
               "example": {
                    "link_id": "0b6f6f0e-1c55-4bd7-9d6e-3f6f7b0d7a11",
                    "kind": "escrow",
                    "status": "condition_pending",
                    "blocking_reason": "condition_not_met",
                    "guidance": "Package SHIP42 is currently in transit. Expected delivery in 2-3 days. Funds stay locked until delivery is confirmed.",
                    "can_retry": False,
                    "can_release": False,
                    "needs_review": False,
                    "release_attempts": 0,
               }
          }
     )


class ConditionResponse(BaseModel):
     met: bool
     reason: str
     guidance: Optional[str] = None
     details: dict = {}

     model_config = ConfigDict(from_attributes=True)


class ReleaseRequest(BaseModel):
     reason: str = Field(default="manual release", max_length=500)


class ApproveRequest(BaseModel):
     approver: str = Field(..., min_length=1, description="Must be the link owner")
