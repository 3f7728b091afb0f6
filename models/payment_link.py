# models/payment_link.py
"""
PaymentLink model - a configured way to receive a crypto payment and settle
it as stablecoin into the owner's settlement wallet.

Identity, kind, owner, settle target, deposit asset, order reference and the
escrow condition / split table are written once at creation. Status, the
observed amounts and the release bookkeeping columns are mutated only by the
settlement engine, through conditional updates in the link store.
"""
import enum
from decimal import Decimal

from sqlalchemy import (
     Boolean, Column, DateTime, Enum, Integer, JSON, Numeric, String,
)
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow


class LinkKind(str, enum.Enum):
     """Release policy of a link, fixed at creation."""
     DIRECT = "direct"
     ESCROW = "escrow"
     SPLIT = "split"


class LinkStatus(str, enum.Enum):
     """Lifecycle status of a payment link."""
     CREATED = "created"
     AWAITING_DEPOSIT = "awaiting_deposit"
     PROCESSING = "processing"
     DEPOSIT_RECEIVED = "deposit_received"
     CONDITION_PENDING = "condition_pending"
     CONDITION_MET = "condition_met"
     RELEASING = "releasing"
     COMPLETED = "completed"
     FAILED = "failed"
     REFUNDED = "refunded"


def _enum_values(enum_cls):
     return [member.value for member in enum_cls]


class PaymentLink(Base):
     """
     Payment link row. Never deleted; terminal links are kept for audit.
     """
     __tablename__ = "payment_links"

     id = Column(String(36), primary_key=True, default=new_id)

     kind = Column(
          Enum(LinkKind, name="link_kind", create_constraint=True, values_callable=_enum_values),
          nullable=False,
     )
     owner = Column(String(128), nullable=False, index=True)
     label = Column(String(255), nullable=True)

     # Where funds end up (Direct/Escrow); Split links use split_table instead
     settle_address = Column(String(128), nullable=True)

     # Asset the payer sends
     deposit_coin = Column(String(32), nullable=False)
     deposit_network = Column(String(32), nullable=False)
     expected_amount = Column(Numeric(24, 8), nullable=True)  # advisory only

     # Swap provider order backing this link
     order_ref = Column(String(64), nullable=False, unique=True, index=True)
     deposit_address = Column(String(256), nullable=False)
     deposit_min = Column(Numeric(24, 8), nullable=True)
     deposit_max = Column(Numeric(24, 8), nullable=True)

     # Settlement wallet account the swap settles into
     custody_address = Column(String(128), nullable=False)

     status = Column(
          Enum(LinkStatus, name="link_status", create_constraint=True, values_callable=_enum_values),
          default=LinkStatus.AWAITING_DEPOSIT,
          nullable=False,
          index=True,
     )

     # Observed amounts (never reset to NULL once set)
     received_amount = Column(Numeric(24, 8), nullable=True)
     settled_amount = Column(Numeric(24, 8), nullable=True)
     deposit_hash = Column(String(128), nullable=True)
     settle_hash = Column(String(128), nullable=True)

     # Kind-specific configuration
     escrow_condition = Column(JSON, nullable=True)  # {"type", "tracking_number", "release_date", "description"}
     split_table = Column(JSON, nullable=True)  # [{"address", "percentage", "label"}, ...]

     # Durable condition state
     condition_verified_at = Column(DateTime, nullable=True)
     condition_approved_by = Column(String(128), nullable=True)

     # Release bookkeeping
     release_reason = Column(String(500), nullable=True)
     release_attempts = Column(Integer, default=0, nullable=False)
     last_release_error = Column(String(500), nullable=True)
     needs_review = Column(Boolean, default=False, nullable=False)
     release_claimed_at = Column(DateTime, nullable=True)

     # Timestamps
     created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
     updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

     # Relationships
     transactions = relationship(
          "Transaction",
          back_populates="link",
          order_by="Transaction.created_at",
     )

     def __repr__(self):
          return f"<PaymentLink(id={self.id}, kind='{self.kind.value}', status='{self.status.value}')>"

     @property
     def condition_type(self):
          if not self.escrow_condition:
               return None
          return self.escrow_condition.get("type")

     @property
     def recipients(self) -> list[dict]:
          """Split table with percentages as Decimal."""
          return [
               {
                    "address": row["address"],
                    "percentage": Decimal(str(row["percentage"])),
                    "label": row.get("label"),
               }
               for row in (self.split_table or [])
          ]
