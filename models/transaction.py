# models/transaction.py
"""
Transaction model - append-only ledger of deposits and outbound transfers
for a payment link.

A row is written once. The only permitted change is a single move from
PENDING to COMPLETED or FAILED, enforced by the link store.
"""
import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow
from .payment_link import _enum_values


class TransactionKind(str, enum.Enum):
     DEPOSIT = "deposit"
     AUTO_RELEASE = "auto_release"
     ESCROW_RELEASE = "escrow_release"
     SPLIT_DISTRIBUTION = "split_distribution"
     REFUND = "refund"


class TransactionStatus(str, enum.Enum):
     PENDING = "pending"
     COMPLETED = "completed"
     FAILED = "failed"


# Kinds produced by a release/distribution event
RELEASE_KINDS = (
     TransactionKind.AUTO_RELEASE,
     TransactionKind.ESCROW_RELEASE,
     TransactionKind.SPLIT_DISTRIBUTION,
)


class Transaction(Base):
     """Ledger entry owned by a PaymentLink."""
     __tablename__ = "transactions"

     id = Column(String(36), primary_key=True, default=new_id)
     link_id = Column(
          String(36),
          ForeignKey("payment_links.id", ondelete="RESTRICT"),  # links are never deleted
          nullable=False,
          index=True,
     )
     kind = Column(
          Enum(TransactionKind, name="transaction_kind", create_constraint=True, values_callable=_enum_values),
          nullable=False,
     )
     amount = Column(Numeric(24, 8), nullable=False)
     recipient = Column(String(128), nullable=False)
     status = Column(
          Enum(TransactionStatus, name="transaction_status", create_constraint=True, values_callable=_enum_values),
          default=TransactionStatus.PENDING,
          nullable=False,
          index=True,
     )
     external_ref = Column(String(128), nullable=True)  # transfer hash / provider hash
     note = Column(String(500), nullable=True)
     created_at = Column(DateTime, default=utcnow, nullable=False)
     completed_at = Column(DateTime, nullable=True)

     # Relationships
     link = relationship("PaymentLink", back_populates="transactions")

     def __repr__(self):
          return f"<Transaction(id={self.id}, kind='{self.kind.value}', amount={self.amount}, status='{self.status.value}')>"

     @property
     def is_final(self) -> bool:
          return self.status != TransactionStatus.PENDING
