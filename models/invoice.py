# models/invoice.py
import enum
from sqlalchemy import Column, String, Numeric, Date, DateTime, Enum, ForeignKey, JSON, Text
from .base import Base, new_id, utcnow
from .payment_link import _enum_values


class InvoiceStatus(str, enum.Enum):
     """Enumeration for invoice payment status."""
     PENDING = "pending"
     PAID = "paid"
     OVERDUE = "overdue"
     CANCELLED = "cancelled"


class Invoice(Base):
     """
     Invoice model - a bill an owner sends to a client, optionally pointing
     at the payment link the client should pay through.
     """
     __tablename__ = "invoices"

     id = Column(String(36), primary_key=True, default=new_id)
     invoice_number = Column(String(40), nullable=False, unique=True, index=True)

     owner = Column(String(128), nullable=False, index=True)
     link_id = Column(
          String(36),
          ForeignKey("payment_links.id", ondelete="SET NULL"),
          nullable=True,
          index=True
     )

     # Client
     client_name = Column(String(255), nullable=False, default="Customer")
     client_email = Column(String(255), nullable=True)

     # Invoice details
     items = Column(JSON, nullable=False)  # [{"description", "quantity", "unit_price"}]
     subtotal = Column(Numeric(18, 2), nullable=False)
     tax = Column(Numeric(18, 2), nullable=False, default=0)
     total = Column(Numeric(18, 2), nullable=False)
     currency = Column(String(10), nullable=False, default="USD")
     notes = Column(Text, nullable=True)
     due_date = Column(Date, nullable=True, index=True)
     status = Column(
          Enum(InvoiceStatus, name="invoice_status", create_constraint=True, values_callable=_enum_values),
          default=InvoiceStatus.PENDING,
          nullable=False,
          index=True
     )

     # Timestamps
     created_at = Column(DateTime, default=utcnow, nullable=False)
     paid_at = Column(DateTime, nullable=True)

     def __repr__(self):
          return f"<Invoice(id={self.id}, number='{self.invoice_number}', status='{self.status.value}')>"

     @property
     def is_overdue(self) -> bool:
          """Check if invoice is past due date and unpaid."""
          from datetime import date
          return (
               self.status == InvoiceStatus.PENDING
               and self.due_date is not None
               and self.due_date < date.today()
          )

     def mark_as_paid(self) -> None:
          """Mark the invoice as paid."""
          self.status = InvoiceStatus.PAID
          self.paid_at = utcnow()

     def mark_as_overdue(self) -> None:
          """Mark the invoice as overdue."""
          self.status = InvoiceStatus.OVERDUE
