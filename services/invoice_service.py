# services/invoice_service.py
"""
Invoice Service - Business logic layer for invoice operations.

This service handles invoice creation, lookups and status changes
separate from the API layer.
"""
import secrets
import string
import time
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from models import Invoice, PaymentLink
from models.invoice import InvoiceStatus
from services.exceptions import ValidationError

_BASE36 = string.digits + string.ascii_uppercase


def _base36(value: int) -> str:
     digits = []
     while value:
          value, rem = divmod(value, 36)
          digits.append(_BASE36[rem])
     return "".join(reversed(digits)) or "0"


def generate_invoice_number() -> str:
     """INV-<millisecond timestamp in base36>-<4 random base36 chars>."""
     random_part = "".join(secrets.choice(_BASE36) for _ in range(4))
     return f"INV-{_base36(int(time.time() * 1000))}-{random_part}"


class InvoiceService:
     """Service class for invoice-related business logic."""

     @staticmethod
     def create_invoice(
          db: Session,
          owner: str,
          items: list[dict],
          link_id: Optional[str] = None,
          client_name: Optional[str] = None,
          client_email: Optional[str] = None,
          notes: Optional[str] = None,
          due_date: Optional[date] = None,
          currency: str = "USD",
     ) -> Invoice:
          """
          Create an invoice for an owner.

          Args:
               db: SQLAlchemy database session
               owner: Owner address issuing the invoice
               items: Line items with description, quantity and unit_price
               link_id: Optional payment link the client should pay through

          Returns:
               Created Invoice object

          Raises:
               ValidationError: If there are no items or the link is not the owner's
          """
          if not items:
               raise ValidationError("At least one invoice item is required")

          owner = owner.lower()
          if link_id:
               link = db.get(PaymentLink, link_id)
               if link is None or link.owner != owner:
                    raise ValidationError(f"Payment link {link_id} does not belong to {owner}")

          normalized = []
          subtotal = Decimal("0")
          for item in items:
               quantity = Decimal(str(item["quantity"]))
               unit_price = Decimal(str(item["unit_price"]))
               subtotal += quantity * unit_price
               normalized.append({
                    "description": item["description"],
                    "quantity": str(quantity),
                    "unit_price": str(unit_price),
               })
          tax = Decimal("0")

          invoice = Invoice(
               invoice_number=generate_invoice_number(),
               owner=owner,
               link_id=link_id,
               client_name=client_name or "Customer",
               client_email=client_email,
               items=normalized,
               subtotal=subtotal,
               tax=tax,
               total=subtotal + tax,
               currency=currency,
               notes=notes,
               due_date=due_date,
               status=InvoiceStatus.PENDING,
          )
          db.add(invoice)
          db.commit()
          db.refresh(invoice)
          return invoice

     @staticmethod
     def get_invoice(db: Session, invoice_id: Optional[str] = None, number: Optional[str] = None) -> Optional[Invoice]:
          if invoice_id:
               return db.get(Invoice, invoice_id)
          if number:
               return db.query(Invoice).filter(Invoice.invoice_number == number).first()
          return None

     @staticmethod
     def list_invoices(db: Session, owner: str) -> list[Invoice]:
          return (
               db.query(Invoice)
               .filter(Invoice.owner == owner.lower())
               .order_by(Invoice.created_at.desc())
               .all()
          )

     @staticmethod
     def update_status(db: Session, invoice_id: str, owner: str, status: InvoiceStatus) -> Optional[Invoice]:
          """
          Change an invoice's status. Only the issuing owner may do this.

          Returns None when no invoice with that id belongs to owner.
          """
          invoice = (
               db.query(Invoice)
               .filter(Invoice.id == invoice_id, Invoice.owner == owner.lower())
               .first()
          )
          if invoice is None:
               return None
          if status == InvoiceStatus.PAID:
               invoice.mark_as_paid()
          elif status == InvoiceStatus.OVERDUE:
               invoice.mark_as_overdue()
          else:
               invoice.status = status
          db.commit()
          db.refresh(invoice)
          return invoice

     @staticmethod
     def mark_overdue_invoices(db: Session) -> int:
          """
          Mark all pending invoices past their due date as OVERDUE.

          Returns:
               Number of invoices marked as overdue
          """
          overdue_invoices = db.query(Invoice).filter(
               Invoice.status == InvoiceStatus.PENDING,
               Invoice.due_date < date.today()
          ).all()

          for invoice in overdue_invoices:
               invoice.mark_as_overdue()
          db.commit()
          return len(overdue_invoices)
