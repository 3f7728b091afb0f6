# models/__init__.py
from .base import Base
from .payment_link import PaymentLink, LinkKind, LinkStatus
from .transaction import Transaction, TransactionKind, TransactionStatus
from .webhook_subscription import WebhookSubscription, WebhookDelivery
from .invoice import Invoice, InvoiceStatus

__all__ = [
     "Base",
     "PaymentLink",
     "LinkKind",
     "LinkStatus",
     "Transaction",
     "TransactionKind",
     "TransactionStatus",
     "WebhookSubscription",
     "WebhookDelivery",
     "Invoice",
     "InvoiceStatus",
]
