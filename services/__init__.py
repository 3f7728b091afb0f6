# services/__init__.py
from .invoice_service import InvoiceService
from .link_store import LinkStore
from .settlement_engine import LinkRequest, SettlementEngine, StatusReport
from .webhook_service import WebhookService

__all__ = [
     "InvoiceService",
     "LinkStore",
     "LinkRequest",
     "SettlementEngine",
     "StatusReport",
     "WebhookService",
]
