# schemas/__init__.py
from .invoice import (
     InvoiceCreate,
     InvoiceUpdate,
     InvoiceResponse,
     InvoiceListResponse,
)
from .link import (
     LinkCreate,
     LinkResponse,
     LinkDetailResponse,
     LinkListResponse,
     StatusReportResponse,
)
from .transaction import TransactionResponse
from .webhook import (
     WebhookCreate,
     WebhookUpdate,
     WebhookResponse,
     WebhookCreatedResponse,
     WebhookDeliveryResponse,
     WebhookDeliveryListResponse,
)

__all__ = [
     "InvoiceCreate",
     "InvoiceUpdate",
     "InvoiceResponse",
     "InvoiceListResponse",
     "LinkCreate",
     "LinkResponse",
     "LinkDetailResponse",
     "LinkListResponse",
     "StatusReportResponse",
     "TransactionResponse",
     "WebhookCreate",
     "WebhookUpdate",
     "WebhookResponse",
     "WebhookCreatedResponse",
     "WebhookDeliveryResponse",
     "WebhookDeliveryListResponse",
]
