# routers/__init__.py
from . import invoices, links, notify, rates, shift, sideshift_webhook, webhooks

__all__ = ["invoices", "links", "notify", "rates", "shift", "sideshift_webhook", "webhooks"]
