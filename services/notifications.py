# services/notifications.py
"""
Notification Dispatcher - fans engine events out to the owner's webhook
subscriptions, and renders the transactional email templates.

Delivery never raises into the caller: every attempt is recorded in
webhook_deliveries and failures are only logged.
"""
import hashlib
import hmac
import json
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import datetime, timezone
from html import escape
from typing import Callable, Optional

import requests
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
from models import WebhookDelivery, WebhookSubscription
from utils.email import EmailDeliveryError, send_email

logger = logging.getLogger("shiftstream.notifications")

WEBHOOK_EVENTS = (
     "link.created",
     "payment.received",
     "payment.processing",
     "payment.completed",
     "payment.failed",
     "escrow.released",
     "split.distributed",
)


def sign_payload(body: str, secret: str) -> str:
     """HMAC-SHA256 hex digest of the raw request body."""
     return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


@dataclass
class DeliveryResult:
     subscription_id: str
     success: bool
     status_code: Optional[int] = None
     error: Optional[str] = None


class NotificationDispatcher:
     """
     Delivers events to webhook subscriptions.

     With an executor, dispatch() returns immediately and deliveries run in
     the background with their own session; without one, they run inline.
     """

     def __init__(
          self,
          session_factory: Callable[[], Session],
          executor: Optional[Executor] = None,
          http: Optional[requests.Session] = None,
          timeout: float = config.WEBHOOK_TIMEOUT_SECONDS,
     ):
          self.session_factory = session_factory
          self.executor = executor
          self.http = http or requests.Session()
          self.timeout = timeout

     def dispatch(self, owner: str, event: str, data: dict) -> None:
          if self.executor is not None:
               self.executor.submit(self._safe_deliver, owner, event, data)
          else:
               self._safe_deliver(owner, event, data)

     def _safe_deliver(self, owner: str, event: str, data: dict) -> None:
          try:
               self.deliver(owner, event, data)
          except (SQLAlchemyError, requests.RequestException):
               logger.exception("Dispatch of %s for %s failed", event, owner)

     def deliver(self, owner: str, event: str, data: dict) -> list[DeliveryResult]:
          """Send event to every active subscription of owner listening to it."""
          db = self.session_factory()
          try:
               stmt = select(WebhookSubscription).where(
                    WebhookSubscription.owner == owner.lower(),
                    WebhookSubscription.active.is_(True),
               )
               subscriptions = [s for s in db.execute(stmt).scalars().all() if s.listens_to(event)]
               if not subscriptions:
                    return []

               timestamp = datetime.now(timezone.utc).isoformat()
               body = json.dumps({"event": event, "timestamp": timestamp, "data": data}, default=str)

               results = []
               for subscription in subscriptions:
                    result = self._post(subscription, event, timestamp, body)
                    db.add(WebhookDelivery(
                         subscription_id=subscription.id,
                         event=event,
                         payload=json.loads(body)["data"],
                         success=result.success,
                         status_code=result.status_code,
                         error=result.error,
                    ))
                    results.append(result)
               db.commit()

               delivered = sum(1 for r in results if r.success)
               logger.info("Event %s for %s: %d/%d deliveries succeeded", event, owner, delivered, len(results))
               return results
          finally:
               db.close()

     def _post(self, subscription: WebhookSubscription, event: str, timestamp: str, body: str) -> DeliveryResult:
          headers = {
               "Content-Type": "application/json",
               "X-ShiftStream-Signature": sign_payload(body, subscription.secret),
               "X-ShiftStream-Event": event,
               "X-ShiftStream-Timestamp": timestamp,
          }
          try:
               response = self.http.post(subscription.url, data=body, headers=headers, timeout=self.timeout)
          except requests.RequestException as e:
               logger.warning("Webhook %s to %s failed: %s", event, subscription.url, e)
               return DeliveryResult(subscription.id, False, error=str(e))
          ok = 200 <= response.status_code < 300
          if not ok:
               logger.warning("Webhook %s to %s answered %s", event, subscription.url, response.status_code)
          return DeliveryResult(subscription.id, ok, status_code=response.status_code)


# ----------------------------------------------------------------------
# Email templates
# ----------------------------------------------------------------------

_CARD = 'style="background: #1a1a2e; padding: 20px; border-radius: 12px; margin: 20px 0;"'


def _button(href: str, label: str, color: str) -> str:
     return (
          f'<a href="{escape(href)}" style="display: inline-block; background: {color}; color: white; '
          f'padding: 12px 24px; border-radius: 8px; text-decoration: none; margin-top: 20px;">{label}</a>'
     )


def _v(data: dict, key: str) -> str:
     return escape(str(data.get(key, "")))


def _payment_received(data: dict) -> str:
     return f"""
          <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
               <h1 style="color: #8B5CF6;">Payment Received!</h1>
               <p>Great news! Your Smart Link has received a payment.</p>
               <div {_CARD}>
                    <p><strong>Amount:</strong> {_v(data, "amount")} {_v(data, "coin")}</p>
                    <p><strong>Settled:</strong> {_v(data, "settledAmount")} {config.SETTLE_COIN}</p>
                    <p><strong>Link ID:</strong> {_v(data, "linkId")}</p>
               </div>
               <p>The funds have been settled to your Smart Account.</p>
               {_button(f"{config.APP_BASE_URL}/dashboard", "View Dashboard", "#8B5CF6")}
          </div>
     """


def _escrow_released(data: dict) -> str:
     return f"""
          <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
               <h1 style="color: #10B981;">Escrow Released!</h1>
               <p>The escrow condition has been met and funds have been released.</p>
               <div {_CARD}>
                    <p><strong>Amount:</strong> {_v(data, "amount")} {config.SETTLE_COIN}</p>
                    <p><strong>Condition:</strong> {_v(data, "condition")}</p>
                    <p><strong>Released To:</strong> {_v(data, "recipient")}</p>
               </div>
               {_button(f"{config.APP_BASE_URL}/dashboard", "View Details", "#10B981")}
          </div>
     """


def _split_distributed(data: dict) -> str:
     return f"""
          <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
               <h1 style="color: #3B82F6;">Split Payment Distributed!</h1>
               <p>A split payment has been automatically distributed to all recipients.</p>
               <div {_CARD}>
                    <p><strong>Total Amount:</strong> {_v(data, "totalAmount")} {config.SETTLE_COIN}</p>
                    <p><strong>Recipients:</strong> {_v(data, "recipientCount")}</p>
                    <p><strong>Your Share:</strong> {_v(data, "yourShare")} {config.SETTLE_COIN} ({_v(data, "percentage")}%)</p>
               </div>
               {_button(f"{config.APP_BASE_URL}/dashboard", "View Transaction", "#3B82F6")}
          </div>
     """


def _link_created(data: dict) -> str:
     payment_url = data.get("paymentUrl") or f"{config.APP_BASE_URL}/pay?id={data.get('linkId', '')}"
     return f"""
          <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
               <h1 style="color: #8B5CF6;">Smart Link Created!</h1>
               <p>Your new Smart Link is ready to receive payments.</p>
               <div {_CARD}>
                    <p><strong>Type:</strong> {_v(data, "type")}</p>
                    <p><strong>Accept:</strong> {_v(data, "depositCoin")} on {_v(data, "depositNetwork")}</p>
                    <p><strong>Deposit Address:</strong></p>
                    <code style="background: #0f0f23; padding: 8px 12px; border-radius: 6px; display: block; word-break: break-all;">{_v(data, "depositAddress")}</code>
               </div>
               {_button(payment_url, "View Payment Link", "#8B5CF6")}
          </div>
     """


EMAIL_TEMPLATES = {
     "payment_received": ("Payment Received - ShiftStream", _payment_received),
     "escrow_released": ("Escrow Released - ShiftStream", _escrow_released),
     "split_distributed": ("Split Payment Distributed - ShiftStream", _split_distributed),
     "link_created": ("Smart Link Created - ShiftStream", _link_created),
}


@dataclass
class RenderedEmail:
     subject: str
     body: str
     sent: bool = False


def render_email(template: str, data: dict) -> RenderedEmail:
     if template not in EMAIL_TEMPLATES:
          raise KeyError(template)
     subject, render = EMAIL_TEMPLATES[template]
     return RenderedEmail(subject=subject, body=render(data))


def send_notification_email(to_email: str, template: str, data: dict) -> RenderedEmail:
     """
     Render a template and send it through Brevo. Without an API key the
     email is only logged; the rendered preview is returned either way.
     """
     email = render_email(template, data)
     if not config.BREVO_API_KEY:
          logger.info("Email '%s' to %s not sent (BREVO_API_KEY unset)", email.subject, to_email)
          return email
     try:
          send_email(to_email, email.subject, email.body)
          email.sent = True
     except (EmailDeliveryError, requests.RequestException) as e:
          logger.error("Email '%s' to %s failed: %s", email.subject, to_email, e)
     return email
