# services/webhook_service.py
"""
Webhook subscription CRUD, always scoped by owner.
"""
import logging
import secrets
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from models import WebhookDelivery, WebhookSubscription
from services.exceptions import ValidationError
from services.notifications import WEBHOOK_EVENTS

logger = logging.getLogger("shiftstream.webhooks")

UPDATABLE_FIELDS = ("url", "events", "active")


def _check_events(events: Iterable[str]) -> list[str]:
     events = list(events or [])
     if not events:
          raise ValidationError("At least one event is required")
     unknown = [e for e in events if e not in WEBHOOK_EVENTS]
     if unknown:
          raise ValidationError(f"Unknown webhook events: {', '.join(unknown)}")
     return events


class WebhookService:

     @staticmethod
     def create(db: Session, owner: str, url: str, events: Iterable[str]) -> WebhookSubscription:
          """The returned object carries the secret; it is never shown again."""
          if not url:
               raise ValidationError("url is required")
          subscription = WebhookSubscription(
               owner=owner.lower(),
               url=url,
               secret=secrets.token_hex(32),
               events=_check_events(events),
               active=True,
          )
          db.add(subscription)
          db.commit()
          db.refresh(subscription)
          logger.info("Webhook %s created for %s -> %s", subscription.id, subscription.owner, url)
          return subscription

     @staticmethod
     def list_for_owner(db: Session, owner: str) -> list[WebhookSubscription]:
          return (
               db.query(WebhookSubscription)
               .filter(WebhookSubscription.owner == owner.lower())
               .order_by(WebhookSubscription.created_at)
               .all()
          )

     @staticmethod
     def get(db: Session, subscription_id: str, owner: str) -> Optional[WebhookSubscription]:
          return (
               db.query(WebhookSubscription)
               .filter(
                    WebhookSubscription.id == subscription_id,
                    WebhookSubscription.owner == owner.lower(),
               )
               .first()
          )

     @staticmethod
     def update(db: Session, subscription_id: str, owner: str, changes: dict) -> Optional[WebhookSubscription]:
          subscription = WebhookService.get(db, subscription_id, owner)
          if subscription is None:
               return None
          for name in UPDATABLE_FIELDS:
               if changes.get(name) is None:
                    continue
               value = changes[name]
               if name == "events":
                    value = _check_events(value)
               setattr(subscription, name, value)
          db.commit()
          db.refresh(subscription)
          return subscription

     @staticmethod
     def delete(db: Session, subscription_id: str, owner: str) -> bool:
          subscription = WebhookService.get(db, subscription_id, owner)
          if subscription is None:
               return False
          db.delete(subscription)
          db.commit()
          logger.info("Webhook %s deleted", subscription_id)
          return True

     @staticmethod
     def recent_deliveries(db: Session, subscription_id: str, limit: int = 20) -> list[WebhookDelivery]:
          return (
               db.query(WebhookDelivery)
               .filter(WebhookDelivery.subscription_id == subscription_id)
               .order_by(WebhookDelivery.id.desc())
               .limit(limit)
               .all()
          )
