# models/webhook_subscription.py
"""
Outbound webhook configuration per link owner, plus a delivery log.

The signing secret is stored for HMAC signing but only ever returned in the
creation response.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow


class WebhookSubscription(Base):
     __tablename__ = "webhook_subscriptions"

     id = Column(String(36), primary_key=True, default=new_id)
     owner = Column(String(128), nullable=False, index=True)
     url = Column(String(1000), nullable=False)
     secret = Column(String(128), nullable=False)
     events = Column(JSON, nullable=False)  # list of event names
     active = Column(Boolean, default=True, nullable=False)
     created_at = Column(DateTime, default=utcnow, nullable=False)

     deliveries = relationship(
          "WebhookDelivery",
          back_populates="subscription",
          cascade="all, delete-orphan",
     )

     def __repr__(self):
          return f"<WebhookSubscription(id={self.id}, owner='{self.owner}', active={self.active})>"

     def listens_to(self, event: str) -> bool:
          return self.active and event in (self.events or [])


class WebhookDelivery(Base):
     """One delivery attempt of an event to a subscription."""
     __tablename__ = "webhook_deliveries"

     id = Column(Integer, primary_key=True, autoincrement=True)
     subscription_id = Column(
          String(36),
          ForeignKey("webhook_subscriptions.id", ondelete="CASCADE"),
          nullable=False,
          index=True,
     )
     event = Column(String(64), nullable=False)
     payload = Column(JSON, nullable=True)
     success = Column(Boolean, default=False, nullable=False)
     status_code = Column(Integer, nullable=True)
     error = Column(Text, nullable=True)
     created_at = Column(DateTime, default=utcnow, nullable=False)

     subscription = relationship("WebhookSubscription", back_populates="deliveries")
