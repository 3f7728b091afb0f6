# schemas/webhook.py
"""
Pydantic schemas for outbound webhook subscriptions.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict


class WebhookCreate(BaseModel):
     owner: str = Field(..., min_length=1)
     url: str = Field(..., min_length=1, max_length=1000)
     events: List[str] = Field(..., min_length=1)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "owner": "0xabc0000000000000000000000000000000000001",
                    "url": "https://example.com/hooks/shiftstream",
                    "events": ["payment.received", "payment.completed"],
               }
          }
     )


class WebhookUpdate(BaseModel):
     """Only url, events and active can change."""
     owner: str = Field(..., min_length=1)
     url: Optional[str] = Field(None, min_length=1, max_length=1000)
     events: Optional[List[str]] = None
     active: Optional[bool] = None


class WebhookResponse(BaseModel):
     """Subscription without its secret."""
     id: str
     owner: str
     url: str
     events: List[str]
     active: bool
     created_at: datetime

     model_config = ConfigDict(from_attributes=True)


class WebhookCreatedResponse(BaseModel):
     webhook: WebhookResponse
     secret: str
     message: str = "Webhook created. Save your secret - it won't be shown again!"


class WebhookListResponse(BaseModel):
     webhooks: List[WebhookResponse]


class WebhookTrigger(BaseModel):
     owner: str = Field(..., min_length=1)
     event: str
     data: dict = {}


class WebhookTriggerResponse(BaseModel):
     triggered: int
     successful: int


class WebhookDeliveryResponse(BaseModel):
     id: int
     event: str
     payload: Optional[dict] = None
     success: bool
     status_code: Optional[int] = None
     error: Optional[str] = None
     created_at: datetime

     model_config = ConfigDict(from_attributes=True)


class WebhookDeliveryListResponse(BaseModel):
     deliveries: List[WebhookDeliveryResponse]
