# routers/webhooks.py
"""
Outbound webhook subscription API.

Every operation is scoped by owner; the signing secret is only returned by
the create call.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from database import get_session
from routers.deps import get_notifier, to_http_error
from schemas.webhook import (
     WebhookCreate,
     WebhookCreatedResponse,
     WebhookDeliveryListResponse,
     WebhookListResponse,
     WebhookResponse,
     WebhookTrigger,
     WebhookTriggerResponse,
     WebhookUpdate,
)
from services.exceptions import ShiftStreamError
from services.notifications import WEBHOOK_EVENTS, NotificationDispatcher
from services.webhook_service import WebhookService

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.get("", response_model=WebhookListResponse, summary="List an owner's webhooks")
def list_webhooks(
     owner: Optional[str] = Query(None, description="Owner wallet address"),
     db: Session = Depends(get_session),
):
     if not owner:
          raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="owner is required")
     return WebhookListResponse(webhooks=WebhookService.list_for_owner(db, owner))


@router.post(
     "",
     response_model=WebhookCreatedResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a webhook subscription"
)
def create_webhook(body: WebhookCreate, db: Session = Depends(get_session)):
     try:
          subscription = WebhookService.create(db, body.owner, body.url, body.events)
     except ShiftStreamError as e:
          raise to_http_error(e)
     return WebhookCreatedResponse(
          webhook=WebhookResponse.model_validate(subscription),
          secret=subscription.secret,
     )


@router.patch("/{webhook_id}", response_model=WebhookResponse, summary="Update url, events or active")
def update_webhook(webhook_id: str, body: WebhookUpdate, db: Session = Depends(get_session)):
     try:
          subscription = WebhookService.update(
               db, webhook_id, body.owner, body.model_dump(exclude={"owner"}, exclude_none=True)
          )
     except ShiftStreamError as e:
          raise to_http_error(e)
     if subscription is None:
          raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook not found")
     return subscription


@router.delete("/{webhook_id}", summary="Delete a webhook subscription")
def delete_webhook(
     webhook_id: str,
     owner: str = Query(..., description="Owner wallet address"),
     db: Session = Depends(get_session),
):
     if not WebhookService.delete(db, webhook_id, owner):
          raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook not found")
     return {"success": True}


@router.post("/trigger", response_model=WebhookTriggerResponse, summary="Fire an event manually")
def trigger_webhook(body: WebhookTrigger, notifier: NotificationDispatcher = Depends(get_notifier)):
     if body.event not in WEBHOOK_EVENTS:
          raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown event '{body.event}'")
     results = notifier.deliver(body.owner, body.event, body.data)
     return WebhookTriggerResponse(
          triggered=len(results),
          successful=sum(1 for r in results if r.success),
     )


@router.get("/{webhook_id}/deliveries", response_model=WebhookDeliveryListResponse, summary="Recent delivery attempts")
def list_deliveries(
     webhook_id: str,
     owner: str = Query(..., description="Owner wallet address"),
     limit: int = Query(20, ge=1, le=100),
     db: Session = Depends(get_session),
):
     if WebhookService.get(db, webhook_id, owner) is None:
          raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook not found")
     return WebhookDeliveryListResponse(deliveries=WebhookService.recent_deliveries(db, webhook_id, limit))
