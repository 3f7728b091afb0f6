# routers/sideshift_webhook.py
"""
Inbound SideShift webhook.

Every delivery for a known order is acknowledged after reconciliation;
deliveries for unknown orders are still acknowledged so the provider stops
retrying them.
"""
import hmac
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

import config
from models.base import utcnow
from routers.deps import get_engine, to_http_error
from services.exceptions import ShiftStreamError
from services.notifications import sign_payload
from services.settlement_engine import SettlementEngine

logger = logging.getLogger("shiftstream.webhook")

router = APIRouter(prefix="/api/webhook", tags=["provider-webhook"])


def _verify_signature(raw: bytes, signature: str) -> bool:
     if not config.SIDESHIFT_WEBHOOK_SECRET:
          return True
     expected = sign_payload(raw.decode("utf-8"), config.SIDESHIFT_WEBHOOK_SECRET)
     return hmac.compare_digest(expected, signature or "")


@router.post("/sideshift", summary="SideShift shift status push")
async def sideshift_webhook(request: Request, engine: SettlementEngine = Depends(get_engine)):
     raw = await request.body()
     if not _verify_signature(raw, request.headers.get("x-sideshift-signature")):
          logger.warning("Rejected SideShift webhook with bad signature")
          raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

     try:
          payload = json.loads(raw or b"{}")
     except ValueError:
          raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")
     if not isinstance(payload, dict) or not payload.get("id") or not payload.get("status"):
          raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload")

     logger.info("SideShift webhook: shift %s is %s", payload["id"], payload["status"])
     try:
          link = await run_in_threadpool(engine.handle_provider_webhook, payload)
     except ShiftStreamError as e:
          raise to_http_error(e)

     if link is None:
          return {"received": True, "status": "link_not_found"}
     return {"received": True, "linkId": link.id, "newStatus": link.status.value}


@router.get("/sideshift", summary="Webhook health check")
def sideshift_webhook_health():
     return {"status": "ok", "endpoint": "SideShift webhook handler", "timestamp": utcnow().isoformat()}
