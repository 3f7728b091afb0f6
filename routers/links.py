# routers/links.py
"""
Payment link API routes.

Creation, lookup, status reporting and the manual actions (reconcile,
verify condition, approve, release) all go through the settlement engine.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from routers.deps import get_engine, to_http_error
from schemas.link import (
     ApproveRequest,
     ConditionResponse,
     LinkCreate,
     LinkDetailResponse,
     LinkListResponse,
     LinkResponse,
     ReleaseRequest,
     StatusReportResponse,
)
from schemas.transaction import TransactionResponse
from services.exceptions import ShiftStreamError
from services.settlement_engine import LinkRequest, SettlementEngine

router = APIRouter(prefix="/api/links", tags=["links"])


@router.post(
     "",
     response_model=LinkResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a payment link"
)
def create_link(body: LinkCreate, engine: SettlementEngine = Depends(get_engine)):
     """
     Create a direct, escrow or split payment link.

     - **direct**: needs settle_address; funds are released as soon as the swap settles
     - **escrow**: needs settle_address and escrow_condition
     - **split**: needs split_recipients whose percentages sum to 100
     """
     request = LinkRequest(
          kind=body.type,
          owner=body.owner,
          settle_address=body.settle_address,
          deposit_coin=body.deposit_coin,
          deposit_network=body.deposit_network,
          expected_amount=body.amount,
          label=body.label,
          escrow_condition=body.escrow_condition.model_dump() if body.escrow_condition else None,
          split_recipients=[r.model_dump() for r in body.split_recipients] if body.split_recipients else None,
          refund_address=body.refund_address,
     )
     try:
          return engine.create_link(request)
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.get("", response_model=LinkListResponse, summary="List an owner's links")
def list_links(
     owner: Optional[str] = Query(None, description="Owner wallet address"),
     engine: SettlementEngine = Depends(get_engine),
):
     if not owner:
          raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="owner is required")
     links = engine.list_links(owner)
     return LinkListResponse(links=links, total=len(links))


@router.get("/{link_id}", response_model=LinkDetailResponse, summary="Get a link with its transactions")
def get_link(link_id: str, engine: SettlementEngine = Depends(get_engine)):
     try:
          return engine.get_link(link_id)
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.get("/{link_id}/status", response_model=StatusReportResponse, summary="Why a link has not completed yet")
def get_link_status(link_id: str, engine: SettlementEngine = Depends(get_engine)):
     try:
          return engine.get_status_report(link_id)
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.post("/{link_id}/reconcile", response_model=LinkResponse, summary="Poll the swap provider now")
def reconcile_link(link_id: str, engine: SettlementEngine = Depends(get_engine)):
     """Manual retry: fetches the order from the provider and reconciles."""
     try:
          return engine.reconcile(link_id, source="manual")
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.post("/{link_id}/verify", response_model=ConditionResponse, summary="Evaluate the escrow condition")
def verify_condition(link_id: str, engine: SettlementEngine = Depends(get_engine)):
     try:
          return engine.verify_condition(link_id)
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.post("/{link_id}/approve", response_model=LinkResponse, summary="Approve a manual escrow condition")
def approve_condition(link_id: str, body: ApproveRequest, engine: SettlementEngine = Depends(get_engine)):
     try:
          return engine.approve_condition(link_id, body.approver)
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.post("/{link_id}/release", response_model=TransactionResponse, summary="Release escrowed funds")
def release_escrow(
     link_id: str,
     body: Optional[ReleaseRequest] = None,
     engine: SettlementEngine = Depends(get_engine),
):
     """
     Release an escrow once its deposit is confirmed and its condition is met.

     Answers 409 with the blocking reason and guidance otherwise. Calling it
     again after a release returns the existing release transaction.
     """
     reason = body.reason if body else "manual release"
     try:
          return engine.release_escrow(link_id, reason)
     except ShiftStreamError as e:
          raise to_http_error(e)
