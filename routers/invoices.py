# routers/invoices.py
"""
Invoice API routes.

Invoices are issued by a link owner to a client and can point at the
payment link the client pays through. Status changes are restricted to the
issuing owner.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from database import get_session
from routers.deps import to_http_error
from schemas.invoice import (
     InvoiceCreate,
     InvoiceUpdate,
     InvoiceResponse,
     InvoiceListResponse,
)
from services.exceptions import ShiftStreamError
from services.invoice_service import InvoiceService

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


@router.post(
     "",
     response_model=InvoiceResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a new invoice"
)
def create_invoice(invoice_data: InvoiceCreate, db: Session = Depends(get_session)):
     """
     Create a new invoice.

     - **owner**: Address issuing the invoice
     - **items**: Line items; subtotal and total are computed (tax is 0)
     - **link_id**: Optional payment link owned by the same owner
     - **due_date**: Optional payment due date
     """
     try:
          return InvoiceService.create_invoice(
               db,
               owner=invoice_data.owner,
               items=[item.model_dump() for item in invoice_data.items],
               link_id=invoice_data.link_id,
               client_name=invoice_data.client_name,
               client_email=invoice_data.client_email,
               notes=invoice_data.notes,
               due_date=invoice_data.due_date,
               currency=invoice_data.currency,
          )
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.get("", response_model=InvoiceListResponse, summary="List an owner's invoices")
def list_invoices(
     owner: Optional[str] = Query(None, description="Owner wallet address"),
     db: Session = Depends(get_session),
):
     if not owner:
          raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="owner is required")
     invoices = InvoiceService.list_invoices(db, owner)
     return InvoiceListResponse(invoices=invoices, total=len(invoices))


@router.get("/number/{invoice_number}", response_model=InvoiceResponse, summary="Get invoice by number")
def get_invoice_by_number(invoice_number: str, db: Session = Depends(get_session)):
     invoice = InvoiceService.get_invoice(db, number=invoice_number)
     if not invoice:
          raise HTTPException(
               status_code=status.HTTP_404_NOT_FOUND,
               detail=f"Invoice {invoice_number} not found"
          )
     return invoice


@router.get("/{invoice_id}", response_model=InvoiceResponse, summary="Get invoice by ID")
def get_invoice(invoice_id: str, db: Session = Depends(get_session)):
     invoice = InvoiceService.get_invoice(db, invoice_id=invoice_id)
     if not invoice:
          raise HTTPException(
               status_code=status.HTTP_404_NOT_FOUND,
               detail=f"Invoice with ID {invoice_id} not found"
          )
     return invoice


@router.patch("/{invoice_id}", response_model=InvoiceResponse, summary="Update invoice status")
def update_invoice_status(invoice_id: str, body: InvoiceUpdate, db: Session = Depends(get_session)):
     """Marking an invoice paid stamps paid_at."""
     invoice = InvoiceService.update_status(db, invoice_id, body.owner, body.status)
     if not invoice:
          raise HTTPException(
               status_code=status.HTTP_404_NOT_FOUND,
               detail=f"Invoice with ID {invoice_id} not found"
          )
     return invoice
