# schemas/invoice.py
"""
Pydantic schemas for Invoice API request/response validation.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from models import InvoiceStatus


class InvoiceItem(BaseModel):
     """One invoice line."""
     description: str = Field(..., min_length=1)
     quantity: Decimal = Field(..., gt=0)
     unit_price: Decimal = Field(..., ge=0)


class InvoiceCreate(BaseModel):
     """Schema for creating a new invoice."""
     owner: str = Field(..., min_length=1, description="Issuing owner address")
     items: List[InvoiceItem] = Field(..., min_length=1)
     link_id: Optional[str] = Field(None, description="Payment link the client pays through")
     client_name: Optional[str] = None
     client_email: Optional[str] = None
     notes: Optional[str] = None
     due_date: Optional[date] = None
     currency: str = Field(default="USD", max_length=10)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "owner": "0xabc0000000000000000000000000000000000001",
                    "client_name": "Acme Corp",
                    "client_email": "billing@acme.example",
                    "items": [
                         {"description": "Logo design", "quantity": 1, "unit_price": 450.00},
                         {"description": "Revisions", "quantity": 3, "unit_price": 50.00},
                    ],
                    "due_date": "2026-02-28",
               }
          }
     )


class InvoiceUpdate(BaseModel):
     """Schema for changing an invoice's status."""
     owner: str = Field(..., min_length=1)
     status: InvoiceStatus

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "owner": "0xabc0000000000000000000000000000000000001",
                    "status": "paid"
               }
          }
     )


class InvoiceResponse(BaseModel):
     """Schema for invoice response."""
     id: str
     invoice_number: str
     owner: str
     link_id: Optional[str] = None
     client_name: str
     client_email: Optional[str] = None
     items: List[dict]
     subtotal: Decimal
     tax: Decimal
     total: Decimal
     currency: str
     notes: Optional[str] = None
     due_date: Optional[date] = None
     status: InvoiceStatus
     created_at: datetime
     paid_at: Optional[datetime] = None

     model_config = ConfigDict(from_attributes=True)


class InvoiceListResponse(BaseModel):
     """Schema for invoice list response."""
     invoices: List[InvoiceResponse]
     total: int
