# schemas/notify.py
from typing import Literal, Optional
from pydantic import BaseModel, Field, ConfigDict


class NotifyRequest(BaseModel):
     to: str = Field(..., min_length=3)
     type: Literal["payment_received", "escrow_released", "split_distributed", "link_created"]
     data: dict

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "to": "merchant@example.com",
                    "type": "payment_received",
                    "data": {"amount": "0.01", "coin": "BTC", "settledAmount": "612.40", "linkId": "0b6f6f0e"},
               }
          }
     )


class EmailPreview(BaseModel):
     subject: str
     body: str


class NotifyResponse(BaseModel):
     success: bool = True
     sent: bool
     message: str
     preview: Optional[EmailPreview] = None
