# schemas/rates.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict


class ConversionResponse(BaseModel):
     value: Decimal
     symbol: str
     formatted: str

     model_config = ConfigDict(from_attributes=True)


class ExchangeRatesResponse(BaseModel):
     conversions: Dict[str, ConversionResponse]
     timestamp: Optional[datetime] = None
     cached: bool = False
     fallback: bool = False

     model_config = ConfigDict(from_attributes=True)
