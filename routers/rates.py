# routers/rates.py
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query

from routers.deps import get_exchange_rates
from schemas.rates import ExchangeRatesResponse
from services.exchange_rates import ExchangeRateService

router = APIRouter(tags=["rates"])


@router.get("/api/exchange-rates", response_model=ExchangeRatesResponse, summary="Fiat value of an amount")
def exchange_rates(
     amount: Decimal = Query(Decimal("1"), gt=0),
     base: str = Query("USD", min_length=3, max_length=5),
     currencies: Optional[str] = Query(None, description="Comma separated, e.g. USD,EUR"),
     rates: ExchangeRateService = Depends(get_exchange_rates),
):
     targets = [c.strip() for c in currencies.split(",") if c.strip()] if currencies else None
     return rates.convert(amount, base=base, currencies=targets)
