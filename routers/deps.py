# routers/deps.py
"""
Shared FastAPI dependencies and domain error -> HTTP mapping.

Collaborators are process-wide singletons; tests swap them through
app.dependency_overrides.
"""
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import SessionLocal, get_session
from services.conditions import ConditionRegistry, default_registry
from services.exceptions import (
     LinkNotFoundError,
     OrderCreationError,
     OrderNotFoundError,
     ProviderUnavailableError,
     ReleaseError,
     ShiftStreamError,
     ValidationError,
     WalletError,
)
from services.exchange_rates import ExchangeRateService
from services.notifications import NotificationDispatcher
from services.poller import LinkPoller
from services.settlement_engine import SettlementEngine
from services.settlement_wallet import SettlementWallet, build_wallet
from services.swap_provider import SideShiftClient


@lru_cache
def get_swap_provider() -> SideShiftClient:
     return SideShiftClient()


@lru_cache
def get_wallet() -> SettlementWallet:
     return build_wallet()


@lru_cache
def get_conditions() -> ConditionRegistry:
     return default_registry()


@lru_cache
def get_exchange_rates() -> ExchangeRateService:
     return ExchangeRateService()


@lru_cache
def get_notifier() -> NotificationDispatcher:
     return NotificationDispatcher(SessionLocal, executor=ThreadPoolExecutor(max_workers=4))


@lru_cache
def get_poller() -> Optional[LinkPoller]:
     return LinkPoller(SessionLocal, engine_factory=build_engine)


def build_engine(db: Session) -> SettlementEngine:
     """Engine wired with the process-wide collaborators (used by the poller)."""
     return SettlementEngine(
          db,
          get_swap_provider(),
          get_wallet(),
          conditions=get_conditions(),
          notifier=get_notifier(),
          poller=get_poller(),
     )


def get_engine(
     db: Session = Depends(get_session),
     swap_provider: SideShiftClient = Depends(get_swap_provider),
     wallet: SettlementWallet = Depends(get_wallet),
     conditions: ConditionRegistry = Depends(get_conditions),
     notifier: NotificationDispatcher = Depends(get_notifier),
     poller: Optional[LinkPoller] = Depends(get_poller),
) -> SettlementEngine:
     return SettlementEngine(
          db,
          swap_provider,
          wallet,
          conditions=conditions,
          notifier=notifier,
          poller=poller,
     )


def to_http_error(exc: ShiftStreamError) -> HTTPException:
     if isinstance(exc, ValidationError):
          return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
     if isinstance(exc, (LinkNotFoundError, OrderNotFoundError)):
          return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
     if isinstance(exc, (OrderCreationError, WalletError)):
          return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
     if isinstance(exc, ProviderUnavailableError):
          return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
     if isinstance(exc, ReleaseError):
          return HTTPException(
               status_code=status.HTTP_409_CONFLICT,
               detail={
                    "blocking_reason": exc.blocking_reason,
                    "message": str(exc),
                    "guidance": exc.guidance,
               },
          )
     return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
