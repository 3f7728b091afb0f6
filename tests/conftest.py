"""
Pytest configuration: in-memory database, fake collaborators and a
TestClient with dependency overrides.
"""
import threading
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base
from services.conditions import DeliveryStatus, TrackingService, default_registry
from services.exceptions import OrderNotFoundError, TransferError
from services.notifications import NotificationDispatcher
from services.settlement_engine import LinkRequest, SettlementEngine
from services.settlement_wallet import SettlementWallet, WalletAccount
from services.swap_provider import DepositOrder, OrderObservation

# A single in-memory connection shared by every session in a test, so that
# independent sessions (engine, dispatcher, poller) see each other's commits.
engine = create_engine(
     "sqlite://",
     connect_args={"check_same_thread": False},
     poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


class FakeSwapProvider:
     """Records order requests; observations are set per order by the test."""

     def __init__(self):
          self.created = []
          self.observations = {}
          self.fail_with = None

     def create_order(self, deposit_coin, deposit_network, settle_address, settle_coin="USDC", settle_network="base", refund_address=None):
          if self.fail_with is not None:
               raise self.fail_with
          order_id = f"shift-{len(self.created) + 1}"
          self.created.append({
               "order_id": order_id,
               "deposit_coin": deposit_coin,
               "deposit_network": deposit_network,
               "settle_address": settle_address,
               "settle_coin": settle_coin,
               "settle_network": settle_network,
          })
          return DepositOrder(order_id=order_id, deposit_address=f"dep-{order_id}", deposit_min=Decimal("0.001"))

     def get_order(self, order_id):
          if order_id not in self.observations:
               raise OrderNotFoundError(order_id)
          return self.observations[order_id]

     def report(self, order_id, status, deposit_amount=None, settle_amount=None):
          self.observations[order_id] = OrderObservation(
               status=status,
               deposit_amount=Decimal(deposit_amount) if deposit_amount is not None else None,
               settle_amount=Decimal(settle_amount) if settle_amount is not None else None,
          )


class FakeWallet(SettlementWallet):
     """Transfers succeed unless the destination is in fail_for or fail_next > 0."""

     def __init__(self):
          self.transfers = []
          self.fail_for = set()
          self.fail_next = 0
          self._lock = threading.Lock()

     def create_account(self, owner):
          return WalletAccount(address=f"0xcustody-{owner.lower()}", is_deployed=True, balance=Decimal("0"))

     def get_balance(self, address):
          return Decimal("0")

     def transfer(self, source, destination, amount):
          with self._lock:
               if destination in self.fail_for:
                    raise TransferError(f"transfer to {destination} rejected")
               if self.fail_next > 0:
                    self.fail_next -= 1
                    raise TransferError("wallet busy")
               self.transfers.append((source, destination, amount))
               return f"0xtx{len(self.transfers)}"


class ScriptedTracking(TrackingService):
     """Tracking service whose answers the test controls."""

     def __init__(self, status="IN_TRANSIT"):
          self.status = status

     def get_status(self, tracking_number):
          readable = self.status.replace("_", " ").lower()
          return DeliveryStatus(self.status, f"Package {tracking_number}: {readable}.")


class RecordingNotifier:

     def __init__(self):
          self.events = []

     def dispatch(self, owner, event, data):
          self.events.append((owner, event, data))

     def names(self):
          return [event for _, event, _ in self.events]


@pytest.fixture
def session_factory():
     Base.metadata.create_all(bind=engine)
     try:
          yield TestingSessionLocal
     finally:
          Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(session_factory):
     session = session_factory()
     try:
          yield session
     finally:
          session.close()


@pytest.fixture
def swap():
     return FakeSwapProvider()


@pytest.fixture
def wallet():
     return FakeWallet()


@pytest.fixture
def tracking():
     return ScriptedTracking()


@pytest.fixture
def notifier():
     return RecordingNotifier()


@pytest.fixture
def settlement(db, swap, wallet, tracking, notifier):
     return SettlementEngine(db, swap, wallet, conditions=default_registry(tracking), notifier=notifier)


@pytest.fixture
def make_link(settlement):
     """Create a link with sensible defaults for its kind."""

     def _make(kind="direct", **overrides):
          fields = {
               "kind": kind,
               "owner": "0xOwner",
               "deposit_coin": "BTC",
               "deposit_network": "bitcoin",
          }
          if kind in ("direct", "escrow"):
               fields["settle_address"] = "0xMerchant"
          if kind == "escrow":
               fields["escrow_condition"] = {"type": "delivery", "tracking_number": "WIN123456"}
          if kind == "split":
               fields["split_recipients"] = [
                    {"address": "0xalice", "percentage": 50, "label": "Alice"},
                    {"address": "0xbob", "percentage": 30, "label": "Bob"},
                    {"address": "0xcarol", "percentage": 20, "label": "Carol"},
               ]
          fields.update(overrides)
          return settlement.create_link(LinkRequest(**fields))

     return _make


@pytest.fixture
def http_mock():
     """Stands in for the dispatcher's requests.Session."""
     http = MagicMock()
     http.post.return_value = MagicMock(status_code=200)
     return http


@pytest.fixture
def client(session_factory, swap, wallet, tracking, http_mock):
     from database import get_session
     from main import app
     from routers.deps import get_conditions, get_notifier, get_poller, get_swap_provider, get_wallet

     def _session():
          session = session_factory()
          try:
               yield session
          finally:
               session.close()

     app.dependency_overrides[get_session] = _session
     app.dependency_overrides[get_swap_provider] = lambda: swap
     app.dependency_overrides[get_wallet] = lambda: wallet
     app.dependency_overrides[get_conditions] = lambda: default_registry(tracking)
     app.dependency_overrides[get_notifier] = lambda: NotificationDispatcher(session_factory, http=http_mock)
     app.dependency_overrides[get_poller] = lambda: None
     try:
          yield TestClient(app)
     finally:
          app.dependency_overrides.clear()

