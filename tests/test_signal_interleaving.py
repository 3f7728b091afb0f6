"""
Poll and webhook signals racing on the same link: a second engine with its
own session runs while the first one is mid-reconcile, and a threaded race
runs on a file-backed database.
"""
import threading
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from models import Base, LinkStatus, PaymentLink, TransactionKind, TransactionStatus
from models.transaction import RELEASE_KINDS
from services.conditions import DeliveryStatus, TrackingService, default_registry
from services.settlement_engine import LinkRequest, SettlementEngine
from services.status_machine import rank
from services.swap_provider import OrderObservation

KINDS = ["direct", "escrow", "split"]


def settled(amount="80.00"):
     return OrderObservation(status="settled", deposit_amount=Decimal("0.01"), settle_amount=Decimal(amount))


def link_request(kind):
     fields = {"kind": kind, "owner": "0xOwner", "deposit_coin": "BTC", "deposit_network": "bitcoin"}
     if kind in ("direct", "escrow"):
          fields["settle_address"] = "0xMerchant"
     if kind == "escrow":
          fields["escrow_condition"] = {"type": "delivery", "tracking_number": "WIN123456"}
     if kind == "split":
          fields["split_recipients"] = [
               {"address": "0xalice", "percentage": 50},
               {"address": "0xbob", "percentage": 30},
               {"address": "0xcarol", "percentage": 20},
          ]
     return LinkRequest(**fields)


def expected_legs(kind):
     return 3 if kind == "split" else 1


def releases(engine, link_id):
     return list(engine.store.list_transactions(link_id, kinds=RELEASE_KINDS))


class InterleavingTracking(TrackingService):
     """Runs `interleave` (once) before answering, as if the lookup were slow."""

     def __init__(self, status="DELIVERED"):
          self.status = status
          self.interleave = None

     def get_status(self, tracking_number):
          if self.interleave is not None:
               pending, self.interleave = self.interleave, None
               pending()
          return DeliveryStatus(self.status, f"Package {tracking_number}: {self.status.lower()}.")


@pytest.fixture
def unit_of_work_updates():
     """Link rows flushed through the ORM instead of the conditional update."""
     seen = []

     def _record(mapper, connection, target):
          seen.append(target.status)

     event.listen(PaymentLink, "before_update", _record)
     try:
          yield seen
     finally:
          event.remove(PaymentLink, "before_update", _record)


@pytest.fixture
def second_engine(session_factory, swap, wallet, tracking, notifier):
     session = session_factory()
     try:
          yield SettlementEngine(session, swap, wallet, conditions=default_registry(tracking), notifier=notifier)
     finally:
          session.close()


@pytest.mark.parametrize("kind", KINDS)
def test_webhook_completing_during_poll_releases_once(
     kind, settlement, second_engine, swap, wallet, tracking, monkeypatch, unit_of_work_updates,
):
     tracking.status = "DELIVERED"
     link = settlement.create_link(link_request(kind))
     swap.observations[link.order_ref] = settled()

     fetch = swap.get_order

     def get_order(order_id):
          done = second_engine.reconcile(link.id, source="webhook", observation=settled())
          assert done.status == LinkStatus.COMPLETED
          return fetch(order_id)

     monkeypatch.setattr(swap, "get_order", get_order)
     polled = settlement.reconcile(link.id, source="poll")
     monkeypatch.setattr(swap, "get_order", fetch)

     assert polled.status == LinkStatus.COMPLETED
     for engine in (settlement, second_engine, settlement):
          assert engine.reconcile(link.id, source="poll").status == LinkStatus.COMPLETED

     assert len(wallet.transfers) == expected_legs(kind)
     assert len(releases(settlement, link.id)) == expected_legs(kind)
     assert len(list(settlement.store.list_transactions(link.id, kinds=[TransactionKind.DEPOSIT]))) == 1
     assert unit_of_work_updates == []


def test_escrow_released_elsewhere_while_condition_lookup_is_slow(
     session_factory, swap, wallet, tracking, notifier, unit_of_work_updates,
):
     slow = InterleavingTracking()
     slow.status = "IN_TRANSIT"
     first = SettlementEngine(session_factory(), swap, wallet, conditions=default_registry(slow), notifier=notifier)
     tracking.status = "DELIVERED"
     second = SettlementEngine(session_factory(), swap, wallet, conditions=default_registry(tracking), notifier=notifier)
     try:
          link = first.create_link(link_request("escrow"))
          assert first.reconcile(link.id, observation=settled()).status == LinkStatus.CONDITION_PENDING

          slow.status = "DELIVERED"
          slow.interleave = lambda: second.reconcile(link.id, source="webhook", observation=settled())
          after = first.reconcile(link.id, source="poll", observation=settled())

          assert after.status == LinkStatus.COMPLETED
          assert second.get_link(link.id).status == LinkStatus.COMPLETED
          assert first.reconcile(link.id, source="poll", observation=settled()).status == LinkStatus.COMPLETED

          assert wallet.transfers == [("0xcustody-0xowner", "0xmerchant", Decimal("80.00"))]
          released = releases(first, link.id)
          assert [txn.status for txn in released] == [TransactionStatus.COMPLETED]
          assert unit_of_work_updates == []
     finally:
          first.db.close()
          second.db.close()


def test_status_only_moves_forward_through_a_full_escrow_release(settlement, make_link, monkeypatch, unit_of_work_updates):
     written = []
     conditional = settlement.store.update_status_if_current

     def record(link_id, expected_status, new_fields):
          applied = conditional(link_id, expected_status, new_fields)
          if applied and "status" in new_fields:
               written.append(new_fields["status"])
          return applied

     monkeypatch.setattr(settlement.store, "update_status_if_current", record)
     link = make_link("escrow", escrow_condition={"type": "time", "release_date": "2020-01-01"})
     link = settlement.reconcile(link.id, observation=settled("40"))

     assert link.status == LinkStatus.COMPLETED
     assert written[-1] == LinkStatus.COMPLETED
     ranks = [rank(status) for status in written]
     assert ranks == sorted(ranks)
     assert unit_of_work_updates == []


@pytest.fixture
def file_sessions(tmp_path):
     engine = create_engine(
          f"sqlite:///{tmp_path / 'race.db'}",
          connect_args={"check_same_thread": False, "timeout": 30},
     )
     Base.metadata.create_all(bind=engine)
     try:
          yield sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
     finally:
          engine.dispose()


@pytest.mark.parametrize("kind", KINDS)
def test_threaded_webhook_and_poll_race(kind, file_sessions, swap, wallet, tracking):
     tracking.status = "DELIVERED"
     setup = SettlementEngine(file_sessions(), swap, wallet, conditions=default_registry(tracking))
     link = setup.create_link(link_request(kind))
     swap.observations[link.order_ref] = settled()

     start = threading.Barrier(2)
     errors = []

     def signal(source, observation):
          session = file_sessions()
          try:
               engine = SettlementEngine(session, swap, wallet, conditions=default_registry(tracking))
               start.wait(timeout=10)
               for _ in range(3):
                    engine.reconcile(link.id, source=source, observation=observation)
          except Exception as e:
               errors.append(e)
          finally:
               session.close()

     threads = [
          threading.Thread(target=signal, args=("webhook", settled())),
          threading.Thread(target=signal, args=("poll", None)),
     ]
     for thread in threads:
          thread.start()
     for thread in threads:
          thread.join(timeout=30)

     try:
          assert errors == []
          final = setup.get_link(link.id)
          assert final.status == LinkStatus.COMPLETED
          assert not final.needs_review
          assert len(wallet.transfers) == expected_legs(kind)
          released = releases(setup, link.id)
          assert len(released) == expected_legs(kind)
          assert all(txn.status == TransactionStatus.COMPLETED for txn in released)
     finally:
          setup.db.close()
