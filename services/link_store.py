# services/link_store.py
"""
Link Store - durable CRUD for payment links and their transactions.

Every write commits immediately: a status change must be visible to the
poller and webhook handlers running in other processes before any side
effect that depends on it is executed.

Status changes go through update_status_if_current(), a single
UPDATE ... WHERE id = :id AND status = :expected. Whoever gets rowcount 1
owns the transition; everybody else observes a conflict.

Writes never go through the unit of work. After a successful write the
session copy of the link (if loaded) is updated as committed state, so it
is never dirty and a later commit cannot flush a stale status over a
newer one written by another session.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from models import (
     LinkStatus,
     PaymentLink,
     Transaction,
     TransactionKind,
     TransactionStatus,
)
from models.base import utcnow
from services.status_machine import TERMINAL_STATUSES

logger = logging.getLogger("shiftstream.store")


class LinkStore:
     """Store bound to one SQLAlchemy session."""

     def __init__(self, db: Session):
          self.db = db

     # ------------------------------------------------------------------
     # Links
     # ------------------------------------------------------------------

     def add_link(self, link: PaymentLink) -> PaymentLink:
          self.db.add(link)
          self.db.commit()
          return link

     def get_link(self, link_id: str) -> Optional[PaymentLink]:
          """Fresh read of a link; never trusts the identity map."""
          return self.db.get(PaymentLink, link_id, populate_existing=True)

     def get_link_by_order(self, order_ref: str) -> Optional[PaymentLink]:
          stmt = select(PaymentLink).where(PaymentLink.order_ref == order_ref)
          return self.db.execute(stmt.execution_options(populate_existing=True)).scalars().first()

     def list_links(self, owner: str) -> Sequence[PaymentLink]:
          stmt = (
               select(PaymentLink)
               .where(PaymentLink.owner == owner.lower())
               .order_by(PaymentLink.created_at.desc())
          )
          return self.db.execute(stmt).scalars().all()

     def list_active_link_ids(self) -> list[str]:
          stmt = select(PaymentLink.id).where(PaymentLink.status.not_in(list(TERMINAL_STATUSES)))
          return list(self.db.execute(stmt).scalars().all())

     def list_stale_releases(self, claimed_before: datetime) -> Sequence[PaymentLink]:
          stmt = select(PaymentLink).where(
               PaymentLink.status == LinkStatus.RELEASING,
               PaymentLink.release_claimed_at < claimed_before,
               PaymentLink.needs_review.is_(False),
          )
          return self.db.execute(stmt).scalars().all()

     def update_status_if_current(
          self,
          link_id: str,
          expected_status: LinkStatus,
          new_fields: dict,
     ) -> bool:
          """
          Apply new_fields (which normally include "status") only if the link
          is still in expected_status. Returns False on conflict.
          """
          values = dict(new_fields)
          values["updated_at"] = utcnow()
          stmt = (
               update(PaymentLink)
               .where(PaymentLink.id == link_id, PaymentLink.status == expected_status)
               .values(**values)
               .execution_options(synchronize_session=False)
          )
          result = self.db.execute(stmt)
          self.db.commit()
          applied = result.rowcount == 1
          if applied:
               self._sync_loaded(link_id, values)
               logger.debug("Link %s: %s -> %s", link_id, expected_status.value, _status_value(values.get("status")))
          else:
               logger.info(
                    "Link %s: conditional update from %s rejected (status moved on)",
                    link_id, expected_status.value,
               )
          return applied

     def _sync_loaded(self, link_id: str, values: dict) -> None:
          link = self.db.identity_map.get(self.db.identity_key(PaymentLink, link_id))
          if link is None:
               return
          for name, value in values.items():
               set_committed_value(link, name, value)

     def update_fields(self, link_id: str, fields: dict) -> None:
          """Unconditional update of non-status columns (amounts, bookkeeping)."""
          if not fields:
               return
          values = dict(fields)
          values["updated_at"] = utcnow()
          stmt = (
               update(PaymentLink)
               .where(PaymentLink.id == link_id)
               .values(**values)
               .execution_options(synchronize_session=False)
          )
          self.db.execute(stmt)
          self.db.commit()
          self._sync_loaded(link_id, values)

     # ------------------------------------------------------------------
     # Transactions
     # ------------------------------------------------------------------

     def add_transaction(
          self,
          link_id: str,
          kind: TransactionKind,
          amount,
          recipient: str,
          status: TransactionStatus = TransactionStatus.PENDING,
          external_ref: Optional[str] = None,
          note: Optional[str] = None,
     ) -> Transaction:
          txn = Transaction(
               link_id=link_id,
               kind=kind,
               amount=amount,
               recipient=recipient,
               status=status,
               external_ref=external_ref,
               note=note,
               completed_at=utcnow() if status != TransactionStatus.PENDING else None,
          )
          self.db.add(txn)
          self.db.commit()
          return txn

     def finalize_transaction(
          self,
          txn: Transaction,
          status: TransactionStatus,
          external_ref: Optional[str] = None,
          note: Optional[str] = None,
     ) -> bool:
          """Move a PENDING transaction to COMPLETED or FAILED, exactly once."""
          if status == TransactionStatus.PENDING:
               raise ValueError("Transactions can only be finalized to completed or failed")
          values = {"status": status, "completed_at": utcnow()}
          if external_ref is not None:
               values["external_ref"] = external_ref
          if note is not None:
               values["note"] = note[:500]
          stmt = (
               update(Transaction)
               .where(Transaction.id == txn.id, Transaction.status == TransactionStatus.PENDING)
               .values(**values)
               .execution_options(synchronize_session=False)
          )
          result = self.db.execute(stmt)
          self.db.commit()
          self.db.refresh(txn)
          return result.rowcount == 1

     def list_transactions(
          self,
          link_id: str,
          kinds: Optional[Iterable[TransactionKind]] = None,
          statuses: Optional[Iterable[TransactionStatus]] = None,
     ) -> Sequence[Transaction]:
          stmt = select(Transaction).where(Transaction.link_id == link_id)
          if kinds is not None:
               stmt = stmt.where(Transaction.kind.in_(list(kinds)))
          if statuses is not None:
               stmt = stmt.where(Transaction.status.in_(list(statuses)))
          stmt = stmt.order_by(Transaction.created_at)
          return self.db.execute(stmt.execution_options(populate_existing=True)).scalars().all()


def _status_value(status) -> str:
     return status.value if isinstance(status, LinkStatus) else str(status)
