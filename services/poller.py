# services/poller.py
"""
Link Poller - reconciles active links on a fixed interval so a missed
webhook never leaves a link stuck.

Each link is reconciled in its own session; a failure for one link is
logged and the pass continues with the next.
"""
import asyncio
import logging
import threading
from datetime import timedelta
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
from models.base import utcnow
from services.exceptions import ShiftStreamError
from services.link_store import LinkStore

logger = logging.getLogger("shiftstream.poller")


class LinkPoller:

     def __init__(
          self,
          session_factory: Callable[[], Session],
          engine_factory: Callable[[Session], object],
          interval: float = config.POLL_INTERVAL_SECONDS,
          stale_after: int = config.STALE_RELEASE_SECONDS,
     ):
          self.session_factory = session_factory
          self.engine_factory = engine_factory
          self.interval = interval
          self.stale_after = stale_after
          self._active: set[str] = set()
          self._lock = threading.Lock()

     def register(self, link_id: str) -> None:
          with self._lock:
               self._active.add(link_id)

     def deregister(self, link_id: str) -> None:
          with self._lock:
               self._active.discard(link_id)

     def active_ids(self) -> list[str]:
          with self._lock:
               return sorted(self._active)

     def load_active(self) -> int:
          """Register every non-terminal link in the store."""
          db = self.session_factory()
          try:
               ids = LinkStore(db).list_active_link_ids()
          finally:
               db.close()
          with self._lock:
               self._active.update(ids)
          logger.info("Poller tracking %d active links", len(ids))
          return len(ids)

     def poll_once(self) -> int:
          """One reconciliation pass. Returns the number of links reconciled."""
          reconciled = 0
          for link_id in self.active_ids():
               db = self.session_factory()
               try:
                    self.engine_factory(db).reconcile(link_id, source="poll")
                    reconciled += 1
               except ShiftStreamError as e:
                    logger.warning("Poll of link %s failed: %s", link_id, e)
               except SQLAlchemyError:
                    db.rollback()
                    logger.exception("Poll of link %s hit a database error", link_id)
               finally:
                    db.close()
          self.flag_stale_releases()
          return reconciled

     def flag_stale_releases(self) -> int:
          """Links claimed for release too long ago are flagged for manual review."""
          cutoff = utcnow() - timedelta(seconds=self.stale_after)
          db = self.session_factory()
          try:
               store = LinkStore(db)
               stale = store.list_stale_releases(cutoff)
               for link in stale:
                    store.update_fields(link.id, {
                         "needs_review": True,
                         "last_release_error": f"stuck in releasing since {link.release_claimed_at.isoformat()}",
                    })
                    logger.critical(
                         "Link %s has been releasing since %s; manual review required",
                         link.id, link.release_claimed_at,
                    )
               return len(stale)
          finally:
               db.close()

     async def run(self, stop: asyncio.Event) -> None:
          await asyncio.to_thread(self.load_active)
          logger.info("Poller started (every %ss)", self.interval)
          while not stop.is_set():
               try:
                    await asyncio.to_thread(self.poll_once)
               except SQLAlchemyError:
                    logger.exception("Poll pass failed")
               try:
                    await asyncio.wait_for(stop.wait(), timeout=self.interval)
               except asyncio.TimeoutError:
                    pass
          logger.info("Poller stopped")
