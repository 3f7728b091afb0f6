# services/status_machine.py
"""
Payment link status machine.

Status only moves forward. Forward order:

     created < awaiting_deposit < processing < deposit_received
          < condition_pending < condition_met < releasing < completed

failed and refunded are reachable from any non-terminal status except
releasing (a transfer is in flight and owns the row). completed, failed and
refunded are terminal.
"""
from typing import Optional

from models.payment_link import LinkKind, LinkStatus

TERMINAL_STATUSES = frozenset({LinkStatus.COMPLETED, LinkStatus.FAILED, LinkStatus.REFUNDED})

_FORWARD_ORDER = {
     LinkStatus.CREATED: 0,
     LinkStatus.AWAITING_DEPOSIT: 1,
     LinkStatus.PROCESSING: 2,
     LinkStatus.DEPOSIT_RECEIVED: 3,
     LinkStatus.CONDITION_PENDING: 4,
     LinkStatus.CONDITION_MET: 5,
     LinkStatus.RELEASING: 6,
     LinkStatus.COMPLETED: 7,
}

# Provider status vocabulary (SideShift shift statuses)
WAITING_STATUSES = frozenset({"waiting", "pending"})
PROCESSING_STATUSES = frozenset({"processing", "settling"})
SETTLED_STATUS = "settled"
REFUND_STATUSES = frozenset({"refund", "refunding", "refunded"})
EXPIRED_STATUS = "expired"

PROVIDER_TERMINAL_STATUSES = frozenset({SETTLED_STATUS, EXPIRED_STATUS, "refunded"})


def is_terminal(status: LinkStatus) -> bool:
     return status in TERMINAL_STATUSES


def rank(status: LinkStatus) -> int:
     """Position in the forward order; terminal failures rank above everything."""
     return _FORWARD_ORDER.get(status, len(_FORWARD_ORDER))


def can_transition(current: LinkStatus, target: LinkStatus) -> bool:
     """True when moving current -> target never regresses the link."""
     if current == target or is_terminal(current):
          return False
     if target in (LinkStatus.FAILED, LinkStatus.REFUNDED):
          return current != LinkStatus.RELEASING
     return rank(target) > rank(current)


def map_provider_status(kind: LinkKind, provider_status: str) -> Optional[LinkStatus]:
     """
     Map a swap provider status to the target link status for this kind.

     The same table is used for webhook pushes and poll responses. For
     settled, the returned status is where the link ends up; Direct and Split
     only get there through a successful release. Unknown statuses map to None.
     """
     status = (provider_status or "").lower()
     if status in WAITING_STATUSES:
          return LinkStatus.AWAITING_DEPOSIT
     if status in PROCESSING_STATUSES:
          return LinkStatus.PROCESSING
     if status == SETTLED_STATUS:
          if kind == LinkKind.ESCROW:
               return LinkStatus.CONDITION_PENDING
          return LinkStatus.COMPLETED
     if status in REFUND_STATUSES:
          return LinkStatus.REFUNDED
     if status == EXPIRED_STATUS:
          return LinkStatus.FAILED
     return None


def deposit_confirmed(status: LinkStatus) -> bool:
     """Whether the swap has settled into the custody account."""
     if status in (LinkStatus.FAILED, LinkStatus.REFUNDED):
          return False
     return rank(status) >= rank(LinkStatus.DEPOSIT_RECEIVED)
