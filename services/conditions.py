# services/conditions.py
"""
Escrow condition checkers, keyed by condition type.

A checker looks at a payment link (its escrow_condition JSON and the durable
approval columns) and reports whether funds may be released, and if not,
what the user has to do next.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models import PaymentLink
from models.base import utcnow

logger = logging.getLogger("shiftstream.conditions")


@dataclass
class ConditionResult:
     met: bool
     reason: str
     guidance: Optional[str] = None
     details: dict = field(default_factory=dict)


class ConditionChecker(ABC):
     condition_type: str = ""

     @abstractmethod
     def check(self, link: PaymentLink) -> ConditionResult:
          ...


# ----------------------------------------------------------------------
# Delivery tracking
# ----------------------------------------------------------------------

@dataclass
class DeliveryStatus:
     status: str  # DELIVERED | IN_TRANSIT | NOT_FOUND
     details: str


class TrackingService(ABC):

     @abstractmethod
     def get_status(self, tracking_number: str) -> DeliveryStatus:
          ...


class MockTrackingService(TrackingService):
     """WIN* numbers are delivered, SHIP* numbers are in transit, the rest are unknown."""

     def get_status(self, tracking_number: str) -> DeliveryStatus:
          number = tracking_number.upper()
          if number.startswith("WIN"):
               return DeliveryStatus(
                    "DELIVERED",
                    f"Package {tracking_number} has been delivered successfully on {utcnow().date().isoformat()}.",
               )
          if number.startswith("SHIP"):
               return DeliveryStatus(
                    "IN_TRANSIT",
                    f"Package {tracking_number} is currently in transit. Expected delivery in 2-3 days.",
               )
          return DeliveryStatus("NOT_FOUND", f"No tracking information found for {tracking_number}.")


class DeliveryConditionChecker(ConditionChecker):
     condition_type = "delivery"

     def __init__(self, tracking: Optional[TrackingService] = None):
          self.tracking = tracking or MockTrackingService()

     def check(self, link: PaymentLink) -> ConditionResult:
          tracking_number = (link.escrow_condition or {}).get("tracking_number")
          if not tracking_number:
               return ConditionResult(
                    met=False,
                    reason="missing_tracking_number",
                    guidance="Add a tracking number to the escrow condition.",
               )
          delivery = self.tracking.get_status(tracking_number)
          details = {"tracking_number": tracking_number, "delivery_status": delivery.status}
          if delivery.status == "DELIVERED":
               return ConditionResult(met=True, reason="delivered", guidance=delivery.details, details=details)
          if delivery.status == "IN_TRANSIT":
               return ConditionResult(
                    met=False,
                    reason="in_transit",
                    guidance=f"{delivery.details} Funds stay locked until delivery is confirmed.",
                    details=details,
               )
          return ConditionResult(
               met=False,
               reason="tracking_not_found",
               guidance=f"{delivery.details} Verify the tracking number and try again.",
               details=details,
          )


class ManualConditionChecker(ConditionChecker):
     """Met once the link owner has approved the release."""
     condition_type = "manual"

     def check(self, link: PaymentLink) -> ConditionResult:
          if link.condition_approved_by:
               return ConditionResult(
                    met=True,
                    reason="approved",
                    details={"approved_by": link.condition_approved_by},
               )
          return ConditionResult(
               met=False,
               reason="awaiting_approval",
               guidance="The link owner has to approve the release.",
          )


class TimeConditionChecker(ConditionChecker):
     condition_type = "time"

     def __init__(self, clock=None):
          self.clock = clock or utcnow

     def check(self, link: PaymentLink) -> ConditionResult:
          raw = (link.escrow_condition or {}).get("release_date")
          release_at = parse_release_date(raw)
          if release_at is None:
               return ConditionResult(
                    met=False,
                    reason="missing_release_date",
                    guidance="Set a valid release date on the escrow condition.",
               )
          details = {"release_date": release_at.isoformat()}
          if self.clock() >= release_at:
               return ConditionResult(met=True, reason="release_date_passed", details=details)
          return ConditionResult(
               met=False,
               reason="release_date_not_reached",
               guidance=f"Funds unlock on {release_at.isoformat()} UTC.",
               details=details,
          )


def parse_release_date(raw) -> Optional[datetime]:
     """ISO date or datetime -> naive UTC datetime."""
     if not raw:
          return None
     try:
          value = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
     except ValueError:
          return None
     if value.tzinfo is not None:
          value = value.astimezone(timezone.utc).replace(tzinfo=None)
     return value


class ConditionRegistry:
     """Maps condition type -> checker. Unknown types are never met."""

     def __init__(self, checkers=None):
          self._checkers = {}
          for checker in checkers or ():
               self.register(checker)

     def register(self, checker: ConditionChecker) -> None:
          self._checkers[checker.condition_type] = checker

     def types(self) -> list[str]:
          return sorted(self._checkers)

     def check(self, link: PaymentLink) -> ConditionResult:
          condition_type = link.condition_type
          checker = self._checkers.get(condition_type)
          if checker is None:
               logger.warning("Link %s has unsupported condition type %r", link.id, condition_type)
               return ConditionResult(
                    met=False,
                    reason="unsupported_condition",
                    guidance=f"Condition type '{condition_type}' cannot be verified automatically.",
               )
          result = checker.check(link)
          logger.debug("Link %s condition %s: met=%s (%s)", link.id, condition_type, result.met, result.reason)
          return result


def default_registry(tracking: Optional[TrackingService] = None) -> ConditionRegistry:
     return ConditionRegistry([
          DeliveryConditionChecker(tracking),
          ManualConditionChecker(),
          TimeConditionChecker(),
     ])
