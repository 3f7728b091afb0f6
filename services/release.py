# services/release.py
"""
Release planning per link kind.

A plan lists the outbound transfers (legs) a release consists of. Direct and
Escrow links release the whole settled amount to the settle address. Split
links pay each recipient floor_to_cents(total * pct / 100); whatever the
flooring leaves over is added to the last recipient in table order, so the
legs always sum to exactly the settled total.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN
from typing import Callable, Optional

from models import LinkKind, PaymentLink, TransactionKind

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass
class TransferLeg:
     recipient: str
     amount: Decimal
     label: Optional[str] = None
     percentage: Optional[Decimal] = None


@dataclass
class ReleasePlan:
     transaction_kind: TransactionKind
     total: Decimal
     legs: list[TransferLeg] = field(default_factory=list)
     remainder: Decimal = Decimal("0")  # already included in the last leg

     @property
     def planned_total(self) -> Decimal:
          return sum((leg.amount for leg in self.legs), Decimal("0"))


def floor_to_cents(value: Decimal) -> Decimal:
     return value.quantize(CENT, rounding=ROUND_DOWN)


def split_amounts(total: Decimal, recipients: list[dict]) -> tuple[list[TransferLeg], Decimal]:
     """
     Per-recipient amounts for a split distribution.

     Returns (legs, remainder) where remainder is the part of total lost to
     flooring, already credited to the last leg.
     """
     if not recipients:
          raise ValueError("Split table is empty")
     legs = [
          TransferLeg(
               recipient=row["address"],
               amount=floor_to_cents(total * Decimal(str(row["percentage"])) / HUNDRED),
               label=row.get("label"),
               percentage=Decimal(str(row["percentage"])),
          )
          for row in recipients
     ]
     remainder = total - sum((leg.amount for leg in legs), Decimal("0"))
     legs[-1].amount += remainder
     return legs, remainder


def _plan_direct(link: PaymentLink, total: Decimal) -> ReleasePlan:
     return ReleasePlan(
          transaction_kind=TransactionKind.AUTO_RELEASE,
          total=total,
          legs=[TransferLeg(recipient=link.settle_address, amount=total)],
     )


def _plan_escrow(link: PaymentLink, total: Decimal) -> ReleasePlan:
     return ReleasePlan(
          transaction_kind=TransactionKind.ESCROW_RELEASE,
          total=total,
          legs=[TransferLeg(recipient=link.settle_address, amount=total)],
     )


def _plan_split(link: PaymentLink, total: Decimal) -> ReleasePlan:
     legs, remainder = split_amounts(total, link.recipients)
     return ReleasePlan(
          transaction_kind=TransactionKind.SPLIT_DISTRIBUTION,
          total=total,
          legs=legs,
          remainder=remainder,
     )


RELEASE_PLANNERS: dict[LinkKind, Callable[[PaymentLink, Decimal], ReleasePlan]] = {
     LinkKind.DIRECT: _plan_direct,
     LinkKind.ESCROW: _plan_escrow,
     LinkKind.SPLIT: _plan_split,
}


def plan_release(link: PaymentLink, total: Decimal) -> ReleasePlan:
     return RELEASE_PLANNERS[link.kind](link, total)
