# services/settlement_engine.py
"""
Settlement Engine - owns the payment link lifecycle.

1. create_link: validate, open a custody account, request a deposit order,
   persist the link as awaiting_deposit.
2. reconcile: map a swap provider observation (webhook push or poll) onto
   the link status, record amounts, and release funds when the link kind
   allows it.
3. release_escrow: manual release path, gated by the same deposit and
   condition checks as automatic release.

Every status move is a compare-and-set in the link store. A release first
claims the link by moving it into `releasing`; only the claimant talks to
the settlement wallet, which gives at-most-once transfers per link no matter
how many webhooks and polls race.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
from models import (
     LinkKind,
     LinkStatus,
     PaymentLink,
     Transaction,
     TransactionKind,
     TransactionStatus,
)
from models.base import utcnow
from models.transaction import RELEASE_KINDS
from services.conditions import ConditionRegistry, ConditionResult, default_registry, parse_release_date
from services.exceptions import (
     LinkNotFoundError,
     ReleaseError,
     TransferError,
     ValidationError,
)
from services.link_store import LinkStore
from services.release import ReleasePlan, TransferLeg, plan_release
from services.settlement_wallet import SettlementWallet
from services.status_machine import (
     SETTLED_STATUS,
     can_transition,
     deposit_confirmed,
     is_terminal,
     map_provider_status,
     rank,
)
from services.swap_provider import OrderObservation

logger = logging.getLogger("shiftstream.engine")

HUNDRED = Decimal("100")

# Statuses a link can be in before the swap has settled
PRE_SETTLEMENT_STATUSES = (
     LinkStatus.CREATED,
     LinkStatus.AWAITING_DEPOSIT,
     LinkStatus.PROCESSING,
)

# Events published to the notification dispatcher
EVENT_LINK_CREATED = "link.created"
EVENT_PAYMENT_RECEIVED = "payment.received"
EVENT_PAYMENT_PROCESSING = "payment.processing"
EVENT_PAYMENT_COMPLETED = "payment.completed"
EVENT_PAYMENT_FAILED = "payment.failed"
EVENT_ESCROW_RELEASED = "escrow.released"
EVENT_SPLIT_DISTRIBUTED = "split.distributed"


@dataclass
class LinkRequest:
     """Link creation request; every field is validated by the engine."""
     kind: Optional[str] = None
     owner: Optional[str] = None
     settle_address: Optional[str] = None
     deposit_coin: Optional[str] = None
     deposit_network: Optional[str] = None
     expected_amount: Optional[Decimal] = None
     label: Optional[str] = None
     escrow_condition: Optional[dict] = None
     split_recipients: Optional[list] = None
     refund_address: Optional[str] = None


@dataclass
class ReleaseOutcome:
     released: bool = False
     conflict: bool = False
     blocking_reason: Optional[str] = None
     message: Optional[str] = None
     guidance: Optional[str] = None
     transactions: list = field(default_factory=list)
     failed_legs: list = field(default_factory=list)


@dataclass
class StatusReport:
     link_id: str
     kind: LinkKind
     status: LinkStatus
     blocking_reason: Optional[str] = None
     guidance: Optional[str] = None
     can_retry: bool = False
     can_release: bool = False
     needs_review: bool = False
     release_attempts: int = 0
     last_release_error: Optional[str] = None
     condition: Optional[dict] = None


class SettlementEngine:

     def __init__(
          self,
          db: Session,
          swap_provider,
          wallet: SettlementWallet,
          conditions: Optional[ConditionRegistry] = None,
          notifier=None,
          poller=None,
          alert_threshold: int = config.RELEASE_ALERT_THRESHOLD,
          settle_coin: str = config.SETTLE_COIN,
          settle_network: str = config.SETTLE_NETWORK,
     ):
          self.db = db
          self.store = LinkStore(db)
          self.swap = swap_provider
          self.wallet = wallet
          self.conditions = conditions or default_registry()
          self.notifier = notifier
          self.poller = poller
          self.alert_threshold = alert_threshold
          self.settle_coin = settle_coin
          self.settle_network = settle_network

     # ------------------------------------------------------------------
     # Link CRUD
     # ------------------------------------------------------------------

     def create_link(self, request: LinkRequest) -> PaymentLink:
          """
          Validate, obtain a deposit order and persist a new link.

          Validation happens before anything external is touched, so a bad
          split table never produces an orphaned swap order. A provider
          failure aborts creation with nothing persisted.
          """
          fields = self._validate(request)

          account = self.wallet.create_account(fields["owner"])
          order = self.swap.create_order(
               fields["deposit_coin"],
               fields["deposit_network"],
               account.address,
               settle_coin=self.settle_coin,
               settle_network=self.settle_network,
               refund_address=request.refund_address,
          )

          link = PaymentLink(
               custody_address=account.address,
               order_ref=order.order_id,
               deposit_address=order.deposit_address,
               deposit_min=order.deposit_min,
               deposit_max=order.deposit_max,
               status=LinkStatus.AWAITING_DEPOSIT,
               **fields,
          )
          self.store.add_link(link)
          logger.info(
               "Created %s link %s for %s (order %s, %s on %s)",
               link.kind.value, link.id, link.owner, link.order_ref,
               link.deposit_coin, link.deposit_network,
          )

          if self.poller is not None:
               self.poller.register(link.id)
          self._notify(link, EVENT_LINK_CREATED, {
               "type": link.kind.value,
               "depositCoin": link.deposit_coin,
               "depositNetwork": link.deposit_network,
               "depositAddress": link.deposit_address,
          })
          return link

     def get_link(self, link_id: str) -> PaymentLink:
          link = self.store.get_link(link_id)
          if link is None:
               raise LinkNotFoundError(link_id)
          return link

     def list_links(self, owner: str) -> list[PaymentLink]:
          return list(self.store.list_links(owner))

     def _validate(self, request: LinkRequest) -> dict:
          missing = [
               name for name in ("kind", "owner", "deposit_coin", "deposit_network")
               if not getattr(request, name)
          ]
          if missing:
               raise ValidationError(f"Missing required fields: {', '.join(missing)}")

          try:
               kind = LinkKind(str(request.kind).lower())
          except ValueError:
               raise ValidationError(f"Unknown link type '{request.kind}'")

          if kind in (LinkKind.DIRECT, LinkKind.ESCROW) and not request.settle_address:
               raise ValidationError("Missing required fields: settle_address")

          expected_amount = None
          if request.expected_amount is not None:
               expected_amount = _decimal(request.expected_amount, "expected_amount")
               if expected_amount <= 0:
                    raise ValidationError("expected_amount must be positive")

          fields = {
               "kind": kind,
               "owner": request.owner.lower(),
               "label": request.label,
               "settle_address": request.settle_address.lower() if request.settle_address else None,
               "deposit_coin": request.deposit_coin,
               "deposit_network": request.deposit_network,
               "expected_amount": expected_amount,
               "escrow_condition": None,
               "split_table": None,
          }

          if kind == LinkKind.ESCROW:
               fields["escrow_condition"] = self._validate_condition(request.escrow_condition)
          elif request.escrow_condition:
               raise ValidationError("escrow_condition is only allowed on escrow links")

          if kind == LinkKind.SPLIT:
               fields["split_table"] = _validate_split_table(request.split_recipients)
          elif request.split_recipients:
               raise ValidationError("split recipients are only allowed on split links")

          return fields

     def _validate_condition(self, condition: Optional[dict]) -> dict:
          if not condition or not condition.get("type"):
               raise ValidationError("Escrow links require an escrow_condition with a type")
          condition_type = condition["type"]
          if condition_type not in self.conditions.types():
               raise ValidationError(f"Unsupported escrow condition type '{condition_type}'")
          if condition_type == "delivery" and not condition.get("tracking_number"):
               raise ValidationError("Delivery conditions require a tracking_number")
          if condition_type == "time" and parse_release_date(condition.get("release_date")) is None:
               raise ValidationError("Time conditions require an ISO release_date")
          return {
               "type": condition_type,
               "tracking_number": condition.get("tracking_number"),
               "release_date": condition.get("release_date"),
               "description": condition.get("description"),
          }

     # ------------------------------------------------------------------
     # Reconciliation
     # ------------------------------------------------------------------

     def handle_provider_webhook(self, payload: dict) -> Optional[PaymentLink]:
          """
          Reconcile from a provider push. Returns None when no local link
          references the order; the caller still acknowledges the delivery.
          """
          order_id = payload.get("id") or payload.get("orderId")
          link = self.store.get_link_by_order(order_id) if order_id else None
          if link is None:
               logger.warning("Webhook for unknown order %s (status %s)", order_id, payload.get("status"))
               return None
          observation = OrderObservation.from_payload(payload)
          return self.reconcile(link.id, source="webhook", observation=observation)

     def reconcile(
          self,
          link_id: str,
          source: str = "poll",
          observation: Optional[OrderObservation] = None,
     ) -> PaymentLink:
          """
          Bring a link up to date with the swap provider. Idempotent.

          Without an observation the order is fetched from the provider;
          ProviderUnavailableError and OrderNotFoundError propagate.
          """
          link = self.get_link(link_id)
          if is_terminal(link.status):
               logger.debug("Link %s already %s; ignoring %s signal", link.id, link.status.value, source)
               self._deregister(link)
               return link

          if observation is None:
               observation = self.swap.get_order(link.order_ref)

          self._record_observation(link, observation)

          target = map_provider_status(link.kind, observation.status)
          if target is None:
               logger.warning("Link %s: unknown provider status %r from %s", link.id, observation.status, source)
               return self.get_link(link.id)

          logger.info("Link %s: %s reports %s (link is %s)", link.id, source, observation.status, link.status.value)

          if observation.status == SETTLED_STATUS:
               self._on_settled(link)
          elif self._advance(link, target):
               if target == LinkStatus.PROCESSING:
                    self._notify(link, EVENT_PAYMENT_PROCESSING, {"receivedAmount": _str(link.received_amount)})
               elif target in (LinkStatus.FAILED, LinkStatus.REFUNDED):
                    self._notify(link, EVENT_PAYMENT_FAILED, {"status": target.value, "providerStatus": observation.status})

          link = self.get_link(link.id)
          if is_terminal(link.status):
               self._deregister(link)
          return link

     def _record_observation(self, link: PaymentLink, observation: OrderObservation) -> None:
          """Amounts are last-write-wins and never cleared, independent of status."""
          fields = {}
          if observation.deposit_amount is not None:
               fields["received_amount"] = observation.deposit_amount
          if observation.settle_amount is not None:
               fields["settled_amount"] = observation.settle_amount
          if observation.deposit_hash:
               fields["deposit_hash"] = observation.deposit_hash
          if observation.settle_hash:
               fields["settle_hash"] = observation.settle_hash
          if fields:
               self.store.update_fields(link.id, fields)

     def _advance(self, link: PaymentLink, target: LinkStatus, extra: Optional[dict] = None) -> bool:
          """Forward-only CAS from the link's last read status."""
          current = link.status
          if not can_transition(current, target):
               if rank(target) < rank(current) or current == LinkStatus.RELEASING:
                    logger.info("Link %s: stale signal %s rejected (link is %s)", link.id, target.value, current.value)
               return False
          fields = {"status": target}
          if extra:
               fields.update(extra)
          if not self.store.update_status_if_current(link.id, current, fields):
               return False
          logger.info("Link %s: %s -> %s", link.id, current.value, target.value)
          return True

     def _on_settled(self, link: PaymentLink) -> None:
          if link.kind == LinkKind.DIRECT:
               if link.status in PRE_SETTLEMENT_STATUSES:
                    self._execute_release(link, reason="auto-release on settlement")
               return

          if link.status in PRE_SETTLEMENT_STATUSES:
               if self._advance(link, LinkStatus.DEPOSIT_RECEIVED):
                    self._record_deposit(link)
                    self._notify(link, EVENT_PAYMENT_RECEIVED, {
                         "amount": _str(link.received_amount),
                         "coin": link.deposit_coin,
                         "settledAmount": _str(link.settled_amount),
                    })
               else:
                    link = self.get_link(link.id)

          if link.kind == LinkKind.ESCROW:
               if link.status == LinkStatus.DEPOSIT_RECEIVED:
                    if not self._advance(link, LinkStatus.CONDITION_PENDING):
                         link = self.get_link(link.id)
               if link.status in (LinkStatus.CONDITION_PENDING, LinkStatus.CONDITION_MET):
                    self._try_escrow_release(link, reason="condition verified during reconciliation")
          elif link.kind == LinkKind.SPLIT:
               if link.status == LinkStatus.DEPOSIT_RECEIVED:
                    self._execute_release(link, reason="split distribution on settlement")

     def _record_deposit(self, link: PaymentLink) -> None:
          """One completed deposit row per link, written by the CAS winner only."""
          existing = self.store.list_transactions(link.id, kinds=[TransactionKind.DEPOSIT])
          if existing:
               return
          amount = link.settled_amount if link.settled_amount is not None else link.received_amount
          self.store.add_transaction(
               link.id,
               TransactionKind.DEPOSIT,
               amount if amount is not None else Decimal("0"),
               link.custody_address,
               status=TransactionStatus.COMPLETED,
               external_ref=link.deposit_hash,
               note=f"{_str(link.received_amount)} {link.deposit_coin} -> {_str(link.settled_amount)} {self.settle_coin}",
          )

     # ------------------------------------------------------------------
     # Release decision
     # ------------------------------------------------------------------

     def release_escrow(self, link_id: str, reason: str) -> Transaction:
          """
          Manual escrow release. Raises ReleaseError naming what blocks it.
          Calling it again after a release returns the existing transaction.
          """
          link = self.get_link(link_id)
          if link.kind != LinkKind.ESCROW:
               raise ReleaseError("not_escrow", f"Link {link.id} is a {link.kind.value} link, not an escrow")

          if link.status == LinkStatus.COMPLETED:
               return self._existing_release(link)
          if link.status in (LinkStatus.FAILED, LinkStatus.REFUNDED):
               raise ReleaseError(link.status.value, f"Link {link.id} is {link.status.value}; nothing to release")
          if link.status == LinkStatus.RELEASING:
               raise ReleaseError("release_in_progress", "A release for this link is already in progress")

          outcome = self._try_escrow_release(link, reason=reason)
          if outcome.released:
               return outcome.transactions[0]
          if outcome.conflict:
               link = self.get_link(link.id)
               if link.status == LinkStatus.COMPLETED:
                    return self._existing_release(link)
               raise ReleaseError("release_in_progress", "Another release attempt is in progress")
          raise ReleaseError(outcome.blocking_reason, outcome.message, outcome.guidance)

     def _existing_release(self, link: PaymentLink) -> Transaction:
          released = self.store.list_transactions(
               link.id, kinds=RELEASE_KINDS, statuses=[TransactionStatus.COMPLETED]
          )
          if not released:
               raise ReleaseError("needs_review", f"Link {link.id} is completed but has no release transaction")
          return released[-1]

     def _try_escrow_release(self, link: PaymentLink, reason: str) -> ReleaseOutcome:
          """Deposit check first, then the condition, then the transfer."""
          if not deposit_confirmed(link.status):
               return ReleaseOutcome(
                    blocking_reason="awaiting_deposit",
                    message="No confirmed deposit for this escrow yet",
                    guidance=self._deposit_guidance(link),
               )

          if link.status == LinkStatus.DEPOSIT_RECEIVED:
               if not self._advance(link, LinkStatus.CONDITION_PENDING):
                    return ReleaseOutcome(conflict=True)

          result = self.conditions.check(link)
          if not result.met:
               logger.info("Link %s: escrow condition not met (%s)", link.id, result.reason)
               return ReleaseOutcome(
                    blocking_reason="condition_not_met",
                    message=f"Escrow condition not met: {result.reason}",
                    guidance=result.guidance,
               )

          if link.status == LinkStatus.CONDITION_PENDING:
               if not self._advance(link, LinkStatus.CONDITION_MET, {"condition_verified_at": utcnow()}):
                    return ReleaseOutcome(conflict=True)

          if link.status != LinkStatus.CONDITION_MET:
               return ReleaseOutcome(conflict=True)
          return self._execute_release(link, reason=reason)

     def _execute_release(self, link: PaymentLink, reason: Optional[str] = None) -> ReleaseOutcome:
          """
          Claim the link, transfer, record, complete.

          A transfer failure puts the link back where it was so the next
          signal retries. A store failure after a successful transfer is
          never retried: the link stays in `releasing` and is flagged.
          """
          total = link.settled_amount
          if total is None or total <= 0:
               logger.warning("Link %s: settled but no settle amount reported yet", link.id)
               return ReleaseOutcome(
                    blocking_reason="awaiting_settlement_amount",
                    message="The provider has not reported a settled amount yet",
               )

          plan = plan_release(link, total)
          previous = link.status
          claimed = self.store.update_status_if_current(link.id, previous, {
               "status": LinkStatus.RELEASING,
               "release_claimed_at": utcnow(),
               "release_reason": reason[:500] if reason else None,
          })
          if not claimed:
               return ReleaseOutcome(conflict=True)
          # the claim is ours; bookkeeping columns may have moved since the read
          link = self.get_link(link.id)
          logger.info("Link %s: release claimed (%s, total %s)", link.id, plan.transaction_kind.value, plan.total)

          if link.kind == LinkKind.DIRECT:
               self._record_deposit(link)

          if link.kind == LinkKind.SPLIT:
               return self._distribute(link, plan, reason)
          return self._release_single(link, plan, previous, reason)

     def _release_single(self, link: PaymentLink, plan: ReleasePlan, previous: LinkStatus, reason: Optional[str]) -> ReleaseOutcome:
          leg = plan.legs[0]
          txn = self.store.add_transaction(link.id, plan.transaction_kind, leg.amount, leg.recipient, note=reason)
          try:
               reference = self.wallet.transfer(link.custody_address, leg.recipient, leg.amount)
          except TransferError as e:
               self.store.finalize_transaction(txn, TransactionStatus.FAILED, note=str(e))
               self._release_failed(link, previous, str(e))
               return ReleaseOutcome(
                    blocking_reason="transfer_failed",
                    message=f"Transfer failed: {e}",
                    guidance="The release will be retried on the next status update.",
                    transactions=[txn],
               )

          if not self._finish_release(link, [(txn, reference)]):
               return ReleaseOutcome(
                    blocking_reason="needs_review",
                    message="Funds were transferred but the link could not be updated",
                    transactions=[txn],
               )

          event = EVENT_ESCROW_RELEASED if link.kind == LinkKind.ESCROW else EVENT_PAYMENT_COMPLETED
          self._notify(link, event, {
               "amount": _str(leg.amount),
               "recipient": leg.recipient,
               "txHash": reference,
               "condition": link.condition_type,
          })
          if event != EVENT_PAYMENT_COMPLETED:
               self._notify(link, EVENT_PAYMENT_COMPLETED, {"amount": _str(leg.amount)})
          return ReleaseOutcome(released=True, transactions=[txn])

     def _distribute(self, link: PaymentLink, plan: ReleasePlan, reason: Optional[str]) -> ReleaseOutcome:
          """
          One transfer per recipient, issued concurrently. Each leg is
          recorded before the link completes; failed legs are recorded as
          failed transactions and flagged, never retried automatically.
          """
          pending = [
               (leg, self.store.add_transaction(
                    link.id, plan.transaction_kind, leg.amount, leg.recipient,
                    note=leg.label or reason,
               ))
               for leg in plan.legs
          ]

          with ThreadPoolExecutor(max_workers=min(8, len(pending))) as pool:
               futures = [
                    pool.submit(self._attempt_transfer, link.custody_address, leg)
                    for leg, _ in pending
               ]
               results = [future.result() for future in futures]

          completed, failed = [], []
          for (leg, txn), (reference, error) in zip(pending, results):
               if error is None:
                    completed.append((txn, reference))
               else:
                    self.store.finalize_transaction(txn, TransactionStatus.FAILED, note=error)
                    failed.append(leg)
                    logger.error("Link %s: split leg to %s for %s failed: %s", link.id, leg.recipient, leg.amount, error)

          if plan.remainder:
               logger.info("Link %s: rounding remainder %s credited to %s", link.id, plan.remainder, plan.legs[-1].recipient)

          extra = {}
          if failed:
               extra = {
                    "needs_review": True,
                    "last_release_error": f"{len(failed)} of {len(plan.legs)} split transfers failed"[:500],
               }
               logger.error(
                    "Link %s: partial distribution failure, %d of %d legs need manual remediation",
                    link.id, len(failed), len(plan.legs),
               )

          if not self._finish_release(link, completed, extra):
               return ReleaseOutcome(
                    blocking_reason="needs_review",
                    message="Distribution executed but the link could not be updated",
                    transactions=[txn for _, txn in pending],
                    failed_legs=failed,
               )

          self._notify(link, EVENT_SPLIT_DISTRIBUTED, {
               "totalAmount": _str(plan.total),
               "recipientCount": len(plan.legs),
               "failedCount": len(failed),
               "recipients": [
                    {"address": leg.recipient, "amount": _str(leg.amount), "percentage": _str(leg.percentage)}
                    for leg in plan.legs
               ],
          })
          self._notify(link, EVENT_PAYMENT_COMPLETED, {"amount": _str(plan.total)})
          return ReleaseOutcome(released=True, transactions=[txn for _, txn in pending], failed_legs=failed)

     def _attempt_transfer(self, source: str, leg: TransferLeg):
          try:
               return self.wallet.transfer(source, leg.recipient, leg.amount), None
          except TransferError as e:
               return None, str(e)

     def _finish_release(self, link: PaymentLink, completed: list, extra: Optional[dict] = None) -> bool:
          try:
               for txn, reference in completed:
                    self.store.finalize_transaction(txn, TransactionStatus.COMPLETED, external_ref=reference)
               fields = {
                    "status": LinkStatus.COMPLETED,
                    "release_claimed_at": None,
                    "last_release_error": None,
               }
               fields.update(extra or {})
               done = self.store.update_status_if_current(link.id, LinkStatus.RELEASING, fields)
          except SQLAlchemyError:
               self.db.rollback()
               logger.critical(
                    "RECONCILIATION INCONSISTENCY: link %s transferred funds (%s) but the store update failed; manual review required",
                    link.id, ", ".join(ref for _, ref in completed) or "no successful legs",
                    exc_info=True,
               )
               self._flag_for_review(link, "store update failed after transfer")
               return False

          if not done:
               logger.critical(
                    "RECONCILIATION INCONSISTENCY: link %s left `releasing` while a transfer was executing; manual review required",
                    link.id,
               )
               self._flag_for_review(link, "link left releasing during transfer")
               return False

          logger.info("Link %s: %s", link.id, "released" if link.kind != LinkKind.SPLIT else "distributed")
          return True

     def _release_failed(self, link: PaymentLink, previous: LinkStatus, error: str) -> None:
          attempts = (link.release_attempts or 0) + 1
          fields = {
               "status": previous,
               "release_claimed_at": None,
               "release_attempts": attempts,
               "last_release_error": error[:500],
          }
          if attempts >= self.alert_threshold:
               fields["needs_review"] = True
               logger.critical(
                    "ALERT: link %s transfer failed %d times (last error: %s); operator attention required",
                    link.id, attempts, error,
               )
          else:
               logger.error("Link %s: transfer failed (attempt %d): %s", link.id, attempts, error)

          if self.store.update_status_if_current(link.id, LinkStatus.RELEASING, fields):
               if attempts == self.alert_threshold:
                    self._notify(link, EVENT_PAYMENT_FAILED, {"reason": "transfer_failed", "attempts": attempts, "error": error})
          else:
               logger.critical("Link %s: could not roll back release claim after transfer failure", link.id)

     def _flag_for_review(self, link: PaymentLink, reason: str) -> None:
          try:
               self.store.update_fields(link.id, {"needs_review": True, "last_release_error": reason})
          except SQLAlchemyError:
               self.db.rollback()
               logger.critical("Link %s: could not flag for review", link.id, exc_info=True)

     # ------------------------------------------------------------------
     # Conditions
     # ------------------------------------------------------------------

     def verify_condition(self, link_id: str) -> ConditionResult:
          """Evaluate the escrow condition; a met condition advances condition_pending -> condition_met."""
          link = self.get_link(link_id)
          if link.kind != LinkKind.ESCROW:
               raise ValidationError(f"Link {link.id} has no escrow condition")
          result = self.conditions.check(link)
          if result.met and link.status == LinkStatus.CONDITION_PENDING:
               self._advance(link, LinkStatus.CONDITION_MET, {"condition_verified_at": utcnow()})
          return result

     def approve_condition(self, link_id: str, approver: str) -> PaymentLink:
          """Record the owner's approval for a manual escrow condition."""
          link = self.get_link(link_id)
          if link.kind != LinkKind.ESCROW or link.condition_type != "manual":
               raise ValidationError("Only escrow links with a manual condition can be approved")
          if not approver or approver.lower() != link.owner:
               raise ValidationError("Only the link owner can approve the release")
          if is_terminal(link.status):
               raise ValidationError(f"Link {link.id} is already {link.status.value}")
          if not link.condition_approved_by:
               self.store.update_fields(link.id, {"condition_approved_by": approver.lower()})
               logger.info("Link %s: manual condition approved by %s", link.id, approver.lower())
          return self.get_link(link.id)

     # ------------------------------------------------------------------
     # Presentation
     # ------------------------------------------------------------------

     def get_status_report(self, link_id: str) -> StatusReport:
          link = self.get_link(link_id)
          report = StatusReport(
               link_id=link.id,
               kind=link.kind,
               status=link.status,
               needs_review=link.needs_review,
               release_attempts=link.release_attempts or 0,
               last_release_error=link.last_release_error,
          )

          if link.status == LinkStatus.COMPLETED:
               if link.needs_review:
                    report.blocking_reason = "needs_review"
                    report.guidance = link.last_release_error
               return report
          if link.status in (LinkStatus.FAILED, LinkStatus.REFUNDED):
               report.guidance = (
                    "The deposit was refunded by the swap provider."
                    if link.status == LinkStatus.REFUNDED
                    else "The deposit order expired or failed."
               )
               return report
          if link.status == LinkStatus.RELEASING:
               report.blocking_reason = "needs_review" if link.needs_review else "release_in_progress"
               report.guidance = link.last_release_error or "Funds are being transferred."
               return report

          if link.last_release_error and link.release_attempts:
               # the claim was rolled back, so status alone would read as pre-release
               report.blocking_reason = "needs_review" if link.needs_review else "transfer_failed"
               report.guidance = f"Last transfer attempt failed: {link.last_release_error}"
               report.can_retry = True
               return report

          if not deposit_confirmed(link.status):
               report.blocking_reason = "awaiting_deposit"
               report.guidance = self._deposit_guidance(link)
               report.can_retry = True
               return report

          if link.kind == LinkKind.ESCROW:
               result = self.conditions.check(link)
               report.condition = {"type": link.condition_type, "met": result.met, "reason": result.reason, **result.details}
               if not result.met:
                    report.blocking_reason = "condition_not_met"
                    report.guidance = result.guidance
               else:
                    report.can_release = True
          else:
               report.can_retry = True
          return report

     def _deposit_guidance(self, link: PaymentLink) -> str:
          if link.status == LinkStatus.PROCESSING:
               return f"Your deposit is being converted to {self.settle_coin}. This usually takes 1-5 minutes."
          return f"Send {link.deposit_coin} on {link.deposit_network} to {link.deposit_address}."

     # ------------------------------------------------------------------
     # Collaborators
     # ------------------------------------------------------------------

     def _notify(self, link: PaymentLink, event: str, data: dict) -> None:
          if self.notifier is None:
               return
          payload = {"linkId": link.id, "type": link.kind.value, "status": link.status.value}
          payload.update(data)
          self.notifier.dispatch(link.owner, event, payload)

     def _deregister(self, link: PaymentLink) -> None:
          if self.poller is not None:
               self.poller.deregister(link.id)


def _validate_split_table(recipients: Optional[list]) -> list[dict]:
     if not recipients:
          raise ValidationError("Split links require at least one recipient")
     table = []
     total = Decimal("0")
     for index, row in enumerate(recipients):
          address = (row.get("address") or "").strip()
          if not address:
               raise ValidationError(f"Split recipient #{index + 1} has no address")
          percentage = _decimal(row.get("percentage"), f"percentage of recipient #{index + 1}")
          if percentage <= 0:
               raise ValidationError(f"Split recipient #{index + 1} must have a positive percentage")
          total += percentage
          table.append({"address": address, "percentage": str(percentage), "label": row.get("label")})
     if total != HUNDRED:
          raise ValidationError(f"Split percentages must sum to exactly 100 (got {total})")
     return table


def _decimal(value, name: str) -> Decimal:
     try:
          number = Decimal(str(value))
     except (InvalidOperation, TypeError, ValueError):
          raise ValidationError(f"{name} is not a valid number")
     if not number.is_finite():
          raise ValidationError(f"{name} is not a valid number")
     return number


def _str(value) -> Optional[str]:
     return None if value is None else str(value)
