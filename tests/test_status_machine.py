import pytest

from models import LinkKind, LinkStatus
from services.status_machine import (
     can_transition,
     deposit_confirmed,
     is_terminal,
     map_provider_status,
)


@pytest.mark.parametrize("status", [LinkStatus.COMPLETED, LinkStatus.FAILED, LinkStatus.REFUNDED])
def test_terminal_statuses_accept_nothing(status):
     assert is_terminal(status)
     for target in LinkStatus:
          assert not can_transition(status, target)


def test_forward_moves_only():
     assert can_transition(LinkStatus.AWAITING_DEPOSIT, LinkStatus.PROCESSING)
     assert can_transition(LinkStatus.AWAITING_DEPOSIT, LinkStatus.DEPOSIT_RECEIVED)
     assert not can_transition(LinkStatus.PROCESSING, LinkStatus.AWAITING_DEPOSIT)
     assert not can_transition(LinkStatus.CONDITION_MET, LinkStatus.CONDITION_PENDING)
     assert not can_transition(LinkStatus.PROCESSING, LinkStatus.PROCESSING)


def test_failures_reachable_except_while_releasing():
     assert can_transition(LinkStatus.CONDITION_PENDING, LinkStatus.REFUNDED)
     assert can_transition(LinkStatus.AWAITING_DEPOSIT, LinkStatus.FAILED)
     assert not can_transition(LinkStatus.RELEASING, LinkStatus.REFUNDED)
     assert not can_transition(LinkStatus.RELEASING, LinkStatus.FAILED)
     assert can_transition(LinkStatus.RELEASING, LinkStatus.COMPLETED)


@pytest.mark.parametrize("provider_status, expected", [
     ("waiting", LinkStatus.AWAITING_DEPOSIT),
     ("pending", LinkStatus.AWAITING_DEPOSIT),
     ("processing", LinkStatus.PROCESSING),
     ("settling", LinkStatus.PROCESSING),
     ("refund", LinkStatus.REFUNDED),
     ("refunding", LinkStatus.REFUNDED),
     ("refunded", LinkStatus.REFUNDED),
     ("expired", LinkStatus.FAILED),
     ("SETTLED", LinkStatus.COMPLETED),
     ("mystery", None),
     (None, None),
])
def test_provider_status_mapping(provider_status, expected):
     assert map_provider_status(LinkKind.DIRECT, provider_status) == expected


def test_settled_escrow_waits_for_condition():
     assert map_provider_status(LinkKind.ESCROW, "settled") == LinkStatus.CONDITION_PENDING
     assert map_provider_status(LinkKind.SPLIT, "settled") == LinkStatus.COMPLETED


def test_deposit_confirmed():
     assert not deposit_confirmed(LinkStatus.AWAITING_DEPOSIT)
     assert not deposit_confirmed(LinkStatus.PROCESSING)
     assert deposit_confirmed(LinkStatus.DEPOSIT_RECEIVED)
     assert deposit_confirmed(LinkStatus.CONDITION_PENDING)
     assert not deposit_confirmed(LinkStatus.REFUNDED)
