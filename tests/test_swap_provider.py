from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from services.exceptions import (
     OrderCreationError,
     OrderNotFoundError,
     ProviderUnavailableError,
     TransferError,
)
from services.settlement_wallet import RemoteSettlementWallet, SimulatedSettlementWallet
from services.swap_provider import OrderObservation, SideShiftClient


def response(status_code, payload=None):
     resp = MagicMock(status_code=status_code)
     resp.json.return_value = payload if payload is not None else {}
     resp.text = str(payload)
     return resp


@pytest.fixture
def http():
     return MagicMock()


@pytest.fixture
def client(http):
     return SideShiftClient(base_url="https://sideshift.test/api/v2/", secret_key="s3cret", affiliate_id="aff", session=http)


def test_create_order(client, http):
     http.request.return_value = response(201, {"id": "abc", "depositAddress": "bc1q", "depositMin": "0.0001"})

     order = client.create_order("BTC", "bitcoin", "0xcustody", refund_address="bc1refund")

     assert order.order_id == "abc"
     assert order.deposit_address == "bc1q"
     assert order.deposit_min == Decimal("0.0001")
     method, url = http.request.call_args.args
     kwargs = http.request.call_args.kwargs
     assert (method, url) == ("POST", "https://sideshift.test/api/v2/shifts/variable")
     assert kwargs["json"]["settleAddress"] == "0xcustody"
     assert kwargs["json"]["affiliateId"] == "aff"
     assert kwargs["json"]["refundAddress"] == "bc1refund"
     assert kwargs["headers"]["x-sideshift-secret"] == "s3cret"


def test_create_order_rejected(client, http):
     http.request.return_value = response(400, {"error": {"message": "Invalid settle address"}})
     with pytest.raises(OrderCreationError, match="Invalid settle address"):
          client.create_order("BTC", "bitcoin", "nope")


def test_create_order_without_deposit_address(client, http):
     http.request.return_value = response(200, {"id": "abc"})
     with pytest.raises(OrderCreationError):
          client.create_order("BTC", "bitcoin", "0xcustody")


def test_server_error_is_unavailable(client, http):
     http.request.return_value = response(503, {"error": "maintenance"})
     with pytest.raises(ProviderUnavailableError):
          client.create_order("BTC", "bitcoin", "0xcustody")


def test_timeout_is_unavailable(client, http):
     http.request.side_effect = requests.Timeout("read timed out")
     with pytest.raises(ProviderUnavailableError):
          client.get_order("abc")


def test_get_order(client, http):
     http.request.return_value = response(200, {
          "id": "abc",
          "status": "Settled",
          "depositAmount": "0.0021",
          "settleAmount": "125.5",
          "settleHash": "0xsettle",
     })

     observation = client.get_order("abc")

     assert observation.status == "settled"
     assert observation.deposit_amount == Decimal("0.0021")
     assert observation.settle_amount == Decimal("125.5")
     assert observation.settle_hash == "0xsettle"


def test_get_unknown_order(client, http):
     http.request.return_value = response(404, {"error": {"message": "Shift not found"}})
     with pytest.raises(OrderNotFoundError):
          client.get_order("missing")


def test_observation_ignores_unparseable_amounts():
     observation = OrderObservation.from_payload({"status": "processing", "depositAmount": "n/a"})
     assert observation.deposit_amount is None
     assert observation.settle_amount is None


# --- Settlement wallet ---

def test_simulated_wallet_is_deterministic_per_owner():
     wallet = SimulatedSettlementWallet()
     first = wallet.create_account("0xOwner")
     assert first.address == wallet.create_account("0xowner").address
     assert first.address.startswith("0x") and len(first.address) == 42
     assert wallet.transfer(first.address, "0xdest", Decimal("1")).startswith("0x")
     with pytest.raises(TransferError):
          wallet.transfer(first.address, "0xdest", Decimal("0"))


def test_remote_wallet_transfer(http):
     http.post.return_value = response(200, {"txHash": "0xabc"})
     wallet = RemoteSettlementWallet(base_url="https://wallet.test", api_key="k", session=http)

     assert wallet.transfer("0xfrom", "0xto", Decimal("12.50")) == "0xabc"
     assert http.post.call_args.kwargs["json"] == {"from": "0xfrom", "to": "0xto", "amount": "12.50"}


@pytest.mark.parametrize("outcome", [
     response(500, {"error": "boom"}),
     response(200, {}),
     requests.ConnectionError("refused"),
])
def test_remote_wallet_transfer_failures(http, outcome):
     if isinstance(outcome, Exception):
          http.post.side_effect = outcome
     else:
          http.post.return_value = outcome
     wallet = RemoteSettlementWallet(base_url="https://wallet.test", api_key="k", session=http)
     with pytest.raises(TransferError):
          wallet.transfer("0xfrom", "0xto", Decimal("1"))
