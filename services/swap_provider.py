# services/swap_provider.py
"""
SideShift swap provider client.

Creates variable-rate shifts (deposit orders) that convert the payer's coin
into the fixed settlement stablecoin, and fetches their status. Errors are
mapped onto the domain taxonomy:

- HTTP 404                       -> OrderNotFoundError
- other 4xx on order creation    -> OrderCreationError
- 5xx, timeouts, network errors  -> ProviderUnavailableError
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests

import config
from services.exceptions import (
     OrderCreationError,
     OrderNotFoundError,
     ProviderUnavailableError,
)

logger = logging.getLogger("shiftstream.sideshift")


def _to_decimal(value) -> Optional[Decimal]:
     if value is None or value == "":
          return None
     try:
          return Decimal(str(value))
     except InvalidOperation:
          return None


@dataclass
class DepositOrder:
     order_id: str
     deposit_address: str
     deposit_min: Optional[Decimal] = None
     deposit_max: Optional[Decimal] = None


@dataclass
class OrderObservation:
     """One observation of an order's state, from a poll or a webhook push."""
     status: str
     deposit_amount: Optional[Decimal] = None
     settle_amount: Optional[Decimal] = None
     deposit_hash: Optional[str] = None
     settle_hash: Optional[str] = None
     settle_address: Optional[str] = None

     @classmethod
     def from_payload(cls, data: dict) -> "OrderObservation":
          return cls(
               status=(data.get("status") or "").lower(),
               deposit_amount=_to_decimal(data.get("depositAmount")),
               settle_amount=_to_decimal(data.get("settleAmount")),
               deposit_hash=data.get("depositHash"),
               settle_hash=data.get("settleHash"),
               settle_address=data.get("settleAddress"),
          )


class SideShiftClient:
     """Thin wrapper over the SideShift v2 REST API."""

     def __init__(
          self,
          base_url: str = config.SIDESHIFT_API_BASE,
          secret_key: str = config.SIDESHIFT_SECRET_KEY,
          affiliate_id: str = config.SIDESHIFT_AFFILIATE_ID,
          timeout: float = config.PROVIDER_TIMEOUT_SECONDS,
          session: Optional[requests.Session] = None,
     ):
          self.base_url = base_url.rstrip("/")
          self.secret_key = secret_key
          self.affiliate_id = affiliate_id
          self.timeout = timeout
          self.http = session or requests.Session()

     def _headers(self) -> dict:
          headers = {"Content-Type": "application/json"}
          if self.secret_key:
               headers["x-sideshift-secret"] = self.secret_key
          return headers

     def _request(self, method: str, path: str, **kwargs) -> requests.Response:
          url = f"{self.base_url}{path}"
          try:
               response = self.http.request(
                    method, url, headers=self._headers(), timeout=self.timeout, **kwargs
               )
          except (requests.ConnectionError, requests.Timeout) as e:
               logger.warning("SideShift unreachable (%s %s): %s", method, path, e)
               raise ProviderUnavailableError(f"SideShift unreachable: {e}") from e
          if response.status_code >= 500:
               raise ProviderUnavailableError(
                    f"SideShift error {response.status_code}: {_error_message(response)}"
               )
          return response

     def create_order(
          self,
          deposit_coin: str,
          deposit_network: str,
          settle_address: str,
          settle_coin: str = config.SETTLE_COIN,
          settle_network: str = config.SETTLE_NETWORK,
          refund_address: Optional[str] = None,
     ) -> DepositOrder:
          """Create a variable-rate shift settling into settle_address."""
          params = {
               "depositCoin": deposit_coin,
               "depositNetwork": deposit_network,
               "settleCoin": settle_coin,
               "settleNetwork": settle_network,
               "settleAddress": settle_address,
          }
          if self.affiliate_id:
               params["affiliateId"] = self.affiliate_id
          if refund_address:
               params["refundAddress"] = refund_address

          response = self._request("POST", "/shifts/variable", json=params)
          if response.status_code not in (200, 201):
               message = _error_message(response)
               logger.error("SideShift rejected shift creation: %s", message)
               raise OrderCreationError(message or "Failed to create shift")

          data = response.json()
          if not data.get("id") or not data.get("depositAddress"):
               raise OrderCreationError("SideShift response is missing id or depositAddress")
          logger.info("Created shift %s (%s-%s -> %s-%s)", data["id"], deposit_coin, deposit_network, settle_coin, settle_network)
          return DepositOrder(
               order_id=data["id"],
               deposit_address=data["depositAddress"],
               deposit_min=_to_decimal(data.get("depositMin")),
               deposit_max=_to_decimal(data.get("depositMax")),
          )

     def get_order(self, order_id: str) -> OrderObservation:
          """Fetch the current status of a shift."""
          if not order_id:
               raise OrderNotFoundError(order_id)
          response = self._request("GET", f"/shifts/{order_id}")
          if response.status_code == 404:
               raise OrderNotFoundError(order_id)
          if response.status_code != 200:
               raise ProviderUnavailableError(
                    f"SideShift error {response.status_code}: {_error_message(response)}"
               )
          return OrderObservation.from_payload(response.json())

     def get_pair(
          self,
          deposit_coin: str,
          deposit_network: str,
          settle_coin: str = config.SETTLE_COIN,
          settle_network: str = config.SETTLE_NETWORK,
     ) -> dict:
          """Min/max deposit and rate for a coin pair."""
          response = self._request(
               "GET", f"/pair/{deposit_coin}-{deposit_network}/{settle_coin}-{settle_network}"
          )
          if response.status_code != 200:
               raise ProviderUnavailableError(_error_message(response) or "Failed to fetch pair info")
          return response.json()

     def get_coins(self) -> list:
          response = self._request("GET", "/coins")
          if response.status_code != 200:
               raise ProviderUnavailableError("Failed to fetch coins")
          return response.json()


def _error_message(response: requests.Response) -> str:
     try:
          data = response.json()
     except ValueError:
          return response.text
     error = data.get("error") if isinstance(data, dict) else None
     if isinstance(error, dict):
          return error.get("message", "")
     return error or ""
