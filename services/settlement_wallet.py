# services/settlement_wallet.py
"""
Settlement wallet collaborators.

The engine only needs three operations: derive/hold an account per owner,
read a balance, and transfer settled stablecoin out of an account. A
transfer either returns a reference or raises TransferError; nothing else
counts as success.
"""
import hashlib
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import requests

import config
from services.exceptions import TransferError, WalletError

logger = logging.getLogger("shiftstream.wallet")


@dataclass
class WalletAccount:
     address: str
     is_deployed: bool
     balance: Decimal


class SettlementWallet(ABC):

     @abstractmethod
     def create_account(self, owner: str) -> WalletAccount:
          """Return (deriving if necessary) the owner's settlement account."""

     @abstractmethod
     def get_balance(self, address: str) -> Decimal:
          ...

     @abstractmethod
     def transfer(self, source: str, destination: str, amount: Decimal) -> str:
          """Move amount from source to destination; returns the transfer reference."""


class RemoteSettlementWallet(SettlementWallet):
     """Smart-account service reached over HTTP."""

     def __init__(
          self,
          base_url: str = config.WALLET_API_URL,
          api_key: str = config.WALLET_API_KEY,
          timeout: float = config.WALLET_TIMEOUT_SECONDS,
          session: Optional[requests.Session] = None,
     ):
          self.base_url = base_url.rstrip("/")
          self.api_key = api_key
          self.timeout = timeout
          self.http = session or requests.Session()

     def _headers(self) -> dict:
          return {"Content-Type": "application/json", "Authorization": f"Bearer {self.api_key}"}

     def create_account(self, owner: str) -> WalletAccount:
          try:
               response = self.http.post(
                    f"{self.base_url}/accounts",
                    json={"owner": owner},
                    headers=self._headers(),
                    timeout=self.timeout,
               )
          except requests.RequestException as e:
               raise WalletError(f"Wallet service unreachable: {e}") from e
          if response.status_code not in (200, 201):
               raise WalletError(f"Wallet account error {response.status_code}: {response.text}")
          data = response.json()
          return WalletAccount(
               address=data["address"],
               is_deployed=bool(data.get("isDeployed", False)),
               balance=Decimal(str(data.get("balance") or "0")),
          )

     def get_balance(self, address: str) -> Decimal:
          try:
               response = self.http.get(
                    f"{self.base_url}/accounts/{address}/balance",
                    headers=self._headers(),
                    timeout=self.timeout,
               )
          except requests.RequestException as e:
               raise WalletError(f"Wallet service unreachable: {e}") from e
          if response.status_code != 200:
               raise WalletError(f"Wallet balance error {response.status_code}: {response.text}")
          return Decimal(str(response.json().get("balance") or "0"))

     def transfer(self, source: str, destination: str, amount: Decimal) -> str:
          try:
               response = self.http.post(
                    f"{self.base_url}/transfers",
                    json={"from": source, "to": destination, "amount": str(amount)},
                    headers=self._headers(),
                    timeout=self.timeout,
               )
          except requests.RequestException as e:
               raise TransferError(f"Wallet service unreachable: {e}") from e
          if response.status_code not in (200, 201):
               raise TransferError(f"Transfer rejected ({response.status_code}): {response.text}")
          reference = response.json().get("txHash")
          if not reference:
               raise TransferError("Transfer response carried no transaction hash")
          return reference


class SimulatedSettlementWallet(SettlementWallet):
     """
     Deterministic stand-in used for demos: the account address is derived
     from the owner, balances are not tracked and every transfer succeeds
     with a synthetic reference.
     """

     def create_account(self, owner: str) -> WalletAccount:
          digest = hashlib.sha256(owner.lower().encode("utf-8")).hexdigest()
          return WalletAccount(address=f"0x{digest[:40]}", is_deployed=False, balance=Decimal("0"))

     def get_balance(self, address: str) -> Decimal:
          return Decimal("0")

     def transfer(self, source: str, destination: str, amount: Decimal) -> str:
          if amount <= 0:
               raise TransferError(f"Refusing non-positive transfer of {amount}")
          reference = f"0x{uuid.uuid4().hex}"
          logger.info("Simulated transfer %s %s -> %s (%s)", amount, source, destination, reference)
          return reference


def build_wallet() -> SettlementWallet:
     if config.WALLET_MODE == "remote":
          return RemoteSettlementWallet()
     return SimulatedSettlementWallet()
