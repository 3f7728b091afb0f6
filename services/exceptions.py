# services/exceptions.py
"""
Domain errors raised by the settlement engine and its collaborators.

Reconciliation conflicts and unmet escrow conditions are ordinary outcomes
and are reported through return values, not through this hierarchy.
"""
from typing import Optional


class ShiftStreamError(Exception):
     """Base class for all domain errors."""


class ValidationError(ShiftStreamError):
     """Malformed or incomplete link creation request. No side effects happened."""


class LinkNotFoundError(ShiftStreamError):
     def __init__(self, link_id: str):
          super().__init__(f"Payment link {link_id} not found")
          self.link_id = link_id


class OrderCreationError(ShiftStreamError):
     """The swap provider rejected the deposit order."""


class OrderNotFoundError(ShiftStreamError):
     def __init__(self, order_id: str):
          super().__init__(f"Swap order {order_id} not found")
          self.order_id = order_id


class ProviderUnavailableError(ShiftStreamError):
     """The swap provider could not be reached or answered with a server error."""


class TransferError(ShiftStreamError):
     """The settlement wallet refused or failed a transfer."""


class WalletError(ShiftStreamError):
     """The settlement wallet failed a non-transfer operation (account, balance)."""


class ReleaseError(ShiftStreamError):
     """
     A release could not be executed.

     blocking_reason is machine readable (awaiting_deposit, condition_not_met,
     transfer_failed, needs_review, not_escrow, ...); guidance tells the user
     what is needed to proceed.
     """

     def __init__(self, blocking_reason: str, message: str, guidance: Optional[str] = None):
          super().__init__(message)
          self.blocking_reason = blocking_reason
          self.guidance = guidance
