# routers/shift.py
"""
Thin proxies over the swap provider and the settlement wallet, used by the
front-end for quotes and standalone shifts.
"""
from fastapi import APIRouter, Depends, status

from routers.deps import get_swap_provider, get_wallet, to_http_error
from schemas.shift import AccountResponse, ShiftCreate, ShiftResponse, ShiftStatusResponse
from services.exceptions import ShiftStreamError
from services.settlement_wallet import SettlementWallet
from services.swap_provider import SideShiftClient

router = APIRouter(tags=["shift"])


@router.post("/api/shift", response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
def create_shift(body: ShiftCreate, swap: SideShiftClient = Depends(get_swap_provider)):
     try:
          return swap.create_order(
               body.deposit_coin,
               body.deposit_network,
               body.settle_address,
               refund_address=body.refund_address,
          )
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.get("/api/shift/coins")
def list_coins(swap: SideShiftClient = Depends(get_swap_provider)):
     try:
          return swap.get_coins()
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.get("/api/shift/pair/{deposit_coin}/{deposit_network}")
def get_pair(deposit_coin: str, deposit_network: str, swap: SideShiftClient = Depends(get_swap_provider)):
     try:
          return swap.get_pair(deposit_coin, deposit_network)
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.get("/api/shift/{order_id}", response_model=ShiftStatusResponse)
def get_shift(order_id: str, swap: SideShiftClient = Depends(get_swap_provider)):
     try:
          return swap.get_order(order_id)
     except ShiftStreamError as e:
          raise to_http_error(e)


@router.get("/api/accounts/{owner}", response_model=AccountResponse, tags=["accounts"])
def get_account(owner: str, wallet: SettlementWallet = Depends(get_wallet)):
     """The owner's settlement account, derived on first use."""
     try:
          account = wallet.create_account(owner.lower())
     except ShiftStreamError as e:
          raise to_http_error(e)
     return AccountResponse(
          owner=owner.lower(),
          address=account.address,
          is_deployed=account.is_deployed,
          balance=account.balance,
     )
