"""
Fee routes — current relayer fee and gas-price-derived cost estimates.

    GET /fee               Fee bps, gas price and typical swap cost
    GET /fee/quote?amount= Relayer fee and net amount for a given swap size
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from relayer.api.deps import get_relay_service
from relayer.schemas.relay import SIGNED_INT_RE
from relayer.services.fees import fee_overview, fee_quote

fee_router = APIRouter(prefix="/fee", tags=["Fee"])


@fee_router.get("", summary="Get current fee information")
def get_fee(request: Request) -> dict:
    service = get_relay_service(request)
    settings = service.settings
    body = fee_overview(
        gas_price=service.chain.gas_price(),
        fee_bps=settings.RELAYER_FEE_BPS,
        typical_gas=settings.TYPICAL_SWAP_GAS,
    )
    body["chain"] = settings.CHAIN_NAME
    body["chainId"] = service.chain.chain_id
    return body


@fee_router.get("/quote", summary="Get a fee quote for a specific swap amount")
def get_quote(
    request: Request,
    amount: Optional[str] = Query(default=None),
) -> dict:
    if not amount:
        raise HTTPException(status_code=400, detail="Missing amount parameter")
    if not SIGNED_INT_RE.match(amount) or int(amount) == 0:
        raise HTTPException(status_code=400, detail="Invalid amount")

    service = get_relay_service(request)
    settings = service.settings
    return fee_quote(
        amount=int(amount),
        gas_price=service.chain.gas_price(),
        fee_bps=settings.RELAYER_FEE_BPS,
        typical_gas=settings.TYPICAL_SWAP_GAS,
    )
