"""
Relay routes — accept ZK proofs and submit them to the GrimSwapZK hook.

    POST /relay           Submit a private swap through the relayer
    POST /relay/estimate  Estimate gas and fee without submitting
"""

import logging
import secrets
import time

from fastapi import APIRouter, Request

from relayer.api.deps import get_relay_service
from relayer.schemas.relay import EstimateResponse, RelayRequest, RelayResponse

logger = logging.getLogger(__name__)

relay_router = APIRouter(prefix="/relay", tags=["Relay"])


@relay_router.post(
    "",
    response_model=RelayResponse,
    response_model_exclude_none=True,
    summary="Submit a private swap through the relayer",
)
def relay(body: RelayRequest, request: Request) -> RelayResponse:
    t_start = time.perf_counter()
    request_id = secrets.token_hex(4)
    request.state.request_id = request_id

    params = body.swap_params
    logger.info(
        f"[RELAY {request_id}] Relay request received — "
        f"pool={params.pool_key.currency0}->{params.pool_key.currency1} "
        f"zeroForOne={params.zero_for_one} amount={params.amount_specified}"
    )

    service = get_relay_service(request)
    result = service.submit_private_swap(body, request_id=request_id)

    elapsed = (time.perf_counter() - t_start) * 1000
    logger.info(f"[RELAY {request_id}] Relay successful in {elapsed:.0f}ms. TxHash: {result.tx_hash}")
    if result.funding_tx_hash:
        logger.info(f"[RELAY {request_id}] Stealth address funded. TxHash: {result.funding_tx_hash}")

    return RelayResponse(
        tx_hash=result.tx_hash,
        block_number=str(result.block_number),
        gas_used=str(result.gas_used),
        relayer_fee=str(result.relayer_fee),
        recipient_address=result.recipient_address,
        funding_tx_hash=result.funding_tx_hash,
        output_transfer_tx_hash=result.output_transfer_tx_hash,
        request_id=request_id,
    )


@relay_router.post(
    "/estimate",
    response_model=EstimateResponse,
    summary="Estimate gas and fee for a relay request without submitting",
)
def estimate(body: RelayRequest, request: Request) -> EstimateResponse:
    result = get_relay_service(request).estimate_relay(body)
    return EstimateResponse(
        estimated_gas=str(result.gas),
        estimated_fee=str(result.fee),
        relayer_fee=str(result.relayer_fee),
        total_cost=str(result.total_cost),
    )
