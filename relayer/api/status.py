"""
Status routes — transaction status and relayer info.

    GET /status/{txHash}        Receipt / pending lookup
    GET /status/relayer/info    Relayer account, chain and contracts
"""

from fastapi import APIRouter, HTTPException, Path, Request

from relayer.api.deps import get_relay_service
from relayer.schemas.relay import RelayerInfo, TransactionStatus

TX_HASH_PATTERN = r"^0x[a-fA-F0-9]{64}$"

status_router = APIRouter(prefix="/status", tags=["Status"])


@status_router.get(
    "/relayer/info",
    response_model=RelayerInfo,
    summary="Get relayer information",
)
def relayer_info(request: Request) -> RelayerInfo:
    return get_relay_service(request).relayer_info()


@status_router.get(
    "/{tx_hash}",
    response_model=TransactionStatus,
    response_model_exclude_none=True,
    summary="Get status of a transaction",
)
def transaction_status(
    request: Request,
    tx_hash: str = Path(..., pattern=TX_HASH_PATTERN),
) -> TransactionStatus:
    result = get_relay_service(request).transaction_status(tx_hash)
    if result is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return result
