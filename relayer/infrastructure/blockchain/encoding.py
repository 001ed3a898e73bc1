"""
ABI encoding for the private swap call.

Two payloads are built here:

    hookData  — abi.encode(uint256[2] pA, uint256[2][2] pB, uint256[2] pC,
                           uint256[N] pubSignals)
                N follows the configured signal layout. pB rows are swapped
                (snarkjs emits [x0, x1], the Solidity verifier expects
                [x1, x0]).
    calldata  — PoolSwapTest.swap(PoolKey, SwapParams, TestSettings, hookData)

Revert payloads from simulated calls are decoded back into the relayer's
error taxonomy by 4-byte selector, with substring matching on the message as
a last resort.
"""

from typing import Optional, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from relayer.core.errors import (
    ContractRevertedError,
    InsufficientPoolBalanceError,
    InvalidMerkleRootError,
    InvalidProofError,
    InvalidRecipientError,
    InvalidRelayerFeeError,
    NullifierAlreadyUsedError,
    RelayError,
    UnauthorizedError,
)
from relayer.core.signals import parse_numeric

SWAP_SIGNATURE = (
    "swap((address,address,uint24,int24,address),(bool,int256,uint160),(bool,bool),bytes)"
)
SWAP_SELECTOR = function_signature_to_4byte_selector(SWAP_SIGNATURE)

ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")  # Error(string)

# Custom errors raised by GrimSwapZK / GrimPool, checked in this order.
KNOWN_REVERTS: Sequence[tuple] = (
    ("InvalidProof", InvalidProofError),
    ("InvalidMerkleRoot", InvalidMerkleRootError),
    ("NullifierAlreadyUsed", NullifierAlreadyUsedError),
    ("InvalidRecipient", InvalidRecipientError),
    ("InvalidRelayerFee", InvalidRelayerFeeError),
    ("InsufficientPoolBalance", InsufficientPoolBalanceError),
    ("Unauthorized", UnauthorizedError),
)

REVERT_SELECTORS = {
    function_signature_to_4byte_selector(f"{name}()"): (name, error_cls)
    for name, error_cls in KNOWN_REVERTS
}


def to_bytes32(value: int) -> bytes:
    return value.to_bytes(32, "big")


def encode_hook_data(proof, signals: Sequence[int]) -> bytes:
    """Pack a ``Proof`` model and integer signals the way the hook decodes them."""
    p_a = [parse_numeric(x) for x in proof.a]
    p_b = [
        [parse_numeric(proof.b[0][1]), parse_numeric(proof.b[0][0])],
        [parse_numeric(proof.b[1][1]), parse_numeric(proof.b[1][0])],
    ]
    p_c = [parse_numeric(x) for x in proof.c]
    return encode(
        ["uint256[2]", "uint256[2][2]", "uint256[2]", f"uint256[{len(signals)}]"],
        [p_a, p_b, p_c, list(signals)],
    )


def encode_swap_call(swap_params, hook_data: bytes) -> bytes:
    """
    Build calldata for ``PoolSwapTest.swap``.

    Test settings are fixed to (takeClaims=False, settleUsingBurn=False) so
    output is paid out as plain tokens.
    """
    key = swap_params.pool_key
    pool_key = (
        to_checksum_address(key.currency0),
        to_checksum_address(key.currency1),
        key.fee,
        key.tick_spacing,
        to_checksum_address(key.hooks),
    )
    params = (
        swap_params.zero_for_one,
        int(swap_params.amount_specified),
        parse_numeric(swap_params.sqrt_price_limit_x96),
    )
    test_settings = (False, False)
    return SWAP_SELECTOR + encode(
        [
            "(address,address,uint24,int24,address)",
            "(bool,int256,uint160)",
            "(bool,bool)",
            "bytes",
        ],
        [pool_key, params, test_settings, hook_data],
    )


def _decode_error_string(data: bytes) -> Optional[str]:
    if data[:4] != ERROR_STRING_SELECTOR:
        return None
    try:
        (message,) = decode(["string"], data[4:])
    except DecodingError:
        return None
    return message


def classify_revert(message: str, data: Optional[bytes] = None) -> RelayError:
    """
    Map a revert to a typed relay error.

    The 4-byte selector in ``data`` is authoritative. Without a recognised
    selector, the message (and any decoded ``Error(string)`` reason) is
    searched for a known error name. Anything else becomes a generic
    ``ContractRevertedError`` carrying the raw message.
    """
    reason = message or ""
    if data:
        match = REVERT_SELECTORS.get(bytes(data[:4]))
        if match is not None:
            name, error_cls = match
            return error_cls(details=name)
        decoded = _decode_error_string(bytes(data))
        if decoded:
            reason = f"{decoded} ({reason})" if reason else decoded

    for name, error_cls in KNOWN_REVERTS:
        if name in reason:
            return error_cls(details=name)

    return ContractRevertedError(
        "Contract reverted. Check proof validity and contract state.",
        details=reason[:500] or "Unknown reason",
    )

