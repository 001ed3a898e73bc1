"""
Pydantic schemas for relay requests and responses.

The request models are the relayer's validation boundary: nothing reaches the
chain client unless the body parses here. Wire names are camelCase to match the
client SDK; Python attributes stay snake_case.

- Proof arrays must have the exact Groth16 shape (a: 2, b: 2x2, c: 2).
- Public signals must be numeric strings, at least six of them. The exact
  count is checked later against the configured circuit layout.
- Addresses must be 0x-prefixed 20-byte hex.
"""

import re
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    field_validator,
)
from pydantic.alias_generators import to_camel

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
NUMERIC_RE = re.compile(r"^(0x[0-9a-fA-F]+|[0-9]+)$")
SIGNED_INT_RE = re.compile(r"^-?[0-9]+$")
MIN_PUBLIC_SIGNALS = 6
MAX_UINT24 = 2**24 - 1


def _check_numeric(value: str) -> str:
    if not NUMERIC_RE.match(value):
        raise ValueError("not a valid number")
    return value


def _check_address(value: str) -> str:
    if not ADDRESS_RE.match(value):
        raise ValueError("not a valid 20-byte hex address")
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# REQUEST MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class Proof(CamelModel):
    """Groth16 proof points as numeric strings, in the SDK's (snarkjs) order."""
    a: List[StrictStr] = Field(..., min_length=2, max_length=2)
    b: List[List[StrictStr]] = Field(..., min_length=2, max_length=2)
    c: List[StrictStr] = Field(..., min_length=2, max_length=2)

    @field_validator("a", "c")
    @classmethod
    def check_point(cls, v: List[str]) -> List[str]:
        return [_check_numeric(x) for x in v]

    @field_validator("b")
    @classmethod
    def check_b(cls, v: List[List[str]]) -> List[List[str]]:
        for row in v:
            if len(row) != 2:
                raise ValueError("each row of b must have exactly 2 elements")
            for x in row:
                _check_numeric(x)
        return v


class PoolKey(CamelModel):
    currency0: StrictStr
    currency1: StrictStr
    fee: StrictInt = Field(..., ge=0, le=MAX_UINT24)
    tick_spacing: StrictInt
    hooks: StrictStr

    @field_validator("currency0", "currency1", "hooks")
    @classmethod
    def check_addresses(cls, v: str) -> str:
        return _check_address(v)


class SwapParams(CamelModel):
    pool_key: PoolKey
    zero_for_one: StrictBool
    amount_specified: StrictStr = Field(..., min_length=1)
    sqrt_price_limit_x96: StrictStr = Field(..., min_length=1)
    input_token: Optional[StrictStr] = Field(
        default=None, description="ERC-20 input token; omitted for native-currency input"
    )

    @field_validator("amount_specified")
    @classmethod
    def check_amount(cls, v: str) -> str:
        if not SIGNED_INT_RE.match(v):
            raise ValueError("not a valid signed integer")
        return v

    @field_validator("sqrt_price_limit_x96")
    @classmethod
    def check_price_limit(cls, v: str) -> str:
        return _check_numeric(v)

    @field_validator("input_token")
    @classmethod
    def check_input_token(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_address(v)


class RelayRequest(CamelModel):
    """Body of ``POST /relay`` and ``POST /relay/estimate``."""
    proof: Proof
    public_signals: List[StrictStr] = Field(..., min_length=MIN_PUBLIC_SIGNALS)
    swap_params: SwapParams

    @field_validator("public_signals")
    @classmethod
    def check_signals(cls, v: List[str]) -> List[str]:
        for i, s in enumerate(v):
            if not NUMERIC_RE.match(s):
                raise ValueError(f"publicSignals[{i}] is not a valid number")
        return v


# ═══════════════════════════════════════════════════════════════════════════════
# RESPONSE MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class RelayResponse(CamelModel):
    success: bool = True
    tx_hash: str
    block_number: str
    gas_used: str
    relayer_fee: str
    recipient_address: Optional[str] = None
    funding_tx_hash: Optional[str] = None
    output_transfer_tx_hash: Optional[str] = None
    request_id: Optional[str] = None


class EstimateResponse(CamelModel):
    success: bool = True
    estimated_gas: str
    estimated_fee: str
    relayer_fee: str
    total_cost: str


class TransactionStatus(CamelModel):
    status: str  # confirmed | failed | pending
    block_number: Optional[str] = None
    gas_used: Optional[str] = None
    effective_gas_price: Optional[str] = None
    nonce: Optional[int] = None


class RelayerInfo(CamelModel):
    address: str
    chain: str
    chain_id: int
    relayer_balance: str
    relayer_fee_bps: int
    max_fee_bps: int
    signal_schema: str
    contracts: dict
    healthy: bool
