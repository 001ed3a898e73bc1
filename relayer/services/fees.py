"""Relayer fee arithmetic. Display values only; the contract applies the authoritative fee."""

from decimal import Decimal
from typing import Dict

from web3 import Web3

BPS_DENOMINATOR = 10_000


def compute_relayer_fee(amount_specified: int, fee_bps: int) -> int:
    """
    floor(amount * bps / 10000).

    Negative (exact-input) amounts floor toward negative infinity, so -999 at
    10 bps is -1. This deliberately differs from truncating division, which
    would give 0 for the same input.
    """
    return (amount_specified * fee_bps) // BPS_DENOMINATOR


def _ether_text(wei: int) -> str:
    # from_wei returns int 0 for zero and a Decimal otherwise; "f" avoids 1E-18 style output
    return format(Decimal(Web3.from_wei(wei, "ether")), "f")


def fee_overview(gas_price: int, fee_bps: int, typical_gas: int) -> Dict[str, object]:
    gas_cost = gas_price * typical_gas
    return {
        "relayerFeeBps": fee_bps,
        "relayerFeePercent": fee_bps / 100,
        "gasPrice": str(gas_price),
        "gasPriceGwei": float(Web3.from_wei(gas_price, "gwei")),
        "estimatedGas": str(typical_gas),
        "estimatedGasCostWei": str(gas_cost),
        "estimatedGasCostEth": _ether_text(gas_cost),
    }


def fee_quote(amount: int, gas_price: int, fee_bps: int, typical_gas: int) -> Dict[str, object]:
    """
    Quote the relayer fee and gas cost for a swap of ``amount``.

    Raises:
        ValueError: if amount is zero (no meaningful net percentage).
    """
    if amount == 0:
        raise ValueError("amount must be non-zero")
    gas_cost = gas_price * typical_gas
    relayer_fee = compute_relayer_fee(amount, fee_bps)
    net_amount = amount - relayer_fee
    return {
        "inputAmount": str(amount),
        "relayerFee": str(relayer_fee),
        "relayerFeeBps": fee_bps,
        "gasCostWei": str(gas_cost),
        "totalCost": str(gas_cost + relayer_fee),
        "netAmount": str(net_amount),
        "netAmountPercent": ((net_amount * BPS_DENOMINATOR) // amount) / 100,
    }
