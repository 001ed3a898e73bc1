"""
Versioned public-signal layouts.

The verifier circuit fixes the position of every public signal, and the
position has shifted between deployments: the first circuit exposed six
signals, the later one prepends two recomputed values (commitment and
nullifier hash) for eight in total. The layout in use is chosen by the
``SIGNAL_SCHEMA`` setting and must match the deployed verifier.
"""

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

from relayer.core.errors import InvalidSignalsError


@dataclass(frozen=True)
class SignalLayout:
    version: str
    length: int
    merkle_root: int
    nullifier_hash: int
    recipient: int
    relayer: int
    relayer_fee_bps: int
    swap_amount_out: int


SIGNAL_LAYOUTS: Dict[str, SignalLayout] = {
    "v1": SignalLayout("v1", 6, 0, 1, 2, 3, 4, 5),
    "v2": SignalLayout("v2", 8, 2, 3, 4, 5, 6, 7),
}


def get_layout(version: str) -> SignalLayout:
    try:
        return SIGNAL_LAYOUTS[version]
    except KeyError:
        raise ValueError(
            f"Unknown signal schema '{version}'. Expected one of {sorted(SIGNAL_LAYOUTS)}"
        ) from None


def parse_numeric(value: str) -> int:
    """Parse a decimal or 0x-prefixed hex integer string."""
    text = value.strip()
    if text.lower().lstrip("-").startswith("0x"):
        return int(text, 16)
    return int(text, 10)


def to_address(value: int) -> str:
    """Render a field element as a 20-byte hex address."""
    return "0x" + format(value, "040x")


@dataclass(frozen=True)
class PublicSignals:
    values: Tuple[int, ...]
    layout: SignalLayout

    @property
    def merkle_root(self) -> int:
        return self.values[self.layout.merkle_root]

    @property
    def nullifier_hash(self) -> int:
        return self.values[self.layout.nullifier_hash]

    @property
    def recipient(self) -> int:
        return self.values[self.layout.recipient]

    @property
    def relayer(self) -> int:
        return self.values[self.layout.relayer]

    @property
    def relayer_fee_bps(self) -> int:
        return self.values[self.layout.relayer_fee_bps]

    @property
    def swap_amount_out(self) -> int:
        return self.values[self.layout.swap_amount_out]

    @property
    def recipient_address(self) -> str:
        return to_address(self.recipient)


def parse_public_signals(raw: Sequence[str], layout: SignalLayout) -> PublicSignals:
    """
    Bind a raw signal array to a layout.

    Raises:
        InvalidSignalsError: when the array length differs from the layout.
    """
    if len(raw) != layout.length:
        raise InvalidSignalsError(
            f"Expected {layout.length} public signals for schema "
            f"'{layout.version}', got {len(raw)}"
        )
    return PublicSignals(values=tuple(parse_numeric(s) for s in raw), layout=layout)
