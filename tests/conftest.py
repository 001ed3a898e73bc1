import copy
from typing import Dict, List, Optional, Set

import pytest
from fastapi.testclient import TestClient

from relayer.core.config import Settings
from relayer.core.errors import RevertError
from relayer.infrastructure.blockchain.web3_service import PendingTransaction, TxReceipt
from relayer.main import create_app
from relayer.schemas.relay import RelayRequest
from relayer.services.relay_service import RelayService

RELAYER_ADDRESS = "0x" + "ab" * 20
OTHER_OWNER = "0x" + "cd" * 20
ROUTER_ADDRESS = "0x" + "11" * 20
POOL_ADDRESS = "0x" + "22" * 20
HOOK_ADDRESS = "0x" + "33" * 20
TOKEN_ADDRESS = "0x" + "44" * 20
RECIPIENT_ADDRESS = "0x" + "12" * 20
ZERO = "0x" + "00" * 20

MERKLE_ROOT = 12345
NULLIFIER = 67890


class FakeChainClient:
    """
    In-memory stand-in for RelayerChainClient.

    Records every call in ``calls`` and every write in ``sent`` so tests can
    assert exactly which transactions the relayer attempted.
    """

    def __init__(
        self,
        known_roots: Optional[Set[int]] = None,
        used_nullifiers: Optional[Set[int]] = None,
        owner: str = OTHER_OWNER,
        gas_estimate: int = 200_000,
        gas_price: int = 1_000_000_000,
        balances: Optional[Dict[str, int]] = None,
        allowance: int = 0,
        estimate_revert: Optional[RevertError] = None,
        call_revert: Optional[RevertError] = None,
        receipt_status: int = 1,
    ):
        self.address = RELAYER_ADDRESS
        self.chain_id = 1301
        self.known_roots = set(known_roots or ())
        self.used_nullifiers = set(used_nullifiers or ())
        self.owner = owner
        self.gas_estimate = gas_estimate
        self._gas_price = gas_price
        self.balances = {RELAYER_ADDRESS.lower(): 10**18}
        self.balances.update({k.lower(): v for k, v in (balances or {}).items()})
        self.allowance = allowance
        self.token_balances: Dict[str, int] = {}
        self.estimate_revert = estimate_revert
        self.call_revert = call_revert
        self.receipt_status = receipt_status
        self.fail_native_transfers = False
        self.add_root_error: Optional[Exception] = None

        self.calls: List[tuple] = []
        self.sent: List[dict] = []
        self.receipts: Dict[str, TxReceipt] = {}
        self.pending: Dict[str, PendingTransaction] = {}

    # ── Reads ────────────────────────────────────────────────────────────────

    def get_balance(self, address: Optional[str] = None) -> int:
        self.calls.append(("get_balance", address))
        return self.balances.get((address or self.address).lower(), 0)

    def gas_price(self) -> int:
        self.calls.append(("gas_price",))
        return self._gas_price

    def is_known_root(self, root: int) -> bool:
        self.calls.append(("is_known_root", root))
        return root in self.known_roots

    def is_nullifier_used(self, nullifier_hash: int) -> bool:
        self.calls.append(("is_nullifier_used", nullifier_hash))
        return nullifier_hash in self.used_nullifiers

    def pool_owner(self) -> str:
        self.calls.append(("pool_owner",))
        return self.owner

    def token_balance(self, token: str, address: Optional[str] = None) -> int:
        self.calls.append(("token_balance", token, address))
        return self.token_balances.get(token.lower(), 0)

    def token_allowance(self, token: str, spender: str) -> int:
        self.calls.append(("token_allowance", token, spender))
        return self.allowance

    def estimate_gas(self, to: str, data: bytes, value: int = 0) -> int:
        self.calls.append(("estimate_gas", to, data, value))
        if self.estimate_revert is not None:
            raise self.estimate_revert
        return self.gas_estimate

    def call(self, to: str, data: bytes, value: int = 0) -> bytes:
        self.calls.append(("call", to, data, value))
        if self.call_revert is not None:
            raise self.call_revert
        return b""

    def get_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        self.calls.append(("get_receipt", tx_hash))
        return self.receipts.get(tx_hash)

    def get_transaction(self, tx_hash: str) -> Optional[PendingTransaction]:
        self.calls.append(("get_transaction", tx_hash))
        return self.pending.get(tx_hash)

    # ── Writes ───────────────────────────────────────────────────────────────

    def _send(self, kind: str, **fields) -> str:
        tx_hash = "0x" + format(len(self.sent) + 1, "064x")
        self.sent.append({"kind": kind, "hash": tx_hash, **fields})
        self.calls.append(("send", kind))
        return tx_hash

    def send_transaction(self, to: str, data: bytes = b"", value: int = 0, gas: Optional[int] = None) -> str:
        return self._send("swap", to=to, data=data, value=value, gas=gas)

    def add_known_root(self, root: int) -> str:
        if self.add_root_error is not None:
            raise self.add_root_error
        return self._send("addKnownRoot", root=root)

    def approve_token(self, token: str, spender: str, amount: int) -> str:
        return self._send("approve", token=token, spender=spender, amount=amount)

    def transfer_token(self, token: str, to: str, amount: int) -> str:
        return self._send("transferToken", token=token, to=to, amount=amount)

    def transfer_native(self, to: str, amount: int) -> str:
        if self.fail_native_transfers:
            raise RuntimeError("insufficient funds for transfer")
        return self._send("transferNative", to=to, amount=amount)

    def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        self.calls.append(("wait_for_receipt", tx_hash))
        receipt = TxReceipt(
            tx_hash=tx_hash,
            status=self.receipt_status,
            block_number=4242,
            gas_used=180_000,
            effective_gas_price=self._gas_price,
        )
        self.receipts[tx_hash] = receipt
        return receipt

    @property
    def sent_kinds(self) -> List[str]:
        return [tx["kind"] for tx in self.sent]


# ═══════════════════════════════════════════════════════════════════════════════
# REQUEST FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════

def make_signals(
    root: int = MERKLE_ROOT,
    nullifier: int = NULLIFIER,
    recipient: str = RECIPIENT_ADDRESS,
    fee_bps: int = 10,
    amount_out: int = 990,
    schema: str = "v2",
) -> List[str]:
    core = [str(root), str(nullifier), str(int(recipient, 16)), str(int(RELAYER_ADDRESS, 16)), str(fee_bps), str(amount_out)]
    if schema == "v1":
        return core
    return ["111", "222"] + core


BASE_BODY = {
    "proof": {
        "a": ["1", "2"],
        "b": [["3", "4"], ["5", "6"]],
        "c": ["7", "8"],
    },
    "publicSignals": make_signals(),
    "swapParams": {
        "poolKey": {
            "currency0": ZERO,
            "currency1": TOKEN_ADDRESS,
            "fee": 3000,
            "tickSpacing": 60,
            "hooks": HOOK_ADDRESS,
        },
        "zeroForOne": True,
        "amountSpecified": "-1000000000000000000",
        "sqrtPriceLimitX96": "4295128740",
    },
}


def make_body(**overrides) -> dict:
    body = copy.deepcopy(BASE_BODY)
    for key, value in overrides.items():
        body[key] = value
    return body


def make_request(**overrides) -> RelayRequest:
    return RelayRequest.model_validate(make_body(**overrides))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        RELAYER_PRIVATE_KEY="",
        POOL_SWAP_TEST_ADDRESS=ROUTER_ADDRESS,
        GRIM_POOL_ADDRESS=POOL_ADDRESS,
        GRIM_SWAP_ZK_ADDRESS=HOOK_ADDRESS,
        SIGNAL_SCHEMA="v2",
        ENABLE_LOCAL_VERIFICATION=False,
        ENABLE_STEALTH_FUNDING=False,
        ENABLE_OUTPUT_TRANSFER=False,
        ALLOW_ROOT_REGISTRATION=True,
        RATE_LIMIT_REQUESTS=1000,
    )


@pytest.fixture
def chain() -> FakeChainClient:
    return FakeChainClient(known_roots={MERKLE_ROOT})


@pytest.fixture
def service(chain, settings) -> RelayService:
    return RelayService(chain, settings)


@pytest.fixture
def client(service, settings) -> TestClient:
    return TestClient(create_app(settings, relay_service=service))
