import threading
import time

import pytest
import requests
from eth_utils import function_signature_to_4byte_selector
from web3 import Web3
from web3.providers import BaseProvider

from conftest import POOL_ADDRESS, ROUTER_ADDRESS
from relayer.core.config import Settings
from relayer.core.errors import (
    BlockchainError,
    RelayerUnderfundedError,
    RevertError,
    RpcUnavailableError,
)
from relayer.infrastructure.blockchain.web3_service import RelayerChainClient

TEST_KEY = "0x" + "11" * 32


class ScriptedProvider(BaseProvider):
    """
    JSON-RPC provider answering from a table.

    ``responses`` maps a method to a result value, an ``{"error": ...}`` dict,
    an exception instance to raise, or a callable returning one of those.
    """

    def __init__(self, responses):
        super().__init__()
        self.responses = {"eth_chainId": "0x515", "eth_gasPrice": "0x3b9aca00", **responses}
        self.methods = []
        self._lock = threading.Lock()

    def make_request(self, method, params):
        with self._lock:
            self.methods.append(method)
        answer = self.responses.get(method)
        if callable(answer):
            answer = answer()
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, dict) and "error" in answer:
            return {"jsonrpc": "2.0", "id": 1, "error": answer["error"]}
        return {"jsonrpc": "2.0", "id": 1, "result": answer}

    def is_connected(self, show_traceback: bool = False) -> bool:
        return True


def _client(responses) -> RelayerChainClient:
    settings = Settings(RELAYER_PRIVATE_KEY=TEST_KEY, GRIM_POOL_ADDRESS=POOL_ADDRESS)
    return RelayerChainClient(settings, w3=Web3(ScriptedProvider(responses)))


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR TRANSLATION
# ═══════════════════════════════════════════════════════════════════════════════

def test_balance_read():
    assert _client({"eth_getBalance": "0x10"}).get_balance() == 16


@pytest.mark.parametrize(
    "exc",
    [
        requests.exceptions.ConnectionError("connection refused"),
        requests.exceptions.Timeout("read timed out"),
        requests.exceptions.HTTPError("502 Server Error: Bad Gateway"),
    ],
)
def test_transport_failures_are_rpc_unavailable(exc):
    client = _client({"eth_getBalance": exc})
    with pytest.raises(RpcUnavailableError) as excinfo:
        client.get_balance()
    assert excinfo.value.status_code == 503


def test_revert_data_is_preserved():
    selector = function_signature_to_4byte_selector("NullifierAlreadyUsed()")
    client = _client(
        {"eth_call": {"error": {"code": 3, "message": "execution reverted", "data": "0x" + selector.hex()}}}
    )
    with pytest.raises(RevertError) as excinfo:
        client.call(ROUTER_ADDRESS, b"\x01\x02")
    assert excinfo.value.data == selector
    assert excinfo.value.code == "CONTRACT_REVERTED"


def test_insufficient_funds_is_underfunded():
    client = _client(
        {
            "eth_getTransactionCount": "0x0",
            "eth_sendRawTransaction": {
                "error": {"code": -32000, "message": "insufficient funds for gas * price + value"}
            },
        }
    )
    with pytest.raises(RelayerUnderfundedError) as excinfo:
        client.send_transaction(ROUTER_ADDRESS, b"", value=1, gas=21_000)
    assert excinfo.value.status_code == 503
    assert excinfo.value.code == "RELAYER_UNDERFUNDED"


def test_other_rpc_errors_are_blockchain_errors():
    client = _client(
        {
            "eth_getTransactionCount": "0x0",
            "eth_sendRawTransaction": {"error": {"code": -32000, "message": "nonce too low"}},
        }
    )
    with pytest.raises(BlockchainError) as excinfo:
        client.send_transaction(ROUTER_ADDRESS, b"", gas=21_000)
    assert "nonce too low" in excinfo.value.reason


def test_missing_receipt_is_none():
    assert _client({"eth_getTransactionReceipt": None}).get_receipt("0x" + "ab" * 32) is None


# ═══════════════════════════════════════════════════════════════════════════════
# NONCE SERIALIZATION
# ═══════════════════════════════════════════════════════════════════════════════

def test_concurrent_sends_fetch_nonce_and_broadcast_in_pairs():
    sent = []

    def nonce():
        time.sleep(0.02)
        return hex(len(sent))

    def broadcast():
        sent.append(1)
        return "0x" + format(len(sent), "064x")

    provider = ScriptedProvider({"eth_getTransactionCount": nonce, "eth_sendRawTransaction": broadcast})
    settings = Settings(RELAYER_PRIVATE_KEY=TEST_KEY, GRIM_POOL_ADDRESS=POOL_ADDRESS)
    client = RelayerChainClient(settings, w3=Web3(provider))

    hashes = []
    threads = [
        threading.Thread(target=lambda: hashes.append(client.send_transaction(ROUTER_ADDRESS, gas=21_000)))
        for _ in range(3)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    sequence = [
        m for m in provider.methods if m in ("eth_getTransactionCount", "eth_sendRawTransaction")
    ]
    assert sequence == ["eth_getTransactionCount", "eth_sendRawTransaction"] * 3
    assert len(set(hashes)) == 3
