import logging
import threading
from dataclasses import dataclass
from functools import wraps
from typing import Any, Optional

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from relayer.core.config import Settings
from relayer.core.errors import (
    BlockchainError,
    RelayerUnderfundedError,
    RevertError,
    RpcUnavailableError,
)
from relayer.infrastructure.blockchain.abis import ERC20_ABI, GRIM_POOL_ABI
from relayer.infrastructure.blockchain.encoding import to_bytes32

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TxReceipt:
    tx_hash: str
    status: int
    block_number: int
    gas_used: int
    effective_gas_price: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass(frozen=True)
class PendingTransaction:
    tx_hash: str
    nonce: int


def _revert_data(exc: ContractLogicError) -> Optional[bytes]:
    data = exc.data
    if isinstance(data, dict):
        data = data.get("data")
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str) and data.startswith("0x"):
        try:
            return bytes.fromhex(data[2:])
        except ValueError:
            return None
    return None


def _rpc_call(func):
    """Translate web3 / transport exceptions into the relayer error taxonomy."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ContractLogicError as e:
            raise RevertError(str(e), data=_revert_data(e)) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"[CHAIN] RPC unreachable during {func.__name__}: {e}")
            raise RpcUnavailableError(details=str(e)) from e
        except Web3Exception as e:
            message = str(e)
            if "insufficient funds" in message.lower():
                logger.critical(f"[CHAIN] Relayer cannot pay for gas: {message}")
                raise RelayerUnderfundedError(details=message) from e
            if "execution reverted" in message.lower():
                raise RevertError(message) from e
            raise BlockchainError(message) from e

    return wrapper


class RelayerChainClient:
    """
    Read/write access to the chain for the relayer's signing account.

    All writes go through ``send_transaction``, which holds a lock across
    nonce lookup, signing and broadcast so concurrent requests never reuse a
    nonce.
    """

    def __init__(self, settings: Settings, w3: Optional[Web3] = None):
        self.settings = settings
        self.w3 = w3 or Web3(Web3.HTTPProvider(settings.RPC_URL))
        self.account = self.w3.eth.account.from_key(settings.RELAYER_PRIVATE_KEY)
        self.chain_id = settings.CHAIN_ID
        self.pool = self.w3.eth.contract(
            address=Web3.to_checksum_address(settings.GRIM_POOL_ADDRESS),
            abi=GRIM_POOL_ABI,
        )
        self._nonce_lock = threading.Lock()
        logger.info(f"[CHAIN] Relayer initialized with address: {self.account.address}")

    @property
    def address(self) -> str:
        return self.account.address

    def _token(self, token: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)

    # ── Reads ─────────────────────────────────────────────────────────────────

    @_rpc_call
    def get_balance(self, address: Optional[str] = None) -> int:
        target = Web3.to_checksum_address(address) if address else self.address
        return self.w3.eth.get_balance(target)

    @_rpc_call
    def gas_price(self) -> int:
        return self.w3.eth.gas_price

    @_rpc_call
    def is_known_root(self, root: int) -> bool:
        return self.pool.functions.isKnownRoot(to_bytes32(root)).call()

    @_rpc_call
    def is_nullifier_used(self, nullifier_hash: int) -> bool:
        return self.pool.functions.nullifierHashes(to_bytes32(nullifier_hash)).call()

    @_rpc_call
    def pool_owner(self) -> str:
        return self.pool.functions.owner().call()

    @_rpc_call
    def token_balance(self, token: str, address: Optional[str] = None) -> int:
        target = Web3.to_checksum_address(address) if address else self.address
        return self._token(token).functions.balanceOf(target).call()

    @_rpc_call
    def token_allowance(self, token: str, spender: str) -> int:
        return self._token(token).functions.allowance(
            self.address, Web3.to_checksum_address(spender)
        ).call()

    @_rpc_call
    def estimate_gas(self, to: str, data: bytes, value: int = 0) -> int:
        return self.w3.eth.estimate_gas(self._call_params(to, data, value))

    @_rpc_call
    def call(self, to: str, data: bytes, value: int = 0) -> bytes:
        return bytes(self.w3.eth.call(self._call_params(to, data, value)))

    def _call_params(self, to: str, data: bytes, value: int) -> dict:
        return {
            "from": self.address,
            "to": Web3.to_checksum_address(to),
            "data": Web3.to_hex(data),
            "value": value,
        }

    @_rpc_call
    def get_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        try:
            receipt = self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return self._to_receipt(receipt)

    @_rpc_call
    def get_transaction(self, tx_hash: str) -> Optional[PendingTransaction]:
        try:
            tx = self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return None
        return PendingTransaction(tx_hash=tx_hash, nonce=tx["nonce"])

    # ── Writes ────────────────────────────────────────────────────────────────

    @_rpc_call
    def send_transaction(
        self,
        to: str,
        data: bytes = b"",
        value: int = 0,
        gas: Optional[int] = None,
    ) -> str:
        tx: dict[str, Any] = {
            "from": self.address,
            "to": Web3.to_checksum_address(to),
            "data": Web3.to_hex(data),
            "value": value,
            "chainId": self.chain_id,
            "gasPrice": self.w3.eth.gas_price,
        }
        with self._nonce_lock:
            if gas is None:
                gas = self.w3.eth.estimate_gas(
                    {k: tx[k] for k in ("from", "to", "data", "value")}
                )
            tx["gas"] = gas
            tx["nonce"] = self.w3.eth.get_transaction_count(self.address, "pending")
            signed_tx = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        logger.info(f"[CHAIN] TX sent: {self.w3.to_hex(tx_hash)} nonce={tx['nonce']}")
        return self.w3.to_hex(tx_hash)

    @_rpc_call
    def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        timeout = self.settings.RECEIPT_TIMEOUT_SECONDS
        receipt = self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout if timeout is not None else float("inf")
        )
        return self._to_receipt(receipt)

    def add_known_root(self, root: int) -> str:
        data = self.pool.encode_abi("addKnownRoot", args=[to_bytes32(root)])
        return self.send_transaction(self.pool.address, Web3.to_bytes(hexstr=data))

    def approve_token(self, token: str, spender: str, amount: int) -> str:
        contract = self._token(token)
        data = contract.encode_abi("approve", args=[Web3.to_checksum_address(spender), amount])
        return self.send_transaction(contract.address, Web3.to_bytes(hexstr=data))

    def transfer_token(self, token: str, to: str, amount: int) -> str:
        contract = self._token(token)
        data = contract.encode_abi("transfer", args=[Web3.to_checksum_address(to), amount])
        return self.send_transaction(contract.address, Web3.to_bytes(hexstr=data))

    def transfer_native(self, to: str, amount: int) -> str:
        return self.send_transaction(to, value=amount)

    def _to_receipt(self, receipt) -> TxReceipt:
        return TxReceipt(
            tx_hash=self.w3.to_hex(receipt["transactionHash"]),
            status=receipt["status"],
            block_number=receipt["blockNumber"],
            gas_used=receipt["gasUsed"],
            effective_gas_price=receipt.get("effectiveGasPrice"),
        )


def build_chain_client(settings: Settings) -> Optional[RelayerChainClient]:
    """
    Returns None when no signing key is configured, so read-only parts of the
    API can still start.
    """
    if not settings.RPC_URL or not settings.RELAYER_PRIVATE_KEY:
        logger.warning("[CHAIN] RPC_URL or RELAYER_PRIVATE_KEY not set; relaying disabled.")
        return None
    return RelayerChainClient(settings)
