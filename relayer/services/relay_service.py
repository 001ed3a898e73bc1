"""
Relay Orchestrator — turns a validated proof + swap request into one transaction.

Pipeline (each step fails fast, before any gas is spent where possible):
    1. Local Groth16 pre-check (skipped when no verifier is available)
    2. Merkle root known? The owner relayer may register it (testnet only)
    3. Nullifier unspent?
    4. Recipient non-zero, fee bps under the ceiling
    5. Encode hookData + swap calldata, simulate (estimate, then eth_call for
       the revert reason)
    6. Send with a 20% gas buffer, never re-submitted once broadcast
    7. Wait for one confirmation
    8. Best-effort post-swap steps (stealth funding, output transfer)
    9. Advertised relayer fee = floor(amount * bps / 10000)

The contract re-checks everything in 1–4; these checks only save gas and give
callers precise error codes.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from relayer.core.config import ZERO_ADDRESS, Settings
from relayer.core.errors import (
    BlockchainError,
    InvalidMerkleRootError,
    InvalidProofError,
    InvalidRecipientError,
    InvalidRelayerFeeError,
    NullifierAlreadyUsedError,
    RevertError,
    TransactionRevertedError,
)
from relayer.core.signals import PublicSignals, get_layout, parse_public_signals
from relayer.infrastructure.blockchain.encoding import (
    classify_revert,
    encode_hook_data,
    encode_swap_call,
)
from relayer.infrastructure.zkp.zkp_service import (
    NoopVerifier,
    ProofVerifier,
    VerifierUnavailable,
)
from relayer.schemas.relay import RelayerInfo, RelayRequest, TransactionStatus
from relayer.services.fees import compute_relayer_fee

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedSwap:
    to: str
    data: bytes
    value: int
    signals: PublicSignals


@dataclass
class RelayResult:
    tx_hash: str
    block_number: int
    gas_used: int
    relayer_fee: int
    recipient_address: str
    funding_tx_hash: Optional[str] = None
    output_transfer_tx_hash: Optional[str] = None


@dataclass
class EstimateResult:
    gas: int
    fee: int
    relayer_fee: int
    total_cost: int


class RelayService:
    def __init__(self, chain, settings: Settings, verifier: Optional[ProofVerifier] = None):
        self.chain = chain
        self.settings = settings
        self.verifier = verifier or NoopVerifier()
        self.layout = get_layout(settings.SIGNAL_SCHEMA)
        # Serializes estimate -> send so the relayer's nonce never races.
        self._submit_lock = threading.Lock()

    @property
    def address(self) -> str:
        return self.chain.address

    # ═══════════════════════════════════════════════════════════════════════════
    # RELAY
    # ═══════════════════════════════════════════════════════════════════════════

    def submit_private_swap(self, request: RelayRequest, request_id: str = "-") -> RelayResult:
        tag = f"[RELAY {request_id}]"
        signals = parse_public_signals(request.public_signals, self.layout)

        logger.info(f"{tag} Verifying proof locally...")
        self._verify_locally(request)

        logger.info(f"{tag} Checking Merkle root...")
        self._ensure_root_known(signals.merkle_root, tag)

        logger.info(f"{tag} Checking nullifier...")
        if self.chain.is_nullifier_used(signals.nullifier_hash):
            raise NullifierAlreadyUsedError(details="This deposit has already been withdrawn")

        self._check_signal_fields(signals, tag)

        swap = self.prepare_swap(request, signals)
        if request.swap_params.input_token:
            self._ensure_allowance(request.swap_params.input_token, abs(int(request.swap_params.amount_specified)), tag)

        with self._submit_lock:
            gas_estimate = self.simulate(swap)
            gas_limit = gas_estimate * (100 + self.settings.GAS_BUFFER_PERCENT) // 100
            logger.info(f"{tag} Gas estimate: {gas_estimate}, limit: {gas_limit}")
            tx_hash = self.chain.send_transaction(swap.to, swap.data, value=swap.value, gas=gas_limit)

        logger.info(f"{tag} Transaction submitted: {tx_hash}")
        receipt = self.chain.wait_for_receipt(tx_hash)
        if not receipt.succeeded:
            logger.error(f"{tag} Transaction {tx_hash} reverted in block {receipt.block_number}")
            raise TransactionRevertedError(tx_hash)
        logger.info(f"{tag} Transaction confirmed in block {receipt.block_number}")

        relayer_fee = compute_relayer_fee(
            int(request.swap_params.amount_specified), signals.relayer_fee_bps
        )
        recipient = signals.recipient_address

        return RelayResult(
            tx_hash=tx_hash,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
            relayer_fee=relayer_fee,
            recipient_address=recipient,
            funding_tx_hash=self._fund_stealth_address(recipient, tag),
            output_transfer_tx_hash=self._transfer_output(request, signals, tag),
        )

    def estimate_relay(self, request: RelayRequest) -> EstimateResult:
        signals = parse_public_signals(request.public_signals, self.layout)
        swap = self.prepare_swap(request, signals)
        gas_estimate = self.simulate(swap)
        gas_cost = gas_estimate * self.chain.gas_price()
        relayer_fee = compute_relayer_fee(
            int(request.swap_params.amount_specified), signals.relayer_fee_bps
        )
        return EstimateResult(
            gas=gas_estimate,
            fee=gas_cost,
            relayer_fee=relayer_fee,
            total_cost=gas_cost + relayer_fee,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # ENCODE / SIMULATE
    # ═══════════════════════════════════════════════════════════════════════════

    def prepare_swap(self, request: RelayRequest, signals: PublicSignals) -> PreparedSwap:
        params = request.swap_params
        hook_data = encode_hook_data(request.proof, signals.values)
        data = encode_swap_call(params, hook_data)

        amount = int(params.amount_specified)
        is_native_input = (
            params.input_token is None
            and params.pool_key.currency0.lower() == ZERO_ADDRESS
            and params.zero_for_one
        )
        value = abs(amount) if is_native_input else 0
        if value:
            logger.info(f"[RELAY] Native ETH swap detected, will send {value} wei")

        return PreparedSwap(
            to=self.settings.POOL_SWAP_TEST_ADDRESS,
            data=data,
            value=value,
            signals=signals,
        )

    def simulate(self, swap: PreparedSwap) -> int:
        """
        Phase one of submission: estimate gas.

        A reverting estimate is replayed as ``eth_call`` to recover the revert
        payload, which is mapped to a typed error. Nothing is broadcast.
        """
        try:
            return self.chain.estimate_gas(swap.to, swap.data, swap.value)
        except RevertError as estimate_error:
            logger.error("[RELAY] Gas estimation failed, attempting simulation...")
            try:
                self.chain.call(swap.to, swap.data, swap.value)
            except RevertError as call_error:
                raise classify_revert(call_error.reason, call_error.data) from call_error
            raise classify_revert(estimate_error.reason, estimate_error.data) from estimate_error

    # ═══════════════════════════════════════════════════════════════════════════
    # PRE-FLIGHT CHECKS
    # ═══════════════════════════════════════════════════════════════════════════

    def _verify_locally(self, request: RelayRequest) -> None:
        if not self.verifier.available:
            logger.warning("[ZKP] No local verifier, relying on on-chain verification")
            return
        try:
            is_valid = self.verifier.verify(request.proof, request.public_signals)
        except VerifierUnavailable as e:
            logger.warning(f"[ZKP] Local verification skipped: {e}")
            return
        if not is_valid:
            raise InvalidProofError(details="Proof verification failed locally (snarkjs)")

    def _ensure_root_known(self, root: int, tag: str) -> None:
        if self.chain.is_known_root(root):
            return

        logger.info(f"{tag} Merkle root not found, checking if relayer can add it...")
        if not (self.settings.ALLOW_ROOT_REGISTRATION and self.is_pool_owner()):
            raise InvalidMerkleRootError(
                details=f"Root {str(root)[:20]}... is not registered in GrimPool"
            )

        # Testnet convenience only: production pools register roots on deposit.
        logger.warning(f"{tag} Relayer owns GrimPool, registering Merkle root {str(root)[:20]}...")
        try:
            with self._submit_lock:
                tx_hash = self.chain.add_known_root(root)
            receipt = self.chain.wait_for_receipt(tx_hash)
        except BlockchainError as e:
            logger.error(f"{tag} Failed to add Merkle root: {e.reason}")
            raise InvalidMerkleRootError(details=f"Root registration failed: {e.reason}") from e
        if not receipt.succeeded:
            raise InvalidMerkleRootError(details=f"Root registration {tx_hash} reverted")
        logger.info(f"{tag} Merkle root added in tx {tx_hash}")

    def _check_signal_fields(self, signals: PublicSignals, tag: str) -> None:
        logger.info(
            f"{tag} Recipient: {signals.recipient_address} "
            f"Relayer fee: {signals.relayer_fee_bps} bps"
        )
        if signals.recipient == 0:
            raise InvalidRecipientError("Recipient address is zero")
        if signals.relayer_fee_bps > self.settings.MAX_FEE_BPS:
            raise InvalidRelayerFeeError(
                f"Fee {signals.relayer_fee_bps} exceeds max {self.settings.MAX_FEE_BPS} bps"
            )

    def is_pool_owner(self) -> bool:
        return self.chain.pool_owner().lower() == self.chain.address.lower()

    def _ensure_allowance(self, token: str, amount: int, tag: str) -> None:
        router = self.settings.POOL_SWAP_TEST_ADDRESS
        if self.chain.token_allowance(token, router) >= amount:
            return
        logger.info(f"{tag} Approving {amount} of {token} for router {router}")
        with self._submit_lock:
            tx_hash = self.chain.approve_token(token, router, amount)
        receipt = self.chain.wait_for_receipt(tx_hash)
        if not receipt.succeeded:
            raise TransactionRevertedError(tx_hash, "Token approval reverted")

    # ═══════════════════════════════════════════════════════════════════════════
    # POST-SWAP (best effort)
    # ═══════════════════════════════════════════════════════════════════════════

    def _fund_stealth_address(self, recipient: str, tag: str) -> Optional[str]:
        """Top up the recipient with gas money. Failures are logged, never raised."""
        if not self.settings.ENABLE_STEALTH_FUNDING:
            return None

        amount = self.settings.STEALTH_FUNDING_WEI
        try:
            balance = self.chain.get_balance(recipient)
            if balance >= amount:
                logger.info(f"{tag} Stealth address {recipient} already has {balance} wei")
                return None
            with self._submit_lock:
                tx_hash = self.chain.transfer_native(recipient, amount)
            self.chain.wait_for_receipt(tx_hash)
            logger.info(f"{tag} Stealth address {recipient} funded with {amount} wei: {tx_hash}")
            return tx_hash
        except Exception as e:
            logger.error(f"{tag} Stealth funding failed (non-critical): {e}")
            return None

    def _transfer_output(self, request: RelayRequest, signals: PublicSignals, tag: str) -> Optional[str]:
        """Forward the swap output the relayer received to the recipient."""
        if not self.settings.ENABLE_OUTPUT_TRANSFER:
            return None

        key = request.swap_params.pool_key
        token = key.currency1 if request.swap_params.zero_for_one else key.currency0
        amount = signals.swap_amount_out
        if amount <= 0:
            return None
        try:
            if token.lower() != ZERO_ADDRESS:
                held = self.chain.token_balance(token)
                if held < amount:
                    logger.warning(f"{tag} Relayer holds {held} of {token}, below output {amount}; skipping transfer")
                    return None
            with self._submit_lock:
                if token.lower() == ZERO_ADDRESS:
                    tx_hash = self.chain.transfer_native(signals.recipient_address, amount)
                else:
                    tx_hash = self.chain.transfer_token(token, signals.recipient_address, amount)
            self.chain.wait_for_receipt(tx_hash)
            logger.info(f"{tag} Output {amount} of {token} sent to {signals.recipient_address}: {tx_hash}")
            return tx_hash
        except Exception as e:
            logger.error(f"{tag} Output transfer failed (non-critical): {e}")
            return None

    # ═══════════════════════════════════════════════════════════════════════════
    # READ PATHS
    # ═══════════════════════════════════════════════════════════════════════════

    def transaction_status(self, tx_hash: str) -> Optional[TransactionStatus]:
        receipt = self.chain.get_receipt(tx_hash)
        if receipt is not None:
            return TransactionStatus(
                status="confirmed" if receipt.succeeded else "failed",
                block_number=str(receipt.block_number),
                gas_used=str(receipt.gas_used),
                effective_gas_price=(
                    str(receipt.effective_gas_price)
                    if receipt.effective_gas_price is not None
                    else None
                ),
            )
        pending = self.chain.get_transaction(tx_hash)
        if pending is not None:
            return TransactionStatus(status="pending", nonce=pending.nonce)
        return None

    def relayer_info(self) -> RelayerInfo:
        balance = self.chain.get_balance()
        return RelayerInfo(
            address=self.chain.address,
            chain=self.settings.CHAIN_NAME,
            chain_id=self.chain.chain_id,
            relayer_balance=str(balance),
            relayer_fee_bps=self.settings.RELAYER_FEE_BPS,
            max_fee_bps=self.settings.MAX_FEE_BPS,
            signal_schema=self.layout.version,
            contracts=self.settings.contracts,
            healthy=balance > self.settings.HEALTHY_BALANCE_WEI,
        )
