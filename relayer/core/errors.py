"""
Relayer error taxonomy.

Every failure a relay request can end in is one of the classes below. Each
carries a stable machine-readable ``code`` and the HTTP status the API layer
answers with, so routes never have to inspect exception strings.

    400  pre-flight contract state, decoded contract reverts, bad signals
    500  unknown reverts, transactions mined with a failed status
    503  RPC unreachable, relayer account cannot pay for gas
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for failures surfaced to the API caller."""

    code = "RELAY_FAILED"
    status_code = 500
    default_message = "Failed to relay transaction"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        if self.details:
            body["details"] = self.details[:500]
        return body


class InvalidSignalsError(RelayError):
    code = "INVALID_SIGNALS"
    status_code = 400
    default_message = "Public signals do not match the configured circuit layout"


class InvalidProofError(RelayError):
    code = "INVALID_PROOF"
    status_code = 400
    default_message = "Invalid ZK proof"


class InvalidMerkleRootError(RelayError):
    code = "INVALID_ROOT"
    status_code = 400
    default_message = "Invalid or outdated Merkle root"


class NullifierAlreadyUsedError(RelayError):
    code = "NULLIFIER_USED"
    status_code = 400
    default_message = "This deposit has already been spent"


class InvalidRecipientError(RelayError):
    code = "INVALID_RECIPIENT"
    status_code = 400
    default_message = "Recipient address is invalid"


class InvalidRelayerFeeError(RelayError):
    code = "INVALID_FEE"
    status_code = 400
    default_message = "Relayer fee exceeds maximum"


class InsufficientPoolBalanceError(RelayError):
    code = "INSUFFICIENT_POOL_BALANCE"
    status_code = 400
    default_message = "Pool has insufficient balance for this withdrawal"


class UnauthorizedError(RelayError):
    code = "UNAUTHORIZED"
    status_code = 400
    default_message = "Caller is not authorized by the contract"


class ContractRevertedError(RelayError):
    code = "CONTRACT_REVERTED"
    status_code = 500
    default_message = "Contract reverted"


class TransactionRevertedError(RelayError):
    """The transaction was mined but its receipt reports failure."""

    code = "TX_REVERTED"
    status_code = 500
    default_message = "Transaction was mined but reverted"

    def __init__(self, tx_hash: str, message: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["txHash"] = self.tx_hash
        return body


class RelayerUnderfundedError(RelayError):
    code = "RELAYER_UNDERFUNDED"
    status_code = 503
    default_message = "Relayer has insufficient funds"


class RpcUnavailableError(RelayError):
    code = "RPC_UNAVAILABLE"
    status_code = 503
    default_message = "Blockchain RPC endpoint is unavailable"


class RelayerNotConfiguredError(RelayError):
    code = "RELAYER_NOT_CONFIGURED"
    status_code = 503
    default_message = "Relayer signing account is not configured"


# ═══════════════════════════════════════════════════════════════════════════════
# CHAIN-LEVEL ERRORS
# ═══════════════════════════════════════════════════════════════════════════════

class BlockchainError(RelayError):
    """Unclassified failure from the chain client."""

    def __init__(self, reason: str, details: Optional[str] = None):
        self.reason = reason
        super().__init__("Blockchain call failed", details=details or reason)


class RevertError(BlockchainError):
    """A call or gas estimation reverted. ``data`` is the raw revert payload, if any."""

    code = "CONTRACT_REVERTED"

    def __init__(self, reason: str, data: Optional[bytes] = None):
        self.data = data
        super().__init__(reason)
