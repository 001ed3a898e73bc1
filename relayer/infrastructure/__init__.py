"""
Relayer Infrastructure Module.

Exports the external collaborators the relay service is built from:
    - RelayerChainClient: web3 access for the relayer's signing account
    - ProofVerifier implementations: local Groth16 pre-check via snarkjs
"""

from relayer.infrastructure.blockchain.web3_service import (
    PendingTransaction,
    RelayerChainClient,
    TxReceipt,
    build_chain_client,
)
from relayer.infrastructure.zkp.zkp_service import (
    NoopVerifier,
    ProofVerifier,
    SnarkjsVerifier,
    VerifierUnavailable,
    build_verifier,
)

__all__ = [
    "PendingTransaction",
    "RelayerChainClient",
    "TxReceipt",
    "build_chain_client",
    "NoopVerifier",
    "ProofVerifier",
    "SnarkjsVerifier",
    "VerifierUnavailable",
    "build_verifier",
]
