import json
import logging
import os
import shlex
import subprocess
import tempfile
from typing import List, Protocol

from relayer.core.config import Settings

logger = logging.getLogger(__name__)


class VerifierUnavailable(Exception):
    """The local verifier cannot run (missing key or snarkjs binary)."""
    pass


class ProofVerifier(Protocol):
    available: bool

    def verify(self, proof, public_signals: List[str]) -> bool:
        ...


class NoopVerifier:
    """Stand-in when no verification key is deployed. Always skipped."""

    available = False

    def verify(self, proof, public_signals: List[str]) -> bool:
        raise VerifierUnavailable("local verification disabled")


class SnarkjsVerifier:
    def __init__(self, vk_path: str, command: str = "npx snarkjs", timeout: float = 30.0):
        self.vk_path = os.path.abspath(vk_path)
        self.command = shlex.split(command)
        self.timeout = timeout
        self.available = os.path.exists(self.vk_path)
        if not self.available:
            logger.warning(f"[ZKP] Verification key not found at {self.vk_path}. Local verification skipped.")

    @staticmethod
    def to_snarkjs_proof(proof) -> dict:
        """Re-pad the contract-shaped proof into snarkjs' projective form."""
        return {
            "pi_a": [proof.a[0], proof.a[1], "1"],
            "pi_b": [
                [proof.b[0][0], proof.b[0][1]],
                [proof.b[1][0], proof.b[1][1]],
                ["1", "0"],
            ],
            "pi_c": [proof.c[0], proof.c[1], "1"],
            "protocol": "groth16",
            "curve": "bn128",
        }

    def verify(self, proof, public_signals: List[str]) -> bool:
        """
        Verifies a Groth16 proof using snarkjs via CLI.

        Only snarkjs' own verdicts count: "OK" on a clean exit is a pass,
        "Invalid proof" is a rejection. Anything else (missing binary, npx
        resolution failure, crash, timeout) raises VerifierUnavailable so the
        caller falls back to on-chain verification.
        """
        if not self.available:
            raise VerifierUnavailable(f"verification key missing: {self.vk_path}")

        with tempfile.TemporaryDirectory(prefix="relayer-zkp-") as tmp:
            proof_path = os.path.join(tmp, "proof.json")
            public_path = os.path.join(tmp, "public.json")
            with open(proof_path, "w") as f:
                json.dump(self.to_snarkjs_proof(proof), f)
            with open(public_path, "w") as f:
                json.dump(list(public_signals), f)

            # snarkjs groth16 verify verification_key.json public.json proof.json
            cmd = self.command + ["groth16", "verify", self.vk_path, public_path, proof_path]
            try:
                result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
            except FileNotFoundError as e:
                raise VerifierUnavailable(f"snarkjs not runnable: {e}") from e
            except subprocess.TimeoutExpired as e:
                raise VerifierUnavailable(f"snarkjs timed out after {self.timeout}s") from e

        output = f"{result.stdout}\n{result.stderr}"
        if result.returncode == 0 and "OK" in result.stdout:
            logger.info("[ZKP] Local Groth16 verification successful")
            return True
        if "Invalid proof" in output:
            logger.error("[ZKP] Local Groth16 verification failed: Invalid proof")
            return False

        raise VerifierUnavailable(
            f"snarkjs exited with code {result.returncode}: {output.strip()[:200]}"
        )


def build_verifier(settings: Settings) -> ProofVerifier:
    if not settings.ENABLE_LOCAL_VERIFICATION:
        logger.info("[ZKP] Local verification disabled by configuration")
        return NoopVerifier()
    if not os.path.exists(settings.VERIFICATION_KEY_PATH):
        logger.warning(
            f"[ZKP] Verification key not found at {settings.VERIFICATION_KEY_PATH}; relying on on-chain verification"
        )
        return NoopVerifier()
    return SnarkjsVerifier(
        settings.VERIFICATION_KEY_PATH,
        settings.SNARKJS_COMMAND,
        timeout=settings.SNARKJS_TIMEOUT_SECONDS,
    )
