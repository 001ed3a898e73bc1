from typing import List, Optional
from pydantic_settings import BaseSettings

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    PROJECT_NAME: str = "GrimSwap Relayer"
    VERSION: str = "1.0.0"

    # Deployment
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "*"

    # Chain / signing account
    RPC_URL: str = "https://sepolia.unichain.org"
    RELAYER_PRIVATE_KEY: str = ""
    CHAIN_ID: int = 1301
    CHAIN_NAME: str = "Unichain Sepolia"

    # Contract addresses (keep in sync with SIGNAL_SCHEMA)
    POOL_MANAGER_ADDRESS: str = "0x00B036B58a818B1BC34d502D3fE730Db729e62AC"
    GRIM_POOL_ADDRESS: str = ZERO_ADDRESS
    GRIM_SWAP_ZK_ADDRESS: str = ZERO_ADDRESS
    POOL_SWAP_TEST_ADDRESS: str = ZERO_ADDRESS
    VERIFIER_ADDRESS: str = ZERO_ADDRESS

    # Public signal layout of the deployed verifier circuit ("v1" = 6, "v2" = 8)
    SIGNAL_SCHEMA: str = "v2"

    # Fees
    RELAYER_FEE_BPS: int = 10
    MAX_FEE_BPS: int = 1000
    GAS_BUFFER_PERCENT: int = 20
    TYPICAL_SWAP_GAS: int = 250_000
    HEALTHY_BALANCE_WEI: int = 10_000_000_000_000_000  # 0.01 ETH
    RECEIPT_TIMEOUT_SECONDS: Optional[float] = None

    # Local Groth16 pre-check
    ENABLE_LOCAL_VERIFICATION: bool = True
    VERIFICATION_KEY_PATH: str = "circuits/verification_key.json"
    SNARKJS_COMMAND: str = "npx snarkjs"
    SNARKJS_TIMEOUT_SECONDS: float = 30.0

    # Testnet-only: owner relayer may register unknown Merkle roots
    ALLOW_ROOT_REGISTRATION: bool = True

    # Post-swap steps
    ENABLE_STEALTH_FUNDING: bool = False
    STEALTH_FUNDING_WEI: int = 100_000_000_000_000  # 0.0001 ETH
    ENABLE_OUTPUT_TRANSFER: bool = False

    # Rate limiting (per client IP)
    RATE_LIMIT_REQUESTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: float = 60.0
    RATE_LIMIT_BLOCK_SECONDS: float = 60.0

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()] or ["*"]

    @property
    def contracts(self) -> dict:
        return {
            "poolManager": self.POOL_MANAGER_ADDRESS,
            "grimPool": self.GRIM_POOL_ADDRESS,
            "grimSwapZK": self.GRIM_SWAP_ZK_ADDRESS,
            "poolSwapTest": self.POOL_SWAP_TEST_ADDRESS,
            "verifier": self.VERIFIER_ADDRESS,
        }

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"

settings = Settings()
