from functools import lru_cache
from typing import Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Donation Ledger Gateway"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    # idempotency reservations only; ledger state is never mirrored here
    database_url: str = "sqlite:///./ledger_gateway.db"

    # ─────────── LEDGER ───────────
    ledger_rpc_url: Optional[str] = None
    ledger_private_key: Optional[SecretStr] = None
    ledger_chain_id: Optional[int] = None

    signature_verifier_address: Optional[str] = None
    policy_contract_address: Optional[str] = None

    ledger_rpc_timeout_seconds: float = 10.0
    ledger_confirmation_timeout_seconds: float = 120.0
    ledger_poll_interval_seconds: float = 2.0

    # e.g. https://sepolia.etherscan.io
    explorer_base_url: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
