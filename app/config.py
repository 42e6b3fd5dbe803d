import os

from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]

INK_CHAIN_ID = 57073
NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Ensure we pick up legacy environment variable aliases."""

        super().model_post_init(__context)

        if not self.executor_private_key:
            fallback = os.getenv("RAND_K")
            if fallback:
                object.__setattr__(self, "executor_private_key", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Chain
    rpc_url: str = Field(default="", description="JSON-RPC endpoint for the DCA chain")
    chain_id: int = Field(default=INK_CHAIN_ID, description="Chain the DCA contract lives on")
    dca_contract_address: str = Field(
        default="",
        description="Address of the on-chain DCA contract",
        validation_alias=AliasChoices("dca_contract_address", "CONTRACT_ADDRESS"),
    )
    executor_private_key: str = Field(
        default="",
        description="Key of the account submitting runDCA transactions",
    )
    tx_confirmation_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Max seconds to wait for a runDCA receipt",
    )

    # Relay aggregator
    relay_base_url: str = Field(
        default="https://api.relay.link",
        description="Relay API base URL",
    )
    relay_timeout_seconds: float = Field(default=20.0, description="Relay request timeout")
    relay_user_agent: str = Field(default="DCA-on-Ink/1.0", description="User-Agent sent to Relay")

    # Convex store
    convex_url: str = Field(default="", description="Convex deployment URL")
    convex_deploy_key: str = Field(default="", description="Convex deploy key")

    # Cron trigger
    cron_schedule_id: str = Field(
        default="",
        description="Expected upstash-schedule-id header on the cron trigger",
        validation_alias=AliasChoices("cron_schedule_id", "UPSTASH_CHECK_BUYERS_ID"),
    )

    # Execution pipeline
    dca_retry_delay_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Fixed delay before the single retry of a failed session",
    )
    price_impact_hop_penalty_percent: float = Field(
        default=0.3,
        ge=0,
        description="Estimated impact per route step when Relay omits impact fields",
    )
    time_slot_minutes: int = Field(
        default=15,
        ge=1,
        le=60,
        description="Width of the buy_time scheduling slot",
    )

    # Reporting
    pair_stats_cache_ttl_seconds: int = Field(
        default=60,
        ge=0,
        description="TTL for cached pair stats reads",
    )
    visualizer_password: str = Field(
        default="",
        description="Shared password for attempt analytics reads",
    )

    @property
    def has_chain_credentials(self) -> bool:
        return bool(self.rpc_url and self.dca_contract_address and self.executor_private_key)

    @property
    def has_convex(self) -> bool:
        return bool(self.convex_url)


# Global settings instance
settings = Settings()
