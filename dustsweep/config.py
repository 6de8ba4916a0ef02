import os

from pathlib import Path
from typing import Any, Dict

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick up the front-end style environment variable names."""

        super().model_post_init(__context)

        if not self.relay_api_key:
            fallback = os.getenv("VITE_RELAY_API_KEY")
            if fallback:
                object.__setattr__(self, "relay_api_key", fallback)
        if not self.covalent_api_key:
            fallback = os.getenv("VITE_COVALENT_API_KEY")
            if fallback:
                object.__setattr__(self, "covalent_api_key", fallback)

    log_level: str = Field(default="INFO", description="Logging level")

    # Relay solver
    relay_base_url: str = Field(
        default="https://api.relay.link",
        description="Relay API base URL",
    )
    relay_api_key: str = Field(
        default="",
        description="Relay API key (raises the rate ceiling from 50 req/min to 10 req/s)",
        validation_alias=AliasChoices("relay_api_key", "RELAY_API_KEY"),
    )
    relay_referrer: str = Field(default="dustsweep", description="Referrer tag sent with quotes")

    # Covalent approvals API
    covalent_base_url: str = Field(
        default="https://api.covalenthq.com/v1",
        description="Covalent GoldRush API base URL",
    )
    covalent_api_key: str = Field(
        default="",
        description="Covalent API key",
        validation_alias=AliasChoices("covalent_api_key", "COVALENT_API_KEY"),
    )

    # Wallet / chain access
    wallet_rpc_url: str = Field(
        default="http://127.0.0.1:1248",
        description="EIP-1193 JSON-RPC endpoint of the signing wallet",
    )
    rpc_urls: Dict[int, str] = Field(
        default_factory=lambda: {
            1: "https://eth.llamarpc.com",
            10: "https://mainnet.optimism.io",
            56: "https://bsc-dataseed.binance.org",
            137: "https://polygon-rpc.com",
            8453: "https://mainnet.base.org",
            42161: "https://arb1.arbitrum.io/rpc",
        },
        description="Public JSON-RPC endpoint per chain ID",
    )
    request_timeout_seconds: int = Field(default=30, description="HTTP request timeout")

    # Rate limiting (seconds)
    quote_stagger_seconds: float = Field(
        default=0.15, description="Stagger between concurrent quotes when an API key is set"
    )
    quote_sequential_delay_seconds: float = Field(
        default=1.5, description="Delay between sequential quotes without an API key"
    )
    batch_quote_delay_seconds: float = Field(
        default=0.5, description="Delay between per-token quotes while building a batch"
    )
    legacy_token_delay_seconds: float = Field(
        default=1.0, description="Delay between tokens in legacy execution"
    )
    post_approval_delay_seconds: float = Field(
        default=0.5, description="Pause after a confirmed approval before swapping"
    )
    revoke_delay_seconds: float = Field(default=0.5, description="Delay between legacy revokes")
    approvals_chain_delay_seconds: float = Field(
        default=0.3, description="Delay between per-chain approval scans"
    )
    route_check_batch_delay_seconds: float = Field(
        default=0.5, description="Delay between route probe batches with an API key"
    )
    route_check_batch_delay_no_key_seconds: float = Field(
        default=2.0, description="Delay between route probe batches without an API key"
    )

    # Quote retry
    quote_max_retries: int = Field(default=3, ge=1, description="Attempts on HTTP 429")
    quote_retry_base_delay_seconds: float = Field(
        default=0.5, description="Base delay for exponential backoff on rate limits"
    )

    # Safety thresholds
    warn_price_impact_percent: float = Field(default=5.0, description="Warn above this impact")
    block_price_impact_percent: float = Field(default=15.0, description="Block above this impact")
    swap_amount_bps: int = Field(
        default=9800,
        ge=1,
        le=10000,
        description="Share of the balance quoted for a swap, in basis points",
    )

    # Dust filter
    dust_min_value_usd: float = Field(default=0.0, description="Lower bound of the dust range")
    dust_max_value_usd: float = Field(default=100000.0, description="Upper bound of the dust range")
    main_token_threshold_usd: float = Field(
        default=0.01, description="Tokens below this value are listed as low value"
    )

    # Confirmation
    receipt_timeout_seconds: int = Field(default=180, description="Receipt wait timeout")
    receipt_poll_interval_seconds: float = Field(default=2.0, description="Receipt poll interval")
    batch_receipt_timeout_seconds: int = Field(
        default=60, description="Best-effort wait for a batched call bundle"
    )

    @property
    def has_relay_key(self) -> bool:
        return bool(self.relay_api_key)

    @property
    def has_covalent_key(self) -> bool:
        return bool(self.covalent_api_key)


# Global settings instance
settings = Settings()
