"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from refnet.config.constants import (
    DEFAULT_CODE_GENERATION_MAX_ATTEMPTS,
    DEFAULT_COMMISSION_RATES,
    DEFAULT_CURRENCY,
    DEFAULT_CURRENCY_PRECISION,
    DEFAULT_GENERATION_CAP,
    DEFAULT_LINK_CODE_LENGTH,
    DEFAULT_MAX_DEPTH,
    DEFAULT_NOTIFICATION_CHANNEL,
    DEFAULT_NOTIFICATION_QUEUE_SIZE,
    DEFAULT_REFERRAL_CODE_LENGTH,
    DEFAULT_TRANSACTION_TIMEOUT_SECONDS,
    EVENT_MAX_RETRIES,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///refnet.db"
    database_echo: bool = False

    # Redis (notification relay and Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/refnet.log"

    # Referral graph
    max_depth: int = Field(
        default=DEFAULT_MAX_DEPTH,
        ge=1,
        le=50,
        description="Number of ancestor generations materialized per member",
    )
    generation_cap: int = Field(
        default=DEFAULT_GENERATION_CAP,
        ge=1,
        description="Upper bound for Member.generation",
    )
    referral_code_length: int = Field(
        default=DEFAULT_REFERRAL_CODE_LENGTH, ge=6, le=16
    )
    link_code_length: int = Field(
        default=DEFAULT_LINK_CODE_LENGTH, ge=6, le=16
    )
    code_generation_max_attempts: int = Field(
        default=DEFAULT_CODE_GENERATION_MAX_ATTEMPTS, ge=1, le=50
    )

    # Commission schedule (percent per generation distance)
    commission_rates: dict[int, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_COMMISSION_RATES),
        description="Commission rate in percent keyed by generation distance",
    )
    currency_precision: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_CURRENCY_PRECISION),
        description="Supported currencies and their decimal places",
    )
    base_currency: str = Field(
        default=DEFAULT_CURRENCY,
        description="Currency of member balances and statistics",
    )

    # Business policy: suspension blocks withdrawal, not accrual
    suspended_members_accrue: bool = True

    # Transactions
    transaction_timeout_seconds: float = Field(
        default=DEFAULT_TRANSACTION_TIMEOUT_SECONDS, gt=0
    )

    # Notifications
    notification_queue_size: int = Field(
        default=DEFAULT_NOTIFICATION_QUEUE_SIZE, ge=1
    )
    notification_relay_enabled: bool = False
    notification_channel: str = DEFAULT_NOTIFICATION_CHANNEL

    # Event delivery
    event_max_retries: int = Field(default=EVENT_MAX_RETRIES, ge=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError(
                "DATABASE_URL must start with postgresql+asyncpg:// "
                "or sqlite+aiosqlite://"
            )
        return v

    @field_validator("commission_rates")
    @classmethod
    def validate_commission_rates(
        cls, v: dict[int, Decimal]
    ) -> dict[int, Decimal]:
        """Validate the per-generation rate schedule."""
        if not v:
            raise ValueError("COMMISSION_RATES must define at least one generation")

        for distance, rate in v.items():
            if distance < 1:
                raise ValueError(
                    f"Invalid generation distance {distance}: must be >= 1"
                )
            if rate < 0 or rate > 100:
                raise ValueError(
                    f"Invalid rate {rate}% for generation {distance}: "
                    "must be between 0 and 100"
                )

        total = sum(v.values(), Decimal("0"))
        if total > 100:
            raise ValueError(
                f"COMMISSION_RATES total {total}% exceeds 100%"
            )
        return dict(sorted(v.items()))

    @field_validator("currency_precision")
    @classmethod
    def validate_currency_precision(cls, v: dict[str, int]) -> dict[str, int]:
        """Normalize currency codes and validate precision."""
        if not v:
            raise ValueError("CURRENCY_PRECISION must list at least one currency")

        normalized = {}
        for currency, places in v.items():
            if places < 0 or places > 8:
                raise ValueError(
                    f"Invalid precision {places} for {currency}: must be 0..8"
                )
            normalized[currency.upper()] = places
        return normalized

    @model_validator(mode="after")
    def validate_consistency(self) -> "Settings":
        """Validate cross-field and production-specific requirements."""
        self.base_currency = self.base_currency.upper()
        if self.base_currency not in self.currency_precision:
            raise ValueError(
                f"BASE_CURRENCY {self.base_currency} is not listed in CURRENCY_PRECISION"
            )

        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG must be False in production environment. "
                "Set DEBUG=false in your .env file."
            )
        return self

    def precision_for(self, currency: str) -> int | None:
        """Decimal places for a currency, None if unsupported."""
        return self.currency_precision.get(currency.upper())


# Global settings instance
settings = Settings()
