"""
Configuration management using pydantic-settings.
"""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from htncore.constants import (
    COINBASE_MATURITY,
    DEFAULT_FEE_CACHE_TTL,
    DEFAULT_IQR_MULTIPLIER,
    DEFAULT_MIN_FEE_SAMPLES,
)
from htncore.models import NetworkType
from htnwallet.backends.rest_proxy import DEFAULT_PROXY_URL, DEFAULT_TIMEOUT
from htnwallet.wallet.selection import SelectionPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HTN_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: NetworkType = NetworkType.MAINNET
    proxy_url: str = DEFAULT_PROXY_URL
    request_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    # Fee estimation
    fee_cache_ttl: float = Field(default=DEFAULT_FEE_CACHE_TTL, ge=0)
    fee_min_samples: int = Field(default=DEFAULT_MIN_FEE_SAMPLES, ge=1)
    fee_iqr_multiplier: Decimal = Field(default=DEFAULT_IQR_MULTIPLIER, gt=0)

    coinbase_maturity: int = Field(default=COINBASE_MATURITY, ge=0)
    selection_policy: SelectionPolicy = SelectionPolicy.LARGEST_FIRST

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()
