"""
Dealer client configuration.

Values come from explicit arguments or from ``ZAIDAN_*`` environment
variables. Secrets (the private key of an interactive wallet) are only ever
read from the environment, never from files committed to the repository.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SUPPORTED_API_VERSION = "v1.0"

DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 1.0
GWEI = 10**9


def _env_float(env_var: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{env_var} must be a number, got {raw!r}") from None


def _env_str(env_var: str) -> Optional[str]:
    value = os.getenv(env_var, "").strip()
    return value or None


@dataclass(frozen=True)
class DealerClientConfig:
    """
    Settings for one dealer client session.

    Attributes:
        dealer_url: Base URL of the dealer server (without the API path)
        web3_url: Ethereum JSON-RPC URL
        api_version: Dealer API version, must equal SUPPORTED_API_VERSION
        gas_price_gwei: Gas price override for allowance transactions;
            the node's estimate is used when unset
        http_timeout: Dealer request timeout in seconds
        poll_interval: Receipt polling interval in seconds
        private_key: Key for an interactive wallet; unset means the node signs
        exchange_address: 0x Exchange override for chains without known addresses
        erc20_proxy_address: 0x ERC20Proxy override
        log_level: Logging level name
        environment: Environment tag added to JSON log records
        protocol_version: 0x protocol generation (2 or 3) the dealer settles on
    """
    dealer_url: str
    web3_url: Optional[str] = None
    api_version: str = SUPPORTED_API_VERSION
    gas_price_gwei: Optional[float] = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    private_key: Optional[str] = None
    exchange_address: Optional[str] = None
    erc20_proxy_address: Optional[str] = None
    log_level: str = "INFO"
    environment: str = "production"
    protocol_version: int = 2

    def __post_init__(self) -> None:
        if self.protocol_version not in (2, 3):
            raise ConfigurationError(
                f"protocol_version must be 2 or 3, got {self.protocol_version!r}"
            )
        parsed = urlparse(self.dealer_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"invalid dealer URL: {self.dealer_url!r}")
        if self.web3_url is not None:
            parsed = urlparse(self.web3_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigurationError(f"invalid web3 URL: {self.web3_url!r}")
        if self.http_timeout <= 0:
            raise ConfigurationError("http_timeout must be positive")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.gas_price_gwei is not None and self.gas_price_gwei < 0:
            raise ConfigurationError("gas_price_gwei must not be negative")
        if bool(self.exchange_address) != bool(self.erc20_proxy_address):
            raise ConfigurationError(
                "exchange_address and erc20_proxy_address must be set together"
            )

    @property
    def gas_price_wei(self) -> Optional[int]:
        if self.gas_price_gwei is None:
            return None
        return int(self.gas_price_gwei * GWEI)

    @classmethod
    def from_env(cls, **overrides) -> "DealerClientConfig":
        """Build a config from ``ZAIDAN_*`` variables; keyword overrides win."""
        values = {
            "dealer_url": _env_str("ZAIDAN_DEALER_URL"),
            "web3_url": _env_str("ZAIDAN_WEB3_URL"),
            "api_version": _env_str("ZAIDAN_API_VERSION") or SUPPORTED_API_VERSION,
            "gas_price_gwei": _env_float("ZAIDAN_GAS_PRICE_GWEI", None),
            "http_timeout": _env_float("ZAIDAN_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            "poll_interval": _env_float("ZAIDAN_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            "private_key": _env_str("ZAIDAN_PRIVATE_KEY"),
            "exchange_address": _env_str("ZAIDAN_EXCHANGE_ADDRESS"),
            "erc20_proxy_address": _env_str("ZAIDAN_ERC20_PROXY_ADDRESS"),
            "log_level": _env_str("ZAIDAN_LOG_LEVEL") or "INFO",
            "environment": _env_str("ZAIDAN_ENVIRONMENT") or "production",
            "protocol_version": int(_env_float("ZAIDAN_PROTOCOL_VERSION", 2)),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        if not values["dealer_url"]:
            raise ConfigurationError(
                "ZAIDAN_DEALER_URL environment variable (or dealer_url) is required"
            )
        if values["private_key"] and "private_key" not in overrides:
            logger.info(
                "Using interactive wallet key from environment",
                extra={"event": "config.private_key_loaded"},
            )
        return cls(**values)
