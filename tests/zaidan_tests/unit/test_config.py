"""
Tests for DealerClientConfig and JSON logging setup.
"""

import io
import json
import logging

import pytest

from zaidan.config import SUPPORTED_API_VERSION, DealerClientConfig
from zaidan.exceptions import ConfigurationError
from zaidan.logging_config import setup_logging


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "ZAIDAN_DEALER_URL",
        "ZAIDAN_WEB3_URL",
        "ZAIDAN_API_VERSION",
        "ZAIDAN_GAS_PRICE_GWEI",
        "ZAIDAN_HTTP_TIMEOUT",
        "ZAIDAN_POLL_INTERVAL",
        "ZAIDAN_PRIVATE_KEY",
        "ZAIDAN_EXCHANGE_ADDRESS",
        "ZAIDAN_ERC20_PROXY_ADDRESS",
        "ZAIDAN_LOG_LEVEL",
        "ZAIDAN_ENVIRONMENT",
        "ZAIDAN_PROTOCOL_VERSION",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDealerClientConfig:
    """Tests for direct construction and validation."""

    def test_defaults(self):
        config = DealerClientConfig(dealer_url="http://localhost:8000")
        assert config.api_version == SUPPORTED_API_VERSION
        assert config.gas_price_wei is None
        assert config.protocol_version == 2
        assert config.http_timeout > 0

    def test_gas_price_converted_to_wei(self):
        config = DealerClientConfig(dealer_url="http://localhost:8000", gas_price_gwei=5)
        assert config.gas_price_wei == 5 * 10**9

    @pytest.mark.parametrize("url", ["", "localhost:8000", "ftp://dealer", "http://"])
    def test_invalid_dealer_url_rejected(self, url):
        with pytest.raises(ConfigurationError, match="dealer URL"):
            DealerClientConfig(dealer_url=url)

    def test_invalid_web3_url_rejected(self):
        with pytest.raises(ConfigurationError, match="web3 URL"):
            DealerClientConfig(dealer_url="http://localhost:8000", web3_url="ws//node")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ConfigurationError):
            DealerClientConfig(dealer_url="http://localhost:8000", http_timeout=0)

    def test_unknown_protocol_version_rejected(self):
        with pytest.raises(ConfigurationError, match="protocol_version"):
            DealerClientConfig(dealer_url="http://localhost:8000", protocol_version=4)

    def test_contract_overrides_must_come_together(self):
        with pytest.raises(ConfigurationError, match="together"):
            DealerClientConfig(
                dealer_url="http://localhost:8000",
                exchange_address="0x48bacb9266a570d521063ef5dd96e61686dbe788",
            )

    def test_config_is_frozen(self):
        config = DealerClientConfig(dealer_url="http://localhost:8000")
        with pytest.raises(AttributeError):
            config.dealer_url = "http://elsewhere"


class TestFromEnv:
    """Tests for environment-driven configuration."""

    def test_reads_environment(self, clean_env):
        clean_env.setenv("ZAIDAN_DEALER_URL", "https://dealer.example.com")
        clean_env.setenv("ZAIDAN_WEB3_URL", "http://localhost:8545")
        clean_env.setenv("ZAIDAN_GAS_PRICE_GWEI", "12.5")
        clean_env.setenv("ZAIDAN_POLL_INTERVAL", "0.5")
        clean_env.setenv("ZAIDAN_PROTOCOL_VERSION", "3")

        config = DealerClientConfig.from_env()

        assert config.dealer_url == "https://dealer.example.com"
        assert config.web3_url == "http://localhost:8545"
        assert config.gas_price_wei == 12_500_000_000
        assert config.poll_interval == 0.5
        assert config.protocol_version == 3

    def test_overrides_win_over_environment(self, clean_env):
        clean_env.setenv("ZAIDAN_DEALER_URL", "https://dealer.example.com")
        config = DealerClientConfig.from_env(dealer_url="http://localhost:9000", log_level="DEBUG")
        assert config.dealer_url == "http://localhost:9000"
        assert config.log_level == "DEBUG"

    def test_none_overrides_are_ignored(self, clean_env):
        clean_env.setenv("ZAIDAN_DEALER_URL", "https://dealer.example.com")
        config = DealerClientConfig.from_env(dealer_url=None)
        assert config.dealer_url == "https://dealer.example.com"

    def test_missing_dealer_url_raises(self, clean_env):
        with pytest.raises(ConfigurationError, match="ZAIDAN_DEALER_URL"):
            DealerClientConfig.from_env()

    def test_non_numeric_value_raises(self, clean_env):
        clean_env.setenv("ZAIDAN_DEALER_URL", "https://dealer.example.com")
        clean_env.setenv("ZAIDAN_HTTP_TIMEOUT", "soon")
        with pytest.raises(ConfigurationError, match="ZAIDAN_HTTP_TIMEOUT"):
            DealerClientConfig.from_env()


class TestSetupLogging:
    """Tests for the JSON log handler."""

    def test_emits_json_records(self):
        stream = io.StringIO()
        logger = setup_logging("zaidan_test_logging", level="INFO", environment="test", stream=stream)

        logger.info("Quote received", extra={"quote_id": "q-1"})

        record = json.loads(stream.getvalue().strip())
        assert record["message"] == "Quote received"
        assert record["quote_id"] == "q-1"
        assert record["environment"] == "test"
        assert record["level"] == "info"
        assert "timestamp" in record
        assert record["source"]["function"] == "test_emits_json_records"

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging("zaidan_test_dupes", stream=io.StringIO())
        logger = setup_logging("zaidan_test_dupes", stream=io.StringIO())
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_unknown_level_raises(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging("zaidan_test_level", level="CHATTY")

    def test_level_applied(self):
        logger = setup_logging("zaidan_test_warning", level="warning", stream=io.StringIO())
        assert logger.level == logging.WARNING
