"""
Shared fixtures for dealer client unit tests.

Everything runs offline: the dealer API is an AsyncMock and the taker is a
real eth_account key so signatures can be recovered and checked.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from eth_account import Account
from prometheus_client import CollectorRegistry

from factories import NOW, TAKER_KEY, make_context
from zaidan.metrics import DealerMetrics
from zaidan.providers import InteractiveWallet


@pytest.fixture
def clock():
    """Fixed wall clock."""
    return Mock(return_value=NOW)


@pytest.fixture
def metrics():
    """Metrics on an isolated registry."""
    return DealerMetrics(registry=CollectorRegistry())


@pytest.fixture
def account():
    return Account.from_key(TAKER_KEY)


@pytest.fixture
def web3():
    """Stand-in for AsyncWeb3; tests configure ``web3.eth`` as needed."""
    return Mock()


@pytest.fixture
def wallet(web3, account):
    return InteractiveWallet(web3, account)


@pytest.fixture
def context(wallet, account):
    return make_context(wallet, account.address)


@pytest.fixture
def mock_http():
    """Dealer HTTP client with AsyncMock verbs."""
    http = Mock()
    http.base_url = "http://dealer.test/api/v1.0/"
    http.get = AsyncMock()
    http.post = AsyncMock()
    http.close = AsyncMock()
    return http
