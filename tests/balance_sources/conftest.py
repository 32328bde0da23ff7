"""
Shared fixtures for balance source tests.
"""

import pytest

from balance_sources.config import BalanceSourcesConfig
from balance_sources.credentials import InMemoryCredentialStore


@pytest.fixture
def config():
    """Default configuration with real-looking base URLs."""
    return BalanceSourcesConfig()


@pytest.fixture
def credentials():
    """Both provider tokens configured."""
    return InMemoryCredentialStore({
        "privatbank_token": "privat-token",
        "wise_token": "wise-token",
    })
