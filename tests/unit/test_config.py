"""Tests for environment-backed configuration."""
import os

import pytest
from eth_account import Account

from swapwatch.config import (
    DEFAULT_API_URL,
    MONITOR_REQUIRED,
    ORDERS_REQUIRED,
    SWAP_REQUIRED,
    load_config,
)
from swapwatch.exceptions import ConfigurationException

WALLET_KEY = "0x" + "4c" * 32
WALLET_ADDRESS = Account.from_key(WALLET_KEY).address


def test_defaults_without_requirements(tmp_path):
    config = load_config(env={"MONITOR_STATE_DIR": str(tmp_path)})

    assert config.api_url == DEFAULT_API_URL
    assert config.api_key is None
    assert config.scan_interval == 5.0
    assert config.poll_interval == 5.0
    assert config.status_path == os.path.join(str(tmp_path), "order-status.json")
    assert config.pid_path == os.path.join(str(tmp_path), ".monitor-daemon.pid")


def test_missing_required_names_are_listed():
    with pytest.raises(ConfigurationException) as excinfo:
        load_config(require=SWAP_REQUIRED, env={"DEV_PORTAL_KEY": "key"})

    message = str(excinfo.value)
    assert "WALLET_KEY" in message
    assert "WALLET_ADDRESS" in message
    assert "DEV_PORTAL_KEY" not in message


def test_blank_values_count_as_missing():
    with pytest.raises(ConfigurationException):
        load_config(require=MONITOR_REQUIRED, env={"DEV_PORTAL_KEY": "  "})


def test_full_swap_config():
    env = {
        "DEV_PORTAL_KEY": "key",
        "WALLET_KEY": WALLET_KEY,
        "WALLET_ADDRESS": WALLET_ADDRESS.lower(),
        "RPC_URL_BASE": "https://base.example",
        "SWAP_API_URL": "https://api.example/fusion-plus/",
        "MONITOR_POLL_INTERVAL": "2.5",
        "LOG_LEVEL": "debug",
    }
    config = load_config(require=SWAP_REQUIRED, env=env)

    assert config.api_key == "key"
    assert config.api_url == "https://api.example/fusion-plus"
    assert config.poll_interval == 2.5
    assert config.log_level == "DEBUG"
    assert config.rpc_url(8453) == "https://base.example"


def test_wallet_address_must_match_key():
    env = {
        "DEV_PORTAL_KEY": "key",
        "WALLET_KEY": WALLET_KEY,
        "WALLET_ADDRESS": "0x" + "00" * 20,
    }
    with pytest.raises(ConfigurationException) as excinfo:
        load_config(require=SWAP_REQUIRED, env=env)
    assert WALLET_KEY not in str(excinfo.value)


def test_orders_requires_wallet_address():
    with pytest.raises(ConfigurationException):
        load_config(require=ORDERS_REQUIRED, env={"DEV_PORTAL_KEY": "key"})


def test_missing_rpc_url_names_variable():
    config = load_config(env={})
    with pytest.raises(ConfigurationException) as excinfo:
        config.rpc_url(42161)
    assert "RPC_URL_ARBITRUM" in str(excinfo.value)


@pytest.mark.parametrize("value", ["abc", "0", "-1"])
def test_invalid_intervals_are_rejected(value):
    with pytest.raises(ConfigurationException):
        load_config(env={"MONITOR_SCAN_INTERVAL": value})
