"""Environment-backed configuration for the swap monitor.

Values are read from the process environment after loading a ``.env`` file
from the working directory. Commands declare which names they need with
``load_config(require=...)``; anything missing stops the command before it
does any work.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

from dotenv import load_dotenv
from eth_account import Account

from .exceptions import ConfigurationException
from .networks import RPC_ENV_NAMES, rpc_env_name

DEFAULT_API_URL = "https://api.1inch.dev/fusion-plus"

STATUS_FILENAME = "order-status.json"
PID_FILENAME = ".monitor-daemon.pid"
LOG_FILENAME = "monitor-daemon.log"

# Names each command needs before it may start
MONITOR_REQUIRED = ("DEV_PORTAL_KEY",)
SWAP_REQUIRED = ("DEV_PORTAL_KEY", "WALLET_KEY", "WALLET_ADDRESS")
ORDERS_REQUIRED = ("DEV_PORTAL_KEY", "WALLET_ADDRESS")


@dataclass(frozen=True)
class MonitorConfig:
    api_url: str = DEFAULT_API_URL
    api_key: Optional[str] = None
    wallet_key: Optional[str] = None
    wallet_address: Optional[str] = None
    rpc_urls: Dict[int, str] = field(default_factory=dict)
    state_dir: str = "."
    scan_interval: float = 5.0
    poll_interval: float = 5.0
    api_timeout: float = 30.0
    log_level: str = "INFO"

    @property
    def status_path(self) -> str:
        return os.path.join(self.state_dir, STATUS_FILENAME)

    @property
    def pid_path(self) -> str:
        return os.path.join(self.state_dir, PID_FILENAME)

    @property
    def log_path(self) -> str:
        return os.path.join(self.state_dir, LOG_FILENAME)

    def rpc_url(self, chain_id: int) -> str:
        """RPC endpoint for ``chain_id``; raises if it was not configured."""
        url = self.rpc_urls.get(int(chain_id))
        if not url:
            raise ConfigurationException(
                f"No RPC endpoint for chain {chain_id}. Set {rpc_env_name(chain_id)} in your .env file."
            )
        return url


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        value = float(env.get(name, default))
    except (TypeError, ValueError):
        raise ConfigurationException(f"{name} must be a number, got {env.get(name)!r}")
    if value <= 0:
        raise ConfigurationException(f"{name} must be positive, got {value}")
    return value


def load_config(
    require: Iterable[str] = (),
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> MonitorConfig:
    """Build a MonitorConfig from the environment.

    Args:
        require: Environment names that must be present and non-empty.
        env: Mapping to read instead of ``os.environ`` (no .env loading then).
        dotenv_path: Explicit .env file; defaults to searching from the cwd.

    Raises:
        ConfigurationException: a required value is missing or a value is invalid.
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    missing = [name for name in require if not (env.get(name) or "").strip()]
    if missing:
        raise ConfigurationException(
            f"Required environment variables not found: {', '.join(missing)}. Please check your .env file."
        )

    wallet_key = (env.get("WALLET_KEY") or "").strip() or None
    wallet_address = (env.get("WALLET_ADDRESS") or "").strip() or None
    if wallet_key and wallet_address:
        try:
            derived = Account.from_key(wallet_key).address
        except Exception as e:
            raise ConfigurationException(f"WALLET_KEY is not a valid private key: {e}") from e
        if derived.lower() != wallet_address.lower():
            raise ConfigurationException(
                f"WALLET_ADDRESS {wallet_address} does not match the address of WALLET_KEY ({derived})"
            )

    rpc_urls: Dict[int, str] = {}
    for chain, name in RPC_ENV_NAMES.items():
        url = (env.get(name) or "").strip()
        if url:
            rpc_urls[int(chain)] = url

    return MonitorConfig(
        api_url=(env.get("SWAP_API_URL") or DEFAULT_API_URL).rstrip("/"),
        api_key=(env.get("DEV_PORTAL_KEY") or "").strip() or None,
        wallet_key=wallet_key,
        wallet_address=wallet_address,
        rpc_urls=rpc_urls,
        state_dir=env.get("MONITOR_STATE_DIR") or os.getcwd(),
        scan_interval=_float_env(env, "MONITOR_SCAN_INTERVAL", 5.0),
        poll_interval=_float_env(env, "MONITOR_POLL_INTERVAL", 5.0),
        api_timeout=_float_env(env, "SWAP_API_TIMEOUT", 30.0),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
