"""Command line control for the swap monitor.

Usage:
    swapwatch start [ORDER_HASH]     # start the daemon (or resume a paused order)
    swapwatch stop [ORDER_HASH]      # stop the daemon (or pause one order)
    swapwatch status [ORDER_HASH]    # daemon liveness and order table
    swapwatch status --json          # same, as JSON without secrets
    swapwatch swap --amount 100000   # place a cross-chain swap and monitor it
    swapwatch orders                 # active orders of the configured wallet
    swapwatch daemon                 # foreground daemon (used by start)
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import subprocess
import sys
from datetime import datetime
from typing import List, Optional

from .allowance import connect, ensure_allowance
from .config import MONITOR_REQUIRED, ORDERS_REQUIRED, SWAP_REQUIRED, MonitorConfig, load_config
from .daemon import run_daemon
from .exceptions import DaemonError, SwapClientError, SwapWatchException
from .networks import DEFAULT_AMOUNT, DEFAULT_DST_CHAIN, DEFAULT_DST_TOKEN, DEFAULT_SRC_CHAIN, DEFAULT_SRC_TOKEN
from .pidfile import PidFile, terminate_process
from .status_store import OrderRecord, StatusStore
from .swap import execute_cross_chain_swap
from .swap_client import QuoteParams, SwapClient
from .worker import describe_error

DAEMON_STOP_TIMEOUT = 15.0


# ANSI color codes
class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    END = '\033[0m'


def colored(text: str, color: str) -> str:
    """Apply color to text if terminal supports it."""
    if sys.stdout.isatty():
        return f"{color}{text}{Colors.END}"
    return text


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.FileHandler(log_file)] if log_file else [logging.StreamHandler()]
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
    )


def _format_ms(ms: int) -> str:
    if not ms:
        return "-"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _public_view(record: OrderRecord) -> dict:
    data = record.to_dict()
    data.pop("secrets")
    return data


def start_daemon(config: MonitorConfig) -> Optional[int]:
    """Spawn a detached daemon unless one is running; returns its PID."""
    pidfile = PidFile(config.pid_path)
    running = pidfile.running_pid()
    if running is not None:
        print(f"Monitor daemon is already running (PID {running}).")
        return running

    print("Starting monitor daemon...")
    env = os.environ.copy()
    env["MONITOR_STATE_DIR"] = os.path.abspath(config.state_dir)
    process = subprocess.Popen(
        [sys.executable, "-m", "swapwatch.cli", "daemon"],
        cwd=os.getcwd(),
        env=env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
    pidfile.write(process.pid)
    print(f"Monitor daemon started with PID: {process.pid}")
    return process.pid


def stop_daemon(config: MonitorConfig, timeout: float = DAEMON_STOP_TIMEOUT) -> bool:
    pidfile = PidFile(config.pid_path)
    pid = pidfile.running_pid()
    if pid is None:
        print("Monitor daemon is not running.")
        return False
    if not terminate_process(pid, timeout=timeout):
        raise DaemonError(f"Monitor daemon (PID {pid}) did not exit")
    pidfile.remove()
    print("Monitor daemon stopped.")
    return True


def cmd_start(args: argparse.Namespace) -> int:
    config = load_config(require=MONITOR_REQUIRED)
    if args.order_hash:
        store = StatusStore(config.status_path)
        if not store.set_paused(args.order_hash, False):
            print(f"Order {args.order_hash} not found.")
            return 1
        print(f"Order {args.order_hash} resumed.")
    start_daemon(config)
    return 0


def cmd_stop(args: argparse.Namespace) -> int:
    config = load_config()
    store = StatusStore(config.status_path)
    if args.order_hash:
        record = store.get(args.order_hash)
        if record is None:
            print(f"Order {args.order_hash} not found.")
            return 1
        store.set_paused(args.order_hash, True)
        if PidFile(config.pid_path).is_running():
            print(f"Order {args.order_hash} paused; the daemon will stop monitoring it.")
        else:
            store.clear_monitoring(args.order_hash)
            print(f"Order {args.order_hash} paused.")
        return 0

    stop_daemon(config)
    cleared = store.clear_stale_monitoring()
    if cleared:
        print(f"Cleared monitoring flags on {len(cleared)} order(s).")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    config = load_config()
    store = StatusStore(config.status_path)
    records = store.read()
    pid = PidFile(config.pid_path).running_pid()
    if args.order_hash:
        records = [r for r in records if r.order_hash == args.order_hash]
        if not records:
            print(f"Order {args.order_hash} not found.")
            return 1

    if args.json:
        print(json.dumps({
            "daemon": {"running": pid is not None, "pid": pid},
            "orders": [_public_view(r) for r in records],
        }, indent=2))
        return 0

    daemon_text = colored("Running", Colors.GREEN) if pid else colored("Not Running", Colors.RED)
    print(f"\nMonitor Daemon: {daemon_text}")
    if pid:
        print(f"Daemon PID: {pid}")

    if not records:
        print("\nNo orders are registered.")
        return 0

    print(colored("\nMonitoring Status:", Colors.BOLD))
    for record in records:
        if record.is_executed:
            status_text = colored(record.status, Colors.GREEN)
        elif record.paused:
            status_text = colored(f"{record.status} (paused)", Colors.YELLOW)
        else:
            status_text = colored(record.status, Colors.BLUE)
        print(f"\nOrder: {record.order_hash}")
        print(f"Status: {status_text}")
        print(f"Monitoring: {'Active' if record.is_monitoring else 'Inactive'}")
        if record.pid:
            print(f"Process ID: {record.pid}")
        print(f"Secrets submitted: {len(record.submitted_fills)}/{len(record.secrets)}")
        print(f"Started: {_format_ms(record.start_time)}")
        print(f"Last Updated: {_format_ms(record.last_updated)}")
    return 0


def cmd_daemon(args: argparse.Namespace) -> int:
    config = load_config(require=MONITOR_REQUIRED)
    configure_logging(config.log_level, log_file=config.log_path)
    return run_daemon(config)


def cmd_swap(args: argparse.Namespace) -> int:
    config = load_config(require=SWAP_REQUIRED)
    params = QuoteParams(
        src_chain_id=args.src_chain,
        dst_chain_id=args.dst_chain,
        src_token_address=args.src_token,
        dst_token_address=args.dst_token,
        amount=str(args.amount),
        wallet_address=config.wallet_address,
    )
    if args.invert:
        params = params.inverted()

    if args.approve:
        web3 = connect(config.rpc_url(params.src_chain_id))
        tx_hash = ensure_allowance(web3, params.src_token_address, config.wallet_key, int(params.amount))
        if tx_hash:
            print(f"Approval transaction: {tx_hash}")

    client = SwapClient(config.api_url, config.api_key, timeout=config.api_timeout)
    store = StatusStore(config.status_path)
    result = asyncio.run(execute_cross_chain_swap(client, store, params, config.wallet_key))
    if not result.success:
        print(f"Swap failed: {result.error}", file=sys.stderr)
        return 1

    print(f"Swap initiated successfully! Order hash: {result.order_hash}")
    print(result.message)
    if not args.no_monitor:
        start_daemon(config)
    return 0


def cmd_orders(args: argparse.Namespace) -> int:
    config = load_config(require=ORDERS_REQUIRED)
    client = SwapClient(config.api_url, config.api_key, timeout=config.api_timeout)
    try:
        orders = asyncio.run(client.get_orders_by_maker(config.wallet_address, page=args.page, limit=args.limit))
    except SwapClientError as e:
        print(f"Failed to fetch orders: {describe_error(e)}", file=sys.stderr)
        return 1
    print(json.dumps(orders, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swapwatch", description="Cross-chain swap order monitor")
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("start", help="Start the monitor daemon, or resume a paused order")
    p.add_argument("order_hash", nargs="?", default=None)
    p.set_defaults(func=cmd_start)

    p = sub.add_parser("stop", help="Stop the monitor daemon, or pause a single order")
    p.add_argument("order_hash", nargs="?", default=None)
    p.set_defaults(func=cmd_stop)

    p = sub.add_parser("status", help="Show daemon and order status")
    p.add_argument("order_hash", nargs="?", default=None)
    p.add_argument("--json", action="store_true", help="JSON output for scripting")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("daemon", help="Run the monitor daemon in the foreground")
    p.set_defaults(func=cmd_daemon)

    p = sub.add_parser("swap", help="Place a cross-chain swap and monitor it")
    p.add_argument("--src-chain", type=int, default=int(DEFAULT_SRC_CHAIN))
    p.add_argument("--dst-chain", type=int, default=int(DEFAULT_DST_CHAIN))
    p.add_argument("--src-token", default=DEFAULT_SRC_TOKEN)
    p.add_argument("--dst-token", default=DEFAULT_DST_TOKEN)
    p.add_argument("--amount", default=DEFAULT_AMOUNT, help="Amount in source token base units")
    p.add_argument("--invert", action="store_true", help="Swap in the opposite direction")
    p.add_argument("--approve", action="store_true", help="Approve the router for the source token first")
    p.add_argument("--no-monitor", action="store_true", help="Do not start the monitor daemon")
    p.set_defaults(func=cmd_swap)

    p = sub.add_parser("orders", help="List orders placed by the configured wallet")
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--limit", type=int, default=100)
    p.set_defaults(func=cmd_orders)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        args = parser.parse_args(["status"])

    if args.command != "daemon":
        configure_logging(os.getenv("LOG_LEVEL", "WARNING"))
    try:
        return args.func(args)
    except SwapWatchException as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
