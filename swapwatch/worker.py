"""Per-order monitoring worker.

A worker polls the swap API for one order on a fixed interval. Each tick runs
two independent polls concurrently: the order status (reported upward, and
terminal once the order is executed) and the fills that are ready for a
secret (each ready fill gets its secret submitted on its own). Everything the
worker learns goes to the supervising daemon as a WorkerMessage on an
asyncio.Queue; the worker never touches the status file.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .exceptions import SwapClientError
from .status_store import STATUS_EXECUTED, OrderRecord
from .swap_client import SwapClient

SECRET_SUBMITTED = "secret_submitted"


class MessageKind(str, Enum):
    STATUS = "status"
    COMPLETE = "complete"
    ERROR = "error"
    EXIT = "exit"


class WorkerState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass
class WorkerMessage:
    kind: MessageKind
    order_hash: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WorkerOrder:
    order_hash: str
    secrets: List[str] = field(repr=False)
    secret_hashes: List[str] = field(repr=False)

    @classmethod
    def from_record(cls, record: OrderRecord) -> "WorkerOrder":
        return cls(
            order_hash=record.order_hash,
            secrets=list(record.secrets),
            secret_hashes=list(record.secret_hashes),
        )


def describe_error(error: BaseException) -> str:
    """One-line description of a failed API call."""
    if isinstance(error, SwapClientError) and error.status is not None:
        body = str(error.body or "")[:200]
        return f"API error: {error.status} - {body}"
    return str(error) or error.__class__.__name__


def short_hash(order_hash: str) -> str:
    return f"{order_hash[:10]}…" if len(order_hash) > 12 else order_hash


class OrderWorker:
    def __init__(
        self,
        order: WorkerOrder,
        client: SwapClient,
        outbox: "asyncio.Queue[WorkerMessage]",
        poll_interval: float = 5.0,
        terminal_status: str = STATUS_EXECUTED,
        logger: Optional[logging.Logger] = None,
    ):
        self.order = order
        self.client = client
        self.outbox = outbox
        self.poll_interval = poll_interval
        self.terminal_status = terminal_status
        self.logger = logger or logging.getLogger(__name__)
        self.state = WorkerState.IDLE
        self.accepted_fills: Set[int] = set()
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def order_hash(self) -> str:
        return self.order.order_hash

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Begin polling; must be called from inside the event loop."""
        if self._task is not None:
            return self._task
        self._stop_event = asyncio.Event()
        self.state = WorkerState.ACTIVE
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"worker-{self.order_hash[:10]}"
        )
        return self._task

    def stop(self) -> None:
        """Ask the poll loop to exit at the next tick boundary."""
        if self._stop_event is not None:
            self._stop_event.set()

    def _report(self, kind: MessageKind, **data: Any) -> None:
        self.outbox.put_nowait(WorkerMessage(kind=kind, order_hash=self.order_hash, data=data))

    async def _run(self) -> None:
        self.logger.info(f"👀 Worker started monitoring order {short_hash(self.order_hash)}")
        try:
            while not self._stop_event.is_set():
                await self.tick()
                if self.state is WorkerState.COMPLETED:
                    break
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            self.state = WorkerState.STOPPED
            raise
        except Exception as e:
            self.state = WorkerState.FAILED
            self.logger.error(f"Worker for {short_hash(self.order_hash)} failed: {e}", exc_info=True)
            self._report(MessageKind.ERROR, error=f"Worker failed: {e}")
        finally:
            if self.state is WorkerState.ACTIVE:
                self.state = WorkerState.STOPPED
            self.logger.info(f"Worker stopped monitoring order {short_hash(self.order_hash)} ({self.state.value})")

    async def tick(self) -> None:
        await asyncio.gather(self.check_order_status(), self.check_ready_secret_fills())

    async def check_order_status(self) -> None:
        try:
            order = await self.client.get_order_status(self.order_hash)
        except Exception as e:
            self._report(MessageKind.ERROR, error=f"Error checking order status: {describe_error(e)}")
            return

        status = str(order.get("status"))
        self._report(MessageKind.STATUS, status=status)
        if status == self.terminal_status:
            self.state = WorkerState.COMPLETED
            self._report(MessageKind.COMPLETE)
            self.stop()

    async def check_ready_secret_fills(self) -> None:
        try:
            response = await self.client.get_ready_to_accept_secret_fills(self.order_hash)
        except Exception as e:
            self._report(
                MessageKind.ERROR,
                error=f"Error getting fills ready for secret submission: {describe_error(e)}",
            )
            return

        fills = [f for f in response.get("fills", []) if _fill_index(f) not in self.accepted_fills]
        if not fills:
            return
        self.logger.info(f"Found {len(fills)} fills ready for secret submission on {short_hash(self.order_hash)}")
        await asyncio.gather(*(self._submit_secret(fill) for fill in fills))

    async def _submit_secret(self, fill: Any) -> None:
        idx = _fill_index(fill)
        if idx is None or not 0 <= idx < len(self.order.secrets):
            self._report(MessageKind.ERROR, error=f"Fill index out of range: {fill!r}", fillIdx=idx)
            return
        try:
            await self.client.submit_secret(self.order_hash, self.order.secrets[idx])
        except Exception as e:
            self._report(
                MessageKind.ERROR,
                error=f"Error submitting secret for fill {idx}: {describe_error(e)}",
                fillIdx=idx,
            )
            return
        self.accepted_fills.add(idx)
        self.logger.info(
            f"🔑 Secret submitted for fill index {idx} of {short_hash(self.order_hash)} "
            f"(hash {self.order.secret_hashes[idx][:10]}…)"
        )
        self._report(MessageKind.STATUS, status=SECRET_SUBMITTED, fillIdx=idx)


def _fill_index(fill: Any) -> Optional[int]:
    try:
        return int(fill["idx"])
    except (KeyError, TypeError, ValueError):
        return None
