"""Monitor daemon: finds unmonitored orders and drives them with workers.

The daemon owns one OrderWorker per in-flight order and is the only writer of
``isMonitoring``, ``pid`` and ``status`` in the status file. Workers report
over a shared asyncio.Queue; every report is applied to the status file by
the dispatcher, and completed, exited or paused workers are released.
"""
from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import Callable, Dict, List, Optional

from .config import MonitorConfig
from .pidfile import PidFile
from .status_store import STATUS_EXECUTED, OrderRecord, StatusStore
from .swap_client import SwapClient
from .worker import MessageKind, OrderWorker, WorkerMessage, WorkerOrder, short_hash

ClientFactory = Callable[[], SwapClient]


class MonitorDaemon:
    def __init__(
        self,
        store: StatusStore,
        client_factory: ClientFactory,
        scan_interval: float = 5.0,
        worker_interval: float = 5.0,
        worker_stop_timeout: float = 5.0,
        logger: Optional[logging.Logger] = None,
        pid: Optional[int] = None,
    ):
        self.store = store
        self.client_factory = client_factory
        self.scan_interval = scan_interval
        self.worker_interval = worker_interval
        self.worker_stop_timeout = worker_stop_timeout
        self.logger = logger or logging.getLogger(__name__)
        self.pid = pid or os.getpid()
        self.workers: Dict[str, OrderWorker] = {}
        # Created lazily so they bind to the loop that runs the daemon
        self._messages: Optional[asyncio.Queue] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def messages(self) -> "asyncio.Queue[WorkerMessage]":
        if self._messages is None:
            self._messages = asyncio.Queue()
        return self._messages

    @property
    def stop_event(self) -> asyncio.Event:
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        return self._stop_event

    async def _store(self, fn, *args):
        """Run a blocking status file call off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    def request_stop(self) -> None:
        self.logger.info("Monitor daemon stop requested")
        self.stop_event.set()

    def _needs_worker(self, record: OrderRecord) -> bool:
        return (
            not record.is_monitoring
            and record.status != STATUS_EXECUTED
            and not record.paused
            and record.order_hash not in self.workers
        )

    async def scan(self) -> List[str]:
        """Start workers for new orders; release workers whose order is done or paused.

        Returns the hashes of the orders a worker was started for.
        """
        records = await self._store(self.store.read)
        by_hash = {r.order_hash: r for r in records}

        for order_hash in list(self.workers):
            record = by_hash.get(order_hash)
            if record is None or record.paused or record.is_executed:
                reason = "removed" if record is None else ("paused" if record.paused else "executed")
                self.logger.info(f"Releasing worker for {short_hash(order_hash)} (order {reason})")
                await self.release(order_hash)

        started: List[str] = []
        for record in records:
            if not self._needs_worker(record):
                continue
            if not record.secrets:
                self.logger.warning(f"Order {short_hash(record.order_hash)} has no secrets, cannot monitor it")
                continue
            await self._store(self.store.set_monitoring, record.order_hash, self.pid)
            self._spawn(record)
            started.append(record.order_hash)
        return started

    def _spawn(self, record: OrderRecord) -> OrderWorker:
        self.logger.info(f"🚀 Daemon starting monitoring for order: {record.order_hash}")
        worker = OrderWorker(
            WorkerOrder.from_record(record),
            self.client_factory(),
            self.messages,
            poll_interval=self.worker_interval,
        )
        task = worker.start()
        self.workers[record.order_hash] = worker
        task.add_done_callback(
            lambda t, order_hash=record.order_hash, w=worker: self._on_worker_exit(order_hash, w, t)
        )
        return worker

    def _on_worker_exit(self, order_hash: str, worker: OrderWorker, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(f"Worker for {short_hash(order_hash)} raised: {task.exception()}")
        if self.workers.get(order_hash) is worker:
            self.messages.put_nowait(WorkerMessage(kind=MessageKind.EXIT, order_hash=order_hash))

    async def handle_message(self, message: WorkerMessage) -> None:
        order_hash = message.order_hash
        data = message.data
        if message.kind is MessageKind.STATUS:
            if data.get("fillIdx") is not None:
                await self._store(self.store.record_fill, order_hash, int(data["fillIdx"]))
                self.logger.info(f"Secret accepted for fill {data['fillIdx']} of order {short_hash(order_hash)}")
            elif await self._store(self.store.update_status, order_hash, str(data.get("status"))):
                self.logger.info(f"Updated order {order_hash} status: {data.get('status')}")
        elif message.kind is MessageKind.COMPLETE:
            await self._store(self.store.update_status, order_hash, STATUS_EXECUTED)
            self.logger.info(f"✅ Order {order_hash} executed")
            await self.release(order_hash)
        elif message.kind is MessageKind.ERROR:
            self.logger.error(f"Worker error for order {order_hash}: {data.get('error')}")
        elif message.kind is MessageKind.EXIT:
            if order_hash in self.workers:
                self.logger.warning(f"Worker for order {short_hash(order_hash)} exited, releasing it")
                await self.release(order_hash)

    async def release(self, order_hash: str) -> bool:
        """Stop the order's worker (cancelling it if it will not stop) and clear its flags."""
        worker = self.workers.pop(order_hash, None)
        if worker is None:
            return False
        worker.stop()
        task = worker.task
        try:
            if task is not None and not task.done():
                done, _ = await asyncio.wait({task}, timeout=self.worker_stop_timeout)
                if not done:
                    self.logger.warning(
                        f"Worker for {short_hash(order_hash)} did not stop in {self.worker_stop_timeout}s, cancelling"
                    )
                    task.cancel()
                    await asyncio.wait({task})
        except asyncio.CancelledError:
            # The worker is no longer tracked, so its flags must be cleared here
            if task is not None:
                task.cancel()
            self.store.clear_monitoring(order_hash)
            raise
        await self._store(self.store.clear_monitoring, order_hash)
        return True

    async def drain_messages(self) -> int:
        """Apply every queued report without waiting for new ones."""
        handled = 0
        while not self.messages.empty():
            await self.handle_message(self.messages.get_nowait())
            handled += 1
        return handled

    async def _dispatch(self) -> None:
        while True:
            message = await self.messages.get()
            try:
                await self.handle_message(message)
            except Exception as e:
                self.logger.error(f"Failed to apply {message.kind.value} report for {message.order_hash}: {e}")

    async def shutdown(self) -> None:
        if self.workers:
            self.logger.info(f"Stopping {len(self.workers)} worker(s)")
        await asyncio.gather(*(self.release(h) for h in list(self.workers)))

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_stop)

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    async def run(self, install_signal_handlers: bool = False) -> None:
        loop = asyncio.get_running_loop()
        if install_signal_handlers:
            self._install_signal_handlers(loop)

        cleared = await self._store(self.store.clear_stale_monitoring)
        if cleared:
            self.logger.warning(f"Cleared stale monitoring flags on {len(cleared)} order(s)")
        self.logger.info(f"Monitor daemon running (pid={self.pid}, scan every {self.scan_interval}s)")

        dispatcher = loop.create_task(self._dispatch(), name="monitor-dispatch")
        try:
            while not self.stop_event.is_set():
                try:
                    await self.scan()
                except Exception as e:
                    self.logger.error(f"Error scanning for new orders: {e}")
                try:
                    await asyncio.wait_for(self.stop_event.wait(), timeout=self.scan_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            dispatcher.cancel()
            await asyncio.gather(dispatcher, return_exceptions=True)
            await self.shutdown()
            await self.drain_messages()
            if install_signal_handlers:
                self._remove_signal_handlers(loop)
            self.logger.info("Monitor daemon stopped")


def run_daemon(config: MonitorConfig, logger: Optional[logging.Logger] = None) -> int:
    """Foreground daemon entry point; owns the PID marker for its lifetime."""
    logger = logger or logging.getLogger(__name__)
    pidfile = PidFile(config.pid_path, logger=logger)
    running = pidfile.running_pid()
    if running is not None and running != os.getpid():
        logger.error(f"Monitor daemon is already running with PID {running}")
        return 1
    pidfile.write(os.getpid())

    store = StatusStore(config.status_path, logger=logger)
    daemon = MonitorDaemon(
        store,
        client_factory=lambda: SwapClient(config.api_url, config.api_key, timeout=config.api_timeout),
        scan_interval=config.scan_interval,
        worker_interval=config.poll_interval,
        logger=logger,
    )
    try:
        asyncio.run(daemon.run(install_signal_handlers=True))
    finally:
        pidfile.remove(owner=os.getpid())
    return 0
