"""JSON-backed status file for placed orders.

The whole file is one document, ``{"orders": [...]}``, replaced on every
write. Writers go through ``StatusStore.transaction()``, which holds an
in-process lock and an ``fcntl`` lock on a sibling ``.lock`` file for the
whole read-modify-write, so the daemon, the swap flow and the CLI never lose
each other's updates.
"""
from __future__ import annotations

import fcntl
import json
import logging
import os
import shutil
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .exceptions import DuplicateOrderError

STATUS_PENDING = "pending"
STATUS_EXECUTED = "executed"

_FILE_MODE = 0o600

# Marker for a document that could not be parsed at all
_UNREADABLE = object()


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class OrderRecord:
    order_hash: str
    secrets: List[str]
    secret_hashes: List[str]
    status: str = STATUS_PENDING
    start_time: int = field(default_factory=now_ms)
    last_updated: int = field(default_factory=now_ms)
    is_monitoring: bool = False
    pid: Optional[int] = None
    submitted_fills: List[int] = field(default_factory=list)
    paused: bool = False
    src_chain_id: Optional[int] = None
    dst_chain_id: Optional[int] = None
    amount: Optional[str] = None

    def __post_init__(self):
        if len(self.secrets) != len(self.secret_hashes):
            raise ValueError(
                f"order {self.order_hash}: {len(self.secrets)} secrets but {len(self.secret_hashes)} hashes"
            )

    @property
    def is_executed(self) -> bool:
        return self.status == STATUS_EXECUTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderHash": self.order_hash,
            "secrets": list(self.secrets),
            "secretHashes": list(self.secret_hashes),
            "status": self.status,
            "startTime": self.start_time,
            "lastUpdated": self.last_updated,
            "isMonitoring": self.is_monitoring,
            "pid": self.pid,
            "submittedFills": list(self.submitted_fills),
            "paused": self.paused,
            "srcChainId": self.src_chain_id,
            "dstChainId": self.dst_chain_id,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderRecord":
        pid = data.get("pid")
        return cls(
            order_hash=str(data["orderHash"]),
            secrets=[str(s) for s in data.get("secrets") or []],
            secret_hashes=[str(h) for h in data.get("secretHashes") or []],
            status=str(data.get("status") or STATUS_PENDING),
            start_time=int(data.get("startTime") or 0),
            last_updated=int(data.get("lastUpdated") or 0),
            is_monitoring=bool(data.get("isMonitoring", False)),
            pid=int(pid) if pid is not None else None,
            submitted_fills=[int(i) for i in data.get("submittedFills") or []],
            paused=bool(data.get("paused", False)),
            src_chain_id=data.get("srcChainId"),
            dst_chain_id=data.get("dstChainId"),
            amount=data.get("amount"),
        )


class StatusStore:
    def __init__(self, path: str, logger: Optional[logging.Logger] = None):
        self.path = path
        self.lock_path = path + ".lock"
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()

    def _load(self) -> Tuple[List[OrderRecord], List[Any]]:
        """Parsed records plus the raw entries that could not be parsed.

        Unparsed entries (malformed or duplicate) are carried through every
        write unchanged so their secrets are never dropped from the file.
        """
        if not os.path.exists(self.path):
            return [], []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Could not read status file {self.path}: {e}")
            return [], [_UNREADABLE]
        orders = doc.get("orders") if isinstance(doc, dict) else None
        if not isinstance(orders, list):
            self.logger.warning(f"Status file {self.path} has no orders list, treating as empty")
            return [], [_UNREADABLE]

        records: List[OrderRecord] = []
        unparsed: List[Any] = []
        seen = set()
        for raw in orders:
            try:
                record = OrderRecord.from_dict(raw)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                self.logger.warning(f"Skipping malformed order record: {e}")
                unparsed.append(raw)
                continue
            if record.order_hash in seen:
                self.logger.warning(f"Skipping duplicate order record {record.order_hash}")
                unparsed.append(raw)
                continue
            seen.add(record.order_hash)
            records.append(record)
        return records, unparsed

    def read(self) -> List[OrderRecord]:
        """All records; an absent or unreadable file reads as empty."""
        return self._load()[0]

    def _set_aside(self) -> str:
        """Move an unreadable status file out of the way, keeping its bytes."""
        target = f"{self.path}.corrupt-{now_ms()}"
        os.replace(self.path, target)
        self.logger.error(f"Status file {self.path} is unreadable, moved it to {target}")
        return target

    def write(self, records: List[OrderRecord], preserved: Sequence[Any] = ()) -> None:
        """Replace the whole document with ``records`` followed by ``preserved`` raw entries."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        if os.path.exists(self.path):
            try:
                shutil.copy2(self.path, self.path + ".backup")
            except OSError as e:
                self.logger.debug(f"Status backup skipped: {e}")

        orders = [r.to_dict() for r in records] + list(preserved)
        tmp_path = f"{self.path}.{os.getpid()}.tmp"
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"orders": orders}, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    @contextmanager
    def transaction(self) -> Iterator[List[OrderRecord]]:
        """Exclusive read-modify-write; the yielded list is written back on success."""
        with self._lock:
            os.makedirs(os.path.dirname(os.path.abspath(self.lock_path)), exist_ok=True)
            with open(self.lock_path, "a") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    records, unparsed = self._load()
                    if _UNREADABLE in unparsed:
                        self._set_aside()
                        unparsed = []
                    yield records
                    self.write(records, unparsed)
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def get(self, order_hash: str) -> Optional[OrderRecord]:
        for record in self.read():
            if record.order_hash == order_hash:
                return record
        return None

    def add(self, record: OrderRecord) -> None:
        with self.transaction() as records:
            if any(r.order_hash == record.order_hash for r in records):
                raise DuplicateOrderError(f"Order {record.order_hash} is already registered")
            records.append(record)

    def _mutate(self, order_hash: str, fn) -> bool:
        with self.transaction() as records:
            for record in records:
                if record.order_hash == order_hash:
                    return bool(fn(record))
        return False

    def update_status(self, order_hash: str, status: str) -> bool:
        """Record a remote status; executed records keep their status."""
        def apply(record: OrderRecord) -> bool:
            if record.is_executed:
                return False
            record.status = status
            record.last_updated = now_ms()
            return True
        return self._mutate(order_hash, apply)

    def set_monitoring(self, order_hash: str, pid: int) -> bool:
        def apply(record: OrderRecord) -> bool:
            record.is_monitoring = True
            record.pid = pid
            return True
        return self._mutate(order_hash, apply)

    def clear_monitoring(self, order_hash: str) -> bool:
        def apply(record: OrderRecord) -> bool:
            record.is_monitoring = False
            record.pid = None
            return True
        return self._mutate(order_hash, apply)

    def record_fill(self, order_hash: str, idx: int) -> bool:
        def apply(record: OrderRecord) -> bool:
            if idx not in record.submitted_fills:
                record.submitted_fills.append(idx)
                record.submitted_fills.sort()
            record.last_updated = now_ms()
            return True
        return self._mutate(order_hash, apply)

    def set_paused(self, order_hash: str, paused: bool) -> bool:
        def apply(record: OrderRecord) -> bool:
            record.paused = paused
            return True
        return self._mutate(order_hash, apply)

    def clear_stale_monitoring(self) -> List[str]:
        """Reset monitoring flags left behind by a daemon that is gone."""
        cleared: List[str] = []
        with self.transaction() as records:
            for record in records:
                if record.is_monitoring or record.pid is not None:
                    record.is_monitoring = False
                    record.pid = None
                    cleared.append(record.order_hash)
        return cleared
