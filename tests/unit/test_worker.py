"""Tests for the per-order polling worker."""
import asyncio

from swapwatch.exceptions import SwapClientError
from swapwatch.worker import (
    SECRET_SUBMITTED,
    MessageKind,
    OrderWorker,
    WorkerOrder,
    WorkerState,
    describe_error,
)

SECRETS = ["0x" + "11" * 32, "0x" + "22" * 32]
HASHES = ["0x" + "aa" * 32, "0x" + "bb" * 32]


class FakeSwapClient:
    """Scripted stand-in for SwapClient."""

    def __init__(self, statuses=None, fills=None, failing_secrets=None):
        self.statuses = list(statuses or ["pending"])
        self.fills = list(fills or [[]])
        self.failing_secrets = dict(failing_secrets or {})
        self.submitted = []

    async def get_order_status(self, order_hash):
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, Exception):
            raise status
        return {"status": status}

    async def get_ready_to_accept_secret_fills(self, order_hash):
        fills = self.fills.pop(0) if len(self.fills) > 1 else self.fills[0]
        if isinstance(fills, Exception):
            raise fills
        return {"fills": fills}

    async def submit_secret(self, order_hash, secret):
        remaining = self.failing_secrets.get(secret, 0)
        if remaining:
            self.failing_secrets[secret] = remaining - 1
            raise SwapClientError("HTTP 500: relayer down", status=500, body="relayer down")
        self.submitted.append(secret)
        return {}


def drain(queue):
    messages = []
    while not queue.empty():
        messages.append(queue.get_nowait())
    return messages


def make_worker(client, queue, **kwargs):
    order = WorkerOrder("0xorder1", list(SECRETS), list(HASHES))
    return OrderWorker(order, client, queue, poll_interval=0.01, **kwargs)


def test_tick_reports_status():
    async def run_test():
        queue = asyncio.Queue()
        worker = make_worker(FakeSwapClient(statuses=["pending"]), queue)

        await worker.tick()

        messages = drain(queue)
        assert [(m.kind, m.data) for m in messages] == [(MessageKind.STATUS, {"status": "pending"})]

    asyncio.run(run_test())


def test_ready_fills_get_their_own_secret():
    async def run_test():
        queue = asyncio.Queue()
        client = FakeSwapClient(fills=[[{"idx": 1}]])
        worker = make_worker(client, queue)

        await worker.tick()

        assert client.submitted == [SECRETS[1]]
        fills = [m for m in drain(queue) if m.data.get("fillIdx") is not None]
        assert len(fills) == 1
        assert fills[0].kind is MessageKind.STATUS
        assert fills[0].data == {"status": SECRET_SUBMITTED, "fillIdx": 1}

    asyncio.run(run_test())


def test_accepted_fill_is_not_resubmitted():
    async def run_test():
        queue = asyncio.Queue()
        client = FakeSwapClient(fills=[[{"idx": 0}]])
        worker = make_worker(client, queue)

        await worker.tick()
        await worker.tick()

        assert client.submitted == [SECRETS[0]]
        assert worker.accepted_fills == {0}

    asyncio.run(run_test())


def test_failed_submission_does_not_block_other_fills():
    async def run_test():
        queue = asyncio.Queue()
        client = FakeSwapClient(fills=[[{"idx": 0}, {"idx": 1}]], failing_secrets={SECRETS[0]: 1})
        worker = make_worker(client, queue)

        await worker.tick()

        assert client.submitted == [SECRETS[1]]
        errors = [m for m in drain(queue) if m.kind is MessageKind.ERROR]
        assert len(errors) == 1
        assert errors[0].data["fillIdx"] == 0
        assert "Error submitting secret for fill 0" in errors[0].data["error"]
        assert "API error: 500" in errors[0].data["error"]

        # Retried on the next tick
        await worker.tick()
        assert client.submitted == [SECRETS[1], SECRETS[0]]

    asyncio.run(run_test())


def test_out_of_range_fill_is_reported():
    async def run_test():
        queue = asyncio.Queue()
        client = FakeSwapClient(fills=[[{"idx": 5}]])
        worker = make_worker(client, queue)

        await worker.tick()

        assert client.submitted == []
        errors = [m for m in drain(queue) if m.kind is MessageKind.ERROR]
        assert errors[0].data["fillIdx"] == 5

    asyncio.run(run_test())


def test_poll_errors_are_reported_not_raised():
    async def run_test():
        queue = asyncio.Queue()
        client = FakeSwapClient(
            statuses=[SwapClientError("down", status=503, body="unavailable")],
            fills=[SwapClientError("down")],
        )
        worker = make_worker(client, queue)

        await worker.tick()

        errors = [m.data["error"] for m in drain(queue)]
        assert any(e.startswith("Error checking order status: API error: 503") for e in errors)
        assert any(e.startswith("Error getting fills ready for secret submission") for e in errors)
        assert worker.state is WorkerState.IDLE

    asyncio.run(run_test())


def test_worker_completes_on_executed():
    async def run_test():
        queue = asyncio.Queue()
        client = FakeSwapClient(statuses=["pending", "executed"])
        worker = make_worker(client, queue)

        task = worker.start()
        await asyncio.wait_for(task, timeout=2)

        assert worker.state is WorkerState.COMPLETED
        kinds = [m.kind for m in drain(queue)]
        assert kinds.count(MessageKind.COMPLETE) == 1
        assert kinds[-1] is MessageKind.COMPLETE

    asyncio.run(run_test())


def test_worker_custom_terminal_status():
    async def run_test():
        queue = asyncio.Queue()
        worker = make_worker(FakeSwapClient(statuses=["refunded"]), queue, terminal_status="refunded")

        await asyncio.wait_for(worker.start(), timeout=2)

        assert worker.state is WorkerState.COMPLETED

    asyncio.run(run_test())


def test_stop_ends_poll_loop():
    async def run_test():
        queue = asyncio.Queue()
        worker = make_worker(FakeSwapClient(statuses=["pending"]), queue)

        task = worker.start()
        assert worker.start() is task
        await asyncio.sleep(0.05)
        worker.stop()
        await asyncio.wait_for(task, timeout=2)

        assert worker.state is WorkerState.STOPPED
        assert worker.is_running is False

    asyncio.run(run_test())


def test_describe_error_truncates_body():
    error = SwapClientError("HTTP 400", status=400, body="x" * 500)
    assert describe_error(error) == "API error: 400 - " + "x" * 200
    assert describe_error(SwapClientError("No response")) == "No response"
