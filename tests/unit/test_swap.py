"""Tests for cross-chain swap initiation."""
import asyncio

import pytest

from swapwatch.exceptions import SwapClientError
from eth_account import Account

from swapwatch.hashlock import build_hash_lock, hash_secret
from swapwatch.order import recover_signer
from swapwatch.status_store import STATUS_PENDING, StatusStore
from swapwatch.swap import execute_cross_chain_swap
from swapwatch.swap_client import Quote, QuoteParams

PRIVATE_KEY = "0x" + "4c" * 32
MAKER = Account.from_key(PRIVATE_KEY).address


def make_params():
    return QuoteParams(
        src_chain_id=8453,
        dst_chain_id=42161,
        src_token_address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        dst_token_address="0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        amount="100000",
        wallet_address=MAKER,
    )


class FakeSwapClient:
    def __init__(self, secrets_count=1, order_hash="0xorder1", fail_on=None):
        self.secrets_count = secrets_count
        self.order_hash = order_hash
        self.fail_on = fail_on
        self.placed = []

    async def get_quote(self, params):
        if self.fail_on == "quote":
            raise SwapClientError("HTTP 400", status=400, body="insufficient liquidity")
        return Quote.from_response(params, {
            "quoteId": "quote-1",
            "recommendedPreset": "fast",
            "dstTokenAmount": "99000",
            "presets": {"fast": {"secretsCount": self.secrets_count, "auctionEndAmount": "98500"}},
        })

    async def place_order(self, quote, wallet_address, hash_lock, secret_hashes, order, signature):
        if self.fail_on == "place":
            raise SwapClientError("No response from swap API")
        self.placed.append((quote, wallet_address, hash_lock, secret_hashes, order, signature))
        return {"orderHash": self.order_hash}


def test_swap_registers_pending_order(tmp_path):
    store = StatusStore(str(tmp_path / "order-status.json"))
    client = FakeSwapClient(secrets_count=1)

    result = asyncio.run(execute_cross_chain_swap(client, store, make_params(), PRIVATE_KEY))

    assert result.success is True
    assert result.order_hash == "0xorder1"
    assert result.secrets_count == 1

    record = store.get("0xorder1")
    assert record.status == STATUS_PENDING
    assert record.is_monitoring is False
    assert record.src_chain_id == 8453
    assert record.amount == "100000"
    assert record.secret_hashes == [hash_secret(record.secrets[0])]

    _, wallet, hash_lock, secret_hashes, _, _ = client.placed[0]
    assert wallet == MAKER
    assert hash_lock == build_hash_lock(record.secrets)
    assert secret_hashes == record.secret_hashes


def test_swap_with_multiple_fills(tmp_path):
    store = StatusStore(str(tmp_path / "order-status.json"))
    client = FakeSwapClient(secrets_count=3)

    result = asyncio.run(execute_cross_chain_swap(client, store, make_params(), PRIVATE_KEY))

    record = store.get(result.order_hash)
    assert len(record.secrets) == 3
    assert len(set(record.secrets)) == 3
    _, _, hash_lock, _, _, _ = client.placed[0]
    assert hash_lock.secrets_count == 3
    assert int(hash_lock.value, 16) >> 240 == 2


@pytest.mark.parametrize("fail_on", ["quote", "place"])
def test_api_failure_returns_unsuccessful_result(tmp_path, fail_on):
    store = StatusStore(str(tmp_path / "order-status.json"))

    result = asyncio.run(execute_cross_chain_swap(FakeSwapClient(fail_on=fail_on), store, make_params(), PRIVATE_KEY))

    assert result.success is False
    assert result.error
    assert store.read() == []


def test_quote_failure_describes_api_error(tmp_path):
    store = StatusStore(str(tmp_path / "order-status.json"))

    result = asyncio.run(execute_cross_chain_swap(FakeSwapClient(fail_on="quote"), store, make_params(), PRIVATE_KEY))

    assert result.error == "API error: 400 - insufficient liquidity"


def test_placed_order_is_signed_by_maker(tmp_path):
    store = StatusStore(str(tmp_path / "order-status.json"))
    client = FakeSwapClient()

    asyncio.run(execute_cross_chain_swap(client, store, make_params(), PRIVATE_KEY))

    _, _, _, _, order, signature = client.placed[0]
    assert order.maker == MAKER
    assert order.making_amount == 100000
    assert order.taking_amount == 98500
    assert recover_signer(order, 8453, signature) == MAKER
    # Bound to the source chain
    assert recover_signer(order, 42161, signature) != MAKER
