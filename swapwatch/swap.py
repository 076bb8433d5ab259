"""Cross-chain swap initiation: quote, commit to fresh secrets, place, register.

The placed order is appended to the status file as a pending record; the
monitor daemon picks it up from there and submits the secrets as fills
become ready.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .exceptions import SwapClientError
from .hashlock import build_hash_lock, generate_secrets, hash_secret
from .order import build_order, sign_order
from .status_store import OrderRecord, StatusStore
from .swap_client import QuoteParams, SwapClient
from .worker import describe_error


@dataclass
class SwapResult:
    success: bool
    order_hash: Optional[str] = None
    secrets_count: int = 0
    message: str = ""
    error: Optional[str] = None


async def execute_cross_chain_swap(
    client: SwapClient,
    store: StatusStore,
    params: QuoteParams,
    private_key: str,
    logger: Optional[logging.Logger] = None,
) -> SwapResult:
    """Place a swap order signed with ``private_key`` and register it for monitoring.

    API failures are returned as an unsuccessful SwapResult. Failing to record
    a placed order raises, since its secrets would otherwise be lost.
    """
    logger = logger or logging.getLogger(__name__)
    try:
        quote = await client.get_quote(params)
        logger.info(f"Received Fusion+ quote {quote.quote_id} (preset {quote.recommended_preset})")

        secrets = generate_secrets(quote.secrets_count)
        secret_hashes = [hash_secret(s) for s in secrets]
        hash_lock = build_hash_lock(secrets)

        order = build_order(quote, params.wallet_address)
        signature = sign_order(order, params.src_chain_id, private_key)
        response = await client.place_order(
            quote, params.wallet_address, hash_lock, secret_hashes, order, signature
        )
    except SwapClientError as e:
        logger.error(f"Swap failed: {describe_error(e)}")
        return SwapResult(success=False, error=describe_error(e))

    order_hash = response["orderHash"]
    store.add(OrderRecord(
        order_hash=order_hash,
        secrets=secrets,
        secret_hashes=secret_hashes,
        src_chain_id=params.src_chain_id,
        dst_chain_id=params.dst_chain_id,
        amount=str(params.amount),
    ))
    logger.info(f"Order successfully placed: {order_hash}")
    return SwapResult(
        success=True,
        order_hash=order_hash,
        secrets_count=len(secrets),
        message=f"Order placed with {len(secrets)} secret(s) and registered for monitoring.",
    )
