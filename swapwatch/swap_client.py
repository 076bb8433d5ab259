"""Async HTTP client for the Fusion+ cross-chain swap API.

This module provides the SwapClient class covering the calls the swap flow
and the monitor need: quoting, order placement, order status, fills that are
ready for a secret, secret submission and the maker's active orders.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from .exceptions import SwapClientError
from .hashlock import HashLock
from .order import LimitOrder


@dataclass
class QuoteParams:
    src_chain_id: int
    dst_chain_id: int
    src_token_address: str
    dst_token_address: str
    amount: str
    wallet_address: str
    enable_estimate: bool = True

    def inverted(self) -> "QuoteParams":
        """Same swap in the opposite direction."""
        return QuoteParams(
            src_chain_id=self.dst_chain_id,
            dst_chain_id=self.src_chain_id,
            src_token_address=self.dst_token_address,
            dst_token_address=self.src_token_address,
            amount=self.amount,
            wallet_address=self.wallet_address,
            enable_estimate=self.enable_estimate,
        )

    def to_query(self) -> Dict[str, str]:
        return {
            "srcChain": str(self.src_chain_id),
            "dstChain": str(self.dst_chain_id),
            "srcTokenAddress": self.src_token_address,
            "dstTokenAddress": self.dst_token_address,
            "amount": str(self.amount),
            "walletAddress": self.wallet_address,
            "enableEstimate": "true" if self.enable_estimate else "false",
        }


@dataclass
class Quote:
    params: QuoteParams
    quote_id: Optional[str]
    presets: Dict[str, Dict[str, Any]]
    recommended_preset: str
    src_token_amount: Optional[str] = None
    dst_token_amount: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, params: QuoteParams, data: Dict[str, Any]) -> "Quote":
        presets = data.get("presets")
        if not isinstance(presets, dict) or not presets:
            raise SwapClientError("Quote response has no presets", body=data)
        recommended = data.get("recommendedPreset") or next(iter(presets))
        return cls(
            params=params,
            quote_id=data.get("quoteId"),
            presets={k: v for k, v in presets.items() if isinstance(v, dict)},
            recommended_preset=str(recommended),
            src_token_amount=data.get("srcTokenAmount"),
            dst_token_amount=data.get("dstTokenAmount"),
            raw=data,
        )

    def get_preset(self, name: Optional[str] = None) -> Dict[str, Any]:
        key = name or self.recommended_preset
        preset = self.presets.get(key)
        if preset is None:
            raise SwapClientError(f"Quote has no '{key}' preset (available: {', '.join(self.presets)})")
        return preset

    @property
    def secrets_count(self) -> int:
        count = int(self.get_preset().get("secretsCount", 1))
        if count < 1:
            raise SwapClientError(f"Quote preset requires an invalid secrets count: {count}")
        return count


class SwapClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self.max_retries = max(0, int(max_retries))
        self.backoff_seconds = float(backoff_seconds)

    async def _request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        headers: Dict[str, str] = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        attempt = 0
        while True:
            attempt += 1
            try:
                timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
                async with aiohttp.ClientSession(timeout=timeout_obj) as session:
                    request_kwargs: Dict[str, Any] = {"headers": headers}
                    if params:
                        request_kwargs["params"] = params
                    if body is not None:
                        request_kwargs["json"] = body

                    async with session.request(method, url, **request_kwargs) as resp:
                        text = await resp.text()
                        if resp.status >= 400:
                            raise SwapClientError(f"HTTP {resp.status}: {text}", status=resp.status, body=text)
                        if not text.strip():
                            return {}
                        try:
                            return json.loads(text)
                        except ValueError as json_err:
                            self.logger.error(f"Failed to parse JSON response from {url}: {json_err}, response: {text[:200]}")
                            raise SwapClientError(
                                f"Invalid JSON response: {json_err}", status=resp.status, body=text
                            ) from json_err
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                self.logger.warning(f"Swap API request error ({method} {url}, attempt {attempt}): {e}")
                if attempt > self.max_retries:
                    raise SwapClientError(f"No response from swap API: {e}") from e
                await asyncio.sleep(self.backoff_seconds * attempt)
            except SwapClientError:
                raise
            except Exception as e:  # unexpected
                self.logger.error(f"Unexpected swap client error ({url}): {e}")
                raise SwapClientError(str(e)) from e

    async def get_quote(self, params: QuoteParams) -> Quote:
        data = await self._request("/quoter/v1.0/quote/receive", params=params.to_query())
        if not isinstance(data, dict):
            raise SwapClientError("Quote response is not an object", body=data)
        return Quote.from_response(params, data)

    async def place_order(
        self,
        quote: Quote,
        wallet_address: str,
        hash_lock: HashLock,
        secret_hashes: List[str],
        order: LimitOrder,
        signature: str,
    ) -> Dict[str, Any]:
        """Submit the signed ``order`` for ``quote`` committed to ``hash_lock``.

        Returns the API response, which carries the new ``orderHash``.
        """
        if hash_lock.secrets_count != len(secret_hashes):
            raise ValueError(
                f"hash lock covers {hash_lock.secrets_count} secrets but {len(secret_hashes)} hashes were given"
            )
        payload = {
            "quoteId": quote.quote_id,
            "srcChainId": quote.params.src_chain_id,
            "dstChainId": quote.params.dst_chain_id,
            "walletAddress": wallet_address,
            "preset": quote.recommended_preset,
            "order": order.to_json(),
            "signature": signature,
            "hashLock": hash_lock.value,
            "secretHashes": list(secret_hashes),
        }
        data = await self._request("/relayer/v1.0/submit", method="POST", body=payload)
        if not isinstance(data, dict) or not data.get("orderHash"):
            raise SwapClientError("Order placement response has no orderHash", body=data)
        return data

    async def get_order_status(self, order_hash: str) -> Dict[str, Any]:
        data = await self._request(f"/orders/v1.0/order/status/{order_hash}")
        if not isinstance(data, dict) or "status" not in data:
            raise SwapClientError(f"Order status response for {order_hash} has no status", body=data)
        return data

    async def get_ready_to_accept_secret_fills(self, order_hash: str) -> Dict[str, Any]:
        data = await self._request(f"/orders/v1.0/order/ready-to-accept-secret-fills/{order_hash}")
        if not isinstance(data, dict):
            raise SwapClientError(f"Ready fills response for {order_hash} is not an object", body=data)
        fills = data.get("fills") or []
        if not isinstance(fills, list):
            raise SwapClientError(f"Ready fills response for {order_hash} has no fills list", body=data)
        return {**data, "fills": fills}

    async def submit_secret(self, order_hash: str, secret: str) -> Dict[str, Any]:
        data = await self._request(
            "/relayer/v1.0/submit/secret",
            method="POST",
            body={"orderHash": order_hash, "secret": secret},
        )
        return data if isinstance(data, dict) else {}

    async def get_orders_by_maker(self, address: str, page: int = 1, limit: int = 100) -> Dict[str, Any]:
        """Fetch orders placed by ``address``."""
        data = await self._request(
            f"/orders/v1.0/order/maker/{address}",
            params={"page": str(page), "limit": str(max(1, min(int(limit), 500)))},
        )
        if isinstance(data, list):
            return {"items": data}
        if not isinstance(data, dict):
            raise SwapClientError("Orders response is not an object", body=data)
        return data
