"""Maker order construction and EIP-712 signing.

The relayer only accepts an order together with the maker's signature over
its EIP-712 typed data, bound to the aggregation router on the source chain.
"""
from __future__ import annotations

import secrets as _random
from dataclasses import dataclass
from typing import Any, Dict, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import to_checksum_address, to_hex

from .networks import AGGREGATION_ROUTER_V6

DOMAIN_NAME = "1inch Aggregation Router"
DOMAIN_VERSION = "6"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

ORDER_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Order": [
        {"name": "salt", "type": "uint256"},
        {"name": "maker", "type": "address"},
        {"name": "receiver", "type": "address"},
        {"name": "makerAsset", "type": "address"},
        {"name": "takerAsset", "type": "address"},
        {"name": "makingAmount", "type": "uint256"},
        {"name": "takingAmount", "type": "uint256"},
        {"name": "makerTraits", "type": "uint256"},
    ],
}


@dataclass(frozen=True)
class LimitOrder:
    salt: int
    maker: str
    receiver: str
    maker_asset: str
    taker_asset: str
    making_amount: int
    taking_amount: int
    maker_traits: int = 0

    def to_message(self) -> Dict[str, Any]:
        return {
            "salt": self.salt,
            "maker": to_checksum_address(self.maker),
            "receiver": to_checksum_address(self.receiver),
            "makerAsset": to_checksum_address(self.maker_asset),
            "takerAsset": to_checksum_address(self.taker_asset),
            "makingAmount": self.making_amount,
            "takingAmount": self.taking_amount,
            "makerTraits": self.maker_traits,
        }

    def to_json(self) -> Dict[str, str]:
        """Wire form: addresses as given, integers as decimal strings."""
        return {k: str(v) for k, v in self.to_message().items()}


def build_order(quote, maker: str, salt: Optional[int] = None) -> LimitOrder:
    """Order selling the quoted source amount for at least the preset's end amount."""
    preset = quote.get_preset()
    taking = preset.get("auctionEndAmount") or quote.dst_token_amount or 0
    return LimitOrder(
        salt=salt if salt is not None else int.from_bytes(_random.token_bytes(12), "big"),
        maker=maker,
        receiver=ZERO_ADDRESS,
        maker_asset=quote.params.src_token_address,
        taker_asset=quote.params.dst_token_address,
        making_amount=int(quote.params.amount),
        taking_amount=int(taking),
    )


def typed_data(order: LimitOrder, chain_id: int, verifying_contract: str = AGGREGATION_ROUTER_V6) -> Dict[str, Any]:
    return {
        "types": ORDER_TYPES,
        "primaryType": "Order",
        "domain": {
            "name": DOMAIN_NAME,
            "version": DOMAIN_VERSION,
            "chainId": int(chain_id),
            "verifyingContract": to_checksum_address(verifying_contract),
        },
        "message": order.to_message(),
    }


def sign_order(order: LimitOrder, chain_id: int, private_key: str) -> str:
    signable = encode_typed_data(full_message=typed_data(order, chain_id))
    signed = Account.sign_message(signable, private_key)
    return to_hex(signed.signature)


def recover_signer(order: LimitOrder, chain_id: int, signature: str) -> str:
    signable = encode_typed_data(full_message=typed_data(order, chain_id))
    return Account.recover_message(signable, signature=signature)
