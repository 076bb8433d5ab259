"""Secret generation and hash-lock construction for Fusion+ orders.

A single-fill order commits to ``keccak256(secret)``. A multi-fill order
commits to the root of a Merkle tree whose leaves bind each fill index to its
secret hash, ``keccak256(uint64 index || bytes32 secretHash)``, with the top
16 bits of the root replaced by ``secretsCount - 1``. The counterparty checks
the secrets we reveal against exactly this construction, so the leaf encoding,
leaf ordering and pair hashing below must not change.
"""
from __future__ import annotations

import secrets as _random
from dataclasses import dataclass
from typing import List, Sequence

from eth_abi.packed import encode_packed
from eth_utils import keccak, to_bytes

SECRET_BYTES = 32
_COUNT_SHIFT = 240
_ROOT_MASK = (1 << _COUNT_SHIFT) - 1


@dataclass(frozen=True)
class HashLock:
    value: str
    secrets_count: int

    @property
    def is_multiple_fills(self) -> bool:
        return self.secrets_count > 1


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


def _as_bytes32(value: str) -> bytes:
    raw = to_bytes(hexstr=value)
    if len(raw) != SECRET_BYTES:
        raise ValueError(f"expected 32 bytes, got {len(raw)}")
    return raw


def generate_secret() -> str:
    """Fresh 0x-prefixed 32-byte secret from the OS CSPRNG."""
    return _hex(_random.token_bytes(SECRET_BYTES))


def generate_secrets(count: int) -> List[str]:
    if count < 1:
        raise ValueError("secrets count must be at least 1")
    return [generate_secret() for _ in range(count)]


def hash_secret(secret: str) -> str:
    return _hex(keccak(_as_bytes32(secret)))


def fill_leaf(index: int, secret_hash: str) -> bytes:
    """Merkle leaf binding fill ``index`` to ``secret_hash``."""
    return keccak(encode_packed(["uint64", "bytes32"], [index, _as_bytes32(secret_hash)]))


def _hash_pair(a: bytes, b: bytes) -> bytes:
    return keccak(b"".join(sorted((a, b))))


def merkle_root(leaves: Sequence[bytes]) -> bytes:
    """Root of the sorted-leaves, sorted-pairs Merkle tree.

    Leaves are sorted, laid out from the end of a flat ``2n - 1`` array and
    parents are filled backwards, so the root ends up at index 0.
    """
    if not leaves:
        raise ValueError("cannot build a Merkle tree without leaves")
    ordered = sorted(leaves)
    tree: List[bytes] = [b""] * (2 * len(ordered) - 1)
    for i, leaf in enumerate(ordered):
        tree[len(tree) - 1 - i] = leaf
    for i in range(len(tree) - 1 - len(ordered), -1, -1):
        tree[i] = _hash_pair(tree[2 * i + 1], tree[2 * i + 2])
    return tree[0]


def for_single_fill(secret: str) -> HashLock:
    return HashLock(value=hash_secret(secret), secrets_count=1)


def for_multiple_fills(secret_hashes: Sequence[str]) -> HashLock:
    if len(secret_hashes) < 2:
        raise ValueError("multiple fills need at least two secret hashes, use for_single_fill")
    leaves = [fill_leaf(i, h) for i, h in enumerate(secret_hashes)]
    root = int.from_bytes(merkle_root(leaves), "big")
    with_count = (root & _ROOT_MASK) | ((len(secret_hashes) - 1) << _COUNT_SHIFT)
    return HashLock(value=_hex(with_count.to_bytes(32, "big")), secrets_count=len(secret_hashes))


def build_hash_lock(secrets: Sequence[str]) -> HashLock:
    """Pick the lock form from the number of secrets."""
    if not secrets:
        raise ValueError("at least one secret is required")
    if len(secrets) == 1:
        return for_single_fill(secrets[0])
    return for_multiple_fills([hash_secret(s) for s in secrets])
