"""Cross-chain swap order monitor package."""

__version__ = "1.0.0"

__all__ = [
    "cli",
    "config",
    "daemon",
    "hashlock",
    "status_store",
    "swap",
    "swap_client",
    "worker",
]
