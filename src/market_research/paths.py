"""
Centralized path defaults for the market research engine.

All paths are expressed relative to the current working directory. Every path default can be
overridden via CLI options.
"""

from pathlib import Path

DEFAULT_DATA_DIR = Path("data")
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "market_research.db"

__all__ = [
    "DEFAULT_DATA_DIR",
    "DEFAULT_DB_PATH",
]
