"""Factory function for analyzer backends."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from ._claude import ClaudeAgentAnalyzer
from ._mock import MockAgentAnalyzer

if TYPE_CHECKING:
    from market_research.research.protocols import MultiAgentAnalyzer

ANALYZER_BACKEND_ENV = "MARKET_RESEARCH_ANALYZER_BACKEND"


def get_analyzer(backend: str | None = None) -> MultiAgentAnalyzer:
    """Construct an analyzer from config.

    Args:
        backend: Explicit backend override ("anthropic" or "mock"). When None, reads
            MARKET_RESEARCH_ANALYZER_BACKEND (default: "anthropic").

    Returns:
        An analyzer instance.
    """
    backend_raw = backend
    if backend_raw is None:
        backend_raw = os.getenv(ANALYZER_BACKEND_ENV) or "anthropic"
    backend_value = backend_raw.strip().lower()

    if backend_value == "mock":
        return MockAgentAnalyzer()
    if backend_value == "anthropic":
        return ClaudeAgentAnalyzer()

    raise ValueError(f"Unknown analyzer backend: {backend_value!r}")
