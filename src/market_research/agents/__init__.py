"""Multi-agent analysis backends.

- `MockAgentAnalyzer` stays available for tests/CI and offline runs.
- `ClaudeAgentAnalyzer` (Anthropic) runs the Analyst -> Critic -> Aggregator passes.
"""

from __future__ import annotations

from ._claude import ClaudeAgentAnalyzer
from ._factory import ANALYZER_BACKEND_ENV, get_analyzer
from ._mock import MockAgentAnalyzer
from ._schemas import AggregatorToolInput, AnalystToolInput, CriticToolInput

__all__ = [
    "ANALYZER_BACKEND_ENV",
    "AggregatorToolInput",
    "AnalystToolInput",
    "ClaudeAgentAnalyzer",
    "CriticToolInput",
    "MockAgentAnalyzer",
    "get_analyzer",
]
