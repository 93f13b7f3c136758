"""
Market Research Engine.

Evidence-graded YES/NO/UNCERTAIN verdicts for prediction-market questions.
"""

__version__ = "0.1.0"

# Configure structlog once at import time (quiet by default).
from market_research.logging import configure_structlog

configure_structlog()

__all__ = [
    "__version__",
]
