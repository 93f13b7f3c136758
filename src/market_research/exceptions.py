"""Structured errors raised by the research pipeline."""

from __future__ import annotations

from enum import Enum


class ResearchStage(str, Enum):
    """States of a single research run."""

    CACHE_CHECK = "cache_check"
    PLANNING = "planning"
    GATHERING = "gathering"
    GRADING = "grading"
    ANALYZING = "analyzing"
    REASONING = "reasoning"
    RESOLVING = "resolving"
    PERSISTING = "persisting"
    DONE = "done"
    ERROR = "error"


class ResearchErrorKind(str, Enum):
    """Failure signals surfaced to callers."""

    MALFORMED_REQUEST = "malformed_request"
    MARKET_NOT_FOUND = "market_not_found"
    CATALOG_FAILURE = "catalog_failure"
    GATHERER_TIMEOUT = "gatherer_timeout"
    GATHERER_EMPTY_RESULT = "gatherer_empty_result"
    GATHERER_FAILURE = "gatherer_failure"
    ANALYZER_TIMEOUT = "analyzer_timeout"
    ANALYZER_FAILURE = "analyzer_failure"


class ResearchError(Exception):
    """Base exception for a failed research run."""

    kind: ResearchErrorKind

    def __init__(self, message: str, *, stage: ResearchStage) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self) -> dict[str, str]:
        """Return a transport-agnostic error payload."""
        return {"kind": self.kind.value, "stage": self.stage.value, "message": self.message}


class MalformedRequestError(ResearchError):
    """Request failed validation; no pipeline stage ran."""

    kind = ResearchErrorKind.MALFORMED_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message, stage=ResearchStage.CACHE_CHECK)


class MarketNotFoundError(ResearchError):
    """The market catalog has no market with the requested id."""

    kind = ResearchErrorKind.MARKET_NOT_FOUND

    def __init__(self, market_id: str) -> None:
        super().__init__(f"Market not found: {market_id}", stage=ResearchStage.PLANNING)
        self.market_id = market_id


class CatalogFailureError(ResearchError):
    """The market catalog raised while looking up the market."""

    kind = ResearchErrorKind.CATALOG_FAILURE

    def __init__(self, message: str) -> None:
        super().__init__(f"Market lookup failed: {message}", stage=ResearchStage.PLANNING)


class GathererTimeoutError(ResearchError):
    """Evidence gathering exceeded its deadline."""

    kind = ResearchErrorKind.GATHERER_TIMEOUT

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Evidence gathering timed out after {timeout_seconds:g} seconds",
            stage=ResearchStage.GATHERING,
        )
        self.timeout_seconds = timeout_seconds


class EmptyEvidenceError(ResearchError):
    """Evidence gathering completed but returned no sources."""

    kind = ResearchErrorKind.GATHERER_EMPTY_RESULT

    def __init__(self, market_id: str) -> None:
        super().__init__(
            f"No research results found for market {market_id}",
            stage=ResearchStage.GATHERING,
        )


class GathererFailureError(ResearchError):
    """Evidence gathering raised before returning."""

    kind = ResearchErrorKind.GATHERER_FAILURE

    def __init__(self, message: str) -> None:
        super().__init__(f"Evidence gathering failed: {message}", stage=ResearchStage.GATHERING)


class AnalyzerTimeoutError(ResearchError):
    """Multi-agent analysis exceeded its deadline."""

    kind = ResearchErrorKind.ANALYZER_TIMEOUT

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Multi-agent analysis timed out after {timeout_seconds:g} seconds",
            stage=ResearchStage.ANALYZING,
        )
        self.timeout_seconds = timeout_seconds


class AnalyzerFailureError(ResearchError):
    """Multi-agent analysis raised before returning."""

    kind = ResearchErrorKind.ANALYZER_FAILURE

    def __init__(self, message: str) -> None:
        super().__init__(f"Multi-agent analysis failed: {message}", stage=ResearchStage.ANALYZING)
