"""Research pipeline: planning, grading, fusion, verdicts, caching and orchestration."""

from market_research.research.bayesian import apply_bayesian_reasoning, infer_source_signal
from market_research.research.cache import (
    CacheEntry,
    InMemoryResearchStore,
    ResearchCache,
    SqlResearchStore,
)
from market_research.research.gatherer import GathererError, SearchEvidenceGatherer
from market_research.research.grading import grade_source, sort_graded_sources
from market_research.research.orchestrator import ResearchOrchestrator
from market_research.research.protocols import (
    EvidenceGatherer,
    MarketCatalog,
    MultiAgentAnalyzer,
    ResearchStore,
    SearchClient,
)
from market_research.research.strategy import plan_research_strategy
from market_research.research.verdict import resolve_verdict

__all__ = [
    "CacheEntry",
    "EvidenceGatherer",
    "GathererError",
    "InMemoryResearchStore",
    "MarketCatalog",
    "MultiAgentAnalyzer",
    "ResearchCache",
    "ResearchOrchestrator",
    "ResearchStore",
    "SearchClient",
    "SearchEvidenceGatherer",
    "SqlResearchStore",
    "apply_bayesian_reasoning",
    "grade_source",
    "infer_source_signal",
    "plan_research_strategy",
    "resolve_verdict",
    "sort_graded_sources",
]
