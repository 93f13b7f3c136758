"""Centralized policy constants for the market research engine.

Named constants for the policy-encoding literals used across the pipeline. Keeping them in one
module makes the verdict, timeout and weighting policy easy to audit.
"""

from __future__ import annotations

from datetime import timedelta

# =============================================================================
# Stage Timeouts
# =============================================================================

# Deadline for the evidence-gathering stage.
#
# Used by:
# - research/orchestrator.py: GATHERING stage race
#
# A timeout is a hard failure for the run; partial results are discarded.
DEFAULT_GATHER_TIMEOUT_SECONDS: float = 60.0

# Deadline for the multi-agent analysis stage.
#
# Used by:
# - research/orchestrator.py: ANALYZING stage race
DEFAULT_ANALYZE_TIMEOUT_SECONDS: float = 90.0

# =============================================================================
# Cache Policy
# =============================================================================

# Maximum age of a stored result before it stops counting as a cache hit.
#
# Used by:
# - research/cache.py: ResearchCache.is_stale()
#
# Stale entries stay in storage for history; they are only skipped by lookups.
CACHE_STALENESS_WINDOW: timedelta = timedelta(hours=24)

# Default page size for research history listings.
#
# Used by:
# - research/cache.py: ResearchCache.history()
# - cli/research.py: history command
DEFAULT_HISTORY_LIMIT: int = 20

# =============================================================================
# Verdict Policy
# =============================================================================

# Probability an outcome must strictly exceed to become the verdict.
#
# Used by:
# - research/verdict.py: resolve_verdict()
#
# 0.65 itself resolves to UNCERTAIN. Not user-configurable.
VERDICT_PROBABILITY_THRESHOLD: float = 0.65

# =============================================================================
# Source Grading
# =============================================================================

# Average component score cutoffs for letter grades (checked top-down).
GRADE_A_MIN_SCORE: float = 0.8
GRADE_B_MIN_SCORE: float = 0.6
GRADE_C_MIN_SCORE: float = 0.4

# Reputable domains (matched as a suffix of the source domain).
CREDIBLE_DOMAINS: tuple[str, ...] = (
    "reuters.com",
    "bloomberg.com",
    "wsj.com",
    "ft.com",
    "economist.com",
    "nytimes.com",
    "washingtonpost.com",
    "bbc.com",
    "bbc.co.uk",
    "theguardian.com",
    "apnews.com",
    "ap.org",
    "cnn.com",
    "forbes.com",
    "cnbc.com",
    "techcrunch.com",
    "coindesk.com",
    "politico.com",
    "github.com",
    "stackoverflow.com",
    "wikipedia.org",
)

# User-generated or mixed-quality domains.
LOW_CREDIBILITY_DOMAINS: tuple[str, ...] = (
    "blogspot.com",
    "wordpress.com",
    "medium.com",
    "substack.com",
    "reddit.com",
    "x.com",
    "twitter.com",
    "tiktok.com",
)

# =============================================================================
# Bayesian Fusion
# =============================================================================

# Per-grade credibility weight applied to a single source's likelihood update.
#
# Used by:
# - research/bayesian.py: apply_bayesian_reasoning()
GRADE_EVIDENCE_WEIGHTS: dict[str, float] = {"A": 1.0, "B": 0.6, "C": 0.3, "D": 0.1}

# Per-grade share multipliers for the reported `weighted_evidence` breakdown.
GRADE_SHARE_MULTIPLIERS: dict[str, float] = {"A": 4.0, "B": 2.0, "C": 1.0, "D": 0.5}

# Per-grade quality value (0..1) used by the confidence formula.
GRADE_QUALITY_VALUES: dict[str, float] = {"A": 1.0, "B": 0.75, "C": 0.5, "D": 0.25}

# Scale of a full-strength, full-weight source update: the matching outcome is multiplied
# by (1 + weight * strength * SOURCE_LIKELIHOOD_SCALE).
SOURCE_LIKELIHOOD_SCALE: float = 1.5

# Scale of the synthesis-pass update: the aggregator's stance is multiplied by
# (1 + confidence * ANALYSIS_LIKELIHOOD_SCALE).
ANALYSIS_LIKELIHOOD_SCALE: float = 1.0

# Strength assigned to sources with no clear lean (counted toward UNCERTAIN).
NEUTRAL_SOURCE_STRENGTH: float = 0.5

# Number of sources at which the volume term of the confidence formula reaches ~63%.
CONFIDENCE_VOLUME_SCALE: float = 4.0

# =============================================================================
# Strategy & Gathering Limits
# =============================================================================

# Maximum number of search queries in a research strategy.
MAX_SEARCH_QUERIES: int = 6

# Results requested per query from the search collaborator.
DEFAULT_RESULTS_PER_QUERY: int = 5

# Maximum concurrent search requests per gather call.
DEFAULT_GATHER_CONCURRENCY: int = 3

# Maximum number of unique sources handed to grading.
DEFAULT_MAX_SOURCES: int = 25
