"""Verdict resolution: fixed thresholds over the posterior."""

from __future__ import annotations

from typing import TYPE_CHECKING

from market_research.constants import VERDICT_PROBABILITY_THRESHOLD
from market_research.schemas import FinalVerdict

if TYPE_CHECKING:
    from market_research.schemas import BayesianProbabilities


def resolve_verdict(probabilities: BayesianProbabilities) -> FinalVerdict:
    """Map a posterior to YES/NO/UNCERTAIN.

    YES when P(yes) > 0.65, else NO when P(no) > 0.65, else UNCERTAIN. The boundary is
    exclusive: exactly 0.65 resolves to UNCERTAIN.
    """
    if probabilities.yes > VERDICT_PROBABILITY_THRESHOLD:
        return FinalVerdict.YES
    if probabilities.no > VERDICT_PROBABILITY_THRESHOLD:
        return FinalVerdict.NO
    return FinalVerdict.UNCERTAIN
