"""Token pricing for the Anthropic analyzer backend."""

from __future__ import annotations

import os
from dataclasses import dataclass

# Sonnet family list prices.
_DEFAULT_INPUT_USD_PER_MTOK = 3.0
_DEFAULT_OUTPUT_USD_PER_MTOK = 15.0


@dataclass(frozen=True)
class AnthropicPricing:
    """USD per million tokens for one model."""

    input_usd_per_mtok: float = _DEFAULT_INPUT_USD_PER_MTOK
    output_usd_per_mtok: float = _DEFAULT_OUTPUT_USD_PER_MTOK

    @classmethod
    def from_env(cls) -> AnthropicPricing:
        """Use ANTHROPIC_INPUT/OUTPUT_USD_PER_MTOK when both are set."""
        input_rate = _positive_env("ANTHROPIC_INPUT_USD_PER_MTOK")
        output_rate = _positive_env("ANTHROPIC_OUTPUT_USD_PER_MTOK")
        if input_rate is None or output_rate is None:
            return cls()
        return cls(input_usd_per_mtok=input_rate, output_usd_per_mtok=output_rate)

    def pass_cost_usd(self, response: object) -> float:
        """Cost of one Messages API response, or 0.0 when it reports no usage."""
        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "input_tokens", None)
        output_tokens = getattr(usage, "output_tokens", None)
        if not isinstance(input_tokens, int) or not isinstance(output_tokens, int):
            return 0.0
        return (
            input_tokens * self.input_usd_per_mtok + output_tokens * self.output_usd_per_mtok
        ) / 1_000_000


def _positive_env(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a float") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive")
    return value
