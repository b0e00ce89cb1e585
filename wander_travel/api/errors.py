"""Error taxonomy for the recommendation pipeline.

Everything below ``FatalConfiguration`` is absorbed inside the pipeline and
downgraded to a degraded-but-successful result. ``LLMUnavailable`` is the one
runtime error the boundary layer is expected to see.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


class WanderTravelError(Exception):
    """Base class for all pipeline errors."""


class ProviderTierFailure(WanderTravelError):
    """A single external lookup failed; the next tier is tried."""

    def __init__(self, tier: str, message: str):
        super().__init__(f"{tier}: {message}")
        self.tier = tier


class AllTiersFailed(WanderTravelError):
    """Every tier of a lookup chain raised."""

    def __init__(self, operation: str, failures: Optional[Dict[str, str]] = None):
        self.operation = operation
        self.failures = failures or {}
        detail = ", ".join(f"{k}={v}" for k, v in self.failures.items()) or "no tiers configured"
        super().__init__(f"All tiers failed for {operation}: {detail}")


class BudgetExhausted(WanderTravelError):
    """An iteration or retry budget ran out."""


class LLMUnavailable(WanderTravelError):
    """The upstream chat endpoint could not be reached."""


class FatalConfiguration(WanderTravelError, ValueError):
    """A required credential or setting is missing at startup."""


@dataclass
class ExtractionFailure:
    """A candidate record that could not be turned into a Stop.

    Recorded in diagnostics; never raised.
    """

    kind: str  # "parse_error" | "invalid_structure"
    index: int
    message: str
    preview: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
