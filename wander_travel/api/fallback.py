"""Ordered fallback chains.

Place lookup, geocoding and the round planner's AI steps all follow the same
pattern: try a list of strategies in order, treat an exception as "no result",
and stop at the first strategy whose result is acceptable. ``first_success``
is the one place that decision is made.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class Strategy:
    name: str
    run: Callable[[], Awaitable[Any]]


@dataclass
class Outcome:
    """Result of walking a chain."""

    name: Optional[str]  # strategy that produced ``value``; None if none did
    value: Any = None
    attempted: int = 0
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.name is not None

    @property
    def all_raised(self) -> bool:
        """True when every attempted strategy raised (and at least one ran)."""
        return self.attempted > 0 and len(self.failures) == self.attempted


def has_result(value: Any) -> bool:
    """Default acceptance test: not None and, for containers, not empty."""
    if value is None:
        return False
    try:
        return len(value) > 0
    except TypeError:
        return True


async def first_success(
    strategies: Sequence[Strategy],
    accept: Callable[[Any], bool] = has_result,
    label: str = "lookup",
) -> Outcome:
    """Run *strategies* in order until one returns an accepted value.

    Exceptions are logged and recorded in ``Outcome.failures``; they never
    propagate. The caller decides what an exhausted chain means.
    """
    outcome = Outcome(name=None)
    for strategy in strategies:
        outcome.attempted += 1
        try:
            value = await strategy.run()
        except Exception as e:
            logger.warning(f"{label}: {strategy.name} failed: {e}")
            outcome.failures[strategy.name] = str(e) or e.__class__.__name__
            continue

        if accept(value):
            logger.debug(f"{label}: {strategy.name} succeeded")
            outcome.name = strategy.name
            outcome.value = value
            return outcome

        logger.info(f"{label}: {strategy.name} returned nothing, trying next")
    return outcome
