"""
Circuit Breaker

Cooldown switch tripped by provider quota errors. While open, the
responder makes no provider calls and serves basic answers instead.

One instance serves every workspace: tripping it disables AI answers
globally until it expires. There is no half-open trial call.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from ..common.clock import Clock, utc_now

logger = logging.getLogger("insightops.retriever.circuit_breaker")


class CircuitBreaker:
    """Time-based kill switch with an injectable clock."""

    def __init__(self, cooldown: timedelta = timedelta(minutes=30), clock: Clock = utc_now):
        self._cooldown = cooldown
        self._clock = clock
        self._disabled_until: Optional[datetime] = None

    @property
    def disabled_until(self) -> Optional[datetime]:
        return self._disabled_until

    @property
    def cooldown(self) -> timedelta:
        return self._cooldown

    def is_open(self) -> bool:
        """True while the cooldown deadline lies in the future."""
        return self._disabled_until is not None and self._clock() < self._disabled_until

    def trip(self, duration: Optional[timedelta] = None) -> datetime:
        """Open the breaker for ``duration`` (default: the configured cooldown)."""
        self._disabled_until = self._clock() + (duration or self._cooldown)
        logger.warning("Circuit breaker tripped; AI disabled until %s", self._disabled_until.isoformat())
        return self._disabled_until

    def reset(self) -> None:
        self._disabled_until = None
