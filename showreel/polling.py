"""
Polling helpers shared by the vendor clients.

Vendors with a queue (Replicate, Runway) are polled until the job leaves its
in-flight states. The wait before each poll comes from a stepped schedule:
`steps` is a list of (until_attempt, seconds) pairs, `final` applies after
the last step. A schedule without steps is a fixed interval.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class Backoff:
    final: float = 1.0
    steps: tuple = ()

    def delay(self, attempt: int) -> float:
        """Seconds to wait before poll number `attempt` (0-based)."""
        for until, seconds in self.steps:
            if attempt < until:
                return seconds
        return self.final


def fixed(interval: float) -> Backoff:
    return Backoff(final=interval)


class PollTimeout(RuntimeError):
    """The job never left its in-flight state within the attempt budget."""


async def poll_until(
    fetch: Callable[[], Awaitable[R]],
    is_pending: Callable[[R], bool],
    *,
    max_attempts: int,
    backoff: Backoff,
    label: str = "job",
    initial: Optional[R] = None,
    timeout_message: Optional[str] = None,
) -> R:
    """
    Sleep, fetch, repeat while `is_pending(result)` holds.

    If `initial` is given and already settled it is returned without polling.
    Raises PollTimeout once `max_attempts` fetches have all come back pending.
    """
    result = initial
    if result is not None and not is_pending(result):
        return result

    for attempt in range(max_attempts):
        await asyncio.sleep(backoff.delay(attempt))
        result = await fetch()
        if not is_pending(result):
            return result
        logger.info(f"{label}: still pending after poll {attempt + 1}/{max_attempts}")

    raise PollTimeout(timeout_message or f"{label} timed out after {max_attempts} polls")
