"""Simulation clock that replays every elapsed day."""

import logging
from collections.abc import Callable
from datetime import date, timedelta

from ticket_workflow.models import Phase

logger = logging.getLogger(__name__)

DayCallback = Callable[[date], None]


class Clock:
    """Single monotonic "current date" for one simulated organisation.

    ``timestamp`` is the date of the command being processed, as given.
    ``current_date`` only moves forward, so it can be later than
    ``timestamp`` when a command arrives out of order.
    """

    def __init__(self, on_day: DayCallback, phase_length_days: int = 12) -> None:
        self._on_day = on_day
        self.phase_length_days = phase_length_days
        self.current_date: date | None = None
        self.timestamp: date | None = None
        self.phase = Phase.TESTING
        self.phase_start: date | None = None

    def advance_to(self, day: date) -> None:
        """Move the clock to ``day``, processing each intermediate day in order.

        Dates never rewind: an earlier or equal ``day`` leaves
        ``current_date`` untouched.
        """
        self.timestamp = day

        if self.current_date is None:
            self.current_date = day
        elif day > self.current_date:
            step = self.current_date + timedelta(days=1)
            while step <= day:
                self.current_date = step
                logger.debug("Processing day %s", step.isoformat())
                self._on_day(step)
                step += timedelta(days=1)

        self._update_phase(day)

    def _update_phase(self, day: date) -> None:
        if self.phase_start is None:
            self.phase_start = day
            return

        if (day - self.phase_start).days >= self.phase_length_days:
            self.phase = self.phase.next()
            self.phase_start = day
            logger.info("Entering %s phase on %s", self.phase.value, day.isoformat())
