"""Time-of-day guard evaluated before a polling cycle starts."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from ..config import ActiveHours


class ActiveHoursGate:
    """Allow cycles only inside the configured local-time window."""

    def __init__(self, hours: ActiveHours | None, clock: Callable[[], datetime] | None = None) -> None:
        self.hours = hours
        self.clock = clock or (lambda: datetime.now().astimezone())

    def is_open(self, moment: datetime | None = None) -> bool:
        if self.hours is None:
            return True
        return self.hours.contains(moment or self.clock())


__all__ = ["ActiveHoursGate"]
