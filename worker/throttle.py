from __future__ import annotations

from typing import Sequence

from core.models import Cursor, Observation


def should_notify(sightings: Sequence[Observation], cursor: Cursor, min_interval_minutes: float) -> bool:
    """
    Decide whether a batch of new sightings is far enough from the last alert.

    The gap is measured from the last notified sighting to the *earliest* new
    sighting, not from wall-clock time, so sightings that were concurrent with
    the previous alert don't trigger another one.
    """
    if not sightings:
        return False
    if cursor.last_notified_at is None or min_interval_minutes <= 0:
        return True

    earliest = min(obs.observed_at for obs in sightings)
    gap_minutes = (earliest - cursor.last_notified_at).total_seconds() / 60
    return gap_minutes >= min_interval_minutes


__all__ = ["should_notify"]
