"""
Reduce a feed snapshot to the sightings a subscription has not been told about.
"""
from __future__ import annotations

from typing import List, Sequence

from core.models import Cursor, Observation


def new_sightings(observations: Sequence[Observation], cursor: Cursor) -> List[Observation]:
    """
    Keep observations that are newer than the cursor, preserving feed order.

    - drop the exact last-notified submission (by id);
    - when last_notified_at is set, also drop anything observed at or before it.
      The id check alone is not enough: the notified submission can age out of
      the lookback window while older ones remain.
    """
    last_id = cursor.last_observation_id
    last_at = cursor.last_notified_at

    fresh: List[Observation] = []
    for obs in observations:
        if last_id and obs.submission_id == last_id:
            continue
        if last_at is not None and obs.observed_at <= last_at:
            continue
        fresh.append(obs)
    return fresh


__all__ = ["new_sightings"]
