"""Frecency scoring for directory usage.

A directory's score combines how often it was seen with how recently. The
frequency component grows logarithmically so a handful of recent visits can
outrank a long tail of old ones, and the recency multiplier decays through
five tiers:

=============  =================================
age            multiplier
=============  =================================
< 1 hour       1.0
1-24 hours     exp(-0.1 * (hours - 1))
1-7 days       0.9 * exp(-0.05 * (hours - 24))
7-30 days      0.5 * exp(-0.02 * (hours - 168))
>= 30 days     0.1 * exp(-0.01 * (hours - 720))
=============  =================================

The multiplier never drops below 0.01, so very old directories keep a small
positive score.
"""

import logging
import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from gumdb.core.path_utils import canonical_path
from gumdb.models import DirectoryUsage
from gumdb.models.base import ensure_utc, utc_now

logger = logging.getLogger(__name__)

HOUR = 1.0
DAY = 24.0
WEEK = 168.0
MONTH = 720.0

MIN_RECENCY_MULTIPLIER = 0.01
SCORE_SCALE = 1000


def recency_multiplier(hours: float) -> float:
    """Recency weight for an observation ``hours`` old."""
    if hours < HOUR:
        multiplier = 1.0
    elif hours < DAY:
        multiplier = math.exp(-0.1 * (hours - HOUR))
    elif hours < WEEK:
        multiplier = 0.9 * math.exp(-0.05 * (hours - DAY))
    elif hours < MONTH:
        multiplier = 0.5 * math.exp(-0.02 * (hours - WEEK))
    else:
        multiplier = 0.1 * math.exp(-0.01 * (hours - MONTH))
    return max(multiplier, MIN_RECENCY_MULTIPLIER)


def _round_half_up(value: float) -> int:
    # Python's round() sends halves to the even neighbour
    return int(math.floor(value + 0.5))


def calculate_frecency_score(
    frequency: int, last_seen: datetime, now: Optional[datetime] = None
) -> int:
    """Score a directory seen ``frequency`` times, most recently at ``last_seen``.

    Args:
        frequency: Number of observations, zero or more
        last_seen: Time of the latest observation
        now: Reference time, the current time when omitted

    Returns:
        Integer score, ``round(ln(frequency + 1) * recency * 1000)``

    Raises:
        ValueError: If frequency is negative
    """
    if frequency < 0:
        raise ValueError(f"frequency must be non-negative, got {frequency}")

    now = ensure_utc(now) if now is not None else utc_now()
    age_hours = (now - ensure_utc(last_seen)).total_seconds() / 3600.0
    # Clock skew can put last_seen slightly in the future
    age_hours = max(age_hours, 0.0)

    frequency_score = math.log(frequency + 1)
    return _round_half_up(frequency_score * recency_multiplier(age_hours) * SCORE_SCALE)


def merge_live_observations(
    history: Iterable[DirectoryUsage],
    live: Iterable[Tuple[str, datetime]],
    now: Optional[datetime] = None,
) -> List[DirectoryUsage]:
    """Fold currently open directories into stored usage history.

    Every path in ``live`` counts as one more observation at ``now``: known
    paths get ``frequency + 1`` and new paths start at one. A path listed
    more than once in ``live`` is counted once. ``history`` is not modified.

    Args:
        history: Stored usage records
        live: ``(path, observed_at)`` pairs from a live-state source
        now: Observation time, the current time when omitted

    Returns:
        Merged records, one per path, scored and ranked
    """
    now = ensure_utc(now) if now is not None else utc_now()
    merged: Dict[str, DirectoryUsage] = {}
    for record in history:
        merged[record.path] = record.model_copy()

    seen = set()
    for path, _observed_at in live:
        try:
            path = canonical_path(path)
        except ValueError:
            logger.debug("Ignoring live observation with an empty path")
            continue
        if path in seen:
            continue
        seen.add(path)

        existing = merged.get(path)
        if existing is None:
            merged[path] = DirectoryUsage(path=path, frequency=1, last_seen=now)
        else:
            merged[path] = existing.model_copy(
                update={"frequency": existing.frequency + 1, "last_seen": now}
            )

    return rank_directories(merged.values(), now)


def rank_directories(
    records: Iterable[DirectoryUsage], now: Optional[datetime] = None
) -> List[DirectoryUsage]:
    """Score ``records`` and sort them by descending score.

    Ties are broken by the more recent ``last_seen``, then by path, so the
    order is deterministic.
    """
    now = ensure_utc(now) if now is not None else utc_now()
    scored = [
        record.model_copy(
            update={"score": calculate_frecency_score(record.frequency, record.last_seen, now)}
        )
        for record in records
    ]
    scored.sort(key=lambda r: (-r.score, -r.last_seen.timestamp(), r.path))
    return scored
