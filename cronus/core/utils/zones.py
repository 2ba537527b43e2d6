# cronus/core/utils/zones.py
"""
Wall-clock helpers for zones with daylight-saving transitions.

All functions rely on PEP 495 ``fold`` semantics as implemented by
``zoneinfo.ZoneInfo``: for a local time inside a transition, ``fold=0``
yields the offset in force before the transition and ``fold=1`` the offset
after it. Fixed-offset zones never report a transition.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def resolve_timezone(tz: str | tzinfo) -> tzinfo:
    """Return a tzinfo for an IANA name, passing tzinfo instances through."""
    if isinstance(tz, tzinfo):
        return tz
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Invalid timezone '{tz}': {e}") from e


@dataclass(frozen=True)
class ZoneTransition:
    """A change of UTC offset at a given instant."""

    instant: datetime  # UTC-aware
    offset_before: timedelta
    offset_after: timedelta

    @property
    def is_gap(self) -> bool:
        """Clocks were set forward; some local times do not exist."""
        return self.offset_after > self.offset_before

    @property
    def is_overlap(self) -> bool:
        """Clocks were set back; some local times occur twice."""
        return self.offset_after < self.offset_before

    @property
    def local_before(self) -> datetime:
        """Naive local time of the transition at the offset before it."""
        return (self.instant + self.offset_before).replace(tzinfo=None)

    @property
    def local_after(self) -> datetime:
        """Naive local time of the transition at the offset after it."""
        return (self.instant + self.offset_after).replace(tzinfo=None)

    def contains(self, local: datetime) -> bool:
        """True if the naive local time is skipped (gap) or repeated (overlap)."""
        lo = min(self.local_before, self.local_after)
        hi = max(self.local_before, self.local_after)
        return lo <= local < hi


def _offset_at(ts: int, tz: tzinfo) -> Optional[timedelta]:
    return datetime.fromtimestamp(ts, tz).utcoffset()


def find_transition(local: datetime, tz: tzinfo) -> Optional[ZoneTransition]:
    """
    Return the transition whose gap or overlap contains ``local``.

    Args:
        local: Naive wall-clock time
        tz: Zone to evaluate the wall-clock time in

    Returns:
        The containing transition, or None when ``local`` maps to exactly
        one instant.
    """
    if local.tzinfo is not None:
        raise ValueError('local must be a naive datetime')
    earlier = local.replace(tzinfo=tz, fold=0)
    later = local.replace(tzinfo=tz, fold=1)
    offset_before = earlier.utcoffset()
    offset_after = later.utcoffset()
    if offset_before is None or offset_after is None or offset_before == offset_after:
        return None

    # The transition instant lies between the two readings of ``local``.
    naive_utc = local.replace(tzinfo=timezone.utc)
    bounds = (naive_utc - offset_before, naive_utc - offset_after)
    lo = math.floor(min(bounds).timestamp())
    hi = math.ceil(max(bounds).timestamp())
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if _offset_at(mid, tz) == offset_after:
            hi = mid
        else:
            lo = mid
    instant = datetime.fromtimestamp(hi, timezone.utc)
    return ZoneTransition(
        instant=instant,
        offset_before=offset_before,
        offset_after=offset_after,
    )


def at_offset(local: datetime, offset: timedelta, tz: tzinfo) -> datetime:
    """Interpret naive ``local`` at a fixed ``offset`` and express it in ``tz``."""
    instant = local.replace(tzinfo=timezone.utc) - offset
    return instant.astimezone(tz)


def resolve_local(
    local: datetime,
    tz: tzinfo,
    preferred_offset: Optional[timedelta] = None,
) -> datetime:
    """
    Resolve a naive wall-clock time into a real zoned datetime.

    Ambiguous (fall-back) times keep ``preferred_offset`` when it is one of
    the two valid offsets, otherwise the earlier instant is used. Nonexistent
    (spring-forward) times are shifted forward by the length of the gap.
    """
    earlier = local.replace(tzinfo=tz, fold=0)
    later = local.replace(tzinfo=tz, fold=1)
    offset_earlier = earlier.utcoffset()
    offset_later = later.utcoffset()
    if offset_earlier == offset_later:
        return earlier
    if offset_earlier is not None and offset_later is not None and offset_later > offset_earlier:
        # Gap: read with the pre-transition offset, land after the gap.
        return earlier.astimezone(timezone.utc).astimezone(tz)
    if preferred_offset is not None and preferred_offset == offset_later:
        return later
    return earlier


def same_instant_and_offset(a: datetime, b: datetime) -> bool:
    """
    Strict equality for aware datetimes.

    Datetimes sharing a tzinfo compare by wall time only, ignoring ``fold``;
    this also compares the UTC offsets.
    """
    return a.replace(tzinfo=None) == b.replace(tzinfo=None) and a.utcoffset() == b.utcoffset()
