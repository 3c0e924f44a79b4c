"""
Piecewise-linear sampling of sparse keyframe tracks.

Tracks are sequences sorted by non-decreasing ``time``; ordering is the
caller's job and nothing here sorts. Outside a track's time range the
boundary keyframe is held, never extrapolated. An empty track is a caller
error: callers check for it and fall back before sampling.
"""

from __future__ import annotations

from typing import Any, Iterable, NamedTuple, Optional, Sequence


class Segment(NamedTuple):
    start: Any
    end: Any


def find_segment(data: Sequence[Any], t: float) -> Segment:
    first = data[0]
    if len(data) == 1 or t <= first.time:
        return Segment(first, first)
    for i in range(len(data) - 1):
        if data[i].time <= t < data[i + 1].time:
            return Segment(data[i], data[i + 1])
    last = data[-1]
    return Segment(last, last)


def interpolate(v1: float, v2: float, t1: float, t2: float, t: float) -> float:
    if t1 == t2 or t <= t1:
        return v1
    if t >= t2:
        return v2
    return v1 + (v2 - v1) * (t - t1) / (t2 - t1)


def sample(data: Sequence[Any], t: float, field: str = "value") -> float:
    """Interpolated value of ``field`` at ``t``. ``data`` must be non-empty."""
    start, end = find_segment(data, t)
    return interpolate(getattr(start, field), getattr(end, field), start.time, end.time, t)


def current_label(data: Sequence[Any], t: float) -> Optional[str]:
    """Label of the last keyframe at or before ``t``; the first keyframe's label before the track starts."""
    if not data:
        return None
    for keyframe in reversed(data):
        if t >= keyframe.time:
            return keyframe.label
    return data[0].label


def average_intensity(tracks: Iterable[Sequence[Any]], t: float, field: str = "intensity") -> float:
    values = [sample(track, t, field) for track in tracks if track]
    if not values:
        return 0.0
    return sum(values) / len(values)
