from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, List, Sequence

from weaver.timeline.sampler import sample
from weaver.utils.colors import emotion_color


@dataclass(frozen=True)
class ColorStop:
    offset: float  # 0..1 along the timeline
    color: str


@dataclass(frozen=True)
class CurvePoint:
    x: float  # percent of the timeline width
    y: float  # pixels from the top


@dataclass
class NoisyCurve:
    points: List[CurvePoint] = field(default_factory=list)
    fill: List[CurvePoint] = field(default_factory=list)


def to_svg_points(points: Sequence[CurvePoint]) -> str:
    return " ".join(f"{p.x:g},{p.y:g}" for p in points)


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


class CurveRenderer:
    """
    Turns a sparse keyframe track into dense, deterministic geometry for the
    timeline graphs: a colour ramp for intensity data and a noisy filled curve
    for camera complexity. Tracks with fewer than two keyframes render as a
    flat line holding the single value (0.0 for an empty track).
    """

    def __init__(self, samples: int = 200, noise_factor: float = 0.3):
        if samples < 2:
            raise ValueError(f"samples must be at least 2, got {samples}")
        self.samples = int(samples)
        self.noise_factor = float(noise_factor)

    def offsets(self) -> List[float]:
        n = self.samples
        return [i / (n - 1) for i in range(n)]

    def sample_values(self, keyframes: Sequence[Any], duration: float, field: str) -> List[float]:
        if len(keyframes) < 2:
            held = float(getattr(keyframes[0], field)) if keyframes else 0.0
            return [held] * self.samples
        span = max(0.0, float(duration))
        return [sample(keyframes, offset * span, field) for offset in self.offsets()]

    def is_flat(self, keyframes: Sequence[Any]) -> bool:
        return len(keyframes) < 2

    def color_ramp(self, keyframes: Sequence[Any], duration: float, field: str = "intensity") -> List[ColorStop]:
        values = self.sample_values(keyframes, duration, field)
        return [ColorStop(offset, emotion_color(value)) for offset, value in zip(self.offsets(), values)]

    def noise(self, i: int, value: float) -> float:
        return math.sin(i * 0.4) * math.cos(i * 0.15) * value * self.noise_factor

    def noisy_curve(
        self,
        keyframes: Sequence[Any],
        duration: float,
        height: float,
        field: str = "complexity",
    ) -> NoisyCurve:
        # v + noise(i) equals the noise_factor-weighted mix of the clean value
        # and the fully perturbed one.
        values = self.sample_values(keyframes, duration, field)
        flat = self.is_flat(keyframes)
        points = []
        for i, (offset, value) in enumerate(zip(self.offsets(), values)):
            mixed = value if flat else value + self.noise(i, value)
            points.append(CurvePoint(offset * 100.0, height - _clamp01(mixed) * height))
        fill = points + [CurvePoint(100.0, float(height)), CurvePoint(0.0, float(height))]
        return NoisyCurve(points=points, fill=fill)

    def polyline(self, keyframes: Sequence[Any], duration: float, height: float, field: str = "intensity") -> List[CurvePoint]:
        """The raw keyframe polyline, one point per keyframe."""
        if len(keyframes) < 2:
            held = float(getattr(keyframes[0], field)) if keyframes else 0.0
            y = height - _clamp01(held) * height
            return [CurvePoint(0.0, y), CurvePoint(100.0, y)]
        span = float(duration) if duration > 0 else 1.0
        return [
            CurvePoint(k.time / span * 100.0, height - float(getattr(k, field)) * height)
            for k in keyframes
        ]

    @staticmethod
    def playhead(current_time: float, duration: float) -> float:
        if duration <= 0:
            return 0.0
        return max(0.0, min(100.0, current_time / duration * 100.0))
