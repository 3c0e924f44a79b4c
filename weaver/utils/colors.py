from __future__ import annotations

import re
from typing import List, Tuple

RGB = Tuple[int, int, int]

PALETTE = {
    "primary": "#202124",
    "secondary-accent": "#C3893F",
    "accent": "#009BBA",
    "surface": "#303134",
    "text-primary": "#F1F3F4",
    "text-secondary": "#9AA0A6",
    "border": "#4E5054",
    "success": "#1E8E3E",
    "warning": "#F9AB00",
    "error": "#D93025",
}

_HEX_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)


def hex_to_rgb(value: str) -> RGB:
    match = _HEX_RE.match(value or "")
    if not match:
        return (0, 0, 0)
    return (int(match.group(1), 16), int(match.group(2), 16), int(match.group(3), 16))


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f"#{r:02X}{g:02X}{b:02X}"


# Viridis-like anchors, perceptually ordered from calm to intense.
VIRIDIS_STOPS: List[Tuple[float, RGB]] = [
    (0.0, hex_to_rgb("#440154")),
    (0.25, hex_to_rgb("#3b528b")),
    (0.5, hex_to_rgb("#21918c")),
    (0.75, hex_to_rgb("#5ec962")),
    (1.0, hex_to_rgb("#fde725")),
]


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _round_half_up(value: float) -> int:
    # Half-up, not banker's rounding; channel values are never negative.
    return int(value + 0.5)


def emotion_color(intensity: float) -> str:
    """
    Map an intensity in [0, 1] to a hex colour on the viridis-like scale.
    Values outside the range are clamped.
    """
    value = max(0.0, min(1.0, float(intensity)))
    if value <= 0.0:
        return rgb_to_hex(*VIRIDIS_STOPS[0][1])
    if value >= 1.0:
        return rgb_to_hex(*VIRIDIS_STOPS[-1][1])

    for (start_pos, start_rgb), (end_pos, end_rgb) in zip(VIRIDIS_STOPS, VIRIDIS_STOPS[1:]):
        if start_pos <= value <= end_pos:
            t = (value - start_pos) / (end_pos - start_pos)
            return rgb_to_hex(*(_round_half_up(_lerp(a, b, t)) for a, b in zip(start_rgb, end_rgb)))

    return rgb_to_hex(*VIRIDIS_STOPS[-1][1])


def intensity_hsl(intensity: float) -> str:
    """Overall-emotion swatch: blue (calm) through red (intense)."""
    value = max(0.0, min(1.0, float(intensity)))
    hue = (1 - value) * 240
    return f"hsl({hue:g}, 80%, 50%)"
