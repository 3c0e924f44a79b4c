def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def lerp(start: float, end: float, t: float) -> float:
    return start + (end - start) * t


def ease_in_out_cubic(p: float) -> float:
    """Cubic ease-in-out on [0, 1]; exact at both ends."""
    p = clamp(p)
    if p < 0.5:
        return 4 * p * p * p
    return 1 - (-2 * p + 2) ** 3 / 2
