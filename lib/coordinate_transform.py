"""
Stateless geometry shared by the view transform, calibration line and measurement drawing.
Points and sizes are plain (x, y) / (w, h) tuples; rects are (x, y, w, h).
"""

import math


def clamp_value(v: float, lo: float, hi: float) -> float:
    return min(max(v, lo), hi)


def is_degenerate(size) -> bool:
    """True if either dimension is zero (or negative): nothing can be fitted into or from it."""
    return size[0] <= 0 or size[1] <= 0


def fit_scale(image_size, view_size) -> float:
    """Largest scale that fits the whole image inside the view (letterbox). 0.0 for degenerate sizes."""
    if is_degenerate(image_size) or is_degenerate(view_size):
        return 0.0
    return min(view_size[0] / image_size[0], view_size[1] / image_size[1])


def fit_rect(image_size, view_size):
    """Letterboxed (x, y, w, h) of the image inside the view, centred."""
    s = fit_scale(image_size, view_size)
    w, h = image_size[0] * s, image_size[1] * s
    return ((view_size[0] - w) / 2.0, (view_size[1] - h) / 2.0, w, h)


def distance(p1, p2) -> float:
    return math.hypot(p2[0] - p1[0], p2[1] - p1[1])


def angle(p1, p2) -> float:
    """Angle of p1 -> p2 in radians."""
    return math.atan2(p2[1] - p1[1], p2[0] - p1[0])


def midpoint(p1, p2):
    return ((p1[0] + p2[0]) / 2.0, (p1[1] + p2[1]) / 2.0)


def clamp(point, rect):
    """Clamp point into rect (x, y, w, h)."""
    x, y, w, h = rect
    return (clamp_value(point[0], x, x + w), clamp_value(point[1], y, y + h))
