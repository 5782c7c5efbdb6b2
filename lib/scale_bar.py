"""
Scale bar sizing from a microns-per-pixel calibration.

The bar length is always one of NICE_LENGTHS; the one whose on-screen width lands inside
[MIN_WIDTH, MAX_WIDTH] and nearest TARGET_WIDTH wins.
"""

from typing import NamedTuple

# Microns: 10 µm .. 5 cm
NICE_LENGTHS = (
    10.0, 20.0, 50.0,
    100.0, 200.0, 500.0,
    1000.0, 2000.0, 5000.0,
    10000.0, 20000.0, 50000.0,
)

# Screen units at 1x content scale
MIN_WIDTH = 100.0
MAX_WIDTH = 250.0
TARGET_WIDTH = 150.0


class ScaleBar(NamedTuple):
    length_microns: float
    width_points: float
    label: str


def calculate(microns_per_pixel: float, zoom_factor: float) -> ScaleBar:
    """
    Pick a nice length for the current zoom.
    In-band candidate closest to TARGET_WIDTH (first found wins a tie); otherwise the smallest
    length at least MIN_WIDTH wide; at extreme zoom-out the largest length even if narrower.
    """
    microns_per_point = microns_per_pixel / zoom_factor
    widths = [(length, length / microns_per_point) for length in NICE_LENGTHS]

    best = None
    for length, width in widths:
        if MIN_WIDTH <= width <= MAX_WIDTH:
            if best is None or abs(width - TARGET_WIDTH) < abs(best[1] - TARGET_WIDTH):
                best = (length, width)

    if best is None:
        best = next(((l, w) for l, w in widths if w >= MIN_WIDTH), widths[-1])

    length, width = best
    return ScaleBar(length, width, format_length(length))


def _fmt(value: float, unit: str) -> str:
    if value == int(value):
        return f"{int(value)} {unit}"
    return f"{value:.1f} {unit}"


def format_length(microns: float) -> str:
    """Label in cm from 10000 µm, mm from 1000 µm, else µm."""
    if microns >= 10000:
        return _fmt(microns / 10000.0, "cm")
    if microns >= 1000:
        return _fmt(microns / 1000.0, "mm")
    return _fmt(microns, "µm")


def microns_per_pixel(line_length_pixels: float, known_length_microns: float) -> float:
    """Calibration scale from a drawn line. 0.0 means the line was empty: not a usable scale."""
    if line_length_pixels <= 0:
        return 0.0
    return known_length_microns / line_length_pixels
