"""
Image space <-> view space mapping for the live view.

ViewTransform is an immutable value: every operation returns a new instance, so the render loop
can take one reference and paint a consistent frame while the UI thread replaces it.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, replace

import numpy as np

from lib.coordinate_transform import clamp_value, fit_scale, is_degenerate

MIN_ZOOM = 0.1
MAX_ZOOM = 20.0
DEFAULT_ZOOM = 1.0
# Zoom steps per input device
WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9
TRACKPAD_ZOOM_PER_UNIT = 0.01


class Rotation(enum.IntEnum):
    NONE = 0
    CW_90 = 90
    CW_180 = 180
    CW_270 = 270

    @property
    def radians(self) -> float:
        return math.radians(int(self))

    def next(self) -> "Rotation":
        return Rotation((int(self) + 90) % 360)

    def previous(self) -> "Rotation":
        return Rotation((int(self) + 270) % 360)


def _translate(tx: float, ty: float) -> np.ndarray:
    return np.array([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]])


def _scale(sx: float, sy: float) -> np.ndarray:
    return np.array([[sx, 0.0, 0.0], [0.0, sy, 0.0], [0.0, 0.0, 1.0]])


def _rotate(rot: Rotation) -> np.ndarray:
    # Exact quarter turns; math.cos(pi/2) would leave 6e-17 residue in the matrix
    c, s = {0: (1.0, 0.0), 90: (0.0, 1.0), 180: (-1.0, 0.0), 270: (0.0, -1.0)}[int(rot)]
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def wheel_zoom_factor(delta: float, precise: bool = False) -> float:
    """Zoom factor for one scroll event: fixed steps for a wheel, proportional for a trackpad."""
    if precise:
        return 1.0 + delta * TRACKPAD_ZOOM_PER_UNIT
    return WHEEL_ZOOM_IN if delta > 0 else WHEEL_ZOOM_OUT


@dataclass(frozen=True)
class ViewTransform:
    zoom_factor: float = DEFAULT_ZOOM
    pan_offset: tuple = (0.0, 0.0)
    rotation: Rotation = Rotation.NONE
    flip_horizontal: bool = False
    flip_vertical: bool = False

    # ── Mapping ─────────────────────────────────────────────────────

    def matrix(self, image_size, view_size) -> np.ndarray:
        """
        3x3 affine image -> view. A point is moved so the image centre is at the origin, scaled by
        the letterbox fit, flipped, rotated, zoomed, panned and finally moved to the view centre.
        The fit scale is taken fresh from the sizes on every call. Rotation and flips pivot on the
        image centre; zoom and pan act about the view centre.
        Identity when either size has a zero dimension.
        """
        if is_degenerate(image_size) or is_degenerate(view_size):
            return np.eye(3)
        fit = fit_scale(image_size, view_size)
        iw, ih = image_size
        vw, vh = view_size
        m = _translate(vw / 2.0, vh / 2.0)
        m = m @ _translate(self.pan_offset[0], self.pan_offset[1])
        m = m @ _scale(self.zoom_factor, self.zoom_factor)
        m = m @ _rotate(self.rotation)
        m = m @ _scale(-1.0 if self.flip_horizontal else 1.0, -1.0 if self.flip_vertical else 1.0)
        m = m @ _scale(fit, fit)
        m = m @ _translate(-iw / 2.0, -ih / 2.0)
        return m

    def map_image_to_view(self, point, image_size, view_size):
        m = self.matrix(image_size, view_size)
        x, y, _ = m @ np.array([point[0], point[1], 1.0])
        return (float(x), float(y))

    def map_view_to_image(self, point, image_size, view_size):
        if is_degenerate(image_size) or is_degenerate(view_size):
            return (float(point[0]), float(point[1]))
        inv = np.linalg.inv(self.matrix(image_size, view_size))
        x, y, _ = inv @ np.array([point[0], point[1], 1.0])
        return (float(x), float(y))

    def corners_in_view(self, image_size, view_size):
        """View positions of the image corners (top-left, top-right, bottom-right, bottom-left)."""
        iw, ih = image_size
        return [
            self.map_image_to_view(p, image_size, view_size)
            for p in ((0.0, 0.0), (iw, 0.0), (iw, ih), (0.0, ih))
        ]

    def display_scale(self, image_size, view_size) -> float:
        """Screen units per image pixel for the current fit and zoom."""
        return fit_scale(image_size, view_size) * self.zoom_factor

    # ── Operations ──────────────────────────────────────────────────

    def zoom(self, factor: float, around_view_point, image_size, view_size) -> "ViewTransform":
        """Zoom by factor keeping the image point under around_view_point fixed on screen."""
        image_point = self.map_view_to_image(around_view_point, image_size, view_size)
        new_zoom = clamp_value(self.zoom_factor * factor, MIN_ZOOM, MAX_ZOOM)
        if new_zoom == self.zoom_factor:
            return self
        zoomed = replace(self, zoom_factor=new_zoom)
        landed = zoomed.map_image_to_view(image_point, image_size, view_size)
        return zoomed.pan((around_view_point[0] - landed[0], around_view_point[1] - landed[1]))

    def pan(self, delta) -> "ViewTransform":
        return replace(self, pan_offset=(self.pan_offset[0] + delta[0], self.pan_offset[1] + delta[1]))

    def reset(self) -> "ViewTransform":
        """Zoom and pan back to fit; rotation and flips stay."""
        return replace(self, zoom_factor=DEFAULT_ZOOM, pan_offset=(0.0, 0.0))

    def reset_all(self) -> "ViewTransform":
        return ViewTransform()

    def rotate_clockwise(self) -> "ViewTransform":
        return replace(self, rotation=self.rotation.next())

    def rotate_counterclockwise(self) -> "ViewTransform":
        return replace(self, rotation=self.rotation.previous())

    def toggle_horizontal_flip(self) -> "ViewTransform":
        return replace(self, flip_horizontal=not self.flip_horizontal)

    def toggle_vertical_flip(self) -> "ViewTransform":
        return replace(self, flip_vertical=not self.flip_vertical)
