"""
Viewer UI state as one immutable snapshot plus transition functions.
The GUI keeps a single ViewerState reference and replaces it; the render step reads it once per tick.
"""

from dataclasses import dataclass, replace

from lib.integration import DEFAULT_INTEGRATION_LEVEL, INTEGRATION_LEVELS, next_integration_level
from lib.view_transform import ViewTransform


@dataclass(frozen=True)
class ViewerState:
    is_frozen: bool = False
    scale_bar_visible: bool = False
    is_calibrating: bool = False
    integration_level: int = DEFAULT_INTEGRATION_LEVEL
    view_transform: ViewTransform = ViewTransform()
    camera_id: str = ""
    resolution: tuple = (0, 0)
    show_fps_overlay: bool = True


def from_settings(s: dict) -> ViewerState:
    """Initial state from a loaded settings dict. Unknown integration levels fall back to 1."""
    level = s.get("integration_level", DEFAULT_INTEGRATION_LEVEL)
    try:
        level = int(level)
    except (TypeError, ValueError):
        level = DEFAULT_INTEGRATION_LEVEL
    if level not in INTEGRATION_LEVELS:
        level = DEFAULT_INTEGRATION_LEVEL
    return ViewerState(
        scale_bar_visible=bool(s.get("scale_bar_visible", False)),
        integration_level=level,
        show_fps_overlay=bool(s.get("show_fps_overlay", True)),
    )


def toggle_freeze(state: ViewerState) -> ViewerState:
    return replace(state, is_frozen=not state.is_frozen)


def toggle_scale_bar(state: ViewerState, has_calibration: bool) -> ViewerState:
    """Turning the bar on for an uncalibrated camera/resolution starts calibration."""
    if not state.scale_bar_visible and not has_calibration:
        return replace(state, scale_bar_visible=True, is_calibrating=True)
    return replace(state, scale_bar_visible=not state.scale_bar_visible)


def cycle_integration(state: ViewerState) -> ViewerState:
    return replace(state, integration_level=next_integration_level(state.integration_level))


def set_integration_level(state: ViewerState, level: int) -> ViewerState:
    if level not in INTEGRATION_LEVELS:
        raise ValueError(f"Integration level must be one of {INTEGRATION_LEVELS}, got {level}")
    return replace(state, integration_level=level)


def with_transform(state: ViewerState, transform: ViewTransform) -> ViewerState:
    return replace(state, view_transform=transform)


def reset_view(state: ViewerState) -> ViewerState:
    return replace(state, view_transform=state.view_transform.reset())


def begin_calibration(state: ViewerState) -> ViewerState:
    return replace(state, is_calibrating=True)


def cancel_calibration(state: ViewerState, has_calibration: bool) -> ViewerState:
    """Leave calibration; with nothing calibrated the scale bar has nothing to show, so hide it."""
    return replace(
        state,
        is_calibrating=False,
        scale_bar_visible=state.scale_bar_visible and has_calibration,
    )


def complete_calibration(state: ViewerState) -> ViewerState:
    """A committed calibration leaves calibration mode with the scale bar showing."""
    return replace(state, is_calibrating=False, scale_bar_visible=True)


def set_camera(state: ViewerState, camera_id: str, resolution) -> ViewerState:
    return replace(state, camera_id=camera_id, resolution=(int(resolution[0]), int(resolution[1])))


def set_fps_overlay(state: ViewerState, visible: bool) -> ViewerState:
    return replace(state, show_fps_overlay=bool(visible))
