"""
Live view drawing: texture upload, the transformed image quad and the overlays
(scale bar, calibration line, status captions). Main thread only; all functions take the GUI instance.
"""

import logging

import dearpygui.dearpygui as dpg

from lib import scale_bar
from lib.calibration import CalibrationState
from lib.coordinate_transform import midpoint

logger = logging.getLogger("microscope_viewer.app")

TEXTURE_REGISTRY = "texture_registry"
VIEW_PANEL = "image_panel"
VIEW_DRAWLIST = "image_drawlist"

BAR_MARGIN = 20
BAR_THICKNESS = 4
BAR_COLOR = (255, 255, 255, 255)
BAR_SHADOW = (0, 0, 0, 200)
CAL_LINE_COLOR = (255, 210, 0, 255)
CAPTION_COLOR = (230, 230, 230, 255)
WARN_COLOR = (255, 120, 80, 255)


def view_size(gui):
    """(width, height) of the drawing area."""
    if not dpg.does_item_exist(VIEW_DRAWLIST):
        return (0, 0)
    return (dpg.get_item_width(VIEW_DRAWLIST) or 0, dpg.get_item_height(VIEW_DRAWLIST) or 0)


def resize_view(gui):
    """Fit the drawlist to its panel (the panel follows the window)."""
    try:
        pw, ph = dpg.get_item_rect_size(VIEW_PANEL)
    except Exception:
        return
    pw, ph = max(int(pw) - 16, 1), max(int(ph) - 16, 1)
    if (pw, ph) != view_size(gui):
        dpg.configure_item(VIEW_DRAWLIST, width=pw, height=ph)


def mouse_in_view(gui):
    """Mouse position in drawlist coordinates, or None when the pointer is outside it."""
    if not dpg.does_item_exist(VIEW_DRAWLIST):
        return None
    try:
        x0, y0 = dpg.get_item_rect_min(VIEW_DRAWLIST)
        mx, my = dpg.get_mouse_pos(local=False)
    except Exception:
        return None
    vw, vh = view_size(gui)
    x, y = mx - x0, my - y0
    if 0 <= x <= vw and 0 <= y <= vh:
        return (x, y)
    return None


def upload_frame(gui, frame):
    """Copy a PixelBuffer into the view texture; the texture is recreated when the frame size changes."""
    flat = frame.to_rgba_float()
    if gui._texture_id is not None and gui._texture_size == frame.size:
        dpg.set_value(gui._texture_id, flat)
        return
    if gui._texture_id is not None and dpg.does_item_exist(gui._texture_id):
        dpg.delete_item(gui._texture_id)
    gui._texture_id = dpg.add_raw_texture(
        width=frame.width,
        height=frame.height,
        default_value=flat,
        format=dpg.mvFormat_Float_rgba,
        parent=TEXTURE_REGISTRY,
    )
    gui._texture_size = frame.size
    logger.debug("View texture recreated at %dx%d", frame.width, frame.height)


def draw_view(gui):
    """Redraw the whole drawlist from the current state snapshot."""
    state = gui.state
    transform = state.view_transform
    vsize = view_size(gui)
    dpg.delete_item(VIEW_DRAWLIST, children_only=True)

    if gui._texture_id is None:
        dpg.draw_text((BAR_MARGIN, BAR_MARGIN), "No camera frames", color=CAPTION_COLOR, size=18,
                      parent=VIEW_DRAWLIST)
        return

    isize = gui._texture_size
    p1, p2, p3, p4 = transform.corners_in_view(isize, vsize)
    dpg.draw_image_quad(gui._texture_id, p1, p2, p3, p4, parent=VIEW_DRAWLIST)

    if state.is_calibrating:
        _draw_calibration_line(gui, isize, vsize)
    if state.scale_bar_visible and not state.is_calibrating:
        _draw_scale_bar(gui, isize, vsize)
    if state.show_fps_overlay:
        dpg.draw_text((BAR_MARGIN, BAR_MARGIN), f"{gui.fps:.1f} fps", color=CAPTION_COLOR, size=16,
                      parent=VIEW_DRAWLIST)
    if state.is_frozen:
        dpg.draw_text((vsize[0] - 90, BAR_MARGIN), "FROZEN", color=WARN_COLOR, size=18, parent=VIEW_DRAWLIST)


def _draw_scale_bar(gui, isize, vsize):
    state = gui.state
    cal = gui.current_calibration()
    x0, y0 = BAR_MARGIN, vsize[1] - BAR_MARGIN
    if cal is None:
        dpg.draw_text((x0, y0 - 20), "Not calibrated", color=WARN_COLOR, size=16, parent=VIEW_DRAWLIST)
        return
    bar = scale_bar.calculate(cal.microns_per_pixel, state.view_transform.display_scale(isize, vsize))
    x1 = x0 + bar.width_points
    dpg.draw_line((x0, y0 + 1), (x1, y0 + 1), color=BAR_SHADOW, thickness=BAR_THICKNESS + 2, parent=VIEW_DRAWLIST)
    dpg.draw_line((x0, y0), (x1, y0), color=BAR_COLOR, thickness=BAR_THICKNESS, parent=VIEW_DRAWLIST)
    for x in (x0, x1):
        dpg.draw_line((x, y0 - 6), (x, y0 + 6), color=BAR_COLOR, thickness=2, parent=VIEW_DRAWLIST)
    dpg.draw_text((x0, y0 - 26), bar.label, color=BAR_COLOR, size=18, parent=VIEW_DRAWLIST)


def _draw_calibration_line(gui, isize, vsize):
    session = gui.cal_session
    transform = gui.state.view_transform
    line = session.line
    if line.start is None:
        dpg.draw_text((BAR_MARGIN, vsize[1] - BAR_MARGIN - 20), "Drag across a known distance",
                      color=CAL_LINE_COLOR, size=16, parent=VIEW_DRAWLIST)
        return
    start = transform.map_image_to_view(line.start, isize, vsize)
    dpg.draw_circle(start, 5, color=CAL_LINE_COLOR, thickness=2, parent=VIEW_DRAWLIST)
    if line.end is None:
        return
    end = transform.map_image_to_view(line.end, isize, vsize)
    dpg.draw_line(start, end, color=CAL_LINE_COLOR, thickness=2, parent=VIEW_DRAWLIST)
    dpg.draw_circle(end, 5, color=CAL_LINE_COLOR, thickness=2, parent=VIEW_DRAWLIST)
    if session.state is not CalibrationState.DRAWING_LINE and line.length_pixels:
        mx, my = midpoint(start, end)
        dpg.draw_text((mx + 8, my + 8), f"{line.length_pixels:.1f} px", color=CAL_LINE_COLOR, size=16,
                      parent=VIEW_DRAWLIST)
