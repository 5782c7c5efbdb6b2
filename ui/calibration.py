"""
Calibration panel and pointer handling for calibration mode.
Pointer positions arrive in view coordinates and are mapped back to image pixels before they
reach the CalibrationSession; all functions take the GUI instance.
"""

import logging

import dearpygui.dearpygui as dpg

from lib import viewer_state as vs
from lib.calibration import PRESETS, UNPARSEABLE, CalibrationSession, CalibrationState
from ui import display as ui_display

logger = logging.getLogger("microscope_viewer.calibration")

_HINTS = {
    CalibrationState.IDLE: "Drag a line across a feature of known length.",
    CalibrationState.DRAWING_LINE: "Release to finish the line.",
    CalibrationState.LINE_COMPLETE: "Line: {length:.1f} px. Set its length or drag again.",
    CalibrationState.AWAITING_KNOWN_LENGTH: "Line: {length:.1f} px. Pick a preset or type a length.",
}


def build_panel(gui, parent_tag="control_panel"):
    with dpg.collapsing_header(parent=parent_tag, label="Calibration", default_open=True):
        with dpg.group(indent=10):
            dpg.add_text("Not calibrated", tag="cal_status", wrap=260)
            with dpg.group(horizontal=True):
                dpg.add_button(label="Calibrate (c)", callback=lambda: begin(gui), tag="cal_begin_btn")
                dpg.add_button(label="Delete", callback=lambda: delete_current(gui), tag="cal_delete_btn")
                dpg.add_button(label="Delete all", callback=lambda: delete_all_for_camera(gui), tag="cal_delete_all_btn")
            with dpg.group(tag="cal_mode_group", show=False):
                dpg.add_text("", tag="cal_hint", wrap=260, color=[255, 210, 0])
                dpg.add_button(label="Set length...", callback=lambda: request_length(gui), tag="cal_set_length_btn",
                               width=-1, show=False)
                with dpg.group(tag="cal_length_group", show=False):
                    for preset in PRESETS:
                        dpg.add_button(
                            label=f"{preset.name}  ({preset.description})",
                            callback=lambda s, a, u: submit_preset(gui, u),
                            user_data=preset.length_microns,
                            width=-1,
                        )
                    dpg.add_input_text(label="Length", tag="cal_custom_length", hint="e.g. 2.54 mm, 500 um",
                                       width=-60, on_enter=True, callback=lambda: submit_custom(gui))
                    with dpg.group(horizontal=True):
                        dpg.add_button(label="Apply", callback=lambda: submit_custom(gui))
                        dpg.add_button(label="Back", callback=lambda: back(gui))
                    dpg.add_text("", tag="cal_error", color=[255, 120, 80])
                dpg.add_button(label="Cancel (Esc)", callback=lambda: cancel(gui), width=-1)


# ── Transitions ─────────────────────────────────────────────────────

def begin(gui):
    if gui._texture_id is None:
        gui._status_msg = "No frame to calibrate on"
        return
    gui.cal_session = CalibrationSession()
    gui.state = vs.begin_calibration(gui.state)
    refresh_panel(gui)


def cancel(gui):
    if not gui.state.is_calibrating:
        return
    gui.cal_session = gui.cal_session.cancel()
    gui.state = vs.cancel_calibration(gui.state, gui.current_calibration() is not None)
    refresh_panel(gui)


def back(gui):
    gui.cal_session = gui.cal_session.back()
    refresh_panel(gui)


def request_length(gui):
    gui.cal_session = gui.cal_session.request_known_length()
    refresh_panel(gui)


def submit_preset(gui, microns):
    _submit(gui, microns=float(microns))


def submit_custom(gui):
    text = dpg.get_value("cal_custom_length") if dpg.does_item_exist("cal_custom_length") else ""
    _submit(gui, text=text)


def _submit(gui, microns=None, text=None):
    camera_id = gui.state.camera_id
    width, height = gui.state.resolution
    session = gui.cal_session.submit_known_length(
        gui.calibrations, camera_id, width, height, microns=microns, text=text
    )
    if session.state is CalibrationState.COMMITTED:
        cal = session.committed
        logger.info("Calibrated %s at %s: %.4f um/px", cal.camera_id, cal.resolution_string, cal.microns_per_pixel)
        gui._status_msg = f"Calibrated: {cal.microns_per_pixel:.3f} µm/px"
        gui.state = vs.complete_calibration(gui.state)
        session = session.acknowledge()
        if dpg.does_item_exist("cal_custom_length"):
            dpg.set_value("cal_custom_length", "")
    gui.cal_session = session
    refresh_panel(gui)


def delete_current(gui):
    camera_id = gui.state.camera_id
    width, height = gui.state.resolution
    if gui.calibrations.has(camera_id, width, height):
        gui.calibrations.delete(camera_id, width, height)
        gui._status_msg = "Calibration deleted"
    gui.state = vs.cancel_calibration(gui.state, False) if gui.state.is_calibrating else gui.state
    refresh_panel(gui)


def delete_all_for_camera(gui):
    gui.calibrations.delete_all(gui.state.camera_id)
    gui._status_msg = f"All calibrations for {gui.state.camera_id or 'camera'} deleted"
    refresh_panel(gui)


# ── Pointer input (view coordinates) ───────────────────────────────

def _to_image(gui, view_point):
    return gui.state.view_transform.map_view_to_image(view_point, gui._texture_size, ui_display.view_size(gui))


def pointer_down(gui, view_point):
    gui.cal_session = gui.cal_session.begin_line(_to_image(gui, view_point))
    refresh_panel(gui)


def pointer_drag(gui, view_point):
    if gui.cal_session.state is CalibrationState.DRAWING_LINE:
        gui.cal_session = gui.cal_session.update_line(_to_image(gui, view_point))


def pointer_up(gui, view_point):
    if gui.cal_session.state is not CalibrationState.DRAWING_LINE:
        return
    gui.cal_session = gui.cal_session.update_line(_to_image(gui, view_point)).finish_line()
    refresh_panel(gui)


# ── Panel state ─────────────────────────────────────────────────────

def calibration_caption(gui) -> str:
    cal = gui.current_calibration()
    if cal is None:
        return "Not calibrated"
    return f"{cal.microns_per_pixel:.3f} µm/px  ({cal.camera_id} {cal.resolution_string})"


def refresh_panel(gui):
    if not dpg.does_item_exist("cal_status"):
        return
    dpg.set_value("cal_status", calibration_caption(gui))
    calibrating = gui.state.is_calibrating
    dpg.configure_item("cal_mode_group", show=calibrating)
    dpg.configure_item("cal_begin_btn", enabled=not calibrating)
    if not calibrating:
        return
    session = gui.cal_session
    length = session.line.length_pixels or 0.0
    dpg.set_value("cal_hint", _HINTS.get(session.state, "").format(length=length))
    dpg.configure_item("cal_set_length_btn", show=session.state is CalibrationState.LINE_COMPLETE)
    dpg.configure_item("cal_length_group", show=session.state is CalibrationState.AWAITING_KNOWN_LENGTH)
    dpg.set_value("cal_error", "Enter a positive length, e.g. 2.54 mm" if session.error == UNPARSEABLE else "")
