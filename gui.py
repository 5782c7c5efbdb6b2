#!/usr/bin/env python3
"""
USB microscope live viewer.
Generic shell: live view with zoom/pan/rotate/flip, frame integration, freeze and a calibrated
scale bar. The frame source (USB camera, test pattern) is a loadable module under modules/detector.
"""

import argparse
import importlib
import logging
import sys
import os
import threading
import time

import dearpygui.dearpygui as dpg

# Ensure app directory is on path for module imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from lib import viewer_state as vs
from lib.app_api import AppAPI
from lib.calibration import CalibrationSession, CalibrationStore
from lib.frame_cell import FrameDisplay, LatestFrameCell
from lib.integration import INTEGRATION_LEVELS, IntegrationEngine
from lib.log_setup import LOGGER_NAME, add_logging, setup_logging
from lib.settings import calibrations_path, load_settings, save_settings
from lib.view_transform import wheel_zoom_factor
from modules.registry import all_extra_settings_keys, discover_modules, pick_camera_module
from ui import calibration as ui_calibration
from ui import display as ui_display
from ui import pipeline as ui_pipeline

logger = logging.getLogger(f"{LOGGER_NAME}.app")


def _key(*names):
    """First key constant this dearpygui build defines (names changed between releases)."""
    for name in names:
        if hasattr(dpg, name):
            return getattr(dpg, name)
    return None


class MicroscopeGUI:
    def __init__(self, settings_path=None, prefer_module=None, camera_index=None):
        # Frame source (set by detector module when loaded)
        self.camera_module = None
        self.camera_module_name = None

        # Acquisition state
        self.acq_thread = None
        self.acq_running = False
        self.acq_stop = threading.Event()

        # Settings (module keys included) and calibrations
        self._settings_path = settings_path
        self._discovered_modules = discover_modules()
        self._extra_settings_keys = all_extra_settings_keys(self._discovered_modules)
        self._loaded_settings = load_settings(extra_keys=self._extra_settings_keys, path=settings_path)
        if camera_index is not None:
            self._loaded_settings["cv_camera_index"] = int(camera_index)
        self._prefer_module = prefer_module
        self.calibrations = CalibrationStore(calibrations_path(self._loaded_settings))

        # View state: replaced wholesale on the UI thread, read once per render tick
        self.state = vs.from_settings(self._loaded_settings)
        self.cal_session = CalibrationSession()

        # Frame path: engine on the capture thread, single-slot hand-off to the render loop
        self.engine = IntegrationEngine(0, 0, self.state.integration_level)
        self.frame_cell = LatestFrameCell()
        self.display = FrameDisplay(self.frame_cell)
        self.new_frame_ready = threading.Event()
        self._last_display_paint_time = 0.0
        self._disp_max_fps = max(1, int(self._loaded_settings.get("disp_max_fps", 30)))

        # Stats
        self.frame_count = 0
        self.fps = 0.0
        self._fps_time = time.time()
        self._fps_count = 0
        self._status_msg = ""

        # Pointer drag (view coordinates of the last drag event)
        self._drag_last = None

        # DPG ids (assigned on first frame)
        self._texture_id = None
        self._texture_size = (0, 0)

        # API facade for modules (clear names, single contract)
        self.api = AppAPI(self)

    # ── Frames (called through AppAPI) ──────────────────────────────

    def submit_frame(self, frame):
        """Called by the frame source for each captured frame (acquisition thread)."""
        ui_pipeline.push_frame(self, frame)

    def clear_frame_buffer(self):
        ui_pipeline.clear_frame_buffer(self)

    def set_camera(self, camera_id: str, width: int, height: int):
        """Frame source identity and size; calibration lookups key on all three."""
        logger.info("Camera %s at %dx%d", camera_id, width, height)
        self.state = vs.set_camera(self.state, camera_id, (width, height))
        self.clear_frame_buffer()
        if self.state.is_calibrating:
            self.cal_session = self.cal_session.cancel()
            self.state = vs.cancel_calibration(self.state, self.current_calibration() is not None)
        ui_calibration.refresh_panel(self)

    def current_calibration(self):
        if not self.state.camera_id:
            return None
        w, h = self.state.resolution
        return self.calibrations.get(self.state.camera_id, w, h)

    # ── Settings ────────────────────────────────────────────────────

    def save_settings(self):
        s = self._loaded_settings
        s["integration_level"] = self.state.integration_level
        s["scale_bar_visible"] = self.state.scale_bar_visible
        s["show_fps_overlay"] = self.state.show_fps_overlay
        save_settings(s, extra_keys=self._extra_settings_keys, path=self._settings_path)

    # ── Commands (buttons and keys) ─────────────────────────────────

    def _repaint_current(self):
        frame = self.display.current()
        if frame is not None:
            ui_display.upload_frame(self, frame)

    def _cb_toggle_freeze(self, sender=None, app_data=None):
        self.state = vs.toggle_freeze(self.state)
        self.display.set_frozen(self.state.is_frozen)
        self._repaint_current()
        if dpg.does_item_exist("freeze_cb"):
            dpg.set_value("freeze_cb", self.state.is_frozen)

    def _cb_toggle_scale_bar(self, sender=None, app_data=None):
        was_calibrating = self.state.is_calibrating
        self.state = vs.toggle_scale_bar(self.state, self.current_calibration() is not None)
        if self.state.is_calibrating and not was_calibrating:
            self.cal_session = CalibrationSession()
        if dpg.does_item_exist("scale_bar_cb"):
            dpg.set_value("scale_bar_cb", self.state.scale_bar_visible)
        ui_calibration.refresh_panel(self)
        self.save_settings()

    def _cb_fps_overlay(self, sender=None, app_data=None):
        self.state = vs.set_fps_overlay(self.state, app_data)
        self.save_settings()

    def _apply_integration_level(self, level: int):
        try:
            self.engine.set_level(level)
        except MemoryError:
            self._status_msg = f"Not enough memory for {level}-frame integration"
            self.engine.set_level(1)
            level = 1
        self.state = vs.set_integration_level(self.state, level)
        if dpg.does_item_exist("integ_combo"):
            dpg.set_value("integ_combo", str(level))
        self.save_settings()

    def _cb_integ_changed(self, sender=None, app_data=None):
        try:
            level = int(app_data)
        except (TypeError, ValueError):
            return
        self._apply_integration_level(level)

    def _cb_cycle_integration(self, sender=None, app_data=None):
        self._apply_integration_level(vs.cycle_integration(self.state).integration_level)

    def _set_transform(self, transform):
        self.state = vs.with_transform(self.state, transform)

    def _cb_reset_view(self, sender=None, app_data=None):
        self.state = vs.reset_view(self.state)

    def _cb_reset_all(self, sender=None, app_data=None):
        self._set_transform(self.state.view_transform.reset_all())

    def _cb_rotate_cw(self, sender=None, app_data=None):
        self._set_transform(self.state.view_transform.rotate_clockwise())

    def _cb_rotate_ccw(self, sender=None, app_data=None):
        self._set_transform(self.state.view_transform.rotate_counterclockwise())

    def _cb_flip_h(self, sender=None, app_data=None):
        self._set_transform(self.state.view_transform.toggle_horizontal_flip())

    def _cb_flip_v(self, sender=None, app_data=None):
        self._set_transform(self.state.view_transform.toggle_vertical_flip())

    def _cb_recalibrate(self, sender=None, app_data=None):
        ui_calibration.begin(self)

    def _cb_escape(self, sender=None, app_data=None):
        ui_calibration.cancel(self)

    # ── Pointer input ───────────────────────────────────────────────

    def _cb_mouse_wheel(self, sender, app_data):
        """Zoom around the cursor when the wheel turns over the image."""
        pos = ui_display.mouse_in_view(self)
        if pos is None or self._texture_id is None:
            return
        factor = wheel_zoom_factor(app_data)
        self._set_transform(
            self.state.view_transform.zoom(factor, pos, self._texture_size, ui_display.view_size(self))
        )

    def _cb_mouse_click(self, sender, app_data):
        pos = ui_display.mouse_in_view(self)
        if pos is None or self._texture_id is None:
            self._drag_last = None
            return
        self._drag_last = pos
        if self.state.is_calibrating:
            ui_calibration.pointer_down(self, pos)

    def _cb_mouse_drag(self, sender, app_data):
        """Pan by the pointer movement since the last drag event; in calibration mode extend the line."""
        if self._drag_last is None:
            return
        try:
            x0, y0 = dpg.get_item_rect_min(ui_display.VIEW_DRAWLIST)
            mx, my = dpg.get_mouse_pos(local=False)
        except Exception:
            return
        pos = (mx - x0, my - y0)
        if self.state.is_calibrating:
            ui_calibration.pointer_drag(self, pos)
        else:
            dx, dy = pos[0] - self._drag_last[0], pos[1] - self._drag_last[1]
            if dx or dy:
                self._set_transform(self.state.view_transform.pan((dx, dy)))
        self._drag_last = pos

    def _cb_mouse_release(self, sender, app_data):
        if self._drag_last is not None and self.state.is_calibrating:
            ui_calibration.pointer_up(self, self._drag_last)
        self._drag_last = None

    def _cb_double_click(self, sender, app_data):
        if ui_display.mouse_in_view(self) is not None and not self.state.is_calibrating:
            self._cb_reset_view()

    def _typing(self) -> bool:
        return dpg.does_item_exist("cal_custom_length") and dpg.is_item_active("cal_custom_length")

    def _on_key(self, command):
        def _cb(sender=None, app_data=None):
            if self._typing():
                return
            try:
                command()
            except Exception as e:
                logger.exception("Key command failed")
                self._status_msg = f"Error: {e}"
        return _cb

    # ── Build UI ────────────────────────────────────────────────────

    def _build_ui(self):
        with dpg.texture_registry(tag=ui_display.TEXTURE_REGISTRY):
            pass

        with dpg.window(tag="primary"):
            with dpg.group(horizontal=True):
                with dpg.child_window(tag="control_panel", width=320, border=False):
                    with dpg.collapsing_header(label="View", default_open=True):
                        with dpg.group(indent=10):
                            dpg.add_combo(
                                label="Integration", tag="integ_combo", width=-90,
                                items=[str(n) for n in INTEGRATION_LEVELS],
                                default_value=str(self.state.integration_level),
                                callback=self._cb_integ_changed,
                            )
                            dpg.add_checkbox(label="Freeze (space)", tag="freeze_cb", callback=self._cb_toggle_freeze)
                            dpg.add_checkbox(label="Scale bar (b)", tag="scale_bar_cb",
                                             default_value=self.state.scale_bar_visible,
                                             callback=self._cb_toggle_scale_bar)
                            dpg.add_checkbox(label="FPS overlay", default_value=self.state.show_fps_overlay,
                                             callback=self._cb_fps_overlay)
                            with dpg.group(horizontal=True):
                                dpg.add_button(label="Reset view (0)", callback=self._cb_reset_view)
                                dpg.add_button(label="Reset all", callback=self._cb_reset_all)
                            with dpg.group(horizontal=True):
                                dpg.add_button(label="Rotate [", callback=self._cb_rotate_ccw)
                                dpg.add_button(label="Rotate ]", callback=self._cb_rotate_cw)
                                dpg.add_button(label="Flip H", callback=self._cb_flip_h)
                                dpg.add_button(label="Flip V", callback=self._cb_flip_v)
                    ui_calibration.build_panel(self, "control_panel")
                    self._load_camera_module()
                with dpg.group():
                    with dpg.child_window(tag=ui_display.VIEW_PANEL, height=-50, border=True,
                                          no_scrollbar=True):
                        dpg.add_drawlist(width=800, height=600, tag=ui_display.VIEW_DRAWLIST)
                    dpg.add_text("", tag="status_text")
                    dpg.add_text("", tag="stats_text", color=[160, 160, 160])

        left = dpg.mvMouseButton_Left
        keys = [
            (_key("mvKey_Spacebar", "mvKey_Space"), self._cb_toggle_freeze),
            (_key("mvKey_B"), self._cb_toggle_scale_bar),
            (_key("mvKey_I"), self._cb_cycle_integration),
            (_key("mvKey_0"), self._cb_reset_view),
            (_key("mvKey_H"), self._cb_flip_h),
            (_key("mvKey_V"), self._cb_flip_v),
            (_key("mvKey_Close_Brace", "mvKey_RightBracket"), self._cb_rotate_cw),
            (_key("mvKey_Open_Brace", "mvKey_LeftBracket"), self._cb_rotate_ccw),
            (_key("mvKey_C"), self._cb_recalibrate),
            (_key("mvKey_Escape"), self._cb_escape),
        ]
        with dpg.handler_registry():
            dpg.add_mouse_wheel_handler(callback=self._cb_mouse_wheel)
            dpg.add_mouse_click_handler(button=left, callback=self._cb_mouse_click)
            dpg.add_mouse_drag_handler(button=left, threshold=0.0, callback=self._cb_mouse_drag)
            dpg.add_mouse_release_handler(button=left, callback=self._cb_mouse_release)
            dpg.add_mouse_double_click_handler(button=left, callback=self._cb_double_click)
            for key, command in keys:
                if key is not None:
                    dpg.add_key_press_handler(key, callback=self._on_key(command))
        ui_calibration.refresh_panel(self)

    def _load_camera_module(self):
        """Import the chosen frame source and let it build its panel (it registers itself via the API)."""
        chosen = pick_camera_module(self._discovered_modules, self._loaded_settings, prefer=self._prefer_module)
        if chosen is None:
            self._status_msg = "No frame source module enabled"
            logger.warning("No frame source module enabled")
            return
        try:
            mod = importlib.import_module(chosen["import_path"])
            mod.build_ui(self, "control_panel")
        except Exception as e:
            logger.exception("Loading frame source %s failed", chosen["name"])
            self._status_msg = f"Frame source {chosen['name']} failed: {e}"
            return
        self.camera_module_name = chosen["name"]
        logger.info("Frame source: %s", chosen["display_name"])

    def _connect_camera(self):
        if self.camera_module is None:
            return
        try:
            self.camera_module.connect(self)
        except Exception as e:
            logger.exception("Connecting frame source failed")
            self._status_msg = f"Connect failed: {e}"

    # ── Main loop ───────────────────────────────────────────────────

    def _render_tick(self):
        """Called every frame from the render loop."""
        ui_display.resize_view(self)

        if self.new_frame_ready.is_set():
            now = time.time()
            if now - self._last_display_paint_time >= (1.0 / self._disp_max_fps):
                self.new_frame_ready.clear()
                if not self.display.is_frozen:
                    frame = self.display.current()
                    if frame is not None:
                        ui_display.upload_frame(self, frame)
                self._last_display_paint_time = now

        ui_display.draw_view(self)

        if self.display.is_frozen:
            status = "Frozen"
        elif self.acq_running:
            status = "Live"
        else:
            status = "Idle"
        if self._status_msg:
            status += f"  --  {self._status_msg}"
        dpg.set_value("status_text", status)
        dpg.set_value("stats_text", ui_pipeline.stats_text(self))

    def _stop_acquisition(self):
        self.acq_stop.set()

    def run(self):
        dpg.create_context()
        self._build_ui()

        dpg.create_viewport(title="USB microscope", width=1280, height=820)
        dpg.setup_dearpygui()
        dpg.show_viewport()
        dpg.set_primary_window("primary", True)
        self._connect_camera()

        while dpg.is_dearpygui_running():
            self._render_tick()
            dpg.render_dearpygui_frame()

        # Cleanup
        self.save_settings()
        self._stop_acquisition()
        if self.acq_thread and self.acq_thread.is_alive():
            self.acq_thread.join(timeout=2.0)
        if self.camera_module and self.camera_module.is_connected():
            self.camera_module.disconnect(self)
        dpg.destroy_context()


def main(argv=None):
    parser = argparse.ArgumentParser(description="USB microscope live viewer")
    parser.add_argument("--settings-file", default=None, help="Settings JSON (default: settings.json next to gui.py)")
    parser.add_argument("--camera-index", type=int, default=None, help="OpenCV camera index to open")
    parser.add_argument("--test-pattern", action="store_true", help="Use the generated test pattern instead of a camera")
    add_logging(parser)
    args = parser.parse_args(argv)
    setup_logging(logging.getLogger(LOGGER_NAME), args.syslog, args.loglevel)

    prefer = "test_pattern" if args.test_pattern else ("opencv_camera" if args.camera_index is not None else None)
    MicroscopeGUI(settings_path=args.settings_file, prefer_module=prefer, camera_index=args.camera_index).run()


if __name__ == "__main__":
    main()
