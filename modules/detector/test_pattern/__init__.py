"""
Synthetic frame source: a fine grid with solder-pad like blobs plus per-frame sensor noise.
Runs without hardware, so integration, zoom and calibration can be tried on any machine.
"""

import logging
import threading
import time

import dearpygui.dearpygui as dpg
import numpy as np

from lib.pixel_buffer import from_bgr

logger = logging.getLogger("microscope_viewer.capture")

CAMERA_ID = "test_pattern"

MODULE_INFO = {
    "display_name": "Test pattern",
    "description": "Frame source: generated noisy pattern, no camera needed. Applies on next startup.",
    "type": "detector",
    "default_enabled": True,
    "camera_priority": 1,
}

# (key, tag, converter, default)
_TP_SAVE_KEYS = [
    ("tp_width", "tp_width", int, 640),
    ("tp_height", "tp_height", int, 480),
    ("tp_fps", "tp_fps", float, 30.0),
    ("tp_noise", "tp_noise", float, 25.0),
]


def get_setting_keys():
    return [key for key, _tag, _conv, _default in _TP_SAVE_KEYS]


def get_default_settings():
    return {key: default for key, _tag, _conv, default in _TP_SAVE_KEYS}


def render_base(width: int, height: int, grid_pitch: int = 40) -> np.ndarray:
    """
    Noise-free (H, W, 3) float32 BGR scene: dark board, bright grid lines every grid_pitch pixels,
    a row of round pads. Integration should converge to this.
    """
    yy, xx = np.mgrid[0:height, 0:width].astype(np.float32)
    img = np.empty((height, width, 3), dtype=np.float32)
    img[..., 0] = 40.0 + 40.0 * xx / max(width - 1, 1)
    img[..., 1] = 90.0 + 30.0 * yy / max(height - 1, 1)
    img[..., 2] = 30.0
    grid = (xx.astype(np.int32) % grid_pitch == 0) | (yy.astype(np.int32) % grid_pitch == 0)
    img[grid] = (200.0, 200.0, 200.0)
    radius = max(grid_pitch // 3, 2)
    cy = height / 2.0
    for i in range(1, max(width // (grid_pitch * 2), 1) + 1):
        cx = i * grid_pitch * 2.0 - grid_pitch
        pad = (xx - cx) ** 2 + (yy - cy) ** 2 <= radius ** 2
        img[pad] = (150.0, 190.0, 220.0)
    return img


def noisy_frame(base: np.ndarray, noise_sigma: float, rng: np.random.Generator, timestamp: float = None):
    """One frame: base plus gaussian noise, quantised to uint8 and wrapped as a PixelBuffer."""
    if noise_sigma > 0:
        frame = base + rng.normal(0.0, noise_sigma, size=base.shape).astype(np.float32)
    else:
        frame = base
    return from_bgr(np.clip(frame, 0, 255).astype(np.uint8), timestamp)


class TestPatternModule:
    """Generated frame source with the same connect/start/stop surface as a camera."""

    def __init__(self):
        self._connected = False
        self._width = 640
        self._height = 480
        self._fps = 30.0
        self._noise = 25.0

    def is_connected(self):
        return self._connected

    @property
    def camera_id(self) -> str:
        return CAMERA_ID

    def build_ui(self, gui, parent_tag="control_panel"):
        api = gui.api
        with dpg.collapsing_header(parent=parent_tag, label="Test pattern", default_open=True):
            with dpg.group(indent=10):
                dpg.add_input_int(label="Width", tag="tp_width", width=-60, min_value=16, min_clamped=True,
                                  default_value=int(api.get_setting("tp_width", 640)))
                dpg.add_input_int(label="Height", tag="tp_height", width=-60, min_value=16, min_clamped=True,
                                  default_value=int(api.get_setting("tp_height", 480)))
                dpg.add_input_float(label="FPS", tag="tp_fps", width=-60, min_value=1.0, max_value=120.0,
                                    min_clamped=True, max_clamped=True, format="%.0f",
                                    default_value=float(api.get_setting("tp_fps", 30.0)))
                dpg.add_slider_float(label="Noise", tag="tp_noise", width=-60, min_value=0.0, max_value=80.0,
                                     format="%.0f", default_value=float(api.get_setting("tp_noise", 25.0)),
                                     callback=lambda s, a: self._on_noise(gui, a))
                dpg.add_button(label="Start", callback=lambda: self.connect(gui), tag="tp_connect_btn", width=-1)
                dpg.add_button(label="Stop", callback=lambda: self.disconnect(gui), tag="tp_disconnect_btn",
                               width=-1, show=False)

    def _read_ui(self, gui):
        api = gui.api
        for key, tag, conv, default in _TP_SAVE_KEYS:
            value = dpg.get_value(tag) if dpg.does_item_exist(tag) else api.get_setting(key, default)
            try:
                gui._loaded_settings[key] = conv(value)
            except (TypeError, ValueError):
                gui._loaded_settings[key] = default
        s = gui._loaded_settings
        self._width = max(16, int(s["tp_width"]))
        self._height = max(16, int(s["tp_height"]))
        self._fps = min(max(float(s["tp_fps"]), 1.0), 120.0)
        self._noise = max(0.0, float(s["tp_noise"]))

    def _on_noise(self, gui, value):
        self._noise = max(0.0, float(value))
        gui.api.set_setting("tp_noise", self._noise)

    def connect(self, gui):
        self._read_ui(gui)
        gui.api.save_settings()
        self._connected = True
        logger.info("Test pattern started at %dx%d, %.0f fps", self._width, self._height, self._fps)
        gui.api.set_camera(CAMERA_ID, self._width, self._height)
        gui.api.set_status_message("Test pattern running")
        if dpg.does_item_exist("tp_connect_btn"):
            dpg.configure_item("tp_connect_btn", show=False)
        if dpg.does_item_exist("tp_disconnect_btn"):
            dpg.configure_item("tp_disconnect_btn", show=True)
        self.start_acquisition(gui)

    def disconnect(self, gui):
        self.stop_acquisition(gui)
        t = getattr(gui, "acq_thread", None)
        if t is not None and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=2.0)
        self._connected = False
        if dpg.does_item_exist("tp_connect_btn"):
            dpg.configure_item("tp_connect_btn", show=True)
        if dpg.does_item_exist("tp_disconnect_btn"):
            dpg.configure_item("tp_disconnect_btn", show=False)

    def start_acquisition(self, gui):
        api = gui.api
        if not self._connected:
            api.set_status_message("Not connected")
            return
        api.clear_acquisition_stop_flag()
        t = threading.Thread(target=self._run_worker, args=(gui,), daemon=True)
        api.set_acquisition_thread(t)
        t.start()

    def stop_acquisition(self, gui):
        gui.api.signal_acquisition_stop()

    def _run_worker(self, gui):
        api = gui.api
        rng = np.random.default_rng()
        try:
            base = render_base(self._width, self._height)
            period = 1.0 / self._fps
            next_due = time.monotonic()
            while not api.acquisition_should_stop():
                api.submit_frame(noisy_frame(base, self._noise, rng))
                next_due += period
                delay = next_due - time.monotonic()
                if delay > 0:
                    time.sleep(delay)
                else:
                    next_due = time.monotonic()
        except Exception as e:
            logger.exception("Test pattern worker failed")
            api.set_status_message(f"Error: {e}")
        finally:
            api.set_acquisition_idle()


def build_ui(gui, parent_tag="control_panel"):
    mod = TestPatternModule()
    mod.build_ui(gui, parent_tag)
    gui.api.register_camera_module(mod)
    return mod
