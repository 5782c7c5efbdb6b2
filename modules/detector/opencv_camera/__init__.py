"""
USB camera capture module.
Any UVC microscope OpenCV can open by index (cv2.VideoCapture): continuous live frames, requested
resolution, BGR frames converted to BGRA PixelBuffers for the integration pipeline.
"""

import logging
import threading
import time

import dearpygui.dearpygui as dpg

from lib.pixel_buffer import from_bgr

logger = logging.getLogger("microscope_viewer.capture")

DEFAULT_FRAME_W = 1920
DEFAULT_FRAME_H = 1080
# Consecutive failed reads before the worker treats the camera as unplugged
MAX_READ_FAILURES = 30

MODULE_INFO = {
    "display_name": "USB camera (OpenCV)",
    "description": "Frame source: USB microscope via cv2.VideoCapture. Applies on next startup.",
    "type": "detector",
    "default_enabled": True,
    "camera_priority": 10,
}

# Persisted keys: (key, tag, converter, default)
_CV_SAVE_KEYS = [
    ("cv_camera_index", "cv_camera_index", int, 0),
    ("cv_width", "cv_width", int, DEFAULT_FRAME_W),
    ("cv_height", "cv_height", int, DEFAULT_FRAME_H),
]


def get_setting_keys():
    """Keys this module persists (camera index, requested resolution)."""
    return [key for key, _tag, _conv, _default in _CV_SAVE_KEYS]


def get_default_settings():
    """Return default settings for this module (taken from _CV_SAVE_KEYS)."""
    return {key: default for key, _tag, _conv, default in _CV_SAVE_KEYS}


def _camera_open(camera_index: int = 0, width: int = None, height: int = None):
    """Open camera by index. Returns (cap, width, height) with the size the driver actually chose."""
    import cv2

    cap = cv2.VideoCapture(int(camera_index))
    if not cap.isOpened():
        cap.release()
        raise RuntimeError(f"Camera {camera_index} could not be opened")
    if width and height:
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(height))
    ok, frame = cap.read()
    if not ok or frame is None:
        cap.release()
        raise RuntimeError(f"Camera {camera_index} delivered no frame")
    h, w = frame.shape[:2]
    return cap, w, h


class OpenCVCameraModule:
    """USB camera module: connection UI and a continuous acquisition worker feeding gui.api.submit_frame."""

    def __init__(self):
        self._cap = None
        self._camera_index = 0
        self._frame_width = DEFAULT_FRAME_W
        self._frame_height = DEFAULT_FRAME_H
        self._cap_lock = threading.Lock()

    def is_connected(self):
        return self._cap is not None

    @property
    def camera_id(self) -> str:
        return f"usb{self._camera_index}"

    def build_ui(self, gui, parent_tag="control_panel"):
        with dpg.collapsing_header(parent=parent_tag, label="Camera (USB)", default_open=True):
            with dpg.group(indent=10):
                dpg.add_input_int(
                    label="Index", tag="cv_camera_index", width=-60, min_value=0, min_clamped=True,
                    default_value=int(gui.api.get_setting("cv_camera_index", 0)),
                )
                dpg.add_input_int(
                    label="Width", tag="cv_width", width=-60, min_value=16, min_clamped=True,
                    default_value=int(gui.api.get_setting("cv_width", DEFAULT_FRAME_W)),
                )
                dpg.add_input_int(
                    label="Height", tag="cv_height", width=-60, min_value=16, min_clamped=True,
                    default_value=int(gui.api.get_setting("cv_height", DEFAULT_FRAME_H)),
                )
                dpg.add_button(label="Connect", callback=self._make_connect_cb(gui), tag="cv_connect_btn", width=-1)
                dpg.add_button(label="Disconnect", callback=self._make_disconnect_cb(gui), tag="cv_disconnect_btn", width=-1, show=False)
                dpg.add_text("Disconnected", tag="cv_conn_status", color=[150, 150, 150])

    def _make_connect_cb(self, gui):
        def _cb(sender=None, app_data=None):
            self.connect(gui)
        return _cb

    def _make_disconnect_cb(self, gui):
        def _cb(sender=None, app_data=None):
            self.disconnect(gui)
        return _cb

    def connect(self, gui):
        api = gui.api
        index = int(dpg.get_value("cv_camera_index")) if dpg.does_item_exist("cv_camera_index") else int(api.get_setting("cv_camera_index", 0))
        req_w = int(dpg.get_value("cv_width")) if dpg.does_item_exist("cv_width") else int(api.get_setting("cv_width", DEFAULT_FRAME_W))
        req_h = int(dpg.get_value("cv_height")) if dpg.does_item_exist("cv_height") else int(api.get_setting("cv_height", DEFAULT_FRAME_H))
        try:
            cap, w, h = _camera_open(index, req_w, req_h)
        except Exception as e:
            logger.error("Camera %d connection failed: %s", index, e)
            api.set_status_message(f"Camera connection failed: {e}")
            if dpg.does_item_exist("cv_conn_status"):
                dpg.set_value("cv_conn_status", f"Failed: {e}")
            return
        self._cap = cap
        self._camera_index = index
        self._frame_width, self._frame_height = w, h
        logger.info("Camera %d connected at %dx%d", index, w, h)
        api.set_camera(self.camera_id, w, h)
        for key, value in (("cv_camera_index", index), ("cv_width", req_w), ("cv_height", req_h)):
            gui._loaded_settings[key] = value
        api.save_settings()
        api.set_status_message("Camera connected")
        if dpg.does_item_exist("cv_conn_status"):
            dpg.set_value("cv_conn_status", f"Connected ({w}×{h})")
        if dpg.does_item_exist("cv_connect_btn"):
            dpg.configure_item("cv_connect_btn", show=False)
        if dpg.does_item_exist("cv_disconnect_btn"):
            dpg.configure_item("cv_disconnect_btn", show=True)
        self.start_acquisition(gui)

    def disconnect(self, gui):
        self.stop_acquisition(gui)
        t = getattr(gui, "acq_thread", None)
        if t is not None and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=2.0)
        with self._cap_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
        logger.info("Camera %d disconnected", self._camera_index)
        if dpg.does_item_exist("cv_conn_status"):
            dpg.set_value("cv_conn_status", "Disconnected")
        if dpg.does_item_exist("cv_connect_btn"):
            dpg.configure_item("cv_connect_btn", show=True)
        if dpg.does_item_exist("cv_disconnect_btn"):
            dpg.configure_item("cv_disconnect_btn", show=False)

    def start_acquisition(self, gui):
        api = gui.api
        if self._cap is None:
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
        failures = 0
        try:
            while not api.acquisition_should_stop():
                with self._cap_lock:
                    if self._cap is None:
                        break
                    ok, frame = self._cap.read()
                if not ok or frame is None:
                    failures += 1
                    if failures >= MAX_READ_FAILURES:
                        logger.warning("Camera %d stopped delivering frames", self._camera_index)
                        api.set_status_message("Camera disconnected")
                        break
                    time.sleep(0.01)
                    continue
                failures = 0
                api.submit_frame(from_bgr(frame))
        except Exception as e:
            logger.exception("Acquisition worker failed")
            api.set_status_message(f"Error: {e}")
        finally:
            api.set_acquisition_idle()


def build_ui(gui, parent_tag="control_panel"):
    """Add Connection UI and register as camera module via API."""
    mod = OpenCVCameraModule()
    mod.build_ui(gui, parent_tag)
    gui.api.register_camera_module(mod)
    return mod
