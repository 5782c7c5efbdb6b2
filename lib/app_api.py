"""
Application API for detector modules.

Single facade with clear names for all operations modules need.
Use gui.api.xxx() instead of gui.xxx so the contract is explicit and stable.
"""

from __future__ import annotations

from typing import Any, Optional

from lib.pixel_buffer import PixelBuffer


class AppAPI:
    """
    Clear API for modules. All frame, acquisition, settings and status operations go through
    this so names are consistent and the contract is documented.
    """

    def __init__(self, gui: Any) -> None:
        self._gui = gui

    # ─── Frames ─────────────────────────────────────────────────────────────

    def submit_frame(self, frame: PixelBuffer) -> None:
        """Submit one captured frame (integration, latest-frame cell, repaint). Call from acquisition thread."""
        self._gui.submit_frame(frame)

    def clear_frame_buffer(self) -> None:
        """Drop held frames so the next submitted frame starts a fresh integration window."""
        self._gui.clear_frame_buffer()

    def get_current_display_frame(self) -> Optional[PixelBuffer]:
        """Frame currently on screen (frozen one while frozen). For snapshot/recording consumers."""
        return self._gui.display.current()

    # ─── Acquisition (camera worker) ─────────────────────────────────────────

    def acquisition_should_stop(self) -> bool:
        """True if the user requested stop. Check in your acquisition loop."""
        return self._gui.acq_stop.is_set()

    def set_acquisition_idle(self) -> None:
        """Call when your acquisition worker has finished."""
        self._gui.acq_running = False

    def set_acquisition_thread(self, thread: Any) -> None:
        """Set the current acquisition thread (so app can join on exit)."""
        self._gui.acq_thread = thread
        self._gui.acq_running = True

    def clear_acquisition_stop_flag(self) -> None:
        """Clear the stop event before starting acquisition."""
        self._gui.acq_stop.clear()

    def signal_acquisition_stop(self) -> None:
        """Request the acquisition worker to stop."""
        self._gui.acq_stop.set()

    # ─── Camera identity and frame size ─────────────────────────────────────

    def register_camera_module(self, module: Any) -> None:
        """Called by a detector module's build_ui so the app can connect/start/stop it."""
        self._gui.camera_module = module

    def is_camera_connected(self) -> bool:
        m = self._gui.camera_module
        return m is not None and m.is_connected()

    def set_camera(self, camera_id: str, width: int, height: int) -> None:
        """Camera calls on connect or format change. Calibration lookups key on (camera_id, width, height)."""
        self._gui.set_camera(camera_id, width, height)

    # ─── Progress & status ──────────────────────────────────────────────────

    def set_status_message(self, msg: str) -> None:
        """Set the main status bar message."""
        self._gui._status_msg = msg

    # ─── Settings ───────────────────────────────────────────────────────────

    def get_loaded_settings(self) -> dict:
        """Loaded settings dict (for default_value in UI)."""
        return getattr(self._gui, "_loaded_settings", {}) or {}

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Single setting from loaded dict (for default_value when building UI)."""
        return self.get_loaded_settings().get(key, default)

    def set_setting(self, key: str, value: Any) -> None:
        """Update one loaded setting and persist."""
        self._gui._loaded_settings[key] = value
        self.save_settings()

    def save_settings(self) -> None:
        """Persist current settings (module keys included)."""
        self._gui.save_settings()
