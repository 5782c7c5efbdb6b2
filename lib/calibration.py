"""
Pixel-to-micron calibration: the persisted store, known-length presets, custom length parsing
and the draw-a-line calibration workflow.

One Calibration per (camera id, width, height); recalibrating overwrites it wholesale.
The workflow is a set of pure transitions on an immutable CalibrationSession; only
submit_known_length() touches the store, and only when the length is usable.
"""

from __future__ import annotations

import enum
import json
import logging
import pathlib
import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import NamedTuple, Optional

from lib.coordinate_transform import distance
from lib.scale_bar import microns_per_pixel

logger = logging.getLogger("microscope_viewer.calibration")


def calibration_key(camera_id: str, width: int, height: int) -> str:
    return f"{camera_id}_{int(width)}x{int(height)}"


@dataclass(frozen=True)
class Calibration:
    camera_id: str
    width: int
    height: int
    microns_per_pixel: float
    created_at: datetime = None

    def __post_init__(self):
        if not self.microns_per_pixel > 0:
            raise ValueError(f"microns_per_pixel must be > 0, got {self.microns_per_pixel}")
        if self.created_at is None:
            object.__setattr__(self, "created_at", datetime.now())

    @property
    def key(self) -> str:
        return calibration_key(self.camera_id, self.width, self.height)

    @property
    def resolution_string(self) -> str:
        return f"{self.width}×{self.height}"

    def to_dict(self) -> dict:
        return {
            "camera_id": self.camera_id,
            "width": self.width,
            "height": self.height,
            "microns_per_pixel": self.microns_per_pixel,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Calibration":
        return cls(
            camera_id=str(d["camera_id"]),
            width=int(d["width"]),
            height=int(d["height"]),
            microns_per_pixel=float(d["microns_per_pixel"]),
            created_at=datetime.fromisoformat(d["created_at"]) if d.get("created_at") else None,
        )


class CalibrationStore:
    """
    Calibrations keyed by "{camera_id}_{width}x{height}", persisted as one JSON object.
    Every mutation rewrites the file; the last write wins. A missing or broken file loads as empty.
    """

    def __init__(self, path=None):
        self.path = pathlib.Path(path) if path is not None else None
        self._calibrations: dict[str, Calibration] = {}
        self._load()

    def __len__(self) -> int:
        return len(self._calibrations)

    def __iter__(self):
        return iter(list(self._calibrations.values()))

    def get(self, camera_id: str, width: int, height: int) -> Optional[Calibration]:
        return self._calibrations.get(calibration_key(camera_id, width, height))

    def has(self, camera_id: str, width: int, height: int) -> bool:
        return self.get(camera_id, width, height) is not None

    def put(self, calibration: Calibration) -> None:
        self._calibrations[calibration.key] = calibration
        self._persist()
        logger.info("Saved calibration: %s = %g µm/px", calibration.key, calibration.microns_per_pixel)

    def delete(self, camera_id: str, width: int, height: int) -> None:
        key = calibration_key(camera_id, width, height)
        if self._calibrations.pop(key, None) is not None:
            self._persist()
            logger.info("Deleted calibration: %s", key)

    def delete_all(self, camera_id: str) -> None:
        keep = {k: c for k, c in self._calibrations.items() if c.camera_id != camera_id}
        removed = len(self._calibrations) - len(keep)
        self._calibrations = keep
        self._persist()
        logger.info("Deleted %d calibration(s) for camera %s", removed, camera_id)

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            logger.debug("No saved calibrations found")
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            loaded = {}
            for key, entry in data.items():
                cal = Calibration.from_dict(entry)
                loaded[cal.key] = cal
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Failed to read calibrations from %s: %s", self.path, e)
            return
        self._calibrations = loaded
        logger.info("Loaded %d calibrations", len(loaded))

    def _persist(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump({k: c.to_dict() for k, c in self._calibrations.items()}, f, indent=2)
            logger.debug("Persisted %d calibrations", len(self._calibrations))
        except OSError as e:
            logger.error("Failed to write calibrations to %s: %s", self.path, e)


# ── Known lengths ────────────────────────────────────────────────────

class Preset(NamedTuple):
    name: str
    length_microns: float
    description: str


PRESETS = (
    Preset("0402", 1000.0, "0402 component (1.0 mm)"),
    Preset("0603", 1600.0, "0603 component (1.6 mm)"),
    Preset("0805", 2000.0, "0805 component (2.0 mm)"),
    Preset("Header (2.54mm)", 2540.0, "Header pitch (2.54 mm)"),
)

_UNIT_MICRONS = {
    "µm": 1.0,   # micro sign
    "μm": 1.0,   # greek mu
    "um": 1.0,
    "mm": 1000.0,
    "cm": 10000.0,
    "in": 25400.0,
    "inch": 25400.0,
}
_LENGTH_RE = re.compile(r"^(\d+(?:\.\d*)?|\.\d+)\s*(µm|μm|um|mm|cm|inch|in)?$")


def parse_length(text: str) -> Optional[float]:
    """'2.54 mm', '500um', '0.1in', '1.6' (mm) -> microns. None if unparseable or not positive."""
    if text is None:
        return None
    m = _LENGTH_RE.match(text.strip().lower())
    if not m:
        return None
    value = float(m.group(1)) * _UNIT_MICRONS[m.group(2) or "mm"]
    if value <= 0:
        return None
    return value


# ── Calibration line ─────────────────────────────────────────────────

@dataclass(frozen=True)
class CalibrationLine:
    """Two image-space points; both set means complete."""

    start: Optional[tuple] = None
    end: Optional[tuple] = None

    @property
    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def length_pixels(self) -> Optional[float]:
        if not self.is_complete:
            return None
        return distance(self.start, self.end)


# ── Workflow ─────────────────────────────────────────────────────────

class CalibrationState(enum.Enum):
    IDLE = "idle"
    DRAWING_LINE = "drawing_line"
    LINE_COMPLETE = "line_complete"
    AWAITING_KNOWN_LENGTH = "awaiting_known_length"
    COMMITTED = "committed"


UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class CalibrationSession:
    state: CalibrationState = CalibrationState.IDLE
    line: CalibrationLine = CalibrationLine()
    error: Optional[str] = None
    committed: Optional[Calibration] = None

    def begin_line(self, image_point) -> "CalibrationSession":
        """Pointer down: start a new line, replacing any line in progress."""
        return CalibrationSession(CalibrationState.DRAWING_LINE, CalibrationLine(start=tuple(image_point)))

    def update_line(self, image_point) -> "CalibrationSession":
        if self.state is not CalibrationState.DRAWING_LINE:
            return self
        return replace(self, line=replace(self.line, end=tuple(image_point)))

    def finish_line(self) -> "CalibrationSession":
        """Pointer up: a line with length becomes complete, a bare click is dropped."""
        if self.state is not CalibrationState.DRAWING_LINE:
            return self
        length = self.line.length_pixels
        if length is None or length <= 0:
            return CalibrationSession()
        return replace(self, state=CalibrationState.LINE_COMPLETE)

    def request_known_length(self) -> "CalibrationSession":
        if self.state is not CalibrationState.LINE_COMPLETE:
            return self
        return replace(self, state=CalibrationState.AWAITING_KNOWN_LENGTH, error=None)

    def back(self) -> "CalibrationSession":
        if self.state is not CalibrationState.AWAITING_KNOWN_LENGTH:
            return self
        return replace(self, state=CalibrationState.LINE_COMPLETE, error=None)

    def cancel(self) -> "CalibrationSession":
        """Abort from any state; the store is never touched."""
        return CalibrationSession()

    def submit_known_length(
        self,
        store: CalibrationStore,
        camera_id: str,
        width: int,
        height: int,
        microns: float = None,
        text: str = None,
    ) -> "CalibrationSession":
        """
        Commit a preset (microns) or typed length (text). On success the calibration is written to
        the store and a COMMITTED session carrying it is returned; otherwise the session stays in
        AWAITING_KNOWN_LENGTH with error set and the store is untouched.
        """
        if self.state is not CalibrationState.AWAITING_KNOWN_LENGTH:
            return self
        known = microns if microns is not None else parse_length(text)
        scale = microns_per_pixel(self.line.length_pixels, known) if known and known > 0 else 0.0
        if scale <= 0:
            return replace(self, error=UNPARSEABLE)
        calibration = Calibration(camera_id, int(width), int(height), scale)
        store.put(calibration)
        return CalibrationSession(CalibrationState.COMMITTED, committed=calibration)

    def acknowledge(self) -> "CalibrationSession":
        """COMMITTED -> IDLE once the caller has picked up the new calibration."""
        if self.state is not CalibrationState.COMMITTED:
            return self
        return CalibrationSession()
