"""
Frame integration: rolling per-channel average of the last N frames.

The store is a fixed (N, 3, W*H) float32 arena written at a cursor, with a running (3, W*H)
sum beside it, so each frame costs one subtract, one add and one divide regardless of N.
Until the window is full the divisor is the number of frames seen, so the output is a growing
average right after a reset or level change instead of a dark ramp.
"""

import logging
import threading

import numpy as np

from lib.pixel_buffer import PixelBuffer, decode_channels, encode_channels

logger = logging.getLogger("microscope_viewer.integration")

INTEGRATION_LEVELS = (1, 2, 4, 8, 16)
DEFAULT_INTEGRATION_LEVEL = 1


def next_integration_level(level: int) -> int:
    """1 -> 2 -> 4 -> 8 -> 16 -> 1."""
    if level not in INTEGRATION_LEVELS:
        return DEFAULT_INTEGRATION_LEVEL
    i = INTEGRATION_LEVELS.index(level)
    return INTEGRATION_LEVELS[(i + 1) % len(INTEGRATION_LEVELS)]


class IntegrationEngine:
    """
    Averages the last `level` frames. process() runs on the capture thread; set_level() and
    reset() may come from the UI thread. All three hold the same lock.
    """

    def __init__(self, width: int, height: int, level: int = DEFAULT_INTEGRATION_LEVEL):
        if level not in INTEGRATION_LEVELS:
            raise ValueError(f"Integration level must be one of {INTEGRATION_LEVELS}, got {level}")
        self._lock = threading.Lock()
        self._width = int(width)
        self._height = int(height)
        self._level = level
        self._store = None        # (N, 3, W*H) float32, None when level == 1
        self._accumulator = None  # (3, W*H) float32
        self._cursor = 0
        self._fill = 0
        self._allocate()

    # ── State ────────────────────────────────────────────────────────

    @property
    def level(self) -> int:
        return self._level

    @property
    def fill_count(self) -> int:
        return self._fill

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def frame_size(self) -> tuple[int, int]:
        return (self._width, self._height)

    def _allocate(self) -> None:
        """Drop everything and allocate fresh buffers for the current level and size. Caller holds the lock (or is __init__)."""
        self._store = None
        self._accumulator = None
        self._cursor = 0
        self._fill = 0
        if self._level == 1:
            return
        pixel_count = self._width * self._height
        try:
            self._store = np.zeros((self._level, 3, pixel_count), dtype=np.float32)
            self._accumulator = np.zeros((3, pixel_count), dtype=np.float32)
        except MemoryError:
            self._store = None
            self._accumulator = None
            logger.error(
                "Cannot allocate integration buffers for N=%d at %dx%d",
                self._level, self._width, self._height,
            )
            raise
        logger.debug(
            "Allocated integration buffers N=%d %dx%d (%.1f MB)",
            self._level, self._width, self._height,
            (self._store.nbytes + self._accumulator.nbytes) / 1e6,
        )

    # ── Control (UI thread) ──────────────────────────────────────────

    def set_level(self, level: int) -> None:
        """Change N. Any change discards all held frames; the next frame starts a fresh average."""
        if level not in INTEGRATION_LEVELS:
            raise ValueError(f"Integration level must be one of {INTEGRATION_LEVELS}, got {level}")
        with self._lock:
            if level == self._level:
                return
            logger.info("Integration level %d -> %d", self._level, level)
            self._level = level
            self._allocate()

    def reset(self) -> None:
        """Clear held frames, keep N."""
        with self._lock:
            self._allocate()

    # ── Processing (capture thread) ──────────────────────────────────

    def process(self, frame: PixelBuffer) -> PixelBuffer:
        with self._lock:
            if self._level == 1:
                return frame
            if (frame.width, frame.height) != (self._width, self._height):
                logger.info(
                    "Frame size changed %dx%d -> %dx%d, reallocating integration buffers",
                    self._width, self._height, frame.width, frame.height,
                )
                self._width, self._height = frame.width, frame.height
                self._allocate()

            current = decode_channels(frame)
            slot = self._store[self._cursor]
            if self._fill == self._level:
                # Oldest frame sits under the cursor once the window is full
                self._accumulator -= slot
            self._accumulator += current
            slot[...] = current

            self._cursor = (self._cursor + 1) % self._level
            self._fill = min(self._fill + 1, self._level)

            averaged = self._accumulator / np.float32(self._fill)
            return encode_channels(averaged, self._width, self._height, frame.timestamp)
