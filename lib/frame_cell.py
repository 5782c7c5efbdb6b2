"""
Hand-off between the capture thread and the render loop, and the freeze hold.

No queue: the capture side overwrites one slot, the renderer reads whatever is newest.
Frames the renderer never saw are simply counted as dropped.
"""

import threading
from typing import Optional

from lib.pixel_buffer import PixelBuffer


class LatestFrameCell:
    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[PixelBuffer] = None
        self._sequence = 0
        self._read_sequence = 0
        self.dropped = 0

    def put(self, frame: PixelBuffer) -> None:
        with self._lock:
            if self._frame is not None and self._read_sequence != self._sequence:
                self.dropped += 1
            self._frame = frame
            self._sequence += 1

    def get(self) -> Optional[PixelBuffer]:
        """Latest frame (not consumed; the same frame is returned until the next put)."""
        with self._lock:
            self._read_sequence = self._sequence
            return self._frame

    @property
    def sequence(self) -> int:
        """Number of frames put so far (dropped ones included)."""
        return self._sequence

    def clear(self) -> None:
        with self._lock:
            self._frame = None
            self._read_sequence = self._sequence


class FrameDisplay:
    """
    What the view shows. While frozen it keeps the frame that was current at freeze time;
    the cell keeps receiving integrated frames underneath, so unfreezing lands on a warm window.
    """

    def __init__(self, cell: LatestFrameCell):
        self.cell = cell
        self._frozen_frame: Optional[PixelBuffer] = None
        self._is_frozen = False

    @property
    def is_frozen(self) -> bool:
        return self._is_frozen

    def freeze(self) -> None:
        if self._is_frozen:
            return
        self._is_frozen = True
        self._frozen_frame = self.cell.get()

    def unfreeze(self) -> None:
        self._is_frozen = False
        self._frozen_frame = None

    def set_frozen(self, frozen: bool) -> None:
        if frozen:
            self.freeze()
        else:
            self.unfreeze()

    def current(self) -> Optional[PixelBuffer]:
        """Frame on screen right now; snapshot consumers pull this."""
        if self._is_frozen:
            return self._frozen_frame
        return self.cell.get()
