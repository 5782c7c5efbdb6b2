"""
Packed colour frame type and the channel decode/encode seam.

Frames travel through the viewer as PixelBuffer: BGRA, 8 bits per channel, alpha always opaque.
Integration math only ever sees the flat float channels returned by decode_channels(), so the
packing of the camera buffer stays in this file.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

import numpy as np

BYTES_PER_PIXEL = 4
# Channel offsets inside a BGRA pixel
B, G, R, A = 0, 1, 2, 3


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Immutable BGRA frame. data is (height, width, 4) uint8 and not writeable."""

    width: int
    height: int
    data: np.ndarray = field(repr=False)
    timestamp: float = 0.0

    def __post_init__(self):
        arr = np.asarray(self.data, dtype=np.uint8)
        if arr.shape != (self.height, self.width, BYTES_PER_PIXEL):
            raise ValueError(
                f"Pixel data shape {arr.shape} does not match {self.width}x{self.height} BGRA"
            )
        if arr.flags.writeable:
            arr = arr.copy()
            arr.flags.writeable = False
        object.__setattr__(self, "data", arr)

    @classmethod
    def from_bytes(cls, raw: bytes, width: int, height: int, timestamp: float = None) -> "PixelBuffer":
        """Wrap packed BGRA bytes (row stride = width * 4)."""
        arr = np.frombuffer(raw, dtype=np.uint8)
        if arr.size != width * height * BYTES_PER_PIXEL:
            raise ValueError(f"Expected {width * height * BYTES_PER_PIXEL} bytes, got {arr.size}")
        return cls(width, height, arr.reshape(height, width, BYTES_PER_PIXEL),
                   time.time() if timestamp is None else timestamp)

    @classmethod
    def filled(cls, width: int, height: int, bgr=(0, 0, 0), timestamp: float = 0.0) -> "PixelBuffer":
        """Uniform frame, mostly useful for tests and placeholders."""
        arr = np.empty((height, width, BYTES_PER_PIXEL), dtype=np.uint8)
        arr[..., B], arr[..., G], arr[..., R] = bgr
        arr[..., A] = 255
        return cls(width, height, arr, timestamp)

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def to_bytes(self) -> bytes:
        return self.data.tobytes()

    def to_rgba_float(self) -> np.ndarray:
        """Flat RGBA float32 in 0..1, the layout dearpygui raw textures expect."""
        rgba = self.data[..., [R, G, B, A]].astype(np.float32)
        rgba /= 255.0
        return rgba.reshape(-1)


def from_bgr(frame: np.ndarray, timestamp: float = None) -> PixelBuffer:
    """Build a PixelBuffer from an OpenCV style (H, W, 3) BGR or (H, W) grey uint8 image."""
    arr = np.asarray(frame)
    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)
    if arr.ndim == 2:
        arr = np.repeat(arr[:, :, np.newaxis], 3, axis=2)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"Unsupported frame shape {arr.shape}")
    h, w = arr.shape[:2]
    out = np.empty((h, w, BYTES_PER_PIXEL), dtype=np.uint8)
    out[..., :3] = arr[..., :3]
    out[..., A] = 255
    out.flags.writeable = False
    return PixelBuffer(w, h, out, time.time() if timestamp is None else timestamp)


def decode_channels(frame: PixelBuffer) -> np.ndarray:
    """Return (3, width*height) float32 with rows R, G, B."""
    flat = frame.data.reshape(-1, BYTES_PER_PIXEL)
    out = np.empty((3, flat.shape[0]), dtype=np.float32)
    out[0] = flat[:, R]
    out[1] = flat[:, G]
    out[2] = flat[:, B]
    return out


def encode_channels(channels: np.ndarray, width: int, height: int, timestamp: float = 0.0) -> PixelBuffer:
    """
    Inverse of decode_channels. Values are clipped to 0..255 and truncated, alpha forced opaque.
    channels: (3, width*height) float rows R, G, B.
    """
    clipped = np.clip(channels, 0.0, 255.0).astype(np.uint8)
    out = np.empty((height * width, BYTES_PER_PIXEL), dtype=np.uint8)
    out[:, R] = clipped[0]
    out[:, G] = clipped[1]
    out[:, B] = clipped[2]
    out[:, A] = 255
    out = out.reshape(height, width, BYTES_PER_PIXEL)
    out.flags.writeable = False
    return PixelBuffer(width, height, out, timestamp)
