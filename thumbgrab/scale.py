"""Scaling and pixel-format conversion into the display format.

Everything leaves here as packed 8-bit BGRA (``pixels[..., 0]`` is blue,
alpha is opaque), which is what a little-endian 32-bit ARGB bitmap expects.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import av
import cv2
import numpy as np

from .errors import ConversionError

log = logging.getLogger(__name__)

DISPLAY_FORMAT = "bgra"
BYTES_PER_PIXEL = 4


@dataclass
class PixelBuffer:
    pixels: np.ndarray
    width: int
    height: int
    pixel_format: str = DISPLAY_FORMAT
    frame_time: Optional[float] = None

    @property
    def stride(self) -> int:
        return self.width * BYTES_PER_PIXEL

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()

    def as_argb32(self) -> np.ndarray:
        """(height, width) uint32 view, one 0xAARRGGBB int per pixel."""
        return self.pixels.view("<u4").reshape(self.height, self.width)


def fit_within(width: int, height: int, bound: int) -> Tuple[int, int]:
    """Scale so the longer side equals ``bound``; the other side rounds down, min 1."""
    width, height, bound = int(width), int(height), int(bound)
    if width <= 0 or height <= 0:
        raise ConversionError(f"invalid source size {width}x{height}")
    if width >= height:
        w, h = bound, (height * bound) // width
    else:
        w, h = (width * bound) // height, bound
    return max(1, w), max(1, h)


def center_square(width: int, height: int) -> Tuple[int, int, int]:
    """Return ``(left, top, side)`` of the centred square inside a frame."""
    if width > height:
        return (width - height) // 2, 0, height
    return 0, (height - width) // 2, width


def convert_frame(frame, bound: int, interpolation: str = "BILINEAR") -> PixelBuffer:
    """Resize a decoded frame into the display format, keeping its aspect ratio."""
    try:
        w, h = fit_within(frame.width, frame.height, bound)
        out = frame.reformat(width=w, height=h, format=DISPLAY_FORMAT, interpolation=interpolation)
        arr = np.ascontiguousarray(out.to_ndarray())
    except ConversionError:
        raise
    except (av.error.FFmpegError, KeyError, ValueError, TypeError, AttributeError) as e:
        raise ConversionError(
            f"cannot convert {getattr(frame, 'format', None)} frame to {DISPLAY_FORMAT} {bound}px: {e}"
        ) from e
    if arr.shape != (h, w, BYTES_PER_PIXEL):
        raise ConversionError(f"scaler produced {arr.shape}, expected {(h, w, BYTES_PER_PIXEL)}")
    log.debug(
        "converted %dx%d -> %dx%d (%s)",
        frame.width, frame.height, w, h, interpolation,
    )
    return PixelBuffer(arr, w, h)


def crop_and_scale_square(bgrx: np.ndarray, dimension: int) -> np.ndarray:
    """Centre-crop a (h, w, 4) image to a square and resize it bicubically."""
    H, W = bgrx.shape[:2]
    left, top, side = center_square(W, H)
    roi = np.ascontiguousarray(bgrx[top:top + side, left:left + side])
    if side == dimension:
        out = roi.copy()
    else:
        try:
            out = cv2.resize(roi, (dimension, dimension), interpolation=cv2.INTER_CUBIC)
        except cv2.error as e:
            raise ConversionError(f"cannot scale {side}x{side} snapshot to {dimension}px: {e}") from e
    out = np.ascontiguousarray(out, dtype=np.uint8)
    # bgr0 carries no alpha
    out[..., 3] = 255
    return out
