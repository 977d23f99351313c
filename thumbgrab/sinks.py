"""Turn a finished ``PixelBuffer`` into whatever image object the host shows."""
from __future__ import annotations

import logging
from typing import Any, Callable

from PIL import Image

from .errors import SinkError
from .scale import PixelBuffer

log = logging.getLogger(__name__)

PixelSink = Callable[[PixelBuffer], Any]


def array_sink(buf: PixelBuffer) -> PixelBuffer:
    return buf


class PillowSink:
    def __call__(self, buf: PixelBuffer) -> Image.Image:
        try:
            return Image.frombuffer(
                "RGBA", (buf.width, buf.height), buf.tobytes(), "raw", "BGRA", 0, 1
            )
        except (ValueError, TypeError) as e:
            raise SinkError(f"cannot build {buf.width}x{buf.height} PIL image: {e}") from e


class QImageSink:
    """Build a ``QImage`` (ARGB32, deep copy) from the buffer."""

    def __init__(self):
        try:
            from PySide6 import QtGui
        except Exception as e:  # pragma: no cover - executed only when deps missing
            raise RuntimeError("PySide6 not installed; install the qt extra to build QImages.") from e
        self._QtGui = QtGui

    def __call__(self, buf: PixelBuffer):
        QtGui = self._QtGui
        img = QtGui.QImage(
            buf.pixels.data, buf.width, buf.height, buf.stride, QtGui.QImage.Format.Format_ARGB32
        )
        if img.isNull():
            raise SinkError(f"QImage rejected {buf.width}x{buf.height} buffer")
        return img.copy()


def deliver(sink: PixelSink, buf: PixelBuffer):
    try:
        return sink(buf)
    except SinkError:
        raise
    except Exception as e:
        raise SinkError(f"pixel sink {sink!r} failed: {e}") from e
