"""Live snapshots from a running player.

The player is only a data source: it is asked once for its current video
frame as a raw packed buffer and nothing else about it is touched. Snapshot
calls against one player must not overlap; callers serialise them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

import numpy as np

from .errors import ConversionError, SnapshotError
from .scale import BYTES_PER_PIXEL, PixelBuffer, crop_and_scale_square

log = logging.getLogger(__name__)

# packed 32-bit layouts whose first three bytes are B, G, R
SUPPORTED_FORMATS = ("bgr0", "bgra")


@dataclass(frozen=True)
class RawSnapshot:
    width: int
    height: int
    stride: int
    pixel_format: str
    data: bytes

    @classmethod
    def from_node(cls, node: Any) -> "RawSnapshot":
        """Parse the ``{w, h, stride, format, data}`` map a player returns."""
        if not isinstance(node, Mapping):
            raise SnapshotError(f"snapshot reply is {type(node).__name__}, expected a map")
        try:
            w, h, stride = int(node["w"]), int(node["h"]), int(node["stride"])
            fmt = str(node["format"])
            data = node["data"]
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"incomplete snapshot reply: {e!r}") from e
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise SnapshotError(f"snapshot data is {type(data).__name__}, expected bytes")
        return cls(w, h, stride, fmt, bytes(data))

    def validate(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise SnapshotError(f"snapshot has no pixels ({self.width}x{self.height})")
        if self.stride < self.width * BYTES_PER_PIXEL:
            raise SnapshotError(f"stride {self.stride} too small for width {self.width}")
        need = self.stride * (self.height - 1) + self.width * BYTES_PER_PIXEL
        if len(self.data) < need:
            raise SnapshotError(f"snapshot data is {len(self.data)} bytes, need {need}")
        if self.pixel_format not in SUPPORTED_FORMATS:
            raise ConversionError(f"unsupported snapshot pixel format {self.pixel_format!r}")

    def as_array(self) -> np.ndarray:
        """Stride-aware (height, width, 4) view of the buffer, no copy."""
        self.validate()
        buf = np.frombuffer(self.data, dtype=np.uint8)
        rows = np.lib.stride_tricks.as_strided(
            buf,
            shape=(self.height, self.width, BYTES_PER_PIXEL),
            strides=(self.stride, BYTES_PER_PIXEL, 1),
            writeable=False,
        )
        return rows


class SnapshotSource(Protocol):
    def capture(self) -> RawSnapshot: ...


class MpvSnapshotSource:
    """Grabs ``screenshot-raw video`` from a python-mpv style player handle."""

    def __init__(self, player: Any, includes: str = "video"):
        self.player = player
        self.includes = includes

    def capture(self) -> RawSnapshot:
        cmd = getattr(self.player, "node_command", None) or getattr(self.player, "command")
        try:
            reply = cmd("screenshot-raw", self.includes)
        except Exception as e:
            raise SnapshotError(f"screenshot-raw failed: {e}") from e
        return RawSnapshot.from_node(reply)


class CallableSnapshotSource:
    def __init__(self, fn: Callable[[], Mapping[str, Any]]):
        self._fn = fn

    def capture(self) -> RawSnapshot:
        try:
            reply = self._fn()
        except Exception as e:
            raise SnapshotError(f"snapshot capture failed: {e}") from e
        return RawSnapshot.from_node(reply)


def convert_snapshot(raw: RawSnapshot, dimension: int) -> PixelBuffer:
    """Centre-crop ``raw`` to a square and scale it to ``dimension`` squared."""
    arr = raw.as_array()
    log.debug(
        "snapshot %dx%d stride=%d %s -> %dpx square",
        raw.width, raw.height, raw.stride, raw.pixel_format, dimension,
    )
    out = crop_and_scale_square(arr, dimension)
    return PixelBuffer(out, dimension, dimension)
