"""Shared fixtures and PyAV stand-ins.

The fakes mimic the handful of PyAV attributes the pipeline touches
(container.demux/seek/close, stream.time_base/codec_context, frame.pts,
frame.reformat) so the decode loop can be driven with exact timestamps.
"""
from __future__ import annotations

from fractions import Fraction
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest

from thumbgrab.probe import MediaHandle

MS = Fraction(1, 1000)


class FakeFrame:
    def __init__(self, pts: Optional[int], width: int = 64, height: int = 36, dts: Optional[int] = None,
                 fmt: str = "yuv420p"):
        self.pts = pts
        self.dts = dts
        self.width = width
        self.height = height
        self.format = fmt
        self.reformat_calls = []

    def reformat(self, width=None, height=None, format=None, interpolation=None):
        self.reformat_calls.append((width, height, format, interpolation))
        return _Reformatted(width, height)


class _Reformatted:
    def __init__(self, w, h):
        self.w, self.h = w, h

    def to_ndarray(self):
        arr = np.zeros((self.h, self.w, 4), dtype=np.uint8)
        arr[..., 3] = 255
        return arr


class FakePacket:
    def __init__(self, frames=(), error: Optional[Exception] = None):
        self._frames = list(frames)
        self._error = error

    def decode(self):
        if self._error is not None:
            raise self._error
        return list(self._frames)


class FakeCodecContext:
    def __init__(self, name: str = "h264"):
        self.name = name
        self.options = {}
        self.thread_type = None
        self.thread_count = None
        self.open_calls = 0
        self.flushes = 0
        self.open_error: Optional[Exception] = None

    def open(self, strict=True):
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error

    def flush_buffers(self):
        self.flushes += 1


class FakeStream:
    def __init__(self, type: str = "video", index: int = 0, time_base=MS, codec: str = "h264",
                 width: int = 64, height: int = 36):
        self.type = type
        self.index = index
        self.time_base = time_base
        self.codec_context = FakeCodecContext(codec)
        self.width = width
        self.height = height


class FakeContainer:
    def __init__(self, streams: List[FakeStream], packets=(), seek_error: Optional[Exception] = None):
        self.streams = streams
        self.packets = list(packets)
        self.seek_error = seek_error
        self.seeks = []
        self.close_calls = 0
        self.demuxed = 0

    def demux(self, stream=None):
        for p in self.packets:
            self.demuxed += 1
            yield p

    def seek(self, offset, **kwargs):
        self.seeks.append((offset, kwargs))
        if self.seek_error is not None:
            raise self.seek_error

    def close(self):
        self.close_calls += 1


def packets_for(times_s, width: int = 64, height: int = 36):
    """One packet per frame, pts in milliseconds; ``None`` means no timestamp."""
    out = []
    for t in times_s:
        pts = None if t is None else int(round(t * 1000))
        out.append(FakePacket([FakeFrame(pts, width, height)]))
    return out


def make_media(times_s=(0.0,), width=64, height=36, codec="h264", **container_kw) -> MediaHandle:
    stream = FakeStream(codec=codec, width=width, height=height)
    container = FakeContainer([stream], packets_for(times_s, width, height), **container_kw)
    return MediaHandle(container, stream, "fake.mp4")


class SpyOpener:
    """Stands in for ``open_media``; records every open attempt."""

    def __init__(self, factory=None):
        self.calls = []
        self.handles: List[MediaHandle] = []
        self._factory = factory or (lambda: make_media((0.0, 1.0, 2.0)))

    def __call__(self, source, profile, hwaccel=None):
        self.calls.append((source, profile.tier, hwaccel))
        h = self._factory()
        self.handles.append(h)
        return h


@pytest.fixture
def spy_opener():
    return SpyOpener()


@pytest.fixture(scope="session")
def sample_video(tmp_path_factory) -> Path:
    """Ten-second 160x90 mpeg4 clip, 10 fps, one keyframe per second."""
    av = pytest.importorskip("av")
    path = tmp_path_factory.mktemp("media") / "sample.mp4"
    try:
        container = av.open(str(path), mode="w")
        stream = container.add_stream("mpeg4", rate=10)
        stream.width = 160
        stream.height = 90
        stream.pix_fmt = "yuv420p"
        stream.codec_context.gop_size = 10
        for i in range(100):
            img = np.zeros((90, 160, 3), dtype=np.uint8)
            img[..., 0] = (i * 2) % 256
            img[:, : 16 + i, 1] = 200
            frame = av.VideoFrame.from_ndarray(img, format="rgb24")
            frame.pts = i
            frame.time_base = Fraction(1, 10)
            for packet in stream.encode(frame):
                container.mux(packet)
        for packet in stream.encode():
            container.mux(packet)
        container.close()
    except Exception as e:  # pragma: no cover - depends on the FFmpeg build
        pytest.skip(f"cannot encode sample clip: {e}")
    return path
