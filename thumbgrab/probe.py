from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Optional

import av

from .errors import CodecOpenError, NoVideoStreamError, OpenFailureError
from .quality import TierProfile

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamDescriptor:
    index: int
    codec_name: str
    time_base: Optional[Fraction]
    width: int
    height: int


def _codec_name(stream) -> str:
    try:
        return str(stream.codec_context.name or "")
    except Exception:
        return ""


def _describe(stream) -> StreamDescriptor:
    tb = stream.time_base
    return StreamDescriptor(
        index=int(stream.index),
        codec_name=_codec_name(stream),
        time_base=Fraction(tb) if tb else None,
        width=int(getattr(stream, "width", 0) or 0),
        height=int(getattr(stream, "height", 0) or 0),
    )


class MediaHandle:
    """An open container plus the decoder of its first video stream.

    Owned by a single extraction. ``close()`` is idempotent and also runs on
    ``__exit__``, so a ``with`` block releases the container on every path.
    """

    def __init__(self, container, stream, source: str = ""):
        self.container = container
        self.stream = stream
        self.source = source
        self.descriptor = _describe(stream)
        self.decoder_open = False
        self._closed = False

    @property
    def decoder(self):
        return self.stream.codec_context

    @property
    def closed(self) -> bool:
        return self._closed

    def open_decoder(self, profile: TierProfile) -> None:
        """Configure the stream's decoder for ``profile`` and open it.

        PyAV binds the decoder when the container is opened; this only tunes
        and opens it.
        """
        cc = self.decoder
        have = _codec_name(self.stream)
        try:
            cc.thread_type = profile.thread_type
            cc.thread_count = profile.thread_count
            if profile.decoder_options:
                cc.options.update(profile.decoder_options)
            cc.open(strict=False)
        except (av.error.FFmpegError, RuntimeError, AttributeError, ValueError, TypeError) as e:
            raise CodecOpenError(f"could not open {have or 'stream'} decoder: {e}") from e
        self.decoder_open = True
        log.debug(
            "decoder %s open: threads=%s/%s opts=%s",
            have or "?",
            profile.thread_count,
            profile.thread_type,
            dict(profile.decoder_options),
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.container.close()
        except Exception as e:
            log.debug("container close failed for %s: %s", self.source, e)

    def __enter__(self) -> "MediaHandle":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def open_media(source: str | os.PathLike, profile: TierProfile, hwaccel: Any = None) -> MediaHandle:
    """Open ``source`` with bounded stream analysis and pick its first video stream."""
    src = os.fspath(source)
    kwargs = {"container_options": profile.container_options()}
    if hwaccel is not None:
        kwargs["hwaccel"] = hwaccel
    try:
        container = av.open(src, mode="r", **kwargs)
    except (av.error.FFmpegError, OSError, ValueError) as e:
        raise OpenFailureError(f"cannot open {src}: {e}") from e
    try:
        stream = next((s for s in container.streams if s.type == "video"), None)
        if stream is None:
            raise NoVideoStreamError(f"no video stream in {src}")
        handle = MediaHandle(container, stream, src)
    except BaseException:
        container.close()
        raise
    d = handle.descriptor
    log.debug(
        "opened %s: stream #%d %s %dx%d tb=%s",
        src, d.index, d.codec_name or "?", d.width, d.height, d.time_base,
    )
    return handle
