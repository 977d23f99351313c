"""Error types raised by thumbnail extraction.

Every failure is terminal for the call that raised it; nothing here is
retried internally. Seek failures and a missing hardware decoder are not
errors: both fall back silently and only show up in the log.
"""
from __future__ import annotations


class ThumbnailError(Exception):
    """Base class for all thumbnail failures."""


class InvalidArgumentError(ThumbnailError, ValueError):
    """Bad dimension, timestamp or source; raised before anything is opened."""


class OpenFailureError(ThumbnailError):
    """The container could not be opened or analysed."""


class NoVideoStreamError(ThumbnailError):
    pass


class NoDecoderError(ThumbnailError):
    """No decoder is registered for the stream's codec."""


class CodecOpenError(ThumbnailError):
    pass


class DecodeError(ThumbnailError):
    """Demuxer or decoder failed mid-stream."""


class NoFrameFoundError(ThumbnailError):
    """Input exhausted or frame limit reached without an acceptable frame."""


class ConversionError(ThumbnailError):
    """The scaler could not be built or run for this format/size."""


class SnapshotError(ThumbnailError):
    """The playback engine refused the capture or replied with garbage."""


class SinkError(ThumbnailError):
    pass
