from __future__ import annotations

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Optional

import av

from .errors import DecodeError, NoFrameFoundError
from .matcher import FrameMatcher, Verdict

log = logging.getLogger(__name__)


@dataclass
class MatchResult:
    frame: Any
    frame_time: float
    decoded: int
    skipped: int
    rejected: int


def frame_time(frame, time_base: Optional[Fraction]) -> float:
    """Presentation time of ``frame`` in seconds.

    PyAV frames expose no best-effort timestamp, so a missing pts falls back
    to the packet dts the frame was decoded from, then to 0.0.
    """
    tb = time_base or getattr(frame, "time_base", None)
    if not tb:
        return 0.0
    for attr in ("pts", "dts"):
        ts = getattr(frame, attr, None)
        if ts is not None:
            return float(ts * tb)
    return 0.0


def decode_and_match(media, matcher: FrameMatcher, max_frames: int) -> MatchResult:
    """Decode the selected stream until ``matcher`` accepts a frame.

    Stops with ``NoFrameFoundError`` after ``max_frames`` decoded frames or
    at end of input. Corrupt packets are dropped; any other demuxer or
    decoder failure surfaces as ``DecodeError``.
    """
    stream = media.stream
    tb = media.descriptor.time_base
    decoded = 0
    try:
        for packet in media.container.demux(stream):
            try:
                frames = packet.decode()
            except av.error.InvalidDataError as e:
                log.debug("dropping undecodable packet: %s", e)
                continue
            for frame in frames:
                decoded += 1
                ft = frame_time(frame, tb)
                verdict = matcher.evaluate(ft)
                if verdict is Verdict.ACCEPT:
                    log.debug(
                        "accepted frame at %.3fs (target %.3fs) after %d decoded",
                        ft, matcher.target, decoded,
                    )
                    return MatchResult(frame, ft, decoded, matcher.skipped, matcher.rejected)
                if decoded >= max_frames:
                    raise NoFrameFoundError(
                        f"no frame near {matcher.target:.2f}s within {max_frames} decoded frames"
                    )
    except av.error.FFmpegError as e:
        raise DecodeError(f"decoding failed after {decoded} frames: {e}") from e
    raise NoFrameFoundError(
        f"stream ended after {decoded} frames without a frame near {matcher.target:.2f}s"
    )
