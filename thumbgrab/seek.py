from __future__ import annotations

import logging
from dataclasses import dataclass

import av

from .quality import QualityTier

log = logging.getLogger(__name__)

# int64 microseconds, same ceiling FFmpeg puts on seek targets
_MAX_SEEK_SECONDS = (2**63 - 1) / 1_000_000


@dataclass(frozen=True)
class SeekPlan:
    position: float
    seek: bool
    # accurate: nearest keyframe at or before the target
    # otherwise: nearest frame in either direction
    accurate: bool = False

    @property
    def backward(self) -> bool:
        return self.accurate

    @property
    def any_frame(self) -> bool:
        return not self.accurate


def plan_seek(
    position: float,
    tier: QualityTier,
    *,
    epsilon: float = 1e-3,
    short_seek_threshold: float = 5.0,
) -> SeekPlan:
    if position <= epsilon or position >= _MAX_SEEK_SECONDS:
        return SeekPlan(position=position, seek=False)
    if tier is QualityTier.HIGH_QUALITY:
        accurate = True
    elif tier is QualityTier.NORMAL:
        # decoding a few seconds from the start is cheaper than a precise seek
        accurate = position >= short_seek_threshold
    else:
        accurate = False
    return SeekPlan(position=position, seek=True, accurate=accurate)


def apply_seek(media, plan: SeekPlan) -> bool:
    """Seek ``media`` per ``plan`` and flush the decoder.

    A failed seek is not fatal: decoding simply continues from wherever the
    demuxer is (the start of the file, usually).
    """
    if not plan.seek:
        return True
    stream = media.stream
    tb = media.descriptor.time_base
    ok = True
    try:
        if tb:
            offset = int(plan.position / tb)
            media.container.seek(offset, stream=stream, backward=plan.backward, any_frame=plan.any_frame)
        else:
            offset = int(plan.position * av.time_base)
            media.container.seek(offset, backward=plan.backward, any_frame=plan.any_frame)
    except (av.error.FFmpegError, OSError, ValueError) as e:
        log.warning("Seek to %.2fs failed (%s); decoding from current position", plan.position, e)
        ok = False
    try:
        media.decoder.flush_buffers()
    except Exception as e:
        log.debug("flush_buffers after seek failed: %s", e)
    log.debug(
        "seek %.3fs %s -> %s",
        plan.position,
        "keyframe-backward" if plan.accurate else "any-frame",
        "ok" if ok else "failed",
    )
    return ok
