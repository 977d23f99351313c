"""Quality tiers: every speed/accuracy knob of an extraction in one place."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Mapping

log = logging.getLogger(__name__)


class QualityTier(IntEnum):
    FAST = 0
    NORMAL = 1
    HIGH_QUALITY = 2

    @classmethod
    def coerce(cls, value) -> "QualityTier":
        """Map an int, name or tier onto a tier; anything unknown becomes NORMAL."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_")
            if key in ("HIGH", "HQ"):
                key = "HIGH_QUALITY"
            if key in cls.__members__:
                return cls[key]
            if key.isdigit():
                value = int(key)
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                pass
        log.warning("Unknown quality tier %r; using NORMAL", value)
        return cls.NORMAL


@dataclass(frozen=True)
class TierProfile:
    tier: QualityTier
    # container analysis bounds (bytes, microseconds, frames)
    probesize: int
    analyzeduration_us: int
    fpsprobesize: int
    # decoder setup; thread_count 0 lets FFmpeg pick
    thread_count: int
    thread_type: str
    decoder_options: Mapping[str, str]
    # frame matching window, seconds before the target
    skip_tolerance: float
    match_tolerance: float
    # swscale filter name understood by VideoFrame.reformat
    interpolation: str

    def container_options(self) -> Dict[str, str]:
        return {
            "probesize": str(self.probesize),
            "analyzeduration": str(self.analyzeduration_us),
            "fpsprobesize": str(self.fpsprobesize),
        }


_PROFILES: Dict[QualityTier, TierProfile] = {
    QualityTier.FAST: TierProfile(
        tier=QualityTier.FAST,
        probesize=1_000_000,
        analyzeduration_us=500_000,
        fpsprobesize=1,
        thread_count=2,
        thread_type="SLICE",
        decoder_options={
            "flags": "+low_delay",
            "flags2": "+fast",
            "skip_loop_filter": "all",
            "skip_idct": "bidir",
            "skip_frame": "noref",
        },
        skip_tolerance=3.0,
        match_tolerance=2.0,
        interpolation="POINT",
    ),
    QualityTier.NORMAL: TierProfile(
        tier=QualityTier.NORMAL,
        probesize=5_000_000,
        analyzeduration_us=1_000_000,
        fpsprobesize=3,
        thread_count=2,
        thread_type="SLICE",
        decoder_options={
            "flags": "+low_delay",
            "flags2": "+fast",
        },
        skip_tolerance=1.5,
        match_tolerance=1.0,
        interpolation="BILINEAR",
    ),
    QualityTier.HIGH_QUALITY: TierProfile(
        tier=QualityTier.HIGH_QUALITY,
        probesize=10_000_000,
        analyzeduration_us=5_000_000,
        fpsprobesize=10,
        thread_count=0,
        thread_type="AUTO",
        decoder_options={},
        skip_tolerance=0.5,
        match_tolerance=0.1,
        interpolation="LANCZOS",
    ),
}


def profile_for(tier) -> TierProfile:
    return _PROFILES[QualityTier.coerce(tier)]
