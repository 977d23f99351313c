from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)

MAX_DIMENSION = 4096


@dataclass(frozen=True)
class AppContext:
    """Host application context handed over once at startup.

    Hardware decoding stays disabled until one is registered. ``hw_device``
    is passed to FFmpeg when the device is created (``/dev/dri/renderD128``,
    a CUDA ordinal, ...); ``hw_options`` go along as device options.
    """

    name: str = "thumbgrab"
    hw_device: Optional[str] = None
    hw_options: Dict[str, str] = field(default_factory=dict)


@dataclass
class ThumbnailConfig:
    # hard cap on decoded frames per extraction, whatever the tier
    max_frames: int = 300
    default_dimension: int = 512
    # "auto" picks the first platform candidate FFmpeg was built with
    hw_device_type: str = "auto"
    hw_enabled: bool = True
    # positions at or below this are decoded from the start without seeking
    seek_epsilon: float = 1e-3
    # NORMAL tier: seeks shorter than this use the fast any-frame seek
    short_seek_threshold: float = 5.0
    # workers for ThumbnailService.submit()
    max_workers: int = 2

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @staticmethod
    def from_json(s: str) -> "ThumbnailConfig":
        d = json.loads(s)
        c = ThumbnailConfig()
        known = {f.name for f in fields(c)}
        for k, v in d.items():
            if k not in known:
                log.warning("Ignoring unknown config key %r", k)
                continue
            setattr(c, k, v)
        c.validate()
        return c

    @classmethod
    def from_env(cls, base: Optional["ThumbnailConfig"] = None) -> "ThumbnailConfig":
        """Overlay ``THUMBGRAB_*`` environment variables on ``base``."""

        c = base if base is not None else cls()
        raw = os.getenv("THUMBGRAB_MAX_FRAMES", "").strip()
        if raw:
            try:
                c.max_frames = int(raw)
            except ValueError:
                log.warning("THUMBGRAB_MAX_FRAMES=%r is not an integer; keeping %d", raw, c.max_frames)
        dev = os.getenv("THUMBGRAB_HW_DEVICE", "").strip().lower()
        if dev:
            c.hw_device_type = dev
        if os.getenv("THUMBGRAB_DISABLE_HW", "").lower() in ("1", "true", "yes"):
            c.hw_enabled = False
        eps = os.getenv("THUMBGRAB_SEEK_EPSILON", "").strip()
        if eps:
            try:
                c.seek_epsilon = float(eps)
            except ValueError:
                log.warning("THUMBGRAB_SEEK_EPSILON=%r is not a number; keeping %g", eps, c.seek_epsilon)
        c.validate()
        return c

    def validate(self) -> None:
        if int(self.max_frames) < 1:
            raise ValueError(f"max_frames must be >= 1 (got {self.max_frames})")
        if not 1 <= int(self.default_dimension) <= MAX_DIMENSION:
            raise ValueError(
                f"default_dimension must be between 1 and {MAX_DIMENSION} (got {self.default_dimension})"
            )
        if float(self.seek_epsilon) < 0.0:
            raise ValueError("seek_epsilon must be >= 0")
        if int(self.max_workers) < 1:
            raise ValueError("max_workers must be >= 1")

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)
