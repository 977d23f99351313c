"""Thumbnail extraction service.

One ``ThumbnailService`` per process holds the expensive shared state (the
decoder cache and the hardware context). Targeted extractions all go through
one lock, so they run one at a time; live snapshots do not take that lock.
"""
from __future__ import annotations

import logging
import math
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .codec_cache import CodecCache, find_decoder
from .config import MAX_DIMENSION, AppContext, ThumbnailConfig
from .decode import decode_and_match
from .errors import InvalidArgumentError, NoDecoderError, OpenFailureError, ThumbnailError
from .hwaccel import HardwareContextManager, probe_hwaccel
from .matcher import FrameMatcher
from .probe import open_media
from .quality import QualityTier, profile_for
from .scale import convert_frame
from .seek import apply_seek, plan_seek
from .sinks import PixelSink, array_sink, deliver
from .snapshot import SnapshotSource, convert_snapshot

log = logging.getLogger(__name__)


def check_dimension(dimension) -> int:
    if isinstance(dimension, bool) or not isinstance(dimension, int):
        raise InvalidArgumentError(f"dimension must be an int (got {dimension!r})")
    if not 1 <= dimension <= MAX_DIMENSION:
        raise InvalidArgumentError(f"invalid dimension {dimension} (must be 1-{MAX_DIMENSION})")
    return dimension


@dataclass(frozen=True)
class TargetSpec:
    source: str
    position: float
    dimension: int
    quality: QualityTier
    use_hw: bool

    @classmethod
    def build(cls, source, position=0.0, dimension=512, use_hw=True, quality=QualityTier.NORMAL) -> "TargetSpec":
        """Validate a request; nothing is opened before this succeeds."""
        try:
            src = os.fspath(source)
        except TypeError:
            raise InvalidArgumentError(f"invalid source {source!r}") from None
        if isinstance(src, bytes):
            src = os.fsdecode(src)
        if not src:
            raise InvalidArgumentError("empty source")
        try:
            pos = float(position)
        except (TypeError, ValueError):
            raise InvalidArgumentError(f"invalid position {position!r}") from None
        if not math.isfinite(pos) or pos < 0.0:
            raise InvalidArgumentError(f"invalid position {pos:.2f} (must be >= 0)")
        dim = check_dimension(dimension)
        return cls(src, pos, dim, QualityTier.coerce(quality), bool(use_hw))


class ThumbnailService:
    def __init__(
        self,
        config: Optional[ThumbnailConfig] = None,
        *,
        opener: Callable[..., Any] = open_media,
        codec_lookup: Callable[[str], Any] = find_decoder,
        hw_probe: Callable[..., Any] = probe_hwaccel,
        sink: PixelSink = array_sink,
    ):
        self.config = config if config is not None else ThumbnailConfig()
        self.config.validate()
        self.codecs = CodecCache(codec_lookup)
        self.hardware = HardwareContextManager(self.config.hw_device_type, hw_probe)
        self.sink = sink
        self._opener = opener
        self._extract_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    # --- lifecycle -------------------------------------------------------

    def register_app_context(self, ctx: Optional[AppContext] = None) -> None:
        """Register the host context; hardware decoding needs one."""
        ctx = ctx if ctx is not None else AppContext()
        self.hardware.set_app_context(ctx)
        log.info("Registered app context %r", ctx.name)

    @property
    def is_initialized(self) -> bool:
        return self.hardware.app_context is not None

    def clear_cache(self) -> None:
        """Drop cached decoders and the hardware device. Safe at any time."""
        self.codecs.clear()
        self.hardware.clear()

    def shutdown(self) -> None:
        with self._executor_lock:
            ex, self._executor = self._executor, None
        if ex is not None:
            ex.shutdown(wait=True)
        self.clear_cache()
        self.hardware.set_app_context(None)

    def __enter__(self) -> "ThumbnailService":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    # --- targeted extraction --------------------------------------------

    def grab_thumbnail(
        self,
        source,
        position: float = 0.0,
        dimension: int = 512,
        use_hw: bool = True,
        quality=QualityTier.NORMAL,
    ):
        """Decode the frame nearest ``position`` of ``source`` and convert it.

        Raises a ``ThumbnailError`` subclass on any failure; no partial image
        is ever returned.
        """
        spec = TargetSpec.build(source, position, dimension, use_hw, quality)
        with self._extract_lock:
            buf = self._extract(spec)
        return deliver(self.sink, buf)

    def _extract(self, spec: TargetSpec):
        cfg = self.config
        profile = profile_for(spec.quality)
        with ExitStack() as stack:
            device = None
            if spec.use_hw and cfg.hw_enabled:
                device = self.hardware.acquire()
                if device is not None:
                    stack.callback(device.release)
            accel = device.accel if device is not None else None
            try:
                media = self._opener(spec.source, profile, accel)
            except OpenFailureError as e:
                if accel is None:
                    raise
                log.warning("Hardware open of %s failed (%s); retrying in software", spec.source, e)
                media = self._opener(spec.source, profile, None)
            stack.enter_context(media)
            d = media.descriptor
            # the stream already carries its decoder; the cache only gates on one existing
            if self.codecs.resolve(d.codec_name) is None:
                raise NoDecoderError(f"no decoder for codec {d.codec_name!r} in {spec.source}")
            media.open_decoder(profile)

            plan = plan_seek(
                spec.position,
                spec.quality,
                epsilon=cfg.seek_epsilon,
                short_seek_threshold=cfg.short_seek_threshold,
            )
            apply_seek(media, plan)

            matcher = FrameMatcher.for_profile(spec.position, profile)
            match = decode_and_match(media, matcher, cfg.max_frames)
            buf = convert_frame(match.frame, spec.dimension, profile.interpolation)
            buf.frame_time = match.frame_time
            log.info(
                "Thumbnail %s @%.2fs -> frame %.2fs %dx%d (%s, %d decoded, %d skipped, hw=%s)",
                os.path.basename(spec.source),
                spec.position,
                match.frame_time,
                buf.width,
                buf.height,
                spec.quality.name,
                match.decoded,
                match.skipped,
                device.device_type if device is not None else "off",
            )
            return buf

    # --- live snapshot ---------------------------------------------------

    def grab_live(self, source: SnapshotSource, dimension: int = 512):
        """Square thumbnail of what ``source`` is showing right now."""
        dim = check_dimension(dimension)
        raw = source.capture()
        buf = convert_snapshot(raw, dim)
        return deliver(self.sink, buf)

    # --- conveniences ----------------------------------------------------

    def generate(self, source, position: float = 0.0, dimension: int = 512, use_hw: bool = True,
                 quality=QualityTier.NORMAL):
        """Like ``grab_thumbnail`` but returns ``None`` instead of raising."""
        try:
            return self.grab_thumbnail(source, position, dimension, use_hw, quality)
        except ThumbnailError as e:
            log.warning("Thumbnail failed for %s @%ss: %s", source, position, e)
            return None

    def generate_multiple(
        self,
        source,
        positions: Sequence[float],
        dimension: int = 512,
        use_hw: bool = True,
        quality=QualityTier.NORMAL,
    ) -> List[Any]:
        return [self.generate(source, p, dimension, use_hw, quality) for p in positions]

    def benchmark(self, source, position: float = 0.0, dimension: int = 512, use_hw: bool = True,
                  quality=QualityTier.NORMAL) -> Tuple[Any, float]:
        """Return ``(result or None, elapsed milliseconds)``."""
        t0 = time.perf_counter()
        result = self.generate(source, position, dimension, use_hw, quality)
        return result, (time.perf_counter() - t0) * 1000.0

    def submit(self, source, position: float = 0.0, dimension: int = 512, use_hw: bool = True,
               quality=QualityTier.NORMAL) -> "Future[Any]":
        """Run ``grab_thumbnail`` on the service's worker pool."""
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.config.max_workers, thread_name_prefix="thumbgrab"
                )
            ex = self._executor
        return ex.submit(self.grab_thumbnail, source, position, dimension, use_hw, quality)
