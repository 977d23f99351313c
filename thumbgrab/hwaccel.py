"""Shared hardware-decoding context.

Creating an accelerator device costs tens of milliseconds, so the outcome of
the first probe (a usable device or "none here") is kept until ``clear()``.
Decodes take their own reference on the device; ``clear()`` only drops the
manager's reference, so an in-flight decode keeps a live device until it
releases it.
"""
from __future__ import annotations

import logging
import sys
import threading
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from .config import AppContext

log = logging.getLogger(__name__)

# first match wins when hw_device_type is "auto"
_PLATFORM_CANDIDATES = {
    "linux": ("vaapi", "cuda", "vdpau", "qsv"),
    "darwin": ("videotoolbox",),
    "win32": ("d3d11va", "cuda", "dxva2", "qsv"),
    "android": ("mediacodec",),
}

# decoders with hardware configs on every device type above
_PROBE_CODECS = ("h264", "hevc")


class HwState(Enum):
    UNINITIALIZED = "uninitialized"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


def _available_device_types() -> Sequence[str]:
    try:
        from av.codec.hwaccel import hwdevices_available
    except ImportError:
        log.debug("PyAV build has no hwaccel support")
        return ()
    try:
        return tuple(str(n).lower() for n in hwdevices_available())
    except Exception as e:
        log.debug("hwdevices_available() failed: %s", e)
        return ()


def pick_device_type(prefer: str = "auto", available: Optional[Sequence[str]] = None) -> Optional[str]:
    avail = tuple(available) if available is not None else _available_device_types()
    prefer = (prefer or "auto").lower()
    if prefer in ("none", "off", ""):
        return None
    if prefer != "auto":
        return prefer if prefer in avail else None
    plat = "android" if hasattr(sys, "getandroidapilevel") else sys.platform
    if plat.startswith("linux"):
        plat = "linux"
    for cand in _PLATFORM_CANDIDATES.get(plat, ()):
        if cand in avail:
            return cand
    return None


def _probe_codec():
    import av

    for name in _PROBE_CODECS:
        try:
            return av.Codec(name, "r")
        except ValueError:
            continue
    return None


def probe_hwaccel(device_type: str, ctx: AppContext):
    """Build a PyAV accelerator for ``device_type``; ``None`` if it cannot be had.

    FFmpeg lists every device type it was built with, present or not, so the
    device is created once against a common decoder before the accelerator
    is reported usable. PyAV creates a fresh device per decoder from the
    returned template; the trial device is dropped here.
    """
    name = pick_device_type(device_type)
    if name is None:
        log.debug("No hardware device type matches %r", device_type)
        return None
    codec = _probe_codec()
    if codec is None:
        log.debug("No decoder to try %s device creation with", name)
        return None
    from av.codec.hwaccel import HWAccel

    accel = HWAccel(
        device_type=name,
        device=ctx.hw_device,
        allow_software_fallback=True,
        options=dict(ctx.hw_options) or None,
    )
    try:
        accel.create(codec)
    except Exception as e:
        log.info("Cannot create %s device (%s): %s", name, codec.name, e)
        return None
    return accel


class HardwareDevice:
    """Reference-counted wrapper around one accelerator object."""

    def __init__(self, accel: Any, device_type: str = ""):
        self.accel = accel
        self.device_type = device_type
        self._refs = 1
        self._lock = threading.Lock()

    @property
    def refs(self) -> int:
        with self._lock:
            return self._refs

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._refs == 0

    def retain(self) -> "HardwareDevice":
        with self._lock:
            if self._refs == 0:
                raise RuntimeError("hardware device already released")
            self._refs += 1
        return self

    def release(self) -> None:
        with self._lock:
            if self._refs == 0:
                return
            self._refs -= 1
            last = self._refs == 0
            if last:
                self.accel = None
        if last:
            log.debug("Hardware device %s released", self.device_type or "?")


class HardwareContextManager:
    def __init__(
        self,
        device_type: str = "auto",
        probe: Callable[[str, AppContext], Any] = probe_hwaccel,
    ):
        self.device_type = device_type
        self._probe = probe
        self._lock = threading.Lock()
        self._state = HwState.UNINITIALIZED
        self._device: Optional[HardwareDevice] = None
        self._ctx: Optional[AppContext] = None
        self.probe_count = 0

    @property
    def state(self) -> HwState:
        with self._lock:
            return self._state

    @property
    def app_context(self) -> Optional[AppContext]:
        with self._lock:
            return self._ctx

    def set_app_context(self, ctx: Optional[AppContext]) -> None:
        with self._lock:
            changed = ctx != self._ctx
            self._ctx = ctx
        if changed:
            # a different host context may mean a different device
            self.clear()

    def acquire(self) -> Optional[HardwareDevice]:
        """Return a retained device, or ``None`` to decode in software."""
        with self._lock:
            if self._ctx is None:
                log.debug("Hardware decoding skipped: no app context registered")
                return None
            if self._state is HwState.AVAILABLE and self._device is not None:
                return self._device.retain()
            if self._state is HwState.UNAVAILABLE:
                return None
            self.probe_count += 1
            try:
                accel = self._probe(self.device_type, self._ctx)
            except Exception as e:
                log.info("Hardware decoding unavailable (%s): %s", self.device_type, e)
                accel = None
            if accel is None:
                self._state = HwState.UNAVAILABLE
                log.info("Hardware decoding unavailable; using software decoding")
                return None
            name = str(getattr(accel, "device_type", "") or self.device_type)
            self._device = HardwareDevice(accel, name)
            self._state = HwState.AVAILABLE
            log.info("Hardware decoding available: %s", name)
            return self._device.retain()

    def clear(self) -> None:
        with self._lock:
            device, self._device = self._device, None
            was = self._state
            self._state = HwState.UNINITIALIZED
        if device is not None:
            device.release()
        if was is not HwState.UNINITIALIZED:
            log.info("Hardware context cleared (was %s)", was.value)
