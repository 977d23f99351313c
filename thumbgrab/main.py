import argparse
import json
import logging
import os
import sys

import av
from tqdm import tqdm

from .config import AppContext, ThumbnailConfig
from .quality import QualityTier
from .service import ThumbnailService


def _setup_logging(verbose: bool) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    # keep FFmpeg chatter down
    av.logging.set_level(av.logging.ERROR if not verbose else av.logging.WARNING)


def main(argv=None):
    ap = argparse.ArgumentParser(prog="thumbgrab", description="Time single-frame thumbnail extraction.")
    ap.add_argument('source', help='video file path or URL')
    ap.add_argument('--at', type=float, nargs='+', default=[0.0], help='position(s) in seconds')
    ap.add_argument('--size', type=int, default=None, help='max thumbnail side in pixels (1-4096)')
    ap.add_argument('--quality', default='normal', help='fast | normal | high (or 0 | 1 | 2)')
    ap.add_argument('--no-hw', action='store_true', help='force software decoding')
    ap.add_argument('--hw-device', default=None, help='hardware device path/ordinal passed to FFmpeg')
    ap.add_argument('--repeat', type=int, default=1, help='extract every position N times')
    ap.add_argument('--config', default=None, help='JSON config file')
    ap.add_argument('--json', action='store_true', help='print results as JSON lines')
    ap.add_argument('-v', '--verbose', action='store_true')
    args = ap.parse_args(argv)

    _setup_logging(args.verbose)

    cfg = ThumbnailConfig()
    if args.config:
        with open(args.config, 'r', encoding='utf-8') as f:
            cfg = ThumbnailConfig.from_json(f.read())
    cfg = ThumbnailConfig.from_env(cfg)
    size = args.size if args.size is not None else cfg.default_dimension
    quality = QualityTier.coerce(args.quality)

    jobs = [p for _ in range(max(1, args.repeat)) for p in args.at]
    failures = 0
    with ThumbnailService(cfg) as svc:
        svc.register_app_context(AppContext(name="thumbgrab-cli", hw_device=args.hw_device))
        bar = tqdm(jobs, desc='thumbnails', disable=len(jobs) < 2 or args.json)
        for pos in bar:
            buf, ms = svc.benchmark(args.source, pos, size, not args.no_hw, quality)
            if buf is None:
                failures += 1
            row = {
                "source": os.path.basename(args.source),
                "position": pos,
                "ok": buf is not None,
                "frame_time": None if buf is None else buf.frame_time,
                "width": None if buf is None else buf.width,
                "height": None if buf is None else buf.height,
                "ms": round(ms, 2),
                "hw": svc.hardware.state.value,
            }
            if args.json:
                print(json.dumps(row))
            elif buf is None:
                tqdm.write(f"{pos:9.2f}s  FAILED  {ms:8.1f} ms")
            else:
                tqdm.write(f"{pos:9.2f}s  -> {buf.frame_time:8.2f}s  {buf.width}x{buf.height}  {ms:8.1f} ms")
    return 1 if failures else 0


if __name__ == '__main__':
    sys.exit(main())
