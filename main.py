from __future__ import annotations

import argparse
import logging
import re
import time
from pathlib import Path
from typing import List, Optional

from PIL import Image

from loader import PixelSource
from palettes import PRESETS, ColorPreset, normalize_hex
from renderer import DEFAULT_LINE_THICKNESS, DuotoneRenderer

# =============== Logging ===============
log = logging.getLogger("duotone")

DEFAULT_DOWNLOAD_NAME = "duotone-portrait.png"


def setup_logging(verbosity: int = 0) -> None:
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(verbosity, 2)]
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


# =============== Export ===============
def download_image(image: Image.Image, out: Optional[Path] = None, filename: str = DEFAULT_DOWNLOAD_NAME) -> Path:
    """Write a rendered canvas as a lossless PNG.

    `out` may be a file path or an existing directory (the file is then named
    `filename` inside it). Returns the path written.
    """
    if out is None:
        path = Path(filename)
    elif out.is_dir():
        path = out / filename
    else:
        path = out
    if path.suffix.lower() != ".png":
        path = path.with_suffix(".png")
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, format="PNG", optimize=True)
    log.info("Saved %s (%dx%d)", path, *image.size)
    return path


# =============== Small CLI helpers ===============
def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _resolve_colors(args: argparse.Namespace) -> ColorPreset:
    """Preset first, then explicit --bg/--duotone override either side."""
    base = PRESETS.resolve(args.preset) if args.preset is not None else PRESETS.at(0)
    bg = normalize_hex(args.bg) if args.bg else base.bg
    duo = normalize_hex(args.duotone) if args.duotone else base.duotone
    if bg == base.bg and duo == base.duotone:
        return base
    return ColorPreset(name="custom", bg=bg, duotone=duo)


def _make_renderer(args: argparse.Namespace) -> DuotoneRenderer:
    return DuotoneRenderer(PixelSource(max_size=args.max_size))


def _add_source_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--url", required=True, help="Alpha-matted portrait: HTTP(S) URL, file:// URL, data: URL or local path.")
    p.add_argument("--logo", default=None, help="Optional logo drawn in the top-right corner.")
    p.add_argument("--max-size", type=int, default=None, help="Downscale input longest side before processing.")
    p.add_argument("--thickness", type=int, default=DEFAULT_LINE_THICKNESS,
                   help=f"Outline thickness in pixels (0 = no outline, default {DEFAULT_LINE_THICKNESS}).")


# =============== CLI ===============
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Duotone portrait renderer (background, outline, duotone subject, logo)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv).")

    sub = p.add_subparsers(dest="cmd", required=True)

    lp = sub.add_parser("presets", help="List color presets.")
    lp.set_defaults(func=cmd_presets)

    rp = sub.add_parser("render", help="Render one duotone portrait.")
    _add_source_args(rp)
    rp.add_argument("--preset", default=None, help="Preset name or index (default: first preset).")
    rp.add_argument("--bg", default=None, help="Background color #RRGGBB (overrides the preset).")
    rp.add_argument("--duotone", default=None, help="Duotone color #RRGGBB (overrides the preset).")
    rp.add_argument("--out", type=Path, default=Path(DEFAULT_DOWNLOAD_NAME), help="Output PNG file or directory.")
    rp.set_defaults(func=cmd_render)

    vp = sub.add_parser("variants", help="Render the portrait once per preset.")
    _add_source_args(vp)
    vp.add_argument("--out-dir", type=Path, default=Path("."), help="Directory for the rendered PNGs.")
    vp.set_defaults(func=cmd_variants)

    bp = sub.add_parser("bench", help="Time the first render against cached re-renders.")
    _add_source_args(bp)
    bp.add_argument("--runs", type=int, default=5)
    bp.set_defaults(func=cmd_bench)

    return p


# =============== Commands ===============
def cmd_presets(_args: argparse.Namespace) -> int:
    for i, preset in enumerate(PRESETS):
        print(f"{i:>2}  {preset.name:<16} bg={preset.bg}  duotone={preset.duotone}")
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    try:
        colors = _resolve_colors(args)
        renderer = _make_renderer(args)
        renderer.prepare(args.url, args.logo)
        out_img = renderer.render(colors.bg, colors.duotone, args.thickness)
        download_image(out_img, args.out)
        return 0
    except (KeyError, ValueError) as e:
        log.error("%s", e)
        return 1
    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_variants(args: argparse.Namespace) -> int:
    try:
        renderer = _make_renderer(args)
        renderer.prepare(args.url, args.logo)
        stem = Path(args.url.split("?", 1)[0]).stem or "portrait"
        if args.url.startswith("data:"):
            stem = "portrait"
        for preset in PRESETS:
            t0 = time.perf_counter()
            out_img = renderer.render(preset.bg, preset.duotone, args.thickness)
            path = download_image(out_img, args.out_dir / f"{stem}-{_slug(preset.name)}.png")
            log.info("%s: %.2f ms -> %s", preset.name, (time.perf_counter() - t0) * 1000, path)
        hits, misses = renderer.outline_stats
        log.info("Outline cache: %d hit(s), %d miss(es)", hits, misses)
        return 0
    except Exception as e:
        log.exception("Variants failed: %s", e)
        return 1


def cmd_bench(args: argparse.Namespace) -> int:
    try:
        renderer = _make_renderer(args)
        t0 = time.perf_counter()
        renderer.prepare(args.url, args.logo)
        prep = time.perf_counter() - t0

        times = []
        for i in range(max(1, args.runs)):
            preset = PRESETS.at(i)
            t0 = time.perf_counter()
            renderer.render(preset.bg, preset.duotone, args.thickness)
            times.append(time.perf_counter() - t0)
        first, rest = times[0], times[1:] or times
        avg = sum(rest) / len(rest)
        print(
            f"prepare {prep*1000:.2f} ms, first render {first*1000:.2f} ms, "
            f"cached avg {avg*1000:.2f} ms, min {min(rest)*1000:.2f} ms, max {max(rest)*1000:.2f} ms"
        )
        return 0
    except Exception as e:
        log.exception("Bench failed: %s", e)
        return 1


# =============== Entry ===============
def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
