from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from PIL import Image

from outline import OutlineCache
from palettes import parse_hex_color
from preparation import PreparedImage

RGB = Tuple[int, int, int]


def duotone_layer(prepared: PreparedImage, bg_rgb: RGB, duotone_rgb: RGB) -> Image.Image:
    """Map luminance onto the bg→duotone ramp; keep the original alpha.

    Fully transparent pixels stay (0, 0, 0, 0) so whatever is underneath shows.
    """
    bg = np.asarray(bg_rgb, np.float32)
    duo = np.asarray(duotone_rgb, np.float32)
    t = prepared.luminance[..., None]
    rgb = bg + (duo - bg) * t

    out = np.zeros((prepared.height, prepared.width, 4), np.uint8)
    visible = prepared.alpha > 0
    out[..., :3] = np.where(visible[..., None], np.clip(np.rint(rgb), 0, 255), 0).astype(np.uint8)
    out[..., 3] = prepared.alpha
    return Image.fromarray(out, "RGBA")


def render_composite(
    prepared: Optional[PreparedImage],
    outlines: OutlineCache,
    background: str,
    duotone: str,
    thickness: int,
    canvas: Optional[Image.Image] = None,
) -> Optional[Image.Image]:
    """Background fill → outline ring → duotone subject → logo.

    Returns None when nothing has been prepared. `canvas` is drawn into when it
    already has the right size, otherwise a new one is allocated.
    """
    if prepared is None:
        return None

    # both colors are validated before a single pixel is written
    bg_rgb = parse_hex_color(background)
    duo_rgb = parse_hex_color(duotone)

    size = prepared.size
    if canvas is None or canvas.size != size or canvas.mode != "RGBA":
        canvas = Image.new("RGBA", size)

    canvas.paste(bg_rgb + (255,), (0, 0) + size)

    if thickness > 0:
        canvas.alpha_composite(outlines.get_or_compute(prepared.mask, thickness))

    canvas.alpha_composite(duotone_layer(prepared, bg_rgb, duo_rgb))

    logo = prepared.logo
    if logo is not None:
        canvas.alpha_composite(logo.scaled, dest=logo.dest)
    return canvas
