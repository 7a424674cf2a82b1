"""
preparation.py: per-image data derived once and reused by every re-render.

A PreparedImage holds, for one decoded RGBA portrait:

• alpha      (H, W) uint8    original matte, used for compositing
• mask       (H, W) uint8    1 where alpha > 128, used only for outline geometry
• luminance  (H, W) float32  Rec.601 luma in [0, 1]; exactly 0 where alpha == 0

Arrays are row-major, so `arr.ravel()[y * width + x]` is pixel (x, y).
They are flagged read-only: the renderer owns the instance, everything else
only reads it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from PIL import Image

MASK_THRESHOLD = 128
LOGO_WIDTH_FRACTION = 0.18
LOGO_PADDING_FRACTION = 0.03

_LUMA = np.array([0.299, 0.587, 0.114], np.float64)


@dataclass(frozen=True, eq=False)
class LogoPlacement:
    """Logo scaled to a fixed fraction of the portrait width, pinned top-right."""
    source: Image.Image
    width: float
    height: float
    padding: float
    image_width: int
    scaled: Image.Image = field(init=False, repr=False)

    def __post_init__(self) -> None:
        size = (max(1, int(round(self.width))), max(1, int(round(self.height))))
        scaled = self.source.convert("RGBA").resize(size, Image.Resampling.LANCZOS)
        object.__setattr__(self, "scaled", scaled)

    @property
    def dest(self) -> Tuple[int, int]:
        x = self.image_width - self.width - self.padding
        return max(0, int(round(x))), max(0, int(round(self.padding)))


def place_logo(image_width: int, logo: Image.Image) -> LogoPlacement:
    if logo.width <= 0 or logo.height <= 0:
        raise ValueError("Logo has no pixels")
    logo_w = image_width * LOGO_WIDTH_FRACTION
    logo_h = (logo.height / logo.width) * logo_w
    padding = image_width * LOGO_PADDING_FRACTION
    return LogoPlacement(source=logo, width=logo_w, height=logo_h, padding=padding, image_width=image_width)


@dataclass(frozen=True, eq=False)
class PreparedImage:
    width: int
    height: int
    luminance: np.ndarray
    alpha: np.ndarray
    mask: np.ndarray
    logo: Optional[LogoPlacement] = None

    def __post_init__(self) -> None:
        shape = (self.height, self.width)
        for name in ("luminance", "alpha", "mask"):
            arr = getattr(self, name)
            if arr.shape != shape:
                raise ValueError(f"{name} has shape {arr.shape}, expected {shape}")
            arr.setflags(write=False)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def with_logo(self, logo: Optional[LogoPlacement]) -> "PreparedImage":
        return PreparedImage(self.width, self.height, self.luminance, self.alpha, self.mask, logo)


def prepare_pixels(image: Image.Image, logo: Optional[Image.Image] = None) -> PreparedImage:
    """Derive alpha, binary mask and luminance from a decoded image."""
    rgba = np.asarray(image.convert("RGBA"), dtype=np.uint8)
    h, w = rgba.shape[:2]
    if w == 0 or h == 0:
        raise ValueError("Image has no pixels")

    alpha = np.ascontiguousarray(rgba[..., 3])
    mask = (alpha > MASK_THRESHOLD).astype(np.uint8)

    visible = alpha > 0
    luma = (rgba[..., :3].astype(np.float64) @ _LUMA) / 255.0
    luminance = np.where(visible, np.clip(luma, 0.0, 1.0), 0.0).astype(np.float32)

    placement = place_logo(w, logo) if logo is not None else None
    return PreparedImage(width=w, height=h, luminance=luminance, alpha=alpha, mask=mask, logo=placement)
