from __future__ import annotations

import logging
from collections import OrderedDict
from typing import List, Optional

import numpy as np
from PIL import Image

log = logging.getLogger("duotone")

__all__ = ["dilate_fast", "outline_ring", "outline_layer", "OutlineCache"]


# ============================ dilation ============================

def _window_count(bits: np.ndarray, radius: int, axis: int) -> np.ndarray:
    """Set bits inside [i - radius, i + radius] along `axis`, window clamped at the edges.

    Running count via prefix sums: count(i) = c[i + r + 1] - c[i - r], i.e. the
    bit entering on the right minus the bit leaving on the left at every step.
    Cost is O(n) per line whatever the radius.
    """
    n = bits.shape[axis]
    pad = [(0, 0)] * bits.ndim
    pad[axis] = (1, 0)
    c = np.pad(bits, pad, mode="constant").cumsum(axis=axis, dtype=np.int32)
    idx = np.arange(n)
    hi = np.minimum(idx + radius + 1, n)
    lo = np.maximum(idx - radius, 0)
    return np.take(c, hi, axis=axis) - np.take(c, lo, axis=axis)


def dilate_fast(mask: np.ndarray, radius: int) -> np.ndarray:
    """Square-kernel (2r+1) binary dilation as two separable sliding-window passes."""
    bits = (np.asarray(mask) != 0).astype(np.uint8)
    radius = int(radius)
    if radius <= 0:
        return bits
    horiz = (_window_count(bits, radius, axis=1) > 0).astype(np.uint8)
    return (_window_count(horiz, radius, axis=0) > 0).astype(np.uint8)


def outline_ring(mask: np.ndarray, thickness: int) -> np.ndarray:
    """Pixels added by dilation that were not already part of the silhouette."""
    silhouette = np.asarray(mask) != 0
    return (dilate_fast(mask, thickness) != 0) & ~silhouette


def outline_layer(mask: np.ndarray, thickness: int) -> Image.Image:
    ring = outline_ring(mask, thickness)
    h, w = ring.shape
    rgba = np.zeros((h, w, 4), np.uint8)
    rgba[ring] = 255
    return Image.fromarray(rgba, "RGBA")


# ============================ cache ============================

class OutlineCache:
    """thickness -> outline layer, for one mask at a time.

    Unbounded unless `max_entries` is set, in which case the least recently
    used thickness is evicted. Owners must clear() whenever the mask changes.
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1 (or None for unbounded)")
        self.max_entries = max_entries
        self._layers: "OrderedDict[int, Image.Image]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, mask: np.ndarray, thickness: int) -> Image.Image:
        key = int(thickness)
        if key <= 0:
            raise ValueError(f"Outline thickness must be positive, got {thickness}")
        layer = self._layers.get(key)
        if layer is not None:
            self.hits += 1
            self._layers.move_to_end(key)
            return layer

        self.misses += 1
        layer = outline_layer(mask, key)
        self._layers[key] = layer
        log.debug("Computed outline for thickness=%d (%dx%d)", key, layer.width, layer.height)
        if self.max_entries is not None:
            while len(self._layers) > self.max_entries:
                evicted, _ = self._layers.popitem(last=False)
                log.debug("Evicted outline for thickness=%d", evicted)
        return layer

    def clear(self) -> None:
        self._layers.clear()

    def thicknesses(self) -> List[int]:
        return list(self._layers.keys())

    def __contains__(self, thickness: object) -> bool:
        return thickness in self._layers

    def __len__(self) -> int:
        return len(self._layers)
