from __future__ import annotations

from typing import Dict, List, Tuple

import numpy as np
import pytest
from PIL import Image


def solid(w: int, h: int, rgba: Tuple[int, int, int, int]) -> Image.Image:
    return Image.new("RGBA", (w, h), rgba)


def dot(w: int, h: int, x: int, y: int) -> Image.Image:
    """Transparent image with one opaque white pixel at (x, y)."""
    arr = np.zeros((h, w, 4), np.uint8)
    arr[y, x] = (255, 255, 255, 255)
    return Image.fromarray(arr, "RGBA")


class CountingLoader:
    """In-memory loader stub: ref -> image, counting every call."""

    def __init__(self, images: Dict[str, Image.Image]) -> None:
        self.images = dict(images)
        self.calls: List[str] = []

    def __call__(self, ref: str) -> Image.Image:
        self.calls.append(ref)
        if ref not in self.images:
            raise FileNotFoundError(ref)
        return self.images[ref]

    def count(self, ref: str) -> int:
        return self.calls.count(ref)


@pytest.fixture
def loader() -> CountingLoader:
    return CountingLoader({
        "white": solid(4, 4, (255, 255, 255, 255)),
        "clear": solid(4, 4, (255, 255, 255, 0)),
        "dot": dot(5, 5, 2, 2),
        "wide": solid(100, 40, (128, 64, 32, 255)),
        "logo": solid(20, 10, (255, 0, 0, 255)),
    })
