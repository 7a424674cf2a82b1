"""
renderer.py: DuotoneRenderer, the owner of the prepared-image and outline caches.

Lifecycle
---------
    EMPTY --prepare(ref)-------> READY
    READY --prepare(same ref)--> READY   (fast path, loader not called)
    READY --prepare(new ref)---> READY   (outline cache wiped, image rebuilt)
    READY --clear()------------> EMPTY

render() is only meaningful in READY; in EMPTY it draws nothing and returns None.

Decoding is the only slow, blocking step and runs outside the lock. When a
newer prepare() or a clear() lands while a decode is in flight, the late
result is dropped instead of installed and PreparationSuperseded is raised
to the caller that started it.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Tuple, Union

from PIL import Image

from compositor import render_composite
from loader import DecodeError, PixelSource
from outline import OutlineCache
from palettes import PRESETS, ColorPreset
from preparation import LogoPlacement, PreparedImage, place_logo, prepare_pixels

log = logging.getLogger("duotone")

DEFAULT_LINE_THICKNESS = 20

EMPTY = "empty"
READY = "ready"

Loader = Callable[[str], Image.Image]


class PreparationSuperseded(RuntimeError):
    """A prepare() finished after a newer prepare()/clear(); its result was discarded."""


class DuotoneRenderer:
    def __init__(self, loader: Optional[Loader] = None, *, max_outlines: Optional[int] = None) -> None:
        self._loader: Loader = loader or PixelSource()
        self._outlines = OutlineCache(max_entries=max_outlines)
        self._prepared: Optional[PreparedImage] = None
        self._image_ref: Optional[str] = None
        self._latest_request: Optional[str] = None
        self._canvas: Optional[Image.Image] = None
        self._lock = threading.RLock()

    # -------- state --------
    @property
    def state(self) -> str:
        return READY if self._prepared is not None else EMPTY

    @property
    def is_ready(self) -> bool:
        return self._prepared is not None

    @property
    def image_ref(self) -> Optional[str]:
        return self._image_ref

    @property
    def prepared(self) -> Optional[PreparedImage]:
        return self._prepared

    @property
    def outline_thicknesses(self) -> List[int]:
        with self._lock:
            return self._outlines.thicknesses()

    @property
    def outline_stats(self) -> Tuple[int, int]:
        """(hits, misses) of the outline cache since the renderer was created."""
        return self._outlines.hits, self._outlines.misses

    # -------- lifecycle --------
    def prepare(self, image_ref: str, logo_ref: Optional[str] = None) -> Tuple[int, int]:
        with self._lock:
            if self._prepared is not None and self._image_ref == image_ref:
                log.debug("Already prepared: %s", image_ref)
                self._latest_request = image_ref
                return self._prepared.size
            self._latest_request = image_ref

        try:
            image = self._decode(image_ref)
            prepared = prepare_pixels(image)
        except Exception:
            with self._lock:
                if self._latest_request == image_ref:
                    self._latest_request = self._image_ref
            raise

        if logo_ref:
            try:
                prepared = prepared.with_logo(self._place_logo(prepared.width, logo_ref))
            except Exception as e:
                log.warning("Could not load logo %s: %s", logo_ref, e)

        with self._lock:
            if self._latest_request != image_ref:
                log.info("Discarding stale preparation of %s", image_ref)
                raise PreparationSuperseded(f"prepare({image_ref!r}) was superseded")
            self._outlines.clear()
            self._prepared = prepared
            self._image_ref = image_ref
            log.info("Prepared %s (%dx%d, logo=%s)", image_ref, prepared.width, prepared.height,
                     "yes" if prepared.logo is not None else "no")
            return prepared.size

    def clear(self) -> None:
        with self._lock:
            self._prepared = None
            self._image_ref = None
            self._latest_request = None
            self._canvas = None
            self._outlines.clear()
        log.debug("Renderer cleared")

    # -------- rendering --------
    def render(self, background: str, duotone: str, thickness: int = DEFAULT_LINE_THICKNESS) -> Optional[Image.Image]:
        """Composite the prepared portrait; the returned canvas is reused by the next render."""
        with self._lock:
            if self._prepared is None:
                log.debug("render() before prepare(); nothing to draw")
                return None
            self._canvas = render_composite(
                self._prepared, self._outlines, background, duotone, thickness, canvas=self._canvas
            )
            return self._canvas

    def render_preset(self, preset: Union[ColorPreset, int, str],
                      thickness: int = DEFAULT_LINE_THICKNESS) -> Optional[Image.Image]:
        p = PRESETS.resolve(preset)
        return self.render(p.bg, p.duotone, thickness)

    # -------- helpers --------
    def _decode(self, ref: str) -> Image.Image:
        try:
            image = self._loader(ref)
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"Could not load {ref!r}: {e}") from e
        if not isinstance(image, Image.Image):
            raise DecodeError(f"Loader returned {type(image).__name__} for {ref!r}, expected a PIL image")
        return image

    def _place_logo(self, image_width: int, logo_ref: str) -> LogoPlacement:
        return place_logo(image_width, self._decode(logo_ref))
