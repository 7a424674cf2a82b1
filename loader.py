from __future__ import annotations

import base64
import hashlib
import io
import logging
import mimetypes
import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import unquote, unquote_to_bytes, urlparse

import requests
from PIL import Image, ImageOps

try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
except ImportError:
    pass

log = logging.getLogger("duotone")


class DecodeError(ValueError):
    """An image reference could not be resolved to pixels."""


# =============== Fetcher ===============
class FileFetcher:
    """Fetch bytes from http(s) / file:// / data: / local path with a tiny, safe cache."""

    def __init__(self, cache_dir: Optional[Path] = None, timeout: float = 20.0) -> None:
        self.timeout = timeout
        self.cache_dir = cache_dir or Path(tempfile.gettempdir()) / "duotone_cache"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "duotone/1.0 (+https://local)"})

    def fetch(self, src: str) -> Tuple[bytes, Optional[str]]:
        parsed = urlparse(src)
        scheme = (parsed.scheme or "").lower()
        if scheme in ("http", "https"):
            return self._fetch_http_cached(src)
        if scheme == "data":
            return self._fetch_data_url(src)
        if scheme == "file":
            local_path = unquote(parsed.path)
            if os.name == "nt" and local_path.startswith("/"):
                local_path = local_path[1:]
            return self._fetch_local(local_path)
        # drive letters ("C:\\...") parse as a one-letter scheme
        if scheme == "" or (os.name == "nt" and len(scheme) == 1):
            return self._fetch_local(src)
        raise ValueError(f"Unsupported URL scheme: {scheme}")

    def _cache_key(self, url: str) -> Path:
        h = hashlib.sha256(url.encode("utf-8")).hexdigest()[:32]
        return self.cache_dir / f"{h}.bin"

    def _fetch_http_cached(self, url: str) -> Tuple[bytes, Optional[str]]:
        key = self._cache_key(url)
        if key.exists():
            try:
                raw = key.read_bytes()
                log.info("Cache hit: %s", key.name)
                return raw, mimetypes.guess_type(url)[0]
            except OSError as e:
                log.debug("Unreadable cache entry %s: %s", key.name, e)
        log.info("Fetching: %s", url)
        r = self._session.get(url, timeout=self.timeout)
        r.raise_for_status()
        raw = r.content
        try:
            key.write_bytes(raw)
        except OSError as e:
            log.debug("Could not write cache entry %s: %s", key.name, e)
        return raw, r.headers.get("Content-Type")

    @staticmethod
    def _fetch_data_url(src: str) -> Tuple[bytes, Optional[str]]:
        # data:[<mediatype>][;base64],<data>
        header, sep, payload = src[5:].partition(",")
        if not sep:
            raise ValueError("Malformed data: URL (missing ',')")
        parts = header.split(";")
        ctype = parts[0] or None
        if "base64" in parts[1:]:
            try:
                return base64.b64decode(payload, validate=False), ctype
            except ValueError as e:
                raise ValueError(f"Malformed base64 in data: URL: {e}") from e
        return unquote_to_bytes(payload), ctype

    def _fetch_local(self, path_str: str) -> Tuple[bytes, Optional[str]]:
        p = Path(path_str)
        if not p.exists() or not p.is_file():
            raise FileNotFoundError(f"Input file not found: {p}")
        return p.read_bytes(), mimetypes.guess_type(p.name)[0]


# =============== Decoder ===============
class ImageLoader:
    """Decode bytes → RGBA Pillow image. Optional max-size for speed/RAM."""

    def load(self, raw: bytes, content_type: Optional[str] = None, *, max_size: Optional[int] = None) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(raw))
            img.load()
        except Exception as e:
            raise DecodeError(f"Failed to decode image ({content_type or 'unknown type'}): {e}") from e

        img = ImageOps.exif_transpose(img)
        # palette/LA/L transparency all carry over into the A channel
        if img.mode != "RGBA":
            img = img.convert("RGBA")

        if max_size:
            img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
        return img


class PixelSource:
    """Resolve an image reference (URL, data: URL, path) into an RGBA image."""

    def __init__(self, fetcher: Optional[FileFetcher] = None, loader: Optional[ImageLoader] = None,
                 *, max_size: Optional[int] = None) -> None:
        self.fetcher = fetcher or FileFetcher()
        self.loader = loader or ImageLoader()
        self.max_size = max_size

    def load(self, ref: str) -> Image.Image:
        try:
            raw, ctype = self.fetcher.fetch(ref)
        except (OSError, ValueError, requests.RequestException) as e:
            raise DecodeError(f"Could not fetch {_short(ref)}: {e}") from e
        return self.loader.load(raw, ctype, max_size=self.max_size)

    __call__ = load


def _short(ref: str, n: int = 80) -> str:
    return ref if len(ref) <= n else ref[: n - 3] + "..."
