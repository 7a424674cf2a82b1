from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Tuple, Union


class InvalidColorError(ValueError):
    """Raised for anything that is not a `#RRGGBB` color."""


_HEX_RE = re.compile(r"^#([0-9a-fA-F]{6})$")


def parse_hex_color(code: str) -> Tuple[int, int, int]:
    """`#RRGGBB` (case-insensitive, leading '#' required) -> (r, g, b)."""
    if not isinstance(code, str):
        raise InvalidColorError(f"Color must be a string like '#1A2B3C', got {type(code).__name__}")
    m = _HEX_RE.match(code.strip())
    if not m:
        raise InvalidColorError(f"Invalid color {code!r}: expected '#RRGGBB'")
    s = m.group(1)
    r = int(s[0:2], 16); g = int(s[2:4], 16); b = int(s[4:6], 16)
    return r, g, b


def normalize_hex(code: str) -> str:
    r, g, b = parse_hex_color(code)
    return f"#{r:02X}{g:02X}{b:02X}"


# =============== Presets ===============
@dataclass(frozen=True)
class ColorPreset:
    name: str
    bg: str
    duotone: str

    @property
    def bg_rgb(self) -> Tuple[int, int, int]:
        return parse_hex_color(self.bg)


COLOR_PRESETS: Tuple[ColorPreset, ...] = (
    # High contrast complementary
    ColorPreset("Purple Gold", bg="#4A1B6D", duotone="#D4B255"),
    # Tonal: same-hue variations (darkened)
    ColorPreset("Ocean Mist", bg="#062C2C", duotone="#81D1D1"),
    ColorPreset("Plum Rose", bg="#2C0E27", duotone="#D8A2BF"),
    ColorPreset("Forest Sage", bg="#10231A", duotone="#A6BFA6"),
    # Analogous: nearby hues (darkened)
    ColorPreset("Midnight Peach", bg="#0E1626", duotone="#E6BFA6"),
    ColorPreset("Wine Blush", bg="#2C0E1A", duotone="#DFBBBB"),
    # Pink/purple backgrounds with blue duotones
    ColorPreset("Pink Azure", bg="#5A1238", duotone="#5C9DC4"),
    ColorPreset("Violet Sky", bg="#2E1548", duotone="#6A9FC8"),
)


def _key(name: str) -> str:
    return re.sub(r"[\s_\-]+", " ", name.strip().lower())


class PresetRegistry:
    def __init__(self, presets: Tuple[ColorPreset, ...] = ()) -> None:
        self._ordered: List[ColorPreset] = []
        self._by_name: dict[str, ColorPreset] = {}
        for p in presets:
            self.register(p)

    def register(self, preset: ColorPreset) -> None:
        key = _key(preset.name)
        if key in self._by_name:
            raise KeyError(f"Duplicate preset '{preset.name}'")
        parse_hex_color(preset.bg)
        parse_hex_color(preset.duotone)
        self._by_name[key] = preset
        self._ordered.append(preset)

    def names(self) -> list[str]:
        return [p.name for p in self._ordered]

    def get(self, name: str) -> ColorPreset:
        key = _key(name)
        if key not in self._by_name:
            raise KeyError(f"Unknown preset '{name}'. Available: {', '.join(self.names()) or '(none)'}")
        return self._by_name[key]

    def at(self, index: int) -> ColorPreset:
        """Index with wrap-around, so index-1 / index+1 cycle through the table."""
        if not self._ordered:
            raise KeyError("No presets registered")
        return self._ordered[int(index) % len(self._ordered)]

    def resolve(self, token: Union[int, str, ColorPreset]) -> ColorPreset:
        if isinstance(token, ColorPreset):
            return token
        if isinstance(token, int):
            return self.at(token)
        s = str(token).strip()
        if s.lstrip("-").isdigit():
            return self.at(int(s))
        return self.get(s)

    def __len__(self) -> int:
        return len(self._ordered)

    def __iter__(self) -> Iterator[ColorPreset]:
        return iter(self._ordered)


PRESETS = PresetRegistry(COLOR_PRESETS)
