"""
Font resolution and text measurement.

Fonts are described by a FontSpec (family list, pixel size, weight, style)
whose CSS-like string form is also the measurement cache key. Measurement
uses Pillow's FreeType bindings so preview bounds and exported pixels agree.
"""

import threading
from collections import OrderedDict
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from PIL import ImageFont
from loguru import logger

from ..config import get_settings


GENERIC_FAMILIES = {
    "sans-serif": "DejaVu Sans",
    "serif": "DejaVu Serif",
    "monospace": "DejaVu Sans Mono",
    "system-ui": "DejaVu Sans",
}

# Last-resort files, tried in order
FALLBACK_FONT_FILES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "C:/Windows/Fonts/arial.ttf",
]

_FONT_SUFFIXES = {".ttf", ".otf", ".ttc"}


@dataclass(frozen=True)
class FontSpec:
    """Resolved font request; `css` is the exact string used for cache keys."""
    family: str
    size: int
    weight: str = "normal"
    style: str = "normal"

    @property
    def css(self) -> str:
        return f"{self.style} {self.weight} {self.size}px {self.family}"

    @property
    def bold(self) -> bool:
        return self.weight == "bold" or (self.weight.isdigit() and int(self.weight) >= 600)

    @property
    def italic(self) -> bool:
        return self.style == "italic"


@dataclass(frozen=True)
class TextMetrics:
    width: float
    height: float


def _normalize(name: str) -> str:
    return "".join(c for c in name.lower() if c.isalnum())


def _variant_score(stem: str, bold: bool, italic: bool) -> int:
    """Higher is a better match for the requested weight/style."""
    s = stem.lower()
    has_bold = "bold" in s or s.endswith("bd") or s.endswith("bi")
    has_italic = "italic" in s or "oblique" in s or s.endswith("i") or s.endswith("bi")
    score = 0
    score += 2 if has_bold == bold else 0
    score += 1 if has_italic == italic else 0
    return score


class FontResolver:
    """
    Maps CSS-style family lists to font files found in the configured
    font directories.

    The directory index is built once, on first use.
    """

    def __init__(self, font_dirs: Optional[list[Path]] = None, default_family: Optional[str] = None):
        settings = get_settings()
        self.font_dirs = [Path(d) for d in (font_dirs if font_dirs is not None else settings.font_dirs)]
        self.default_family = default_family or settings.default_font_family
        self._index: Optional[list[Path]] = None
        self._lock = threading.Lock()

    def _font_files(self) -> list[Path]:
        with self._lock:
            if self._index is None:
                files = []
                for d in self.font_dirs:
                    if d.is_dir():
                        files.extend(
                            p for p in sorted(d.rglob("*"))
                            if p.suffix.lower() in _FONT_SUFFIXES
                        )
                self._index = files
                logger.debug(f"Indexed {len(files)} font files")
            return self._index

    def find(self, spec: FontSpec) -> Optional[Path]:
        """Best file for the first family in the list that has any match."""
        families = [f.strip().strip("'\"") for f in spec.family.split(",") if f.strip()]
        families.append(self.default_family)

        files = self._font_files()
        for family in families:
            family = GENERIC_FAMILIES.get(family.lower(), family)
            key = _normalize(family)
            if not key:
                continue
            matches = [p for p in files if _normalize(p.stem).startswith(key)]
            if matches:
                # Prefer the right variant, then the shortest (plainest) name
                return max(
                    matches,
                    key=lambda p: (_variant_score(p.stem, spec.bold, spec.italic), -len(p.stem)),
                )
        return None

    def load(self, spec: FontSpec) -> ImageFont.FreeTypeFont:
        path = self.find(spec)
        if path is not None:
            try:
                return _load_truetype(str(path), spec.size)
            except OSError as e:
                logger.warning(f"Could not load font {path}: {e}")

        for candidate in FALLBACK_FONT_FILES:
            try:
                return _load_truetype(candidate, spec.size)
            except OSError:
                continue

        # Pillow's bundled font (scalable since Pillow 10.1)
        return ImageFont.load_default(size=spec.size)


@lru_cache(maxsize=256)
def _load_truetype(path: str, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(path, size)


class TextMeasurer:
    """
    Memoized text measurement keyed by exact font string + text.

    The cache is LRU-bounded and lock-protected so one instance can serve a
    pool of frame workers. Call clear() when switching source videos.
    """

    def __init__(self, resolver: Optional[FontResolver] = None, max_entries: Optional[int] = None):
        self.resolver = resolver or FontResolver()
        self.max_entries = max_entries or get_settings().measure_cache_size
        self._cache: "OrderedDict[str, TextMetrics]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def font(self, spec: FontSpec) -> ImageFont.FreeTypeFont:
        return self.resolver.load(spec)

    def measure(self, text: str, spec: FontSpec) -> TextMetrics:
        key = f"{spec.css}:{text}"
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                self.hits += 1
                return cached

        metrics = self._measure_uncached(text, spec)

        with self._lock:
            self.misses += 1
            self._cache[key] = metrics
            self._cache.move_to_end(key)
            while len(self._cache) > self.max_entries:
                self._cache.popitem(last=False)
        return metrics

    def _measure_uncached(self, text: str, spec: FontSpec) -> TextMetrics:
        font = self.font(spec)
        # Box height is the font size; glyph extents vary per string
        return TextMetrics(width=float(font.getlength(text)), height=float(spec.size))

    def clear(self):
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._cache)
