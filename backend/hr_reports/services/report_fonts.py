from __future__ import annotations

import asyncio
import enum
import io
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

import httpx
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from hr_reports.config import settings
from hr_reports.services.text_safety import transliterate_ascii


logger = logging.getLogger(__name__)

BUILTIN_REGULAR = "Helvetica"
BUILTIN_BOLD = "Helvetica-Bold"
PROBE_SIZE = 12


class FontState(str, enum.Enum):
    NOT_LOADED = "not_loaded"
    LOADED_USABLE = "loaded_usable"
    FALLBACK_ASCII = "fallback_ascii"


@dataclass(frozen=True)
class FontSpec:
    family: str
    regular: str
    bold: str
    # a character the locale needs that plain Latin-1 fonts lack
    sample: str


_NOTO_SANS = ("NotoSans", "NotoSans-Regular.ttf", "NotoSans-Bold.ttf")

LOCALE_FONTS: dict[str, FontSpec] = {
    "en": FontSpec(*_NOTO_SANS, sample="é"),
    "vi": FontSpec(*_NOTO_SANS, sample="ệ"),
    "de": FontSpec(*_NOTO_SANS, sample="ß"),
    "es": FontSpec(*_NOTO_SANS, sample="ñ"),
    "fr": FontSpec(*_NOTO_SANS, sample="œ"),
    "ru": FontSpec(*_NOTO_SANS, sample="Ж"),
    "ja": FontSpec("NotoSansJP", "NotoSansJP-Regular.ttf", "NotoSansJP-Bold.ttf", sample="日"),
    "ko": FontSpec("NotoSansKR", "NotoSansKR-Regular.ttf", "NotoSansKR-Bold.ttf", sample="한"),
    "th": FontSpec("NotoSansThai", "NotoSansThai-Regular.ttf", "NotoSansThai-Bold.ttf", sample="ก"),
}


@dataclass(frozen=True)
class DocumentFont:
    """
    The font decision for one PDF document.

    Resolved once before rendering and passed to every text placement, so a
    document never mixes the embedded font with transliterated text.
    """

    state: FontState
    regular: str = BUILTIN_REGULAR
    bold: str = BUILTIN_BOLD
    source: str | None = None

    def text(self, value: object | None) -> str:
        if self.state == FontState.NOT_LOADED:
            raise RuntimeError("Document font has not been resolved")
        if value is None:
            return ""
        if self.state == FontState.LOADED_USABLE:
            return str(value)
        return transliterate_ascii(value)

    def name(self, bold: bool = False) -> str:
        return self.bold if bold else self.regular


UNRESOLVED_FONT = DocumentFont(FontState.NOT_LOADED)
ASCII_FALLBACK_FONT = DocumentFont(FontState.FALLBACK_ASCII, source="builtin")

FontLoader = Callable[[FontSpec, str], Awaitable[bytes]]


class LocalFontLoader:
    """Reads font files from the self-hosted font directory."""

    def __init__(self, font_dir: str | Path) -> None:
        self.font_dir = Path(font_dir)

    async def __call__(self, spec: FontSpec, filename: str) -> bytes:
        path = self.font_dir / filename
        return await asyncio.to_thread(path.read_bytes)


class CdnFontLoader:
    def __init__(self, base_url: str, timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def url_for(self, spec: FontSpec, filename: str) -> str:
        return f"{self.base_url}/{spec.family}/hinted/ttf/{filename}"

    async def __call__(self, spec: FontSpec, filename: str) -> bytes:
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            res = await client.get(self.url_for(spec, filename))
        res.raise_for_status()
        return res.content


def default_font_loaders() -> list[tuple[str, FontLoader]]:
    loaders: list[tuple[str, FontLoader]] = [("self-hosted", LocalFontLoader(settings.REPORT_FONT_DIR))]
    if settings.REPORT_FONT_CDN_URL:
        loaders.append(("cdn", CdnFontLoader(settings.REPORT_FONT_CDN_URL, settings.REPORT_FONT_TIMEOUT_SECONDS)))
    return loaders


def register_font(name: str, data: bytes) -> str:
    pdfmetrics.registerFont(TTFont(name, io.BytesIO(data)))
    return name


def font_is_usable(font_name: str, sample: str) -> bool:
    """
    Measure an ASCII and a locale sample character with the registered font.

    A font that loads but reports zero or absurd widths, or has no glyph for
    the sample, is not usable.
    """
    try:
        ascii_width = pdfmetrics.stringWidth("A", font_name, PROBE_SIZE)
        sample_width = pdfmetrics.stringWidth(sample, font_name, PROBE_SIZE)
        if not (0 < ascii_width <= PROBE_SIZE * 2):
            return False
        if not (0 < sample_width <= PROBE_SIZE * 3 * len(sample)):
            return False
        face = getattr(pdfmetrics.getFont(font_name), "face", None)
        glyphs = getattr(face, "charToGlyph", None)
        if glyphs is not None and any(ord(ch) not in glyphs for ch in sample):
            return False
    except Exception:
        logger.warning("Font probe failed for %s", font_name, exc_info=True)
        return False
    return True


async def _load_and_register(
    loader: FontLoader,
    spec: FontSpec,
    filename: str,
    font_name: str,
    register: Callable[[str, bytes], str],
) -> str:
    data = await loader(spec, filename)
    if not data:
        raise ValueError(f"empty font file {filename}")
    return register(font_name, data)


async def resolve_document_font(
    locale: str,
    *,
    loaders: Sequence[tuple[str, FontLoader]] | None = None,
    register: Callable[[str, bytes], str] = register_font,
    probe: Callable[[str, str], bool] = font_is_usable,
) -> DocumentFont:
    """
    Walk the font sources in order and settle the document font.

    Sources are tried in the given order (self-hosted, then CDN by default);
    the first one whose regular face passes the probe wins. When none does,
    the built-in Helvetica with ASCII transliteration is used.
    """
    spec = LOCALE_FONTS.get(locale, LOCALE_FONTS["en"])
    if loaders is None:
        loaders = default_font_loaders()

    for source, loader in loaders:
        base_name = f"HRReport-{spec.family}-{source}"
        try:
            regular = await _load_and_register(loader, spec, spec.regular, base_name, register)
        except Exception as exc:
            logger.warning("Could not load %s from %s: %s", spec.regular, source, exc)
            continue
        if not probe(regular, spec.sample):
            logger.warning("Font %s from %s failed the measurement probe", spec.regular, source)
            continue

        bold = regular
        try:
            candidate = await _load_and_register(loader, spec, spec.bold, f"{base_name}-Bold", register)
            if probe(candidate, spec.sample):
                bold = candidate
        except Exception as exc:
            logger.info("Bold face %s unavailable from %s, using regular: %s", spec.bold, source, exc)
        return DocumentFont(FontState.LOADED_USABLE, regular=regular, bold=bold, source=source)

    logger.warning("No embeddable font for locale %s; falling back to ASCII transliteration", locale)
    return ASCII_FALLBACK_FONT
