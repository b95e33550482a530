from __future__ import annotations

import re
import unicodedata


FORMULA_PREFIXES = ("=", "+", "-", "@")
FORMULA_GUARD = "'"

_WHITESPACE_RE = re.compile(r"\s+")
_UNSAFE_FILENAME_RE = re.compile(r"[\\/:*?\"<>|\x00-\x1f\x7f]")
_NON_PRINTABLE_ASCII_RE = re.compile(r"[^\x20-\x7e]")

# Letters whose closest ASCII form is not reachable by dropping combining marks,
# plus the precomposed Latin-extended letters used by the supported locales.
_TRANSLITERATION_GROUPS: dict[str, str] = {
    # Vietnamese
    "àáảãạăằắẳẵặâầấẩẫậ": "a",
    "ÀÁẢÃẠĂẰẮẲẴẶÂẦẤẨẪẬ": "A",
    "èéẻẽẹêềếểễệ": "e",
    "ÈÉẺẼẸÊỀẾỂỄỆ": "E",
    "ìíỉĩị": "i",
    "ÌÍỈĨỊ": "I",
    "òóỏõọôồốổỗộơờớởỡợ": "o",
    "ÒÓỎÕỌÔỒỐỔỖỘƠỜỚỞỠỢ": "O",
    "ùúủũụưừứửữự": "u",
    "ÙÚỦŨỤƯỪỨỬỮỰ": "U",
    "ỳýỷỹỵ": "y",
    "ỲÝỶỸỴ": "Y",
    "đ": "d",
    "Đ": "D",
    # German
    "äöü": "aou",
    "ÄÖÜ": "AOU",
    "ß": "ss",
    "ẞ": "SS",
    # Spanish / French / Portuguese
    "ñ": "n",
    "Ñ": "N",
    "çÇ": "cC",
    "ëïÿ": "eiy",
    "ËÏŸ": "EIY",
    "œ": "oe",
    "Œ": "OE",
    "æ": "ae",
    "Æ": "AE",
    # Nordic / Central European / other Latin extended
    "øØåÅ": "oOaA",
    "łŁ": "lL",
    "ąĄęĘśŚźŹżŻćĆńŃ": "aAeEsSzZzZcCnN",
    "čČšŠžŽřŘťŤďĎňŇěĚůŮ": "cCsSzZrRtTdDnNeEuU",
    "ğĞışŞİ": "gGisSI",
    "þ": "th",
    "Þ": "Th",
    "ð": "d",
    "Ð": "D",
    # punctuation that commonly slips into notes
    "‘’‚′": "'",
    "“”„″": '"',
    "–—": "-",
    "…": "...",
    "•·": "*",
    " ": " ",
}


def _build_table() -> dict[int, str]:
    table: dict[int, str] = {}
    for source, target in _TRANSLITERATION_GROUPS.items():
        if len(source) > 1 and len(target) == len(source):
            table.update({ord(char): replacement for char, replacement in zip(source, target)})
        else:
            table.update({ord(char): target for char in source})
    return table


TRANSLITERATION_TABLE = _build_table()


def neutralize_formula(value: object) -> object:
    """
    Stop spreadsheet applications from evaluating text as a formula.

    Non-string values pass through untouched.
    """
    if isinstance(value, str) and value.startswith(FORMULA_PREFIXES):
        return FORMULA_GUARD + value
    return value


def safe_filename_part(label: object | None, default: str = "export") -> str:
    text = "" if label is None else str(label)
    cleaned = _UNSAFE_FILENAME_RE.sub("", text).strip()
    cleaned = _WHITESPACE_RE.sub("_", cleaned)
    if not cleaned:
        return default
    return str(neutralize_formula(cleaned))


def transliterate_ascii(text: object | None) -> str:
    """
    Reduce text to printable ASCII for the built-in PDF fonts.

    Known letters go through the substitution table, any remaining accents are
    stripped via Unicode decomposition, and everything else is dropped.
    """
    if text is None:
        return ""
    value = str(text).translate(TRANSLITERATION_TABLE)
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _WHITESPACE_RE.sub(" ", stripped)
    ascii_only = _NON_PRINTABLE_ASCII_RE.sub("", stripped)
    return _WHITESPACE_RE.sub(" ", ascii_only).strip()
