from __future__ import annotations

import re
import unicodedata

from hr_reports.models.enums import HourType


_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Labels seen in the store besides the canonical values (mostly Vietnamese UI text).
HOUR_TYPE_SYNONYMS: dict[str, HourType] = {
    "gio thuong": HourType.REGULAR,
    "gio lam thuong": HourType.REGULAR,
    "gio thuong them": HourType.REGULAR,
    "gio thuong gio thuong": HourType.REGULAR,
    "regular hours": HourType.REGULAR,
    "lam tai van phong": HourType.REGULAR,
    "lam viec tai van phong": HourType.REGULAR,
    "lam tai vp": HourType.REGULAR,
    "tai van phong": HourType.REGULAR,
    "cuoi tuan": HourType.WEEKEND,
    "cuoi tuan tang ca": HourType.WEEKEND,
    "weekend overtime": HourType.WEEKEND,
    "weekend over time": HourType.WEEKEND,
    "gio lam them": HourType.OVERTIME,
    "tang ca": HourType.OVERTIME,
    "ot": HourType.OVERTIME,
    "ngay le": HourType.HOLIDAY,
    "bonus hours": HourType.BONUS,
    "lam viec tai nha": HourType.WFH,
    "truc tuyen": HourType.WFH,
    "online": HourType.WFH,
    "work from home": HourType.WFH,
    "nghi phep": HourType.ON_LEAVE,
    "on leave": HourType.ON_LEAVE,
}

_CANONICAL = {member.value: member for member in HourType}


def _ascii_key(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value.strip().lower()).replace("đ", "d")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM_RE.sub(" ", stripped).strip()


def normalize_hour_type(raw: object | None) -> HourType | None:
    """
    Map a stored hour type label onto the canonical enum.

    Returns None when the label is empty or unknown.
    """
    if raw is None:
        return None
    if isinstance(raw, HourType):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    lower = text.lower()
    if lower in _CANONICAL:
        return _CANONICAL[lower]
    key = _ascii_key(text)
    if key.replace(" ", "_") in _CANONICAL:
        return _CANONICAL[key.replace(" ", "_")]
    return HOUR_TYPE_SYNONYMS.get(key)
