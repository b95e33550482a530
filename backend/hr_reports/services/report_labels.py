from __future__ import annotations

import enum

from hr_reports.models.enums import RecordType


LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "vi": "Tiếng Việt",
    "de": "Deutsch",
    "es": "Español",
    "fr": "Français",
    "ja": "日本語",
    "ko": "한국어",
    "ru": "Русский",
    "th": "ไทย",
}

RECORD_TYPE_LABELS: dict[RecordType, str] = {
    RecordType.ALL: "All Records",
    RecordType.TIME_ENTRIES: "Time Entries",
    RecordType.TASKS: "Tasks",
    RecordType.GOALS: "Goals",
}

_SPECIAL_LABELS = {
    "wfh": "Work From Home",
    "on_leave": "On Leave",
    "in-progress": "In Progress",
    "in_progress": "In Progress",
    "unknown": "Unknown",
}


def humanize(value: object | None, default: str = "-") -> str:
    """Display form of an enum value, e.g. "in-progress" -> "In Progress"."""
    if value is None:
        return default
    if isinstance(value, enum.Enum):
        value = value.value
    text = str(value).strip()
    if not text:
        return default
    special = _SPECIAL_LABELS.get(text.lower())
    if special:
        return special
    return text.replace("_", " ").replace("-", " ").title()


def language_label(locale: str) -> str:
    return f"{LANGUAGE_NAMES.get(locale, locale)} ({locale.upper()})"
