from __future__ import annotations

import hashlib
import json
import re
from datetime import date, datetime
from typing import Any

DEFAULT_DEPARTMENT = "general"
# Order matters: first keyword found in the location wins.
DEPARTMENT_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("NYA", "NYA"),
    ("FORBES", "FORBES"),
    ("QC", "QC"),
    ("MICRO", "MICROBIOLOGY"),
)
DEPARTMENTS = tuple(dict.fromkeys([dept for _, dept in DEPARTMENT_KEYWORDS] + [DEFAULT_DEPARTMENT]))

CLASSIFICATION_CONFIDENTIAL = "confidential"
CLASSIFICATION_INTERNAL = "internal"

MONTHS = {
    "JAN": "01", "FEB": "02", "MAR": "03", "APR": "04",
    "MAY": "05", "JUN": "06", "JUL": "07", "AUG": "08",
    "SEP": "09", "OCT": "10", "NOV": "11", "DEC": "12",
}
_COMPACT_DATE_RE = re.compile(r"^(\d{2})([A-Z]{3})(\d{2})$")
_FALLBACK_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%b %d, %Y",
    "%B %d, %Y",
)


class DateWarnings:
    """Counter handed to ``normalize_date`` so callers can tally bad dates."""

    def __init__(self):
        self.count = 0

    def add(self) -> None:
        self.count += 1


def _parse_date_text(text: str) -> date | None:
    try:
        if "T" in text or (" " in text and ":" in text):
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(raw: Any, warnings: DateWarnings | None = None) -> str | None:
    """Return ``YYYY-MM-DD`` for a date-like string, else ``None``.

    ``01OCT25`` style values (day, month abbreviation, two-digit year) are
    read as 20YY. Blank input is ``None`` without a warning; anything else
    that does not parse counts one warning.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None

    match = _COMPACT_DATE_RE.match(text.upper())
    if match:
        day, month, year = match.groups()
        month_num = MONTHS.get(month)
        text = f"20{year}-{month_num}-{day}" if month_num else text

    parsed = _parse_date_text(text)
    if parsed is None:
        if warnings is not None:
            warnings.add()
        return None
    return parsed.isoformat()


def classify_department(location: Any) -> str:
    if not location:
        return DEFAULT_DEPARTMENT
    upper = str(location).upper()
    for keyword, department in DEPARTMENT_KEYWORDS:
        if keyword in upper:
            return department
    return DEFAULT_DEPARTMENT


def _canonical_json(record: dict[str, Any]) -> str:
    return json.dumps(record, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)


def classify_security(record: dict[str, Any]) -> str:
    content = _canonical_json(record).lower()
    if "confidential" in content or "sensitive" in content:
        return CLASSIFICATION_CONFIDENTIAL
    if "@" in content or "email" in content:
        # PII present; still "internal" until product defines a stricter tier.
        return CLASSIFICATION_INTERNAL
    return CLASSIFICATION_INTERNAL


def integrity_hash(record: dict[str, Any]) -> str:
    return hashlib.sha256(_canonical_json(record).encode("utf-8")).hexdigest()
