"""Natural-language date/time normalization relative to a reference moment.

Phrases such as "yesterday", "last Friday", "12 Sep 2025" or "at 3pm" are
turned into ``YYYY-MM-DD`` (date only) or ``YYYY-MM-DD HH:mm`` (date and
time). Numeric dates are read day-first (``12/09/2025`` is 12 September).
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_WEEKDAY = r"(?:" + "|".join(WEEKDAYS) + r")"
_ORDINAL = r"(?:st|nd|rd|th)?"

# Regex fragments reused by the field rules; no capture groups inside.
DATE_PHRASE = (
    r"(?:\d{4}-\d{1,2}-\d{1,2}"
    r"|\d{1,2}[/.]\d{1,2}[/.]\d{2,4}"
    r"|\d{1,2}" + _ORDINAL + r"\s+" + _MONTH + r"\.?,?(?:\s+\d{4})?"
    r"|" + _MONTH + r"\.?\s+\d{1,2}" + _ORDINAL + r"(?:,?\s+\d{4})?"
    r"|today|yesterday|tomorrow"
    r"|\d+\s+days?\s+ago"
    r"|(?:last|this|next)\s+" + _WEEKDAY +
    r"|" + _WEEKDAY + r")"
)

TIME_PHRASE = (
    r"(?:(?:at|@)\s*)?"
    r"(?:(?<!\d)\d{1,2}(?::\d{2})?\s*[ap]\.?m\.?(?![a-z])"
    r"|(?:[01]?\d|2[0-3]):[0-5]\d"
    r"|noon|midnight)"
)

_TIME_RE = re.compile(
    r"(?:(?:\bat|@)\s*)?"
    r"(?:(?<!\d)(?P<h12>\d{1,2})(?::(?P<m12>\d{2}))?\s*(?P<ampm>[ap])\.?m\.?(?![a-z])"
    r"|(?P<h24>[01]?\d|2[0-3]):(?P<m24>[0-5]\d)"
    r"|(?P<word>noon|midnight))",
    re.IGNORECASE,
)
_ISO_RE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")
_DMY_RE = re.compile(r"(\d{1,2})[/.](\d{1,2})[/.](\d{2,4})")
_DAY_MONTH_RE = re.compile(r"(\d{1,2})" + _ORDINAL + r"\s+(" + _MONTH + r")\.?,?(?:\s+(\d{4}))?", re.IGNORECASE)
_MONTH_DAY_RE = re.compile(r"(" + _MONTH + r")\.?\s+(\d{1,2})" + _ORDINAL + r"(?:,?\s+(\d{4}))?", re.IGNORECASE)
_DAYS_AGO_RE = re.compile(r"(\d+)\s+days?\s+ago", re.IGNORECASE)
_WEEKDAY_RE = re.compile(r"(?:(last|this|next)\s+)?(" + _WEEKDAY + r")", re.IGNORECASE)


def resolve_weekday(qualifier: Optional[str], weekday: int, reference: date) -> date:
    """
    Resolve "<qualifier> <weekday>" against a reference date.

    Args:
        qualifier: "last", "this", "next" or None for a bare weekday
        weekday: Target weekday index (Monday == 0)
        reference: Reference date

    Returns:
        "last" is strictly before the reference, "next" strictly after,
        "this" falls in the reference's Monday-based week (either side),
        and a bare weekday is the most recent one on or before the reference.
    """
    current = reference.weekday()
    qualifier = (qualifier or "").lower()

    if qualifier == "next":
        delta = (weekday - current) % 7 or 7
        return reference + timedelta(days=delta)
    if qualifier == "last":
        delta = (current - weekday) % 7 or 7
        return reference - timedelta(days=delta)
    if qualifier == "this":
        return reference + timedelta(days=weekday - current)
    return reference - timedelta(days=(current - weekday) % 7)


def parse_time(text: str) -> Optional[Tuple[int, int, Tuple[int, int]]]:
    """
    Find the first time-of-day phrase in text.

    Returns:
        (hour, minute, (start, end)) of the match, or None
    """
    match = _TIME_RE.search(text)
    if not match:
        return None

    if match.group("word"):
        hour = 12 if match.group("word").lower() == "noon" else 0
        minute = 0
    elif match.group("h24") is not None:
        hour = int(match.group("h24"))
        minute = int(match.group("m24"))
    else:
        hour = int(match.group("h12"))
        minute = int(match.group("m12") or 0)
        if hour < 1 or hour > 12 or minute > 59:
            return None
        if match.group("ampm").lower() == "p" and hour != 12:
            hour += 12
        elif match.group("ampm").lower() == "a" and hour == 12:
            hour = 0

    return hour, minute, match.span()


def _full_year(year: int) -> int:
    return year + 2000 if year < 100 else year


def _parse_date_part(text: str, reference: date) -> Optional[date]:
    text = text.strip().lower()
    if not text:
        return None

    try:
        if text == "today":
            return reference
        if text == "yesterday":
            return reference - timedelta(days=1)
        if text == "tomorrow":
            return reference + timedelta(days=1)

        match = _ISO_RE.fullmatch(text)
        if match:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

        match = _DMY_RE.fullmatch(text)
        if match:
            return date(_full_year(int(match.group(3))), int(match.group(2)), int(match.group(1)))

        match = _DAY_MONTH_RE.fullmatch(text)
        if match:
            year = int(match.group(3)) if match.group(3) else reference.year
            return date(year, MONTHS[match.group(2)[:3].lower()], int(match.group(1)))

        match = _MONTH_DAY_RE.fullmatch(text)
        if match:
            year = int(match.group(3)) if match.group(3) else reference.year
            return date(year, MONTHS[match.group(1)[:3].lower()], int(match.group(2)))
    except ValueError:
        # Out-of-range day/month such as 2025-02-30
        return None

    match = _DAYS_AGO_RE.fullmatch(text)
    if match:
        return reference - timedelta(days=int(match.group(1)))

    match = _WEEKDAY_RE.fullmatch(text)
    if match:
        return resolve_weekday(match.group(1), WEEKDAYS.index(match.group(2).lower()), reference)

    return None


def normalize_date(text: str, now: Optional[datetime] = None) -> Optional[str]:
    """
    Normalize a natural date/time phrase.

    Args:
        text: Phrase such as "2025-09-12", "last Monday at 3pm" or "yesterday"
        now: Reference moment (defaults to the current local time)

    Returns:
        "YYYY-MM-DD", "YYYY-MM-DD HH:mm" when a time was given, or None
    """
    if not text or not text.strip():
        return None

    now = now or datetime.now()
    cleaned = re.sub(r"(\d)T(\d)", r"\1 \2", text.strip())

    time_of_day = parse_time(cleaned)
    if time_of_day:
        hour, minute, (start, end) = time_of_day
        cleaned = cleaned[:start] + " " + cleaned[end:]

    cleaned = re.sub(r"^\s*(?:on|at|@)\s+", "", cleaned.strip(), flags=re.IGNORECASE)
    cleaned = re.sub(r"\s+(?:on|at)\s*$", "", cleaned, flags=re.IGNORECASE)
    cleaned = cleaned.strip(" ,.;")

    if cleaned:
        resolved = _parse_date_part(cleaned, now.date())
        if resolved is None:
            return None
    elif time_of_day:
        resolved = now.date()
    else:
        return None

    if time_of_day:
        return f"{resolved:%Y-%m-%d} {hour:02d}:{minute:02d}"
    return f"{resolved:%Y-%m-%d}"
