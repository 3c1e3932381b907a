"""Labeled-pattern rules that pull travel-claim fields out of free text."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple

from ..utils.natural_dates import DATE_PHRASE, TIME_PHRASE, normalize_date

logger = logging.getLogger(__name__)

# A value ends at punctuation, end of text, or a joining word
_END = r"(?=\s*(?:[,;\n]|\.(?:\s|$)|$)|\s+(?:and|but|with|from|on|at|in|for|since|my|our|then)\b)"
_SEP = r"\s*(?:is|was|:|=)?\s*"
_NUMBER_LABEL = r"(?:\s*(?:no\.?|number|num|#))?"
_WORDS = r"[A-Za-z][A-Za-z.'&-]*(?:\s+[A-Za-z][A-Za-z.'&-]*){0,5}?"


def _compile(pattern: str) -> Pattern:
    return re.compile(pattern, re.IGNORECASE)


def _clean(value: str) -> str:
    return value.strip().strip(" ,;:.-")


def _as_text(value: str, now: datetime) -> Optional[str]:
    return _clean(value) or None


def _as_upper(value: str, now: datetime) -> Optional[str]:
    return _clean(value).upper() or None


def _as_email(value: str, now: datetime) -> Optional[str]:
    return value.strip().lower() or None


def _as_phone(value: str, now: datetime) -> Optional[str]:
    value = value.strip()
    digits = re.sub(r"\D", "", value)
    if not 7 <= len(digits) <= 15:
        return None
    # Numeric dates look phone-shaped
    if re.fullmatch(r"\d{4}-\d{1,2}-\d{1,2}|\d{1,2}[/.]\d{1,2}[/.]\d{2,4}", value):
        return None
    return value


def _as_date(value: str, now: datetime) -> Optional[str]:
    normalized = normalize_date(value, now)
    return normalized[:10] if normalized else None


def _as_datetime(value: str, now: datetime) -> Optional[str]:
    return normalize_date(value, now)


@dataclass(frozen=True)
class FieldRule:
    """
    Ordered extraction rule for one field.

    Attributes:
        key: Schema key the rule fills
        patterns: Alternatives tried in order; each has a ``value`` group
        convert: Turns the captured text into the field value (None rejects it)
    """
    key: str
    patterns: Tuple[Pattern, ...]
    convert: Callable[[str, datetime], Optional[str]] = _as_text


_DATETIME_VALUE = (
    r"(?P<value>" + DATE_PHRASE + r"(?:\s*,?\s*" + TIME_PHRASE + r")?"
    r"|" + TIME_PHRASE + r"(?:\s+(?:on\s+)?" + DATE_PHRASE + r")?)"
)

# Order matters: each match is consumed before the next rule runs.
FIELD_RULES: List[FieldRule] = [
    FieldRule("email", (
        _compile(r"(?:\be-?mail(?:\s+address)?" + _SEP + r")?(?P<value>[\w.+-]+@[\w-]+(?:\.[\w-]+)+)"),
    ), _as_email),
    FieldRule("accountName", (
        _compile(r"\baccount\s+(?:holder(?:'s)?\s+)?name" + _SEP + r"(?P<value>" + _WORDS + r")" + _END),
    )),
    FieldRule("accountNo", (
        _compile(r"\b(?:bank\s+)?(?:account|acct|a/c)" + _NUMBER_LABEL + _SEP + r"(?P<value>\d[\d -]{3,}\d)"),
    )),
    FieldRule("bankName", (
        _compile(r"\b(?:bank(?:\s+name)?\s*(?:is|:|=)|bank(?:s|ing)?\s+with)\s*(?P<value>" + _WORDS + r")" + _END),
    )),
    FieldRule("passportNo", (
        _compile(r"\bpassport" + _NUMBER_LABEL + _SEP + r"(?P<value>(?=[A-Z]*\d)[A-Z0-9]{6,12})\b"),
    ), _as_upper),
    FieldRule("policyNo", (
        _compile(r"\bpolicy" + _NUMBER_LABEL + _SEP + r"(?P<value>(?=[A-Z-]*\d)[A-Z0-9][A-Z0-9/-]{2,})\b"),
    ), _as_upper),
    FieldRule("fullName", (
        _compile(r"\b(?:my\s+(?:full\s+)?name\s+is|(?:full\s+)?name\s*(?::|=|is))\s*(?P<value>" + _WORDS + r")" + _END),
    )),
    FieldRule("departureDate", (
        _compile(r"\b(?:depart(?:ure|ed|ing)?(?:\s+date)?|left|flew\s+out|outbound)\s*(?:on|:|=|is|was)?\s*(?P<value>" + DATE_PHRASE + r")"),
    ), _as_date),
    FieldRule("returnDate", (
        _compile(r"\b(?:return(?:ed|ing)?(?:\s+date)?|came\s+back|back\s+home|inbound)\s*(?:on|:|=|is|was)?\s*(?P<value>" + DATE_PHRASE + r")"),
    ), _as_date),
    FieldRule("signatureDate", (
        _compile(r"\bsign(?:ed|ature|ing)?(?:\s+date)?\s*(?:on|:|=|is)?\s*(?P<value>" + DATE_PHRASE + r")"),
    ), _as_date),
    FieldRule("incidentDateTime", (
        _compile(r"\b(?:incident(?:\s+date(?:\s*/\s*time)?)?|accident|happened|occurred|took\s+place)\s*(?:on|:|=|is|was)?\s*" + _DATETIME_VALUE),
        # Unlabeled "<date> at <time>" reads as the incident moment
        _compile(r"(?P<value>" + DATE_PHRASE + r"\s*,?\s*" + TIME_PHRASE + r")"),
    ), _as_datetime),
    FieldRule("phone", (
        _compile(r"(?:\b(?:phone|mobile|tel|telephone|contact|whatsapp|hp)" + _NUMBER_LABEL + _SEP + r")?(?P<value>\+?\d[\d\s().-]{5,}\d)"),
    ), _as_phone),
    FieldRule("destinationCountry", (
        _compile(r"\b(?:destination(?:\s+country)?" + _SEP + r"|travell?(?:ed|ing)\s+to|trip\s+to|went\s+to|flew\s+to|holiday\s+in|vacation\s+in)\s*(?P<value>" + _WORDS + r")" + _END),
    )),
    FieldRule("airline", (
        _compile(r"\bflight" + _NUMBER_LABEL + _SEP + r"(?P<value>(?-i:[A-Z]{2}|[A-Z]\d|\d[A-Z])\s?\d{1,4})\b"),
        _compile(r"\b(?:airline|flew\s+with|flying\s+with)" + _SEP + r"(?P<value>" + _WORDS + r")" + _END),
    )),
    FieldRule("incidentLocation", (
        _compile(r"\b(?:incident\s+location|location|(?:happened|occurred|took\s+place)\s+(?:at|in))" + _SEP + r"(?P<value>[A-Za-z][A-Za-z0-9 .'-]*?)" + _END),
    )),
    FieldRule("otherClaimDetail", (
        _compile(r"\bother(?:\s+claim)?(?:\s+details?)?\s*(?::|=)\s*(?P<value>[^\n,;]+)"),
    )),
    FieldRule("incidentDescription", (
        _compile(r"\b(?:(?:incident\s+)?description|what\s+happened)\s*(?:is|was|:|=)\s*(?P<value>[^\n]+)"),
    )),
]

# Keyword cues for the multi-select claim type field
CLAIM_TYPE_CUES: List[Tuple[str, Pattern]] = [
    ("Medical Expenses", _compile(r"\b(?:medical|hospital(?:ised|ized)?|doctor|clinic|injur(?:y|ed|ies)|sick|illness)\b")),
    ("Trip Cancellation", _compile(r"\bcancel(?:led|ed|lation)?\b")),
    ("Travel Delay", _compile(r"\bdelay(?:ed|s)?\b")),
    ("Baggage Loss", _compile(r"\b(?:baggage|luggage|suitcase)s?\b")),
]

DECLARATION_CUE = _compile(r"\bI\s+(?:hereby\s+)?(?:declare|confirm|agree)\b")


def _consume(text: str, span: Tuple[int, int]) -> str:
    start, end = span
    return text[:start] + " " * (end - start) + text[end:]


def _first_match(rule: FieldRule, text: str, now: datetime) -> Optional[Tuple[str, Tuple[int, int]]]:
    for pattern in rule.patterns:
        for match in pattern.finditer(text):
            value = rule.convert(match.group("value"), now)
            if value:
                return value, match.span()
    return None


def extract_fields(text: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Apply the ordered field rules to one utterance.

    Args:
        text: Free-form user text
        now: Reference moment for relative dates

    Returns:
        Extraction candidate (only fields that were found)
    """
    if not text or not text.strip():
        return {}

    now = now or datetime.now()
    remaining = text
    candidate: Dict[str, Any] = {}

    for rule in FIELD_RULES:
        found = _first_match(rule, remaining, now)
        if found is None:
            continue
        value, span = found
        candidate[rule.key] = value
        remaining = _consume(remaining, span)

    claim_types = [choice for choice, cue in CLAIM_TYPE_CUES if cue.search(text)]
    if claim_types:
        candidate["claimTypes"] = ", ".join(claim_types)

    if DECLARATION_CUE.search(text):
        candidate["declaration"] = True

    logger.debug(f"Local rules recovered {sorted(candidate)}")
    return candidate
