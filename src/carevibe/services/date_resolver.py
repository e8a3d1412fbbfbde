"""Date resolution for natural-language date phrases.

Deterministic rules run first and resolve relative phrases backwards in time
("a month ago", "monday" means last Monday). Only when they fail, or produce a
low-confidence match, is the remote model asked once for a strict JSON answer.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple

from dateutil import parser as dateutil_parser
from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from carevibe.core.config import settings
from carevibe.core.logging import logger
from carevibe.models.schemas import DateExtractionResponse
from carevibe.services.llm import LLMService, llm_service


CONFIDENCE_THRESHOLD = 0.8
DETERMINISTIC_CONFIDENCE = 0.9
# m/d without a year could be d/m; leave those to the model
AMBIGUOUS_NUMERIC_CONFIDENCE = 0.6

STRATEGY_DETERMINISTIC = "deterministic"
STRATEGY_MODEL = "model-assisted"


# Applied in order; later rules see the output of earlier ones
NORMALIZATION_RULES: List[Tuple[str, str]] = [
    (r"\b(mouth|mnth|mont)\b", "month"),
    (r"\b(yday|ystrday|yestrday)\b", "yesterday"),
    (r"\b(tmrw|tomrw|tomorow)\b", "tomorrow"),
    (r"\b(wk|week)\b", "week"),
    (r"\b(dy|dai)\b", "day"),
    (r"\b(hr|hrs)\b", "hour"),
    (r"\b(ago|back)\b", "ago"),
]

NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11,
    "twelve": 12, "couple of": 2, "a couple of": 2, "few": 3, "a few": 3,
}

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

MONTHS = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)

ISO_DATE = r"\d{4}-\d{2}-\d{2}"
MONTH_DAY = rf"(?:{MONTHS})\.?\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s*\d{{4}})?"
DAY_MONTH = rf"\d{{1,2}}(?:st|nd|rd|th)?\s+(?:of\s+)?(?:{MONTHS})(?:,?\s*\d{{4}})?"
NUMERIC_DATE = r"\d{1,2}/\d{1,2}(?:/\d{2,4})?"
EXPLICIT_DATE = rf"(?:{ISO_DATE}|{MONTH_DAY}|{DAY_MONTH}|{NUMERIC_DATE})"

RANGE_PATTERNS = [
    re.compile(rf"\bfrom\s+(?P<start>{EXPLICIT_DATE})\s+(?:to|until|till|through)\s+(?P<end>{EXPLICIT_DATE})"),
    re.compile(rf"\bbetween\s+(?P<start>{EXPLICIT_DATE})\s+and\s+(?P<end>{EXPLICIT_DATE})"),
    re.compile(rf"(?P<start>{EXPLICIT_DATE})\s*(?:-|–|to)\s*(?P<end>{EXPLICIT_DATE})"),
]

UNITS_AGO = re.compile(
    r"\b(?P<count>\d{1,3}|a couple of|couple of|a few|few|an|a|one|two|three|four|five|six|"
    r"seven|eight|nine|ten|eleven|twelve)\s+(?P<unit>day|week|month|year)s?\s+ago\b"
)
WEEKDAY = re.compile(rf"\b(?:(?P<modifier>last|past|on|this)\s+)?(?P<day>{'|'.join(WEEKDAYS)})\b")


@dataclass(frozen=True)
class DateResolution:
    """A point in time (start == end) or an inclusive date range."""
    kind: str  # point | range
    start: date
    end: date
    strategy: str
    confidence: float
    text: str = ""
    granularity: Optional[str] = None

    @property
    def is_point(self) -> bool:
        return self.kind == "point"


def normalize_message(message: str) -> str:
    """Lower-case and fix common date typos and abbreviations."""
    if not message:
        return ""
    normalized = message.lower()
    for pattern, replacement in NORMALIZATION_RULES:
        normalized = re.sub(pattern, replacement, normalized, flags=re.IGNORECASE)
    return normalized


def _prefer_past(value: date, reference: date, has_year: bool) -> date:
    """A yearless date after the reference means the same day last year."""
    if not has_year and value > reference:
        return value - relativedelta(years=1)
    return value


def _parse_explicit(text: str, reference: date) -> Optional[date]:
    """Parse one explicit calendar date (ISO, month name, or numeric)."""
    text = text.strip()
    if re.fullmatch(ISO_DATE, text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None

    has_year = bool(re.search(r"\d{4}\b", text)) or bool(re.fullmatch(r"\d{1,2}/\d{1,2}/\d{2,4}", text))
    cleaned = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", text).replace(" of ", " ")
    default = datetime(reference.year, reference.month, 1)
    try:
        parsed = dateutil_parser.parse(cleaned, default=default).date()
    except (ValueError, OverflowError):
        return None
    return _prefer_past(parsed, reference, has_year)


class DeterministicDateParser:
    """Rule-based parser standing in for the fast path of the resolver.

    Each rule receives the normalized text and the reference date and returns
    a DateResolution or None. Rules are tried in order.
    """

    def __init__(self):
        self.rules: List[Callable[[str, date], Optional[DateResolution]]] = [
            self._parse_range,
            self._parse_iso,
            self._parse_named_date,
            self._parse_numeric_date,
            self._parse_relative_day,
            self._parse_units_ago,
            self._parse_weekday,
        ]

    def parse(self, normalized: str, reference: date) -> Optional[DateResolution]:
        for rule in self.rules:
            result = rule(normalized, reference)
            if result is not None:
                return result
        return None

    @staticmethod
    def _point(value: date, text: str, confidence: float = DETERMINISTIC_CONFIDENCE) -> DateResolution:
        return DateResolution(
            kind="point",
            start=value,
            end=value,
            strategy=STRATEGY_DETERMINISTIC,
            confidence=confidence,
            text=text,
            granularity="day",
        )

    def _parse_range(self, text: str, reference: date) -> Optional[DateResolution]:
        for pattern in RANGE_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            start = _parse_explicit(match.group("start"), reference)
            end = _parse_explicit(match.group("end"), reference)
            if start is None or end is None:
                continue
            if end < start:
                start, end = end, start
            return DateResolution(
                kind="range",
                start=start,
                end=end,
                strategy=STRATEGY_DETERMINISTIC,
                confidence=DETERMINISTIC_CONFIDENCE,
                text=match.group(0),
                granularity="day",
            )
        return None

    def _parse_iso(self, text: str, reference: date) -> Optional[DateResolution]:
        match = re.search(rf"\b{ISO_DATE}\b", text)
        if not match:
            return None
        value = _parse_explicit(match.group(0), reference)
        return self._point(value, match.group(0)) if value else None

    def _parse_named_date(self, text: str, reference: date) -> Optional[DateResolution]:
        match = re.search(rf"\b(?:{MONTH_DAY}|{DAY_MONTH})\b", text)
        if not match:
            return None
        value = _parse_explicit(match.group(0), reference)
        return self._point(value, match.group(0)) if value else None

    def _parse_numeric_date(self, text: str, reference: date) -> Optional[DateResolution]:
        match = re.search(rf"\b{NUMERIC_DATE}\b", text)
        if not match:
            return None
        value = _parse_explicit(match.group(0), reference)
        if value is None:
            return None
        has_year = match.group(0).count("/") == 2
        confidence = DETERMINISTIC_CONFIDENCE if has_year else AMBIGUOUS_NUMERIC_CONFIDENCE
        return self._point(value, match.group(0), confidence)

    def _parse_relative_day(self, text: str, reference: date) -> Optional[DateResolution]:
        if "day before yesterday" in text:
            return self._point(reference - timedelta(days=2), "day before yesterday")
        if re.search(r"\byesterday\b", text):
            return self._point(reference - timedelta(days=1), "yesterday")
        if re.search(r"\btoday\b|\btonight\b", text):
            return self._point(reference, "today")
        if re.search(r"\btomorrow\b", text):
            return self._point(reference + timedelta(days=1), "tomorrow")
        return None

    def _parse_units_ago(self, text: str, reference: date) -> Optional[DateResolution]:
        match = UNITS_AGO.search(text)
        if not match:
            return None
        raw_count = match.group("count")
        count = int(raw_count) if raw_count.isdigit() else NUMBER_WORDS[raw_count]
        unit = match.group("unit")
        delta = {
            "day": relativedelta(days=count),
            "week": relativedelta(weeks=count),
            "month": relativedelta(months=count),
            "year": relativedelta(years=count),
        }[unit]
        return self._point(reference - delta, match.group(0))

    def _parse_weekday(self, text: str, reference: date) -> Optional[DateResolution]:
        match = WEEKDAY.search(text)
        if not match:
            return None
        target = WEEKDAYS.index(match.group("day"))
        days_back = (reference.weekday() - target) % 7
        modifier = match.group("modifier")
        # "last monday" on a Monday means a week ago, not today
        if days_back == 0 and modifier in ("last", "past"):
            days_back = 7
        return self._point(reference - timedelta(days=days_back), match.group(0))


DATE_EXTRACTION_PROMPT = """You are a date extraction assistant. Extract date/time references from user messages and return structured JSON.

Current reference date: {reference}

Return JSON with this exact structure:
{{
  "kind": "point" or "range",
  "startISO": "YYYY-MM-DD",
  "endISO": "YYYY-MM-DD",
  "granularity": "day|week|month|year",
  "confidence": 0.0 to 1.0
}}

Examples:
- "a month ago" -> {{"kind":"point", "startISO":"2025-10-03", "endISO":"2025-10-03", "granularity":"day", "confidence":0.85}}
- "last week" -> {{"kind":"range", "startISO":"2025-10-27", "endISO":"2025-11-02", "granularity":"week", "confidence":0.9}}
- "30 days ago" -> {{"kind":"point", "startISO":"2025-10-04", "endISO":"2025-10-04", "granularity":"day", "confidence":0.95}}

If no date found, return {{"kind":"none", "confidence":0.0}}"""


class DateResolver:
    """Turns free text into a concrete date or date range."""

    def __init__(
        self,
        llm: Optional[LLMService] = None,
        parser: Optional[DeterministicDateParser] = None,
        use_model: bool = True,
    ):
        self.llm = llm or llm_service
        self.parser = parser or DeterministicDateParser()
        self.use_model = use_model

    def parse_deterministic(self, message: str, reference_date: date) -> Optional[DateResolution]:
        return self.parser.parse(normalize_message(message), reference_date)

    async def parse_with_model(self, message: str, reference_date: date) -> Optional[DateResolution]:
        """Ask the model for a strict JSON date; None on any failure."""
        system_prompt = DATE_EXTRACTION_PROMPT.format(reference=reference_date.isoformat())
        payload = await self.llm.complete_json(system_prompt, message, max_tokens=150)
        if payload is None:
            return None

        try:
            reply = DateExtractionResponse.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"[DateResolver] Malformed model reply: {e.error_count()} errors")
            return None

        if reply.kind == "none" or not reply.start_iso:
            return None

        try:
            start = date.fromisoformat(reply.start_iso[:10])
            end = date.fromisoformat((reply.end_iso or reply.start_iso)[:10])
        except ValueError:
            logger.warning(f"[DateResolver] Invalid ISO dates from model: {reply.start_iso}, {reply.end_iso}")
            return None

        if reply.kind == "point":
            end = start
        elif end < start:
            start, end = end, start

        return DateResolution(
            kind=reply.kind,
            start=start,
            end=end,
            strategy=STRATEGY_MODEL,
            confidence=reply.confidence or 0.7,
            text=message,
            granularity=reply.granularity,
        )

    async def resolve(self, message: str, reference_date: Optional[date] = None) -> Optional[DateResolution]:
        """
        Resolve a date or date range from a message.

        Args:
            message: User message containing a date reference
            reference_date: "Today" for relative phrases (defaults to the
                user's current date)

        Returns:
            DateResolution, or None when nothing could be resolved. Never raises.
        """
        if not message or not isinstance(message, str):
            return None
        if reference_date is None:
            reference_date = datetime.now(settings.user_timezone).date()
        elif isinstance(reference_date, datetime):
            reference_date = reference_date.date()

        result = self.parse_deterministic(message, reference_date)
        if result is not None and result.confidence >= CONFIDENCE_THRESHOLD:
            logger.debug(f"[DateResolver] Resolved deterministically: {result}")
            return result

        if self.use_model:
            model_result = await self.parse_with_model(message, reference_date)
            if model_result is not None:
                logger.debug(f"[DateResolver] Resolved with model: {model_result}")
                return model_result

        logger.debug(f"[DateResolver] Could not resolve date from: {message}")
        return None


date_resolver = DateResolver()
