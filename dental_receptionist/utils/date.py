"""
Date and time preference parsing.

Free text is read by an ordered list of independent recognizers. Each one
claims the span of text it matched, so a later recognizer never reads a
number that an earlier one already consumed. Date recognizers run before
time recognizers.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Pattern, Sequence, Tuple

from dateparser import parse as parse_date

from ..core.models import DateRange, DateTimePreference, TimeOfDay
from .logging import get_logger

logger = get_logger("receptionist.date")

Span = Tuple[int, int]

WEEKDAYS = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1, "tues": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3, "thur": 3, "thurs": 3,
    "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5,
    "sunday": 6, "sun": 6,
}

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

TIME_WORDS = {
    "noon": TimeOfDay(hour=12),
    "midday": TimeOfDay(hour=12),
    "morning": TimeOfDay(hour=9),
    "afternoon": TimeOfDay(hour=14),
    "evening": TimeOfDay(hour=17),
}

# Longest names first so "thursday" wins over "thu"
_WEEKDAY_ALT = "|".join(sorted(WEEKDAYS, key=len, reverse=True))
_MONTH_ALT = "|".join(sorted(MONTHS, key=len, reverse=True))
_PERIOD = r"(a\.?m\.?|p\.?m\.?)"


def _overlaps(span: Span, claimed: Sequence[Span]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in claimed)


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _roll_forward(candidate: date, today: date, explicit_year: bool) -> date:
    """A date without a year that already passed this year means next year."""
    if explicit_year or candidate >= today:
        return candidate
    rolled = _safe_date(candidate.year + 1, candidate.month, candidate.day)
    return rolled or candidate


def _clinic_hour(hour: int) -> int:
    """Hours 1-6 given without am/pm are afternoon appointments."""
    return hour + 12 if 1 <= hour <= 6 else hour


def _to_24h(hour: int, period: Optional[str]) -> Optional[int]:
    if period is None:
        return hour if 0 <= hour <= 23 else None
    if not 1 <= hour <= 12:
        return None
    is_pm = period.replace(".", "").startswith("p")
    if is_pm and hour != 12:
        return hour + 12
    if not is_pm and hour == 12:
        return 0
    return hour


@dataclass
class Recognition:
    """Partial preference plus the span of text it was read from."""

    preference: DateTimePreference
    span: Span


class Recognizer:
    """Base class: try each pattern left-to-right, skip claimed text."""

    name = "base"
    patterns: Sequence[Pattern] = ()

    def recognize(self, text: str, ref: datetime, claimed: Sequence[Span]) -> Optional[Recognition]:
        for pattern in self.patterns:
            for match in pattern.finditer(text):
                if _overlaps(match.span(), claimed):
                    continue
                preference = self.build(match, ref)
                if preference is not None:
                    return Recognition(preference, match.span())
        return None

    def build(self, match: re.Match, ref: datetime) -> Optional[DateTimePreference]:
        raise NotImplementedError


class IsoDateRecognizer(Recognizer):
    name = "iso_date"
    patterns = (re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b"),)

    def build(self, match, ref):
        day = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        return DateTimePreference(date=day) if day else None


class MonthNameRecognizer(Recognizer):
    """'July 21st', 'Jul 21, 2026', '21st of July', '21 July 2026'."""

    name = "month_name"
    patterns = (
        re.compile(
            rf"\b(?P<month>{_MONTH_ALT})\.?\s+(?P<day>\d{{1,2}})(?:st|nd|rd|th)?\b"
            rf"(?:,?\s+(?P<year>\d{{4}})\b)?"
        ),
        re.compile(
            rf"\b(?P<day>\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?(?P<month>{_MONTH_ALT})\b\.?"
            rf"(?:,?\s+(?P<year>\d{{4}})\b)?"
        ),
    )

    def build(self, match, ref):
        year = match.group("year")
        today = ref.date()
        day = _safe_date(
            int(year) if year else today.year,
            MONTHS[match.group("month")],
            int(match.group("day")),
        )
        if day is None:
            return None
        return DateTimePreference(date=_roll_forward(day, today, bool(year)))


class NumericDateRecognizer(Recognizer):
    """US-style MM/DD with an optional /YY or /YYYY."""

    name = "numeric_date"
    patterns = (re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?\b"),)

    def build(self, match, ref):
        today = ref.date()
        year = match.group(3)
        if year and len(year) == 2:
            year = f"20{year}"
        day = _safe_date(int(year) if year else today.year, int(match.group(1)), int(match.group(2)))
        if day is None:
            return None
        return DateTimePreference(date=_roll_forward(day, today, bool(year)))


class RelativeDayRecognizer(Recognizer):
    name = "relative"
    patterns = (
        re.compile(r"\b(?:the\s+)?day\s+after\s+tomorrow\b"),
        re.compile(r"\btoday\b"),
        re.compile(r"\btomorrow\b"),
        re.compile(r"\bnext\s+week\b"),
        re.compile(r"\bthis\s+week\b"),
    )

    def build(self, match, ref):
        today = ref.date()
        phrase = match.group(0)
        if "after" in phrase:
            return DateTimePreference(date=today + timedelta(days=2))
        if phrase == "today":
            return DateTimePreference(date=today)
        if phrase == "tomorrow":
            return DateTimePreference(date=today + timedelta(days=1))

        monday = today - timedelta(days=today.weekday())
        if phrase.startswith("next"):
            start = monday + timedelta(days=7)
            return DateTimePreference(
                date_range=DateRange(from_date=start, to_date=start + timedelta(days=6))
            )
        return DateTimePreference(
            date_range=DateRange(from_date=today, to_date=monday + timedelta(days=6))
        )


class RelativeOffsetRecognizer(Recognizer):
    """'in 3 days', 'in two weeks': resolved by dateparser against ``ref``."""

    name = "relative_offset"
    patterns = (
        re.compile(r"\bin\s+(\d{1,2}|a|an|one|two|three|four|five|six|seven|eight|nine|ten)\s+(days?|weeks?)\b"),
    )

    def build(self, match, ref):
        amount = match.group(1)
        count = int(amount) if amount.isdigit() else NUMBER_WORDS[amount]
        parsed = parse_date(
            f"in {count} {match.group(2)}",
            languages=["en"],
            settings={
                "RELATIVE_BASE": ref.replace(tzinfo=None),
                "PREFER_DATES_FROM": "future",
            },
        )
        if parsed is None:
            return None
        return DateTimePreference(date=parsed.date())


class WeekdayRecognizer(Recognizer):
    """
    Weekday names with optional qualifier.

    - ``next <day>``: that day in the following Sunday-to-Saturday week.
    - ``this <day>``: the coming occurrence, today included.
    - ``<day>``: the coming occurrence, today excluded.
    """

    name = "weekday"
    patterns = (
        re.compile(rf"\b(?P<qual>next|this|coming)\s+(?P<day>{_WEEKDAY_ALT})\b"),
        re.compile(rf"\b(?P<qual>)(?P<day>{_WEEKDAY_ALT})\b"),
    )

    def build(self, match, ref):
        today = ref.date()
        target = WEEKDAYS[match.group("day")]
        qualifier = match.group("qual")

        if qualifier == "next":
            week_start = today - timedelta(days=(today.weekday() + 1) % 7)
            next_week_start = week_start + timedelta(days=7)
            return DateTimePreference(date=next_week_start + timedelta(days=(target + 1) % 7))

        days_ahead = (target - today.weekday()) % 7
        if qualifier in ("this", "coming"):
            return DateTimePreference(date=today + timedelta(days=days_ahead))
        return DateTimePreference(date=today + timedelta(days=days_ahead or 7))


class ClockTimeRecognizer(Recognizer):
    """'2:30pm', '14:30', '10am', '12 p.m.', "10 o'clock"."""

    name = "clock_time"
    patterns = (
        re.compile(rf"\b(?P<hour>\d{{1,2}}):(?P<minute>\d{{2}})\s*(?P<period>{_PERIOD})?(?![\w:])"),
        re.compile(rf"\b(?P<hour>\d{{1,2}})\s*(?P<period>{_PERIOD})(?!\w)"),
        re.compile(r"\b(?P<hour>\d{1,2})\s*o['’]?\s?clock\b"),
    )

    def build(self, match, ref):
        groups = match.groupdict()
        hour = int(groups["hour"])
        minute = int(groups.get("minute") or 0)
        period = groups.get("period")
        if minute > 59:
            return None

        if period:
            hour = _to_24h(hour, period)
        elif groups.get("minute") is not None:
            hour = _clinic_hour(hour) if hour <= 23 else None
        else:
            # o'clock
            hour = _clinic_hour(hour) if 1 <= hour <= 12 else None

        if hour is None:
            return None
        return DateTimePreference(time=TimeOfDay(hour=hour, minute=minute))


class TimeWordRecognizer(Recognizer):
    name = "time_word"
    patterns = (re.compile(r"\b(noon|midday|morning|afternoon|evening)\b"),)

    def build(self, match, ref):
        return DateTimePreference(time=TIME_WORDS[match.group(1)])


class DateTimePreferenceParser:
    """Compose the recognizers left-to-right into one preference."""

    def __init__(self, recognizers: Optional[List[Recognizer]] = None):
        self.recognizers = recognizers or [
            IsoDateRecognizer(),
            MonthNameRecognizer(),
            NumericDateRecognizer(),
            RelativeDayRecognizer(),
            RelativeOffsetRecognizer(),
            WeekdayRecognizer(),
            ClockTimeRecognizer(),
            TimeWordRecognizer(),
        ]

    def parse(self, text: Optional[str], ref: datetime) -> DateTimePreference:
        """
        Read a date/time preference from ``text`` relative to ``ref``.

        Args:
            text: Free text such as "next Monday at 2:30pm"
            ref: The reference instant ("now"), ideally in the clinic timezone

        Returns:
            A DateTimePreference; all fields None when nothing was recognized
        """
        result = DateTimePreference()
        if not text:
            return result

        try:
            normalized = text.lower().replace("’", "'")
            claimed: List[Span] = []
            for recognizer in self.recognizers:
                found = recognizer.recognize(normalized, ref, claimed)
                if found is None:
                    continue
                claimed.append(found.span)
                result = result.merge(found.preference)
            return result
        except Exception as e:
            logger.warning(f"date: could not parse {text!r}: {e}")
            return DateTimePreference()


def format_date(value: datetime) -> str:
    """Format a date for display, e.g. 'Monday, July 21, 2026'."""
    return f"{value.strftime('%A, %B')} {value.day}, {value.year}"


def format_time(value: datetime) -> str:
    """Format a time for display, e.g. '2:30 PM'."""
    return value.strftime("%I:%M %p").lstrip("0")
