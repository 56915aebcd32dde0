from datetime import date

import pytest

from dental_receptionist.core.models import DateRange, TimeOfDay
from dental_receptionist.utils.date import DateTimePreferenceParser, format_date, format_time

from conftest import local

# Wednesday 2026-10-21, 10:00
REF = local(2026, 10, 21, 10, 0)


@pytest.fixture
def parser():
    return DateTimePreferenceParser()


def test_next_weekday_with_time(parser):
    pref = parser.parse("next Monday at 2:30pm", REF)
    assert pref.date == date(2026, 10, 26)
    assert pref.time == TimeOfDay(hour=14, minute=30)


def test_bare_weekday_equal_to_today_means_next_week(parser):
    assert parser.parse("Wednesday", REF).date == date(2026, 10, 28)
    assert parser.parse("this wednesday", REF).date == date(2026, 10, 21)
    assert parser.parse("friday", REF).date == date(2026, 10, 23)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("12am", TimeOfDay(hour=0)),
        ("12pm", TimeOfDay(hour=12)),
        ("12 p.m.", TimeOfDay(hour=12)),
        ("10am", TimeOfDay(hour=10)),
        ("14:30", TimeOfDay(hour=14, minute=30)),
        ("2:30", TimeOfDay(hour=14, minute=30)),
        ("10 o'clock", TimeOfDay(hour=10)),
        ("3 o'clock", TimeOfDay(hour=15)),
        ("noon", TimeOfDay(hour=12)),
    ],
)
def test_clock_times(parser, text, expected):
    assert parser.parse(text, REF).time == expected


def test_month_name_in_the_past_rolls_to_next_year(parser):
    assert parser.parse("July 21st", REF).date == date(2027, 7, 21)
    assert parser.parse("November 3", REF).date == date(2026, 11, 3)
    assert parser.parse("3rd of December", REF).date == date(2026, 12, 3)


def test_numeric_and_iso_dates(parser):
    assert parser.parse("12/25", REF).date == date(2026, 12, 25)
    assert parser.parse("11/03/2026", REF).date == date(2026, 11, 3)
    assert parser.parse("2026-11-03", REF).date == date(2026, 11, 3)


def test_relative_days(parser):
    assert parser.parse("tomorrow", REF).date == date(2026, 10, 22)
    assert parser.parse("the day after tomorrow", REF).date == date(2026, 10, 23)
    assert parser.parse("in 3 days", REF).date == date(2026, 10, 24)


def test_next_week_is_a_range(parser):
    pref = parser.parse("sometime next week", REF)
    assert pref.date is None
    assert pref.date_range == DateRange(from_date=date(2026, 10, 26), to_date=date(2026, 11, 1))


def test_date_and_time_word_combined(parser):
    pref = parser.parse("tomorrow morning", REF)
    assert pref.date == date(2026, 10, 22)
    assert pref.time == TimeOfDay(hour=9)


def test_date_digits_are_not_read_as_time(parser):
    pref = parser.parse("November 3 at 4pm", REF)
    assert pref.date == date(2026, 11, 3)
    assert pref.time == TimeOfDay(hour=16)


def test_no_preference(parser):
    assert parser.parse("hello there", REF).is_empty()
    assert parser.parse("", REF).is_empty()
    assert parser.parse(None, REF).is_empty()


def test_display_formats():
    when = local(2026, 10, 26, 14, 30)
    assert format_date(when) == "Monday, October 26, 2026"
    assert format_time(when) == "2:30 PM"


def test_later_day_replaces_an_earlier_range(parser):
    week = parser.parse("sometime next week at 10am", REF)
    combined = week.overlay(parser.parse("friday", REF))
    assert combined.date == date(2026, 10, 23)
    assert combined.date_range is None
    assert combined.time == TimeOfDay(hour=10)

    back_to_week = combined.overlay(parser.parse("next week", REF))
    assert back_to_week.date is None
    assert back_to_week.date_range.from_date == date(2026, 10, 26)


def test_time_only_keeps_the_earlier_day(parser):
    combined = parser.parse("tomorrow at 9am", REF).overlay(parser.parse("3pm", REF))
    assert combined.date == date(2026, 10, 22)
    assert combined.time == TimeOfDay(hour=15)
