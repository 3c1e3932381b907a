"""Tests for natural date/time normalization."""

from datetime import date, datetime

import pytest

from aiva.utils.natural_dates import normalize_date, resolve_weekday

# Wednesday 17 September 2025
NOW = datetime(2025, 9, 17, 10, 0)


@pytest.mark.parametrize("value", ["2025-09-12", "2025-09-12 14:30"])
def test_canonical_values_are_unchanged(value):
    assert normalize_date(value, NOW) == value
    assert normalize_date(normalize_date(value, NOW), NOW) == value


def test_iso_t_separator_and_padding():
    assert normalize_date("2025-09-12T14:30", NOW) == "2025-09-12 14:30"
    assert normalize_date("2025-9-2", NOW) == "2025-09-02"


@pytest.mark.parametrize("phrase, expected", [
    ("last monday", "2025-09-15"),
    ("next monday", "2025-09-22"),
    ("last wednesday", "2025-09-10"),
    ("next wednesday", "2025-09-24"),
    ("this friday", "2025-09-19"),
    ("this monday", "2025-09-15"),
    ("monday", "2025-09-15"),
    ("Wednesday", "2025-09-17"),
])
def test_weekday_phrases_from_a_wednesday(phrase, expected):
    assert normalize_date(phrase, NOW) == expected


def test_last_and_next_are_strict():
    reference = date(2025, 9, 17)
    assert resolve_weekday("last", 2, reference) < reference
    assert resolve_weekday("next", 2, reference) > reference
    assert resolve_weekday(None, 2, reference) == reference


@pytest.mark.parametrize("phrase, expected", [
    ("today", "2025-09-17"),
    ("yesterday", "2025-09-16"),
    ("tomorrow", "2025-09-18"),
    ("3 days ago", "2025-09-14"),
    ("12 Sep 2025", "2025-09-12"),
    ("12th September", "2025-09-12"),
    ("Sep 12, 2025", "2025-09-12"),
    ("12/09/2025", "2025-09-12"),
    ("12.09.25", "2025-09-12"),
])
def test_date_phrases(phrase, expected):
    assert normalize_date(phrase, NOW) == expected


@pytest.mark.parametrize("phrase, expected", [
    ("yesterday at 3pm", "2025-09-16 15:00"),
    ("last monday at 9:30am", "2025-09-15 09:30"),
    ("12 Sep 2025 14:05", "2025-09-12 14:05"),
    ("today at 12am", "2025-09-17 00:00"),
    ("at 15:30", "2025-09-17 15:30"),
    ("noon", "2025-09-17 12:00"),
])
def test_date_and_time_phrases(phrase, expected):
    assert normalize_date(phrase, NOW) == expected


@pytest.mark.parametrize("phrase", ["", "   ", "banana", "2025-02-30", "31/02/2025", "the day after"])
def test_unreadable_phrases(phrase):
    assert normalize_date(phrase, NOW) is None

