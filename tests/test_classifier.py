import datetime as dt

import pytest

from event_classifier import (
    ALLDAY,
    DEFAULT,
    PRIMARY,
    SECONDARY,
    US_HOLIDAY_CALENDAR,
    ClassifierRules,
    classify,
)
from planner_layout import EventRecord


def make_event(title: str = "", source: str = "", calendar_id: str | None = None) -> EventRecord:
    start = dt.datetime(2025, 7, 14, 9)
    return EventRecord(
        id="evt",
        start=start,
        end=start + dt.timedelta(hours=1),
        source=source,
        title=title,
        calendar_id=calendar_id,
    )


@pytest.mark.parametrize(
    ("event", "expected"),
    [
        (make_event("Jane Doe Appointment", "manual"), PRIMARY),
        (make_event("Standup", "simplepractice"), PRIMARY),
        (make_event("Standup", "Google"), SECONDARY),
        (make_event("Independence Day", calendar_id=US_HOLIDAY_CALENDAR), ALLDAY),
        (make_event("Company holiday party", "google"), ALLDAY),
        (make_event("Gym", "manual"), DEFAULT),
        (make_event(), DEFAULT),
    ],
)
def test_default_rules(event: EventRecord, expected: str) -> None:
    assert classify(event) == expected


def test_calendar_id_beats_title_and_source() -> None:
    event = make_event("Client Appointment", "google", calendar_id=US_HOLIDAY_CALENDAR)
    assert classify(event) == ALLDAY


def test_title_beats_source() -> None:
    assert classify(make_event("Follow-up appointment", "google")) == PRIMARY


def test_custom_rules() -> None:
    rules = ClassifierRules(
        calendar_ids={"team@example.com": SECONDARY},
        title_keywords=(("focus", PRIMARY),),
        sources={},
    )
    assert classify(make_event("Focus block"), rules) == PRIMARY
    assert classify(make_event("Retro", calendar_id="team@example.com"), rules) == SECONDARY
    assert classify(make_event("Lunch", "google"), rules) == DEFAULT


def test_unknown_category_rejected() -> None:
    with pytest.raises(ValueError):
        ClassifierRules(sources={"google": "blue"})
