"""Map events onto the small set of style categories renderers understand."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from planner_layout import EventRecord

logger = logging.getLogger(__name__)

PRIMARY = "primary"
SECONDARY = "secondary"
ALLDAY = "allday"
DEFAULT = "default"
CATEGORIES = (PRIMARY, SECONDARY, ALLDAY, DEFAULT)

US_HOLIDAY_CALENDAR = "en.usa#holiday@group.v.calendar.google.com"


@dataclass(frozen=True)
class ClassifierRules:
    """Classification rules, checked in field order.

    Calendar ids win over title keywords, which win over the source tag.
    Keyword and source matching is case-insensitive; keywords match as
    substrings of the title.
    """

    calendar_ids: dict[str, str] = field(
        default_factory=lambda: {US_HOLIDAY_CALENDAR: ALLDAY}
    )
    title_keywords: tuple[tuple[str, str], ...] = (
        ("appointment", PRIMARY),
        ("holiday", ALLDAY),
    )
    sources: dict[str, str] = field(
        default_factory=lambda: {"simplepractice": PRIMARY, "google": SECONDARY}
    )

    def __post_init__(self) -> None:
        targets = [
            *self.calendar_ids.values(),
            *(category for _, category in self.title_keywords),
            *self.sources.values(),
        ]
        for category in targets:
            if category not in CATEGORIES:
                raise ValueError(
                    f"Unknown category {category!r}, expected one of {CATEGORIES}"
                )


DEFAULT_RULES = ClassifierRules()


def classify(event: EventRecord, rules: ClassifierRules | None = None) -> str:
    rules = rules or DEFAULT_RULES
    if event.calendar_id and event.calendar_id in rules.calendar_ids:
        return rules.calendar_ids[event.calendar_id]

    title = (event.title or "").lower()
    for keyword, category in rules.title_keywords:
        if keyword.lower() in title:
            return category

    source = (event.source or "").lower()
    for tag, category in rules.sources.items():
        if tag.lower() == source:
            return category

    logger.debug("No classification rule matched event %s", event.id)
    return DEFAULT
