#!/usr/bin/env python3
"""Lay out timed calendar events on a day/week grid.

A layout pass discretizes the visible window into slots, clips events onto
those slots, assigns side-by-side lanes to overlapping events and turns the
result into renderer-agnostic boxes with fitted titles.
"""

from __future__ import annotations

import argparse
import datetime as dt
import functools
import json
import logging
import re
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Callable, Iterable, Sequence

import layout_config
from event_classifier import ClassifierRules, classify
from text_fit import ELLIPSIS, FittedText, clean_event_title, fit_text

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
DEFAULT_MAX_LANES = 3
CLOCK_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([AP]M)?$", re.IGNORECASE)


class InvalidRangeError(ValueError):
    """Raised for a malformed time window or a non-positive granularity."""


@dataclass(frozen=True)
class TimeSlot:
    index: int
    start_minute: int
    minutes: int

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.minutes

    @property
    def label(self) -> str:
        return minutes_to_label(self.start_minute)


@dataclass(frozen=True)
class EventRecord:
    id: str
    start: dt.datetime
    end: dt.datetime
    column: int = 0
    source: str = ""
    title: str = ""
    calendar_id: str | None = None


@dataclass(frozen=True)
class ClippedEvent:
    event_id: str
    column: int
    start_slot: int
    end_slot: int

    @property
    def span(self) -> int:
        return self.end_slot - self.start_slot


@dataclass(frozen=True)
class LaneAssignment:
    event_id: str
    lane: int
    lanes_in_group: int


@dataclass(frozen=True)
class LayoutBox:
    event_id: str
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class GridGeometry:
    """Caller units for one grid.

    ``column_origin`` maps a column index to the x coordinate of its left
    edge, so renderers with a time gutter or uneven columns can plug in
    their own placement.
    """

    column_origin: Callable[[int], float]
    slot_height: float
    column_width: float
    lane_gutter: float = 0.0
    min_height: float = 0.0

    @classmethod
    def uniform(
        cls,
        column_width: float,
        slot_height: float,
        origin_x: float = 0.0,
        lane_gutter: float = 0.0,
        min_height: float = 0.0,
    ) -> GridGeometry:
        return cls(
            column_origin=lambda column: origin_x + column * column_width,
            slot_height=slot_height,
            column_width=column_width,
            lane_gutter=lane_gutter,
            min_height=min_height,
        )


@dataclass(frozen=True)
class LayoutOptions:
    max_lanes: int | None = DEFAULT_MAX_LANES
    tie_break: str = "longest"


@dataclass(frozen=True)
class TimeWindow:
    start_minute: int
    end_minute: int
    slot_minutes: int

    def slots(self) -> tuple[TimeSlot, ...]:
        return build_slots(self.start_minute, self.end_minute, self.slot_minutes)


@dataclass(frozen=True)
class PlacedEvent:
    event: EventRecord
    box: LayoutBox
    text: FittedText
    category: str
    clipped: ClippedEvent = field(repr=False)
    lane: LaneAssignment = field(repr=False)


def parse_clock(value: str) -> int:
    match = CLOCK_RE.match(str(value).strip())
    if not match:
        raise InvalidRangeError(f"Unrecognised clock time: {value!r}")
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    ampm = (match.group(3) or "").upper()
    if ampm:
        if not 1 <= hour <= 12:
            raise InvalidRangeError(f"Unrecognised clock time: {value!r}")
        if ampm == "PM" and hour != 12:
            hour += 12
        if ampm == "AM" and hour == 12:
            hour = 0
    if minute >= 60 or hour * 60 + minute > MINUTES_PER_DAY:
        raise InvalidRangeError(f"Clock time out of range: {value!r}")
    return hour * 60 + minute


def minutes_to_label(minutes: int, hour12: bool = False) -> str:
    hour = minutes // 60
    minute = minutes % 60
    if not hour12:
        return f"{hour:02d}:{minute:02d}"
    ampm = "AM" if hour % 24 < 12 else "PM"
    display_hour = hour % 12
    if display_hour == 0:
        display_hour = 12
    return f"{display_hour}:{minute:02d} {ampm}"


def validate_window(start_minute: int, end_minute: int, slot_minutes: int) -> None:
    if slot_minutes <= 0:
        raise InvalidRangeError(f"Slot granularity must be positive, got {slot_minutes}")
    if start_minute < 0:
        raise InvalidRangeError(f"Window start must not be negative, got {start_minute}")
    if end_minute < start_minute:
        raise InvalidRangeError(
            f"Window end {end_minute} is before window start {start_minute}"
        )


@functools.lru_cache(maxsize=64)
def build_slots(
    start_minute: int, end_minute: int, slot_minutes: int
) -> tuple[TimeSlot, ...]:
    # end_minute is inclusive: a slot starting exactly on it is still emitted
    validate_window(start_minute, end_minute, slot_minutes)
    return tuple(
        TimeSlot(index=index, start_minute=minute, minutes=slot_minutes)
        for index, minute in enumerate(range(start_minute, end_minute + 1, slot_minutes))
    )


def minute_of_day(instant: dt.datetime, day: dt.date) -> int:
    midnight = dt.datetime.combine(day, dt.time(), tzinfo=instant.tzinfo)
    return int((instant - midnight).total_seconds() // 60)


def clip(
    event: EventRecord, axis: Sequence[TimeSlot], window_end: int | None = None
) -> ClippedEvent | None:
    """Map ``event`` onto slot indices of ``axis``.

    ``window_end`` is the inclusive end minute the axis was built with; events
    starting after it are dropped even when they fall inside the last slot.
    Without it the last slot is visible up to its own end.
    """
    if not axis:
        return None
    slot_minutes = axis[0].minutes
    window_start = axis[0].start_minute
    if window_end is None:
        window_end = axis[-1].end_minute - 1
    slot_count = len(axis)

    day = event.start.date()
    start = minute_of_day(event.start, day)
    end = minute_of_day(event.end, day)
    # zero and negative durations still intersect the window at their start
    effective_end = max(end, start + 1)
    if start > window_end or effective_end <= window_start:
        return None

    start_slot = (start - window_start) // slot_minutes
    end_slot = -(-(effective_end - window_start) // slot_minutes)
    if start_slot >= slot_count or end_slot <= 0:
        return None
    start_slot = max(0, start_slot)
    end_slot = min(slot_count, end_slot)
    if end_slot <= start_slot:
        end_slot = start_slot + 1
    return ClippedEvent(
        event_id=event.id,
        column=event.column,
        start_slot=start_slot,
        end_slot=end_slot,
    )


def slots_intersect(left: ClippedEvent, right: ClippedEvent) -> bool:
    return left.start_slot < right.end_slot and right.start_slot < left.end_slot


def sort_key(tie_break: str) -> Callable[[ClippedEvent], tuple]:
    if tie_break not in layout_config.TIE_BREAKS:
        raise ValueError(
            f"Unknown tie break {tie_break!r}, expected one of {layout_config.TIE_BREAKS}"
        )
    sign = -1 if tie_break == "longest" else 1
    return lambda event: (event.start_slot, sign * event.span, event.event_id)


def group_overlaps(events: Sequence[ClippedEvent]) -> list[list[int]]:
    """Split ``events`` into connected overlap clusters of indices."""
    groups: list[list[int]] = []
    current: list[int] = []
    current_end = -1
    order = sorted(
        range(len(events)),
        key=lambda i: (events[i].start_slot, events[i].end_slot, events[i].event_id),
    )
    for idx in order:
        event = events[idx]
        if not current or event.start_slot < current_end:
            current.append(idx)
            current_end = max(current_end, event.end_slot)
        else:
            groups.append(current)
            current = [idx]
            current_end = event.end_slot
    if current:
        groups.append(current)
    return groups


def assign_column_lanes(
    events: Sequence[ClippedEvent], options: LayoutOptions
) -> list[int]:
    key = sort_key(options.tie_break)
    lanes_end: list[int] = []
    lanes = [0] * len(events)
    for idx in sorted(range(len(events)), key=lambda i: (key(events[i]), i)):
        event = events[idx]
        for lane, lane_end in enumerate(lanes_end):
            if lane_end <= event.start_slot:
                lanes[idx] = lane
                lanes_end[lane] = event.end_slot
                break
        else:
            if options.max_lanes is None or len(lanes_end) < options.max_lanes:
                lanes[idx] = len(lanes_end)
                lanes_end.append(event.end_slot)
            else:
                last = len(lanes_end) - 1
                logger.debug(
                    "Lane cap %d reached in column %d, stacking %s in lane %d",
                    options.max_lanes,
                    event.column,
                    event.event_id,
                    last,
                )
                lanes[idx] = last
                lanes_end[last] = max(lanes_end[last], event.end_slot)
    return lanes


def assign_lanes(
    clipped: Sequence[ClippedEvent], options: LayoutOptions | None = None
) -> list[LaneAssignment]:
    options = options or LayoutOptions()
    if options.max_lanes is not None and options.max_lanes < 1:
        raise ValueError(f"max_lanes must be at least 1, got {options.max_lanes}")

    by_column: dict[int, list[int]] = {}
    for idx, event in enumerate(clipped):
        by_column.setdefault(event.column, []).append(idx)

    assignments: list[LaneAssignment | None] = [None] * len(clipped)
    for positions in by_column.values():
        column_events = [clipped[idx] for idx in positions]
        lanes = assign_column_lanes(column_events, options)
        for group in group_overlaps(column_events):
            lanes_in_group = max(lanes[i] for i in group) + 1
            for i in group:
                assignments[positions[i]] = LaneAssignment(
                    event_id=column_events[i].event_id,
                    lane=lanes[i],
                    lanes_in_group=lanes_in_group,
                )
    return [assignment for assignment in assignments if assignment is not None]


def find_collisions(
    clipped: Sequence[ClippedEvent], lanes: Sequence[LaneAssignment]
) -> list[tuple[str, str]]:
    collisions: list[tuple[str, str]] = []
    pairs = list(zip(clipped, lanes))
    for i, (left, left_lane) in enumerate(pairs):
        for right, right_lane in pairs[i + 1 :]:
            if (
                left.column == right.column
                and left_lane.lane == right_lane.lane
                and slots_intersect(left, right)
            ):
                collisions.append((left.event_id, right.event_id))
    return collisions


def to_box(
    clipped: ClippedEvent, lane: LaneAssignment, geometry: GridGeometry
) -> LayoutBox:
    lane_width = geometry.column_width / lane.lanes_in_group
    gutter = geometry.lane_gutter
    if gutter >= lane_width:
        # narrow lanes share the gutter instead of collapsing to nothing
        gutter = gutter / lane.lanes_in_group
    height = clipped.span * geometry.slot_height
    return LayoutBox(
        event_id=clipped.event_id,
        x=geometry.column_origin(clipped.column) + lane.lane * lane_width,
        y=clipped.start_slot * geometry.slot_height,
        width=max(0.0, lane_width - gutter),
        height=max(0.0, height, geometry.min_height),
    )


def layout_events(
    events: Sequence[EventRecord],
    window: TimeWindow,
    geometry: GridGeometry,
    measure: Callable[[str], float],
    line_height: float,
    options: LayoutOptions | None = None,
    rules: ClassifierRules | None = None,
    padding: float = 0.0,
    max_lines: int | None = None,
    ellipsis: str = ELLIPSIS,
) -> list[PlacedEvent]:
    axis = window.slots()
    clipped_pairs: list[tuple[EventRecord, ClippedEvent]] = []
    for event in events:
        clipped = clip(event, axis, window.end_minute)
        if clipped is None:
            logger.debug("Event %s falls outside the visible window", event.id)
            continue
        clipped_pairs.append((event, clipped))

    lanes = assign_lanes([clipped for _, clipped in clipped_pairs], options)

    placed: list[PlacedEvent] = []
    for (event, clipped), lane in zip(clipped_pairs, lanes):
        box = to_box(clipped, lane, geometry)
        max_height = box.height - 2 * padding
        if max_lines is not None:
            max_height = min(max_height, max_lines * line_height)
        text = fit_text(
            clean_event_title(event.title),
            box.width - 2 * padding,
            max_height,
            line_height,
            measure,
            ellipsis=ellipsis,
        )
        if text.truncated:
            logger.debug("Title of %s truncated to %d lines", event.id, len(text.lines))
        placed.append(
            PlacedEvent(
                event=event,
                box=box,
                text=text,
                category=classify(event, rules),
                clipped=clipped,
                lane=lane,
            )
        )
    return placed


def week_start_for(day: dt.date) -> dt.date:
    return day - dt.timedelta(days=day.weekday())


def split_by_day(event: EventRecord, week_start: dt.date) -> list[EventRecord]:
    first_day = event.start.date()
    last_day = event.end.date()
    if event.end > event.start and event.end.time() == dt.time() and last_day > first_day:
        # an event ending exactly at midnight does not touch the next day
        last_day -= dt.timedelta(days=1)
    if last_day <= first_day:
        return [replace(event, column=(first_day - week_start).days)]

    pieces: list[EventRecord] = []
    day = first_day
    while day <= last_day:
        day_start = dt.datetime.combine(day, dt.time(), tzinfo=event.start.tzinfo)
        day_end = day_start + dt.timedelta(days=1)
        pieces.append(
            replace(
                event,
                id=f"{event.id}@{day.isoformat()}",
                start=max(event.start, day_start),
                end=min(event.end, day_end),
                column=(day - week_start).days,
            )
        )
        day += dt.timedelta(days=1)
    return pieces


def event_from_dict(data: dict) -> EventRecord:
    try:
        start = dt.datetime.fromisoformat(str(data["start"]))
        end = dt.datetime.fromisoformat(str(data["end"]))
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Event {data.get('id')!r} has an invalid start/end: {exc}") from exc
    return EventRecord(
        id=str(data.get("id", "")),
        start=start,
        end=end,
        column=int(data.get("column", 0)),
        source=str(data.get("source") or ""),
        title=str(data.get("title") or ""),
        calendar_id=data.get("calendar_id") or data.get("calendarId"),
    )


def read_events_json(path: Path) -> list[dict]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("events", [])
    if not isinstance(raw, list):
        raise ValueError(f"Expected a list of events in {path}")
    return [item for item in raw if isinstance(item, dict)]


def assign_columns(records: Iterable[EventRecord], week_start: dt.date) -> list[EventRecord]:
    events: list[EventRecord] = []
    for record in records:
        events.extend(split_by_day(record, week_start))
    return events


def load_events_json(path: Path, week_start: dt.date | None = None) -> list[EventRecord]:
    """Load events, deriving columns from dates unless every item sets one.

    Without ``week_start`` the week containing the earliest event is used.
    """
    raw = read_events_json(path)
    records = [event_from_dict(item) for item in raw]
    if not records:
        return []
    explicit_columns = all("column" in item for item in raw)
    if explicit_columns and week_start is None:
        return records
    if week_start is None:
        week_start = week_start_for(min(record.start.date() for record in records))
    return assign_columns(records, week_start)


def filter_columns(events: Iterable[EventRecord], columns: range) -> list[EventRecord]:
    return [event for event in events if event.column in columns]


def monospace_measure(text: str) -> float:
    return float(len(text))


def placement_to_dict(item: PlacedEvent) -> dict:
    return {
        "id": item.event.id,
        "column": item.clipped.column,
        "start_slot": item.clipped.start_slot,
        "end_slot": item.clipped.end_slot,
        "lane": item.lane.lane,
        "lanes_in_group": item.lane.lanes_in_group,
        "box": asdict(item.box),
        "lines": list(item.text.lines),
        "truncated": item.text.truncated,
        "category": item.category,
    }


def window_from_layout(layout: dict) -> TimeWindow:
    window = layout.get("window", layout_config.DEFAULT_WINDOW)
    return TimeWindow(
        start_minute=parse_clock(window["start"]),
        end_minute=parse_clock(window["end"]),
        slot_minutes=int(window["slot_minutes"]),
    )


def options_from_layout(layout: dict) -> LayoutOptions:
    return LayoutOptions(
        max_lanes=layout.get("max_lanes", DEFAULT_MAX_LANES),
        tie_break=layout.get("tie_break", "longest"),
    )


def geometry_from_layout(layout: dict, origin_x: float = 0.0) -> GridGeometry:
    grid = layout.get("grid", layout_config.DEFAULT_GRID)
    return GridGeometry.uniform(
        column_width=float(grid["column_width"]),
        slot_height=float(grid["slot_height"]),
        origin_x=origin_x,
        lane_gutter=float(grid["lane_gutter"]),
        min_height=float(grid["min_box_height"]),
    )


def run_layout(events: list[EventRecord], layout: dict) -> list[PlacedEvent]:
    return layout_events(
        events,
        window_from_layout(layout),
        geometry_from_layout(layout),
        monospace_measure,
        line_height=1.0,
        options=options_from_layout(layout),
        rules=layout_config.rules_from_layout(layout),
        max_lines=layout.get("title_max_lines") or None,
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Compute calendar grid layout for a JSON list of events."
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    layout_parser = subparsers.add_parser("layout", help="Write placements as JSON")
    layout_parser.add_argument("events", type=Path, help="Events JSON file")
    layout_parser.add_argument("--layout", type=Path, default=Path("layout.json"))
    layout_parser.add_argument("--out", type=Path, help="Output path (default stdout)")

    check_parser = subparsers.add_parser("check", help="Report lane collisions")
    check_parser.add_argument("events", type=Path, help="Events JSON file")
    check_parser.add_argument("--layout", type=Path, default=Path("layout.json"))

    args = parser.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.events.exists():
        raise SystemExit(f"Events file not found: {args.events}")
    layout = layout_config.load_layout(args.layout)
    try:
        events = load_events_json(args.events)
        placed = run_layout(events, layout)
    except (InvalidRangeError, ValueError) as exc:
        raise SystemExit(f"Layout failed: {exc}")

    if args.command == "layout":
        payload = json.dumps([placement_to_dict(item) for item in placed], indent=2)
        if args.out:
            args.out.write_text(payload, encoding="utf-8")
            print(f"Laid out {len(placed)} of {len(events)} events into {args.out}")
        else:
            print(payload)
        return

    if args.command == "check":
        collisions = find_collisions(
            [item.clipped for item in placed], [item.lane for item in placed]
        )
        dropped = len(events) - len(placed)
        print(f"Events: {len(events)}, placed: {len(placed)}, outside window: {dropped}")
        for left, right in collisions:
            print(f"Lane collision: {left} / {right}")
        if collisions:
            raise SystemExit(1)
        print("No lane collisions.")


if __name__ == "__main__":
    main()
