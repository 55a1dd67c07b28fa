#!/usr/bin/env python3
"""Render weekly or daily planner PDFs from a JSON list of events."""

from __future__ import annotations

import argparse
import datetime as dt
import logging
from dataclasses import dataclass, replace
from pathlib import Path

from fpdf import FPDF

import layout_config
from event_classifier import ALLDAY, DEFAULT, PRIMARY, SECONDARY
from planner_layout import (
    EventRecord,
    GridGeometry,
    InvalidRangeError,
    PlacedEvent,
    TimeWindow,
    assign_columns,
    event_from_dict,
    filter_columns,
    layout_events,
    minutes_to_label,
    options_from_layout,
    read_events_json,
    week_start_for,
    window_from_layout,
)
from text_fit import sanitize_text

logger = logging.getLogger(__name__)

CATEGORY_FILLS = {
    PRIMARY: (224, 231, 255),
    SECONDARY: (220, 245, 233),
    ALLDAY: (254, 243, 199),
    DEFAULT: (243, 244, 246),
}
CATEGORY_BORDERS = {
    PRIMARY: (79, 70, 229),
    SECONDARY: (16, 185, 129),
    ALLDAY: (245, 158, 11),
    DEFAULT: (107, 114, 128),
}


@dataclass
class RenderConfig:
    page_size: str
    orientation: str
    margin: float
    header_height: float
    time_col_width: float
    header_font_size: float
    body_font_size: float
    padding: float
    lane_gutter: float


def draw_cell(
    pdf: FPDF,
    x: float,
    y: float,
    width: float,
    height: float,
    lines: list[str] | tuple[str, ...],
    fill_color: tuple[int, int, int] | None,
    align: str = "L",
    bold: bool = False,
    font_size: float | None = None,
    padding: float = 1.0,
) -> None:
    if fill_color:
        pdf.set_fill_color(*fill_color)
        pdf.rect(x, y, width, height, style="DF")
    else:
        pdf.rect(x, y, width, height)

    if not lines:
        return

    style = "B" if bold else ""
    if font_size is not None:
        pdf.set_font("Helvetica", style=style, size=font_size)
    else:
        pdf.set_font("Helvetica", style=style)
    line_height = pdf.font_size * 1.2
    cursor_y = y + padding
    for line in lines:
        if cursor_y + line_height > y + height + 0.01:
            break
        pdf.set_xy(x + padding, cursor_y)
        pdf.cell(width - 2 * padding, line_height, line, align=align)
        cursor_y += line_height


def draw_event(pdf: FPDF, item: PlacedEvent, top: float, config: RenderConfig) -> None:
    box = item.box
    pdf.set_draw_color(*CATEGORY_BORDERS[item.category])
    draw_cell(
        pdf,
        box.x,
        top + box.y,
        box.width,
        box.height,
        item.text.lines,
        CATEGORY_FILLS[item.category],
        font_size=config.body_font_size,
        padding=config.padding,
    )
    # left flag marks the source calendar at a glance
    pdf.set_fill_color(*CATEGORY_BORDERS[item.category])
    pdf.rect(box.x, top + box.y, min(0.8, box.width), box.height, style="F")


def render_planner(
    pdf: FPDF,
    title: str,
    column_labels: list[str],
    events: list[EventRecord],
    window: TimeWindow,
    layout: dict,
    config: RenderConfig,
) -> list[PlacedEvent]:
    pdf.add_page()
    pdf.set_auto_page_break(auto=False, margin=0)

    pdf.set_font("Helvetica", style="B", size=14)
    pdf.set_xy(config.margin, config.margin)
    pdf.cell(0, 6, sanitize_text(title), new_x="LMARGIN", new_y="NEXT")

    slots = window.slots()
    table_x = config.margin
    table_y = config.margin + config.header_height
    table_width = pdf.w - 2 * config.margin
    table_height = pdf.h - config.margin - table_y

    column_count = max(1, len(column_labels))
    column_width = (table_width - config.time_col_width) / column_count
    header_height = config.header_font_size * 0.6 + 2 * config.padding
    body_y = table_y + header_height
    row_height = max(0.1, (table_height - header_height) / max(1, len(slots)))

    pdf.set_draw_color(180, 170, 160)
    pdf.set_line_width(0.1)
    header_fill = (236, 230, 219)
    draw_cell(
        pdf,
        table_x,
        table_y,
        config.time_col_width,
        header_height,
        ["Time"],
        header_fill,
        align="C",
        bold=True,
        font_size=config.header_font_size,
        padding=config.padding,
    )
    for idx, label in enumerate(column_labels):
        draw_cell(
            pdf,
            table_x + config.time_col_width + idx * column_width,
            table_y,
            column_width,
            header_height,
            [sanitize_text(label)],
            header_fill,
            align="C",
            bold=True,
            font_size=config.header_font_size,
            padding=config.padding,
        )

    time_fill = (244, 239, 231)
    empty_fill = (250, 248, 243)
    for slot in slots:
        row_y = body_y + slot.index * row_height
        draw_cell(
            pdf,
            table_x,
            row_y,
            config.time_col_width,
            row_height,
            [minutes_to_label(slot.start_minute, hour12=True)],
            time_fill,
            align="C",
            bold=slot.start_minute % 60 == 0,
            font_size=config.body_font_size,
            padding=config.padding,
        )
        for idx in range(column_count):
            draw_cell(
                pdf,
                table_x + config.time_col_width + idx * column_width,
                row_y,
                column_width,
                row_height,
                [],
                empty_fill,
            )

    grid = layout.get("grid", layout_config.DEFAULT_GRID)
    geometry = GridGeometry.uniform(
        column_width=column_width,
        slot_height=row_height,
        origin_x=table_x + config.time_col_width,
        lane_gutter=config.lane_gutter,
        min_height=float(grid.get("min_box_height", 0.0)),
    )
    pdf.set_font("Helvetica", size=config.body_font_size)
    line_height = pdf.font_size * 1.2
    placed = layout_events(
        [replace(event, title=sanitize_text(event.title)) for event in events],
        window,
        geometry,
        pdf.get_string_width,
        line_height,
        options=options_from_layout(layout),
        rules=layout_config.rules_from_layout(layout),
        padding=config.padding,
        max_lines=layout.get("title_max_lines") or None,
        ellipsis="...",
    )
    for item in placed:
        draw_event(pdf, item, body_y, config)
    pdf.set_draw_color(180, 170, 160)
    return placed


def week_columns(week_start: dt.date) -> list[str]:
    return [
        (week_start + dt.timedelta(days=offset)).strftime("%a %b %d")
        for offset in range(7)
    ]


def render_file(
    events_path: Path,
    out_path: Path,
    layout: dict,
    config: RenderConfig,
    view: str = "week",
    date: dt.date | None = None,
) -> int:
    records = [event_from_dict(item) for item in read_events_json(events_path)]
    if date is None:
        date = min((record.start.date() for record in records), default=dt.date.today())
    week_start = week_start_for(date)
    events = assign_columns(records, week_start)
    window = window_from_layout(layout)

    pdf = FPDF(
        orientation=config.orientation[0].upper(),
        unit="mm",
        format=config.page_size,
    )
    if view == "day":
        offset = (date - week_start).days
        day_events = [
            replace(event, column=0) for event in filter_columns(events, range(offset, offset + 1))
        ]
        placed = render_planner(
            pdf,
            date.strftime("%A, %B %d, %Y"),
            [date.strftime("%A")],
            day_events,
            window,
            layout,
            config,
        )
    else:
        placed = render_planner(
            pdf,
            f"Week of {week_start.strftime('%B %d, %Y')}",
            week_columns(week_start),
            filter_columns(events, range(7)),
            window,
            layout,
            config,
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    pdf.output(str(out_path))
    logger.debug("Wrote %d events to %s", len(placed), out_path)
    return len(placed)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Render a weekly or daily planner PDF from an events JSON file."
    )
    parser.add_argument("--events", type=Path, default=Path("events.json"))
    parser.add_argument("--out", type=Path, default=Path("output-pdf/planner.pdf"))
    parser.add_argument("--view", choices=["week", "day"], default="week")
    parser.add_argument("--date", type=dt.date.fromisoformat, help="YYYY-MM-DD")
    parser.add_argument("--page-size", default="A4")
    parser.add_argument(
        "--orientation", choices=["portrait", "landscape"], default="landscape"
    )
    parser.add_argument("--font-size", type=float, default=6.5)
    parser.add_argument(
        "--layout",
        type=Path,
        default=Path("layout.json"),
        help="Layout settings JSON",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.events.exists():
        raise SystemExit(f"Events file not found: {args.events}")
    layout = layout_config.load_layout(args.layout)

    config = RenderConfig(
        page_size=args.page_size,
        orientation=args.orientation,
        margin=8.0,
        header_height=10.0,
        time_col_width=16.0,
        header_font_size=7.0,
        body_font_size=float(args.font_size),
        padding=1.0,
        lane_gutter=0.6,
    )
    try:
        count = render_file(
            args.events, args.out, layout, config, view=args.view, date=args.date
        )
    except (InvalidRangeError, ValueError) as exc:
        raise SystemExit(f"Render failed: {exc}")

    if count:
        print(f"Rendered {count} events into {args.out}")
    else:
        print(f"No events in the visible window; wrote empty planner to {args.out}")


if __name__ == "__main__":
    main()
