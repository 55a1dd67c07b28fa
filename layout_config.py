"""Helpers for reading and applying planner layout settings."""

from __future__ import annotations

import copy
import json
from pathlib import Path

from event_classifier import CATEGORIES, ClassifierRules, US_HOLIDAY_CALENDAR

DEFAULT_WINDOW = {
    "start": "06:00",
    "end": "23:30",
    "slot_minutes": 30,
}

DEFAULT_GRID = {
    "column_width": 24.0,
    "slot_height": 1.0,
    "lane_gutter": 0.0,
    "min_box_height": 0.0,
}

DEFAULT_CLASSIFIER = {
    "calendar_ids": {US_HOLIDAY_CALENDAR: "allday"},
    "title_keywords": [["appointment", "primary"], ["holiday", "allday"]],
    "sources": {"simplepractice": "primary", "google": "secondary"},
}

TIE_BREAKS = ("longest", "shortest")

DEFAULT_LAYOUT = {
    "window": DEFAULT_WINDOW,
    "grid": DEFAULT_GRID,
    "max_lanes": 3,
    "tie_break": "longest",
    "title_max_lines": 0,
    "classifier": DEFAULT_CLASSIFIER,
}


def normalize_category_map(data: object) -> dict[str, str]:
    normalized: dict[str, str] = {}
    if isinstance(data, dict):
        for key, category in data.items():
            if key and category in CATEGORIES:
                normalized[str(key)] = category
    return normalized


def normalize_layout(data: dict | None) -> dict:
    layout = copy.deepcopy(DEFAULT_LAYOUT)
    if not isinstance(data, dict):
        return layout

    window = data.get("window")
    if isinstance(window, dict):
        for key in ("start", "end"):
            value = window.get(key)
            if isinstance(value, str) and value.strip():
                layout["window"][key] = value.strip()
        slot_minutes = window.get("slot_minutes")
        if slot_minutes is not None:
            try:
                layout["window"]["slot_minutes"] = int(slot_minutes)
            except (TypeError, ValueError):
                pass

    grid = data.get("grid")
    if isinstance(grid, dict):
        for key in DEFAULT_GRID:
            value = grid.get(key)
            if value is None:
                continue
            try:
                layout["grid"][key] = max(0.0, float(value))
            except (TypeError, ValueError):
                continue

    if "max_lanes" in data:
        max_lanes = data["max_lanes"]
        if max_lanes is None:
            layout["max_lanes"] = None
        else:
            try:
                layout["max_lanes"] = max(1, int(max_lanes))
            except (TypeError, ValueError):
                pass

    tie_break = data.get("tie_break")
    if tie_break in TIE_BREAKS:
        layout["tie_break"] = tie_break

    title_max_lines = data.get("title_max_lines")
    if title_max_lines is not None:
        try:
            layout["title_max_lines"] = max(0, int(title_max_lines))
        except (TypeError, ValueError):
            pass

    classifier = data.get("classifier")
    if isinstance(classifier, dict):
        if "calendar_ids" in classifier:
            layout["classifier"]["calendar_ids"] = normalize_category_map(
                classifier["calendar_ids"]
            )
        if "sources" in classifier:
            layout["classifier"]["sources"] = normalize_category_map(
                classifier["sources"]
            )
        keywords = classifier.get("title_keywords")
        if isinstance(keywords, list):
            normalized = []
            for item in keywords:
                if (
                    isinstance(item, (list, tuple))
                    and len(item) == 2
                    and item[0]
                    and item[1] in CATEGORIES
                ):
                    normalized.append([str(item[0]), item[1]])
            layout["classifier"]["title_keywords"] = normalized

    return layout


def load_layout(path: Path) -> dict:
    if not path.exists():
        return copy.deepcopy(DEFAULT_LAYOUT)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return copy.deepcopy(DEFAULT_LAYOUT)
    return normalize_layout(data)


def save_layout(path: Path, layout: dict) -> None:
    normalized = normalize_layout(layout)
    path.write_text(json.dumps(normalized, indent=2), encoding="utf-8")


def rules_from_layout(layout: dict | None) -> ClassifierRules:
    classifier = (layout or {}).get("classifier", DEFAULT_CLASSIFIER)
    return ClassifierRules(
        calendar_ids=dict(classifier.get("calendar_ids", {})),
        title_keywords=tuple(
            (keyword, category)
            for keyword, category in classifier.get("title_keywords", [])
        ),
        sources=dict(classifier.get("sources", {})),
    )
