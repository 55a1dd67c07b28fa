"""Fit event titles into a box using a caller-supplied width measure."""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

ELLIPSIS = "\u2026"

# Pictographs, dingbats, bullets, box drawing and the mojibake left behind by
# calendar exports that were decoded with the wrong charset.
TITLE_NOISE_RE = re.compile(
    "["
    "\U0001F300-\U0001F6FF"
    "\U0001F900-\U0001F9FF"
    "\u2600-\u26FF"
    "\u2700-\u27BF"
    "\u2022-\u2025"
    "\u25E6\u25AA\u25AB"
    "\u2500-\u259F"
    "\uFE0F"
    "]"
)
TITLE_MOJIBAKE = (
    "ðŸ”’",
    "Ã˜=ÃœÃ…",
    "Ã˜=Ã",
    "Ã˜=",
    "ÃœÃ…",
    "!â€¢",
    "â€¢",
    "â—¦",
    "â–ª",
    "â–«",
    "â†’",
    "â†",
)


@dataclass(frozen=True)
class FittedText:
    lines: tuple[str, ...]
    truncated: bool


def clean_event_title(title: str | None) -> str:
    if not title:
        return ""
    text = str(title)
    for noise in TITLE_MOJIBAKE:
        text = text.replace(noise, "")
    text = TITLE_NOISE_RE.sub("", text)
    return " ".join(text.split())


def sanitize_text(value: str | None) -> str:
    """ASCII-fold ``value`` for fonts that only cover Latin-1."""
    if not value:
        return ""
    text = str(value)
    replacements = {
        "\u2013": "-",
        "\u2014": "-",
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": "\"",
        "\u201d": "\"",
        "\u2026": "...",
    }
    for src, dest in replacements.items():
        text = text.replace(src, dest)
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    return " ".join(text.split())


def wrap_words(text: str, max_width: float, measure: Callable[[str], float]) -> list[str]:
    words = text.split()
    lines: list[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}".strip()
        if measure(candidate) <= max_width:
            current = candidate
            continue
        if current:
            lines.append(current)
        # an over-wide word still gets a line of its own
        current = word
    if current:
        lines.append(current)
    return lines


def shorten_line(
    text: str,
    max_width: float,
    measure: Callable[[str], float],
    suffix: str = ELLIPSIS,
) -> str:
    trimmed = text.rstrip()
    while trimmed and measure(trimmed + suffix) > max_width:
        trimmed = trimmed[:-1].rstrip()
    if trimmed:
        return trimmed + suffix
    if measure(suffix) <= max_width:
        return suffix
    return ""


def fit_text(
    text: str,
    max_width: float,
    max_height: float,
    line_height: float,
    measure: Callable[[str], float],
    ellipsis: str = ELLIPSIS,
) -> FittedText:
    """Greedy word wrap of ``text`` into ``max_width`` x ``max_height``.

    At least one line is always kept so an event never renders blank. When
    lines are dropped the last kept line is shortened until it fits with the
    ellipsis appended. Lines that are too wide on their own (a single long
    word) are shortened the same way.
    """
    lines = wrap_words(text, max_width, measure)
    if not lines:
        return FittedText(lines=(), truncated=False)

    max_lines = 1
    if line_height > 0:
        max_lines = max(1, int(max_height // line_height))

    truncated = len(lines) > max_lines
    kept = lines[:max_lines]
    fitted: list[str] = []
    for idx, line in enumerate(kept):
        is_last = idx == len(kept) - 1
        if is_last and truncated:
            fitted.append(shorten_line(line, max_width, measure, ellipsis))
        elif measure(line) > max_width:
            logger.debug("Line %r is wider than %s, shortening", line, max_width)
            truncated = True
            fitted.append(shorten_line(line, max_width, measure, ellipsis))
        else:
            fitted.append(line)
    return FittedText(lines=tuple(fitted), truncated=truncated)
