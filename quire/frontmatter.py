"""Front-matter parsing for Quire.

Posts and layouts start with a YAML block between ``---`` delimiter lines.
Posts must carry one; layouts may omit it.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from .errors import ParseError

DELIMITER = "---"
FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)

# Jekyll-style "2024-01-15 10:30:00 +0100"
_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M %z", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M")


def split_frontmatter(
    text: str, source: Path | str, required: bool = True
) -> tuple[dict[str, Any], str]:
    """Split a document into its front-matter mapping and body.

    Args:
        text: Raw file content.
        source: Path used in error messages.
        required: Whether a missing front-matter block is an error.

    Returns:
        Tuple of (front-matter dict in file order, body text).

    Raises:
        ParseError: If the block is missing (when required), unterminated,
            not valid YAML or not a mapping.
    """
    text = text.lstrip("\ufeff")
    if not text.startswith(DELIMITER):
        if required:
            raise ParseError(source, "missing opening front-matter delimiter '---'")
        return {}, text
    match = FRONTMATTER_RE.match(text)
    if not match:
        raise ParseError(source, "missing closing front-matter delimiter '---'")
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise ParseError(source, f"invalid front-matter YAML: {exc}", exc) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError(source, "front-matter must be a mapping of keys to values")
    return {str(k): v for k, v in data.items()}, text[match.end() :]


def parse_date(value: Any, source: Path | str, keep_offset: bool = False) -> datetime:
    """Normalise a front-matter date to a timezone-aware datetime.

    Naive values are taken to be UTC. Values with an offset are converted
    to UTC unless ``keep_offset`` is set.

    Raises:
        ParseError: If the value is not a recognisable date.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = _parse_date_string(value.strip(), source)
    else:
        raise ParseError(source, f"invalid date: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed if keep_offset else parsed.astimezone(timezone.utc)


def _parse_date_string(value: str, source: Path | str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ParseError(source, f"invalid date: {value!r}")
