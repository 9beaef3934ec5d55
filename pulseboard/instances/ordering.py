"""Recover the declared order of groups inside a section of the raw config text.

``json.loads`` keeps key order, but the order we care about is the one the
author wrote. Scanning the raw text keeps that guarantee independent of how
the document was parsed. A section that cannot be parsed yields no groups.
"""

from __future__ import annotations

import json
import logging
import re

logger = logging.getLogger(__name__)


def _section_bounds(raw: str, section: str) -> tuple[int, int] | None:
    """Return (start, end) of the section's ``{...}`` value, end exclusive."""
    match = re.search(re.escape(json.dumps(section)) + r"\s*:\s*", raw)
    if not match:
        return None

    start = match.end()
    if start >= len(raw) or raw[start] != "{":
        return None

    depth = 0
    in_string = False
    escaped = False
    for pos in range(start, len(raw)):
        ch = raw[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return start, pos + 1

    # Unterminated section: hand back what we have, parsing will reject it.
    return start, len(raw)


def _string_end(text: str, start: int) -> int:
    """Index just past the closing quote of the string literal at ``start``."""
    pos = start + 1
    while pos < len(text):
        ch = text[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == '"':
            return pos + 1
        pos += 1
    return len(text)


_COLON = re.compile(r"\s*:")


def _top_level_keys(body: str) -> list[str]:
    """Object keys written directly inside the outermost ``{...}`` of ``body``."""
    keys: list[str] = []
    depth = 0
    pos = 0
    while pos < len(body):
        ch = body[pos]
        if ch == '"':
            end = _string_end(body, pos)
            if depth == 1 and _COLON.match(body, end):
                keys.append(json.loads(body[pos:end]))
            pos = end
            continue
        if ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
        pos += 1
    return keys


def extract_group_order(raw: str, section: str) -> list[str]:
    """Group names of ``section`` in the order they appear in ``raw``.

    Returns an empty list when the section is absent or not a valid object.
    Only keys at the section's own level count, so a group named like a
    nested field (``urls``, ``cors``) is placed by its own declaration.
    """
    bounds = _section_bounds(raw, section)
    if bounds is None:
        return []

    body = raw[bounds[0]:bounds[1]]
    try:
        groups = json.loads(body)
    except json.JSONDecodeError as e:
        logger.debug("Section %r is not valid JSON: %s", section, e)
        return []
    if not isinstance(groups, dict):
        return []

    order: list[str] = []
    for key in _top_level_keys(body):
        if key in groups and key not in order:
            order.append(key)
    return order
