"""Frontmatter parsing for .mdx content files.

A content file may start with a metadata block:

    ---
    title: "Getting started"
    full: true
    order: 3
    ---
    Body text...

parse() splits it into a {key: value} mapping and the body. The mapping is
only ever used transiently (display, validation); records always store the
full raw text, frontmatter included.
"""

from __future__ import annotations

import re

FieldValue = bool | int | float | str

_DELIMITER = "---"
_BLOCK_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---(?:\r?\n(.*)|\r?\n?)\Z", re.DOTALL)
_NUMBER_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_INT_RE = re.compile(r"[+-]?[0-9]+")


def coerce(value: str) -> FieldValue:
    """Coerce a trimmed frontmatter value.

    Order matters: boolean literals, then numbers, then strings with one layer
    of matching quotes stripped. So `true` is a bool but `"true"` stays a str.
    """
    if value == "true":
        return True
    if value == "false":
        return False
    if _INT_RE.fullmatch(value):
        return int(value)
    if _NUMBER_RE.fullmatch(value):
        return float(value)
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse(raw: str) -> tuple[dict[str, FieldValue], str]:
    """Return (fields, body). Without a leading block: ({}, raw)."""
    if not raw.startswith(_DELIMITER):
        return {}, raw
    match = _BLOCK_RE.match(raw)
    if match is None:
        return {}, raw

    block, body = match.group(1), match.group(2) or ""
    fields: dict[str, FieldValue] = {}
    for line in block.splitlines():
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        fields[key] = coerce(value.strip())
    return fields, body


def title_of(raw: str, default: str = "") -> str:
    """Title from frontmatter, or default."""
    fields, _ = parse(raw)
    title = fields.get("title")
    return str(title) if title is not None else default
