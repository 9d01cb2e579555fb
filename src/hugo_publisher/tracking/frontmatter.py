"""Lenient parser for the ``---`` delimited header at the top of a note.

The header is user-authored free text, so this is deliberately not a YAML
parser: each line is split on its first colon, ``true``/``false`` (any
case) become booleans, inline ``[a, b]`` lists become lists of strings and
everything else stays a string.  Lines without a colon or with an empty key
are skipped.
"""

from __future__ import annotations

import re

from .models import Metadata, MetadataValue

_HEADER_RE = re.compile(r"^---\n(.*?)\n---", re.DOTALL)
_QUOTES = ('"', "'")


def _normalise(content: str) -> str:
    return content.lstrip("\ufeff").replace("\r\n", "\n")


def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Split *content* into ``(header_text, body)``.

    ``header_text`` is ``None`` when the note has no header, in which case
    ``body`` is the whole (normalised) content.
    """
    text = _normalise(content)
    match = _HEADER_RE.match(text)
    if match is None:
        return None, text
    body = text[match.end() :]
    if body.startswith("\n"):
        body = body[1:]
    return match.group(1), body


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        return value[1:-1]
    return value


def coerce_value(raw: str) -> MetadataValue:
    """Convert one raw header value to a bool, a list, or a string."""
    value = raw.strip()
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if value.startswith("[") and value.endswith("]"):
        items = [item.strip() for item in value[1:-1].split(",")]
        return [_unquote(item) for item in items if item]
    return _unquote(value)


def extract_metadata(content: str) -> Metadata | None:
    """Parse the header block of *content*.

    Returns:
        The parsed mapping, or ``None`` when the note has no header.
    """
    header, _ = split_frontmatter(content)
    if header is None:
        return None

    metadata: Metadata = {}
    for line in header.split("\n"):
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        metadata[key] = coerce_value(value)
    return metadata


def is_publishable(metadata: Metadata | None) -> bool:
    """Return ``True`` when the header carries a boolean ``publish: true``."""
    return metadata is not None and metadata.get("publish") is True
