"""Common types and utilities for note conversion."""

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath


class ConversionError(ValueError):
    """A note cannot be converted into a Hugo content file."""


@dataclass
class ConversionResult:
    """Result of converting one note.

    Attributes:
        content: Hugo-ready file content (front matter + body)
        filename: Destination filename, without directory
        warnings: Non-fatal issues found while converting
    """

    content: str
    filename: str
    warnings: list[str] = field(default_factory=list)


_NON_WORD = re.compile(r"[^\w-]+")
_DASH_RUNS = re.compile(r"-{2,}")


def slugify(text: str) -> str:
    """Lowercase *text* and reduce it to word characters and single dashes.

    Whitespace becomes ``-``; other punctuation is dropped; leading and
    trailing dashes are trimmed.

    >>> slugify("  My First Post! ")
    'my-first-post'
    """
    slug = re.sub(r"\s+", "-", text.strip().lower())
    slug = _NON_WORD.sub("", slug)
    slug = _DASH_RUNS.sub("-", slug)
    return slug.strip("-")


def safe_filename(identity: str, extension: str = ".md") -> str:
    """Derive the Hugo filename for a vault identity.

    Only the basename matters: ``Drafts/My Post.md`` -> ``my-post.md``.

    Raises:
        ConversionError: If nothing usable remains after slugifying.
    """
    stem = PurePosixPath(identity).stem
    slug = slugify(stem)
    if not slug:
        raise ConversionError(
            f"Cannot derive a filename from '{identity}'"
        )
    return f"{slug}{extension}"
