"""Content and metadata fingerprints used for change detection.

Fingerprints are SHA-256 hex digests.  They only need to be stable across
runs and platforms, so content is normalised (BOM, line endings, trailing
whitespace) before hashing and metadata is serialised as canonical JSON.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any


def content_fingerprint(content: str) -> str:
    """Compute a normalised SHA-256 hex digest of *content*.

    Normalisation steps (applied in order):

    1. Strip BOM (``\\ufeff``).
    2. Replace ``\\r\\n`` with ``\\n``.
    3. Right-strip each line.
    4. Strip trailing empty lines.

    The result is encoded as UTF-8 before hashing.
    """
    text = content.lstrip("\ufeff").replace("\r\n", "\n")
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and lines[-1] == "":
        lines.pop()
    return hashlib.sha256("\n".join(lines).encode("utf-8")).hexdigest()


def metadata_fingerprint(metadata: Mapping[str, Any]) -> str:
    """Compute a SHA-256 hex digest of a header mapping.

    Keys are sorted, so two mappings with the same items produce the same
    digest regardless of insertion order.
    """
    canonical = json.dumps(
        dict(metadata),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
