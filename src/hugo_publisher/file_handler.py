"""Encoding-aware reading of note files.

Notes are user-authored and not always UTF-8 (legacy exports, Windows
editors).  Reads go through charset-normalizer so they decode to text
instead of failing on the first unexpected byte.
"""

from pathlib import Path

from charset_normalizer import from_bytes


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Empty files and undetectable content default to UTF-8, the latter with
    replacement characters for undecodable bytes.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(result), result.encoding)
