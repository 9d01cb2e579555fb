"""Conversion of vault notes into Hugo content files."""

from .common import ConversionError, ConversionResult, safe_filename, slugify
from .hugo import HugoConverter

__all__ = [
    "ConversionError",
    "ConversionResult",
    "HugoConverter",
    "safe_filename",
    "slugify",
]
