"""Shared utilities for scrapers."""

from .normalizers import (
    normalize_identifier,
    normalize_whitespace,
    parse_price,
    format_price,
)
from .extractors import (
    select_first,
    extract_text,
    extract_href,
    extract_price,
    absolute_url,
    is_blocked_page,
)

__all__ = [
    'normalize_identifier',
    'normalize_whitespace',
    'parse_price',
    'format_price',
    'select_first',
    'extract_text',
    'extract_href',
    'extract_price',
    'absolute_url',
    'is_blocked_page',
]
