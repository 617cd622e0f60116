"""
Data normalization utilities for scrapers.

These functions standardize scraped text (prices, identifiers) into
consistent Python values.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional


# Currency markers seen on the supported retailers
CURRENCY_SYMBOLS = ('€', '$', '£', 'CHF', 'EUR', 'Fr.', 'SFr.')

_NUMBER = re.compile(r'-?\d(?:[\d,.]*\d)?')
# Space, no-break space or narrow no-break space between thousands groups ("1 299,00")
_GROUP_SPACE = re.compile(r'(?<=\d)[ \u00a0\u202f](?=\d{3}(?!\d))')


def normalize_identifier(identifier: str) -> str:
    """
    Normalize a GTIN/EAN identifier.

    Strips surrounding whitespace only; leading zeros are significant.

    Examples:
        " 4005808730735 " -> "4005808730735"
    """
    if identifier is None:
        return ''
    return str(identifier).strip()


def parse_price(price_text: Optional[str]) -> Optional[Decimal]:
    """
    Parse a localized price string into a Decimal.

    Currency symbols are removed and the first run of digits and separators
    is taken, so unit prices after the main price ("1 l = 1,90 €") and
    surrounding text are ignored. A comma decimal separator is normalized
    to a dot.

    Examples:
        "€3,99" -> Decimal("3.99")
        "19.99 CHF" -> Decimal("19.99")
        "1.299,00 €" -> Decimal("1299.00")
        "1 299,00 €" -> Decimal("1299.00")
        "ab 2,45 €*" -> Decimal("2.45")
        "n/a" -> None

    Returns:
        Decimal price, or None when the text holds no parsable number
    """
    if not price_text:
        return None

    text = str(price_text)
    for symbol in CURRENCY_SYMBOLS:
        text = text.replace(symbol, '')
    text = _GROUP_SPACE.sub('', text)
    # Dangling separators and dashes ("3,99-", "5.-") are not part of the number
    match = _NUMBER.search(text)
    if not match:
        return None
    text = match.group(0)

    if ',' in text and '.' in text:
        # The right-most separator is the decimal one: "1.299,00" / "1,299.00"
        if text.rfind(',') > text.rfind('.'):
            text = text.replace('.', '').replace(',', '.')
        else:
            text = text.replace(',', '')
    elif ',' in text:
        text = text.replace(',', '.')

    # More than one dot left means thousands grouping ("1.299.000")
    if text.count('.') > 1:
        text = text.replace('.', '')

    try:
        price = Decimal(text)
    except InvalidOperation:
        return None

    if not price.is_finite():
        return None
    return price


def format_price(price: Optional[Decimal]) -> str:
    """
    Format a price for catalog write-back.

    Examples:
        Decimal("3.99") -> "3.99"
        None -> ""
    """
    if price is None:
        return ''
    return format(price, 'f')


def normalize_whitespace(text: Optional[str]) -> Optional[str]:
    """Collapse runs of whitespace; returns None for blank text."""
    if not text:
        return None
    cleaned = ' '.join(text.split())
    return cleaned or None
