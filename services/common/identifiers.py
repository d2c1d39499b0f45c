"""
Company Identifier Normalization

Company identifiers arrive from several source files in slightly different
text renderings. The same company can show up as '2774458' in one file and
as '2774458.0' in another because the exporter wrote the column as a float.

This module canonicalizes those identifiers so that every table referencing
a company joins on exactly the same string. The function is applied in the
company dimension AND in every fact/link table that references a company;
using it in one place but not the other silently breaks the joins.

Key Concepts:
- Numeric-looking ids: '2774458.0' → '2774458', '007' → '7'
- Non-numeric ids pass through unchanged: 'acme-01' → 'acme-01'
- Empty input becomes None (caller filters None keys)
- Idempotent: normalize(normalize(x)) == normalize(x)
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

# Digits with at most one decimal point, at least one digit somewhere
NUMERIC_ID_PATTERN = re.compile(r'^(?:[0-9]+\.?[0-9]*|\.[0-9]+)$')


def normalize_company_id(value: Optional[str]) -> Optional[str]:
    """
    Convert a company identifier to its canonical string form.

    Numeric-looking identifiers are parsed as decimals, rounded half away
    from zero to an integer and rendered without leading zeros or a decimal
    point. Anything else is returned unchanged.

    Examples:
        >>> normalize_company_id('2774458.0')
        '2774458'
        >>> normalize_company_id('1.5')
        '2'
        >>> normalize_company_id('abc-123')
        'abc-123'
        >>> normalize_company_id('') is None
        True

    Args:
        value: Raw identifier text (may be None)

    Returns:
        Canonical identifier, or None for empty/missing input
    """
    if value is None or value == '':
        return None

    if not NUMERIC_ID_PATTERN.match(value):
        return value

    try:
        integral = Decimal(value).to_integral_value(rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return value

    return str(int(integral))
