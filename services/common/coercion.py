"""
Numeric Coercion for Raw Text Fields

Raw tables store every column as text. Fields that are numeric in the clean
model (view counts, applies, salary figures, employee counts) go through a
NumericCoercer, which applies one explicit policy per field group:

- strict:  non-numeric, non-empty text raises CoercionError (fails the stage)
- lenient: non-numeric, non-empty text becomes None and a warning is logged

Empty strings and None always mean "absent" and become None, never zero.
"""

import logging
import re
from decimal import Decimal
from typing import Any, Optional

logger = logging.getLogger(__name__)

STRICT = 'strict'
LENIENT = 'lenient'
VALID_POLICIES = {STRICT, LENIENT}

# Plain decimal literals as PostgreSQL NUMERIC accepts them (no NaN/Infinity)
NUMERIC_PATTERN = re.compile(r'^[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?$')


class CoercionError(ValueError):
    """Raised when a numeric field holds non-numeric text under the strict policy."""
    pass


class NumericCoercer:
    """
    Convert raw text values to Decimal according to a coercion policy.

    The coercer keeps a count of values it nulled under the lenient policy
    so that stage statistics can surface them.

    Example:
        >>> coerce = NumericCoercer(STRICT, allow_negative=False)
        >>> coerce('85000.50', 'max_salary')
        Decimal('85000.50')
        >>> coerce('', 'max_salary') is None
        True
    """

    def __init__(self, policy: str = STRICT, allow_negative: bool = True):
        if policy not in VALID_POLICIES:
            raise ValueError(
                f"Invalid coercion policy '{policy}', expected one of {sorted(VALID_POLICIES)}"
            )
        self.policy = policy
        self.allow_negative = allow_negative
        self.nulled_count = 0

    def __call__(
        self,
        value: Any,
        field_name: str,
        record_id: Optional[str] = None
    ) -> Optional[Decimal]:
        if value is None:
            return None

        text = str(value).strip()
        if text == '':
            return None

        if NUMERIC_PATTERN.match(text):
            number = Decimal(text)
            if self.allow_negative or number >= 0:
                return number
            reason = 'negative value'
        else:
            reason = 'non-numeric text'

        if self.policy == STRICT:
            raise CoercionError(
                f"Cannot coerce {field_name}={value!r} to a number ({reason})"
                + (f" for record {record_id}" if record_id is not None else "")
            )

        self.nulled_count += 1
        logger.warning(
            f"Coerced invalid {field_name} to NULL",
            extra={
                'field': field_name,
                'value': value,
                'reason': reason,
                'record_id': record_id,
            }
        )
        return None
