from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from ..models.validation_result import IdentifierBatchSummary, InvalidRow, ValidationOutcome

"""Vehicle number cleaning and Indian RTO format validation.

Cleaning keeps only A-Z / 0-9 after trimming and uppercasing. Validation then
checks, in order: presence, length [8, 15], the two-letter state code whitelist
and finally the RTO pattern set. The first failing check decides the reason.

Supported formats:
    DL01AB1234     state + 2 digits + 2 letters + 4 digits
    DL01A1234      state + 2 digits + 1 letter + 4 digits
    DL011234       state + 2 digits + 4 digits
    DLFAPATW00347  state + letters + 2 alnum + 4-5 digits (older registrations)
"""

__all__ = [
    "MIN_LENGTH",
    "MAX_LENGTH",
    "STATE_CODES",
    "RTO_PATTERNS",
    "normalize_identifier",
    "validate_identifier",
    "validate_identifiers",
]

MIN_LENGTH = 8
MAX_LENGTH = 15

STATE_CODES: frozenset[str] = frozenset({
    "AN", "AP", "AR", "AS", "BR", "CH", "CT", "DL", "DN", "GA", "GJ", "HR",
    "HP", "JK", "JH", "KA", "KL", "MP", "MH", "MN", "ML", "MZ", "NL", "OR",
    "PY", "PB", "RJ", "SK", "TN", "TS", "TR", "UP", "UT", "WB",
})

# 順序固定: 一般性の低いものから試す
RTO_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z]{2}[0-9]{4}$"),
    re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z]{1}[0-9]{4}$"),
    re.compile(r"^[A-Z]{2}[0-9]{2}[0-9]{4}$"),
    re.compile(r"^[A-Z]{2}[A-Z]{2,}[A-Z0-9]{2}[0-9]{4,5}$"),
)

_NON_ALNUM = re.compile(r"[^A-Z0-9]")

ERR_REQUIRED = "Vehicle number is required"
ERR_EMPTY = "Vehicle number is empty after cleaning"
ERR_TOO_SHORT = "Vehicle number too short after cleaning"
ERR_TOO_LONG = "Vehicle number too long after cleaning"
ERR_FORMAT = "Invalid vehicle number format. Must follow Indian RTO standards."


def normalize_identifier(raw: Any) -> str:
    """Return the canonical A-Z/0-9 token for a raw cell value.

    Non-string or empty input yields "". Idempotent:
    normalize_identifier(normalize_identifier(s)) == normalize_identifier(s).
    """
    if not raw or not isinstance(raw, str):
        return ""
    return _NON_ALNUM.sub("", raw.strip().upper())


def validate_identifier(raw: Any) -> ValidationOutcome:
    """Clean and validate one raw vehicle number.

    >>> validate_identifier("dl 01 ab 1234")
    ValidationOutcome(is_valid=True, cleaned_value='DL01AB1234', error=None)
    >>> validate_identifier("XX01AB1234").error
    'Invalid state code: XX. Must be a valid Indian state code.'
    """
    if not raw or not isinstance(raw, str):
        return ValidationOutcome(is_valid=False, error=ERR_REQUIRED)

    cleaned = normalize_identifier(raw)
    if not cleaned:
        return ValidationOutcome(is_valid=False, error=ERR_EMPTY)

    if len(cleaned) < MIN_LENGTH:
        return ValidationOutcome(is_valid=False, cleaned_value=cleaned, error=ERR_TOO_SHORT)
    if len(cleaned) > MAX_LENGTH:
        return ValidationOutcome(is_valid=False, cleaned_value=cleaned, error=ERR_TOO_LONG)

    state_code = cleaned[:2]
    if state_code not in STATE_CODES:
        return ValidationOutcome(
            is_valid=False,
            cleaned_value=cleaned,
            error=f"Invalid state code: {state_code}. Must be a valid Indian state code.",
        )

    for pattern in RTO_PATTERNS:
        if pattern.match(cleaned):
            return ValidationOutcome(is_valid=True, cleaned_value=cleaned)

    return ValidationOutcome(is_valid=False, cleaned_value=cleaned, error=ERR_FORMAT)


def validate_identifiers(values: Iterable[Any]) -> IdentifierBatchSummary:
    """Validate a flat list of vehicle numbers (row_index is 1-based position)."""
    cleaned_numbers: list[str] = []
    invalid: list[InvalidRow] = []
    total = 0
    for position, value in enumerate(values, start=1):
        total += 1
        outcome = validate_identifier(value)
        if outcome.is_valid and outcome.cleaned_value:
            cleaned_numbers.append(outcome.cleaned_value)
            continue
        invalid.append(
            InvalidRow(
                row_index=position,
                original_value="" if value is None else str(value),
                cleaned_value=outcome.cleaned_value or "",
                error=outcome.error or "Invalid format",
            )
        )
    return IdentifierBatchSummary(
        total_count=total,
        valid_count=len(cleaned_numbers),
        invalid_count=len(invalid),
        cleaned_numbers=cleaned_numbers,
        invalid_numbers=invalid,
    )
