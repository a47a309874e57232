"""Custom validators and types."""

import re
from typing import Annotated

from pydantic import AfterValidator, Field

# Optional leading +, then 10 to 15 digits (E.164 allows at most 15)
MOBILE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def validate_mobile_number(value: str) -> str:
    """
    Validate and normalize a mobile number.

    Accepts formats:
    - 9876543210
    - +91 98765 43210
    - +91-98765-43210
    - (+1) 415 555 0100

    Returns the digits with an optional leading +: +919876543210
    """
    # Remove spaces, dashes, parentheses
    normalized = re.sub(r"[\s\-\(\)]", "", value)

    if not MOBILE_PATTERN.match(normalized):
        raise ValueError("Invalid mobile number. Use 10 to 15 digits, optionally starting with +")

    return normalized


def validate_email(value: str) -> str:
    """Lower-case and sanity-check an email address."""
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Invalid email address")
    return normalized


def validate_month(value: str) -> str:
    if not MONTH_PATTERN.match(value):
        raise ValueError("Month must be in YYYY-MM format")
    return value


# Annotated type for mobile number validation
MobileNumber = Annotated[
    str,
    Field(min_length=10, max_length=20),
    AfterValidator(validate_mobile_number),
]

Email = Annotated[
    str,
    Field(min_length=3, max_length=255),
    AfterValidator(validate_email),
]

Month = Annotated[str, AfterValidator(validate_month)]
