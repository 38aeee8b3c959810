from __future__ import annotations

import re

NATIONAL_DIGITS = 10
DEFAULT_PREFIX = "7"


def normalize_phone(phone: str | None, prefix: str = DEFAULT_PREFIX) -> str:
    """Return ``prefix`` followed by the last ten digits of ``phone``.

    Normalization:
    - drop every character that is not an ASCII digit (spaces, brackets, dashes, leading +)
    - keep the rightmost 10 digits, so any country code is discarded
    - left-pad shorter numbers with zeros to keep a fixed width

    Malformed input never raises; it just yields a well-formed value.
    """
    digits = re.sub(r"\D", "", phone or "", flags=re.ASCII)
    national = digits[-NATIONAL_DIGITS:].rjust(NATIONAL_DIGITS, "0")
    return f"{prefix}{national}"


def is_normalized_phone(value: str, prefix: str = DEFAULT_PREFIX) -> bool:
    return re.fullmatch(rf"{re.escape(prefix)}\d{{{NATIONAL_DIGITS}}}", value, flags=re.ASCII) is not None
