"""Human-readable order numbers: ``PREFIX-<base36 ms timestamp>-<4 base36 random>``."""

import secrets
import string
from datetime import UTC, datetime

_ALPHABET = string.digits + string.ascii_uppercase


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_order_number(prefix: str, at: datetime | None = None) -> str:
    at = at or datetime.now(UTC)
    stamp = to_base36(int(at.timestamp() * 1000))
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(4))
    return f"{prefix}-{stamp}-{suffix}"
