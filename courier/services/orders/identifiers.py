"""Human-readable identifiers that double as idempotency keys."""

import secrets
import time
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
LAGOS_TZ = ZoneInfo("Africa/Lagos")


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def generate_order_number(now_ms: Optional[int] = None) -> str:
    """
    Generate an order number.

    Format: ``ORD-<base36 ms timestamp>-<5 random base36 chars>``, upper-cased.
    """
    timestamp = _now_ms() if now_ms is None else now_ms
    return f"ORD-{to_base36(timestamp)}-{random_base36(5)}".upper()


def generate_transaction_reference(
    prefix: str = "TXN", now_ms: Optional[int] = None
) -> str:
    """
    Generate a payment/wallet transaction reference.

    Format: ``<prefix>-<ms timestamp>-<7 random base36 chars>``, upper-cased.
    """
    timestamp = _now_ms() if now_ms is None else now_ms
    return f"{prefix}-{timestamp}-{random_base36(7)}".upper()


def generate_bill_request_id(now: Optional[datetime] = None) -> str:
    """
    Generate a bills aggregator request id.

    The aggregator requires the id to start with the current Africa/Lagos
    time as ``YYYYMMDDHHMM``; a random suffix keeps it unique.
    """
    moment = (now or datetime.now(LAGOS_TZ)).astimezone(LAGOS_TZ)
    return f"{moment.strftime('%Y%m%d%H%M')}{random_base36(8)}"
