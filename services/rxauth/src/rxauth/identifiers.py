"""
Human-readable identifiers for orders and prescriptions.

Order numbers:        ORD-482913XK29PQ
    last 6 digits of the epoch-millisecond timestamp + 6 random base-36 chars.
Prescription numbers: MONJAN13-103055
    weekday, month, day of month, then HHMMSS on a 24-hour clock.

Both formats can collide (prescription numbers within the same second);
uniqueness is enforced by the database constraints, not here.
"""

from __future__ import annotations

import random
import re
import string
from datetime import UTC, datetime, timedelta

from .logging import get_logger
from .metrics import METRICS
from .models import GeneratedIdentifier, IdentifierKind

__all__ = [
    "ORDER_NUMBER_PATTERN",
    "ORDER_PREFIX_PATTERN",
    "PRESCRIPTION_NUMBER_PATTERN",
    "generate_order_number",
    "generate_prescription_number",
    "is_order_number",
    "is_prescription_number",
    "mint_identifier",
]

logger = get_logger("rxauth.identifiers")

BASE36_ALPHABET = string.digits + string.ascii_uppercase
TIMESTAMP_DIGITS = 6
RANDOM_CHARS = 6

_WEEKDAYS = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")  # datetime.weekday() order
_MONTHS = ("JAN", "FEB", "MAR", "APR", "MAY", "JUN", "JUL", "AUG", "SEP", "OCT", "NOV", "DEC")

ORDER_PREFIX_PATTERN = re.compile(r"[A-Z]+")
ORDER_NUMBER_PATTERN = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<ts>\d{6})(?P<rand>[0-9A-Z]{6})$")
PRESCRIPTION_NUMBER_PATTERN = re.compile(
    r"^(?P<weekday>MON|TUE|WED|THU|FRI|SAT|SUN)"
    r"(?P<month>JAN|FEB|MAR|APR|MAY|JUN|JUL|AUG|SEP|OCT|NOV|DEC)"
    r"(?P<day>0[1-9]|[12]\d|3[01])-"
    r"(?P<hour>[01]\d|2[0-3])(?P<minute>[0-5]\d)(?P<second>[0-5]\d)$"
)


_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _epoch_millis(now: datetime) -> int:
    if now.tzinfo is None:
        now = now.astimezone()  # naive means local time
    return (now - _EPOCH) // timedelta(milliseconds=1)


def generate_order_number(
    now: datetime | None = None,
    rng: random.Random | None = None,
    prefix: str = "ORD",
) -> str:
    if not ORDER_PREFIX_PATTERN.fullmatch(prefix):
        raise ValueError(f"order number prefix must be uppercase A-Z, got {prefix!r}")
    if now is None:
        now = datetime.now()
    draw = rng or random
    tail = str(_epoch_millis(now))[-TIMESTAMP_DIGITS:].zfill(TIMESTAMP_DIGITS)
    suffix = "".join(draw.choice(BASE36_ALPHABET) for _ in range(RANDOM_CHARS))
    return f"{prefix}-{tail}{suffix}"


def generate_prescription_number(date: datetime | None = None) -> str:
    if date is None:
        date = datetime.now()
    return (
        f"{_WEEKDAYS[date.weekday()]}{_MONTHS[date.month - 1]}{date.day:02d}"
        f"-{date.hour:02d}{date.minute:02d}{date.second:02d}"
    )


def is_order_number(value: str, prefix: str = "ORD") -> bool:
    m = ORDER_NUMBER_PATTERN.match(value)
    return m is not None and m.group("prefix") == prefix


def is_prescription_number(value: str) -> bool:
    return PRESCRIPTION_NUMBER_PATTERN.match(value) is not None


def mint_identifier(
    kind: IdentifierKind,
    now: datetime | None = None,
    rng: random.Random | None = None,
    *,
    order_prefix: str = "ORD",
) -> GeneratedIdentifier:
    """Mint one identifier for a new entity of *kind*; call once, before the insert."""
    if now is None:
        now = datetime.now()
    if kind == "order":
        value = generate_order_number(now, rng, prefix=order_prefix)
    elif kind == "prescription":
        value = generate_prescription_number(now)
    else:
        raise ValueError(f"unknown identifier kind {kind!r}")
    METRICS.inc("rxauth_identifiers_total", labels={"kind": kind})
    logger.info("identifier_minted", kind=kind, value=value)
    return GeneratedIdentifier(kind=kind, value=value, generated_at=now)
