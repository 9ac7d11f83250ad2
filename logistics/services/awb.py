"""
LOGISTICS App - AWB Code Generation

AWB codes are `UEX` followed by 8 digits. Two generators exist:
- random codes for admin / bulk / API bookings
- "professional" codes (timestamp serial + mod-7 check digit) for
  self-service bookings
"""

import logging
import random
import re
import time
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

AWB_PREFIX = 'UEX'
AWB_PATTERN = re.compile(r'^UEX\d{8}$')
MAX_ALLOCATION_ATTEMPTS = 10


def generate_awb() -> str:
    """UEX + 8 random digits (never starting with 0)."""
    return f"{AWB_PREFIX}{random.randint(10000000, 99999999)}"


def generate_professional_awb(now_ms: Optional[int] = None) -> str:
    """
    UEX + 7-digit serial + check digit.

    The serial is the last 7 digits of the current epoch milliseconds;
    the check digit is serial mod 7.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    serial = str(now_ms)[-7:].zfill(7)
    check_digit = int(serial) % 7
    return f"{AWB_PREFIX}{serial}{check_digit}"


def has_valid_check_digit(code: str) -> bool:
    """True when the last digit is the mod-7 check of the 7-digit serial."""
    if not is_valid_awb(code):
        return False
    return int(code[3:10]) % 7 == int(code[10])


def generate_batch_awbs(count: int) -> List[str]:
    """`count` distinct random codes."""
    if count < 0:
        raise ValueError("count must be non-negative")
    codes = set()
    while len(codes) < count:
        codes.add(generate_awb())
    return list(codes)


def is_valid_awb(code) -> bool:
    return bool(code) and bool(AWB_PATTERN.match(str(code)))


def normalize_awb(code) -> str:
    """Tracking lookups are case-insensitive."""
    return str(code or '').strip().upper()


def allocate_awb(generator: Callable[[], str] = generate_awb, reserved=None) -> str:
    """
    Return a code no existing shipment owns.

    `reserved` holds codes already handed out in the current batch.
    The unique constraint on Shipment.awb_code stays the final guard.
    """
    from logistics.models import Shipment

    reserved = reserved if reserved is not None else set()
    for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
        code = generator()
        if code in reserved:
            continue
        if not Shipment.objects.filter(awb_code=code).exists():
            reserved.add(code)
            return code
        logger.warning(f"[AWB] Collision on {code} (attempt {attempt})")

    # Timestamp-based codes collide within the same millisecond; fall back
    # to random codes rather than failing the booking.
    if generator is not generate_awb:
        return allocate_awb(generate_awb, reserved)
    raise RuntimeError("Could not allocate a unique AWB code")
