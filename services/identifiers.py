import secrets
import string
import time
from datetime import datetime

_BASE36 = string.digits + string.ascii_uppercase


def generate_reservation_number(now: datetime = None) -> str:
    """R<YYYYMMDD>-<4 base36 chars>, e.g. R20250610-7QZK."""
    now = now or datetime.utcnow()
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"R{now:%Y%m%d}-{suffix}"


def generate_order_id() -> str:
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(7))
    return f"ORDER_{millis}_{suffix}"
