"""
Response nonce format: a UTC timestamp followed by an opaque salt.

    2005-05-15T17:11:51ZUNIQUE
"""

from __future__ import annotations

import calendar
import secrets
import string
import time
from dataclasses import dataclass

NONCE_CHARS = string.ascii_letters + string.digits

# Default window, in seconds, around "now" in which a nonce timestamp is accepted
SKEW = 60 * 60 * 5

TIME_FMT = "%Y-%m-%dT%H:%M:%SZ"
TIME_STR_LEN = len("0000-00-00T00:00:00Z")


@dataclass(frozen=True)
class Nonce:
    """
    A parsed nonce.

    Attributes:
        timestamp: Issue time (Unix epoch, UTC)
        salt: Opaque uniqueness string
    """
    timestamp: int
    salt: str

    def __str__(self) -> str:
        return time.strftime(TIME_FMT, time.gmtime(self.timestamp)) + self.salt


def split_nonce(nonce_string: str) -> Nonce:
    """
    Split a nonce into its timestamp and salt.

    Raises:
        ValueError: If the nonce does not start with a valid timestamp

    Examples:
        >>> split_nonce("1970-01-01T00:00:10Zabc")
        Nonce(timestamp=10, salt='abc')
    """
    timestamp_str = nonce_string[:TIME_STR_LEN]
    if len(timestamp_str) != TIME_STR_LEN:
        raise ValueError(f"Nonce too short: {nonce_string!r}")
    timestamp = calendar.timegm(time.strptime(timestamp_str, TIME_FMT))
    if timestamp < 0:
        raise ValueError("time out of range")
    return Nonce(timestamp=timestamp, salt=nonce_string[TIME_STR_LEN:])


def check_timestamp(
    nonce_string: str,
    allowed_skew: int = SKEW,
    now: float | None = None,
) -> bool:
    """Whether the nonce parses and was issued within ``allowed_skew`` of now."""
    try:
        nonce = split_nonce(nonce_string)
    except ValueError:
        return False

    if now is None:
        now = time.time()
    return now - allowed_skew <= nonce.timestamp <= now + allowed_skew


def make_nonce(when: float | None = None) -> str:
    """Generate a nonce for the given time (default: now)."""
    salt = "".join(secrets.choice(NONCE_CHARS) for _ in range(6))
    if when is None:
        when = time.time()
    return str(Nonce(timestamp=int(when), salt=salt))
