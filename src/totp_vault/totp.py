"""RFC 6238 TOTP (Time-based One-Time Password) implementation."""

import hashlib
import hmac
import math
import time
from datetime import datetime
from typing import Optional, Union

from totp_vault.base32 import InvalidEncoding, decode


DEFAULT_PERIOD = 30
DEFAULT_DIGITS = 6
DEFAULT_WINDOW = 1
MAX_DIGITS = 9
MAX_COUNTER = 2**64 - 1

Timestamp = Union[int, float, datetime]


class InvalidSecret(ValueError):
    """Raised when a secret does not decode to usable key material."""


def epoch_seconds(at: Optional[Timestamp] = None) -> int:
    """
    Convert a point in time to whole Unix seconds.

    Args:
        at: Unix timestamp, datetime, or None for the current time.

    Returns:
        Seconds since the epoch, rounded down.

    Raises:
        ValueError: If the time is before the epoch.
    """
    if at is None:
        at = time.time()
    elif isinstance(at, datetime):
        at = at.timestamp()

    seconds = math.floor(at)
    if seconds < 0:
        raise ValueError(f"Time must not be before the Unix epoch: {at}")
    return seconds


def counter_at(at: Optional[Timestamp] = None, period: int = DEFAULT_PERIOD) -> int:
    """Return the TOTP time counter (time steps since the epoch)."""
    _check_period(period)
    return epoch_seconds(at) // period


def generate(
    secret: str,
    at: Optional[Timestamp] = None,
    period: int = DEFAULT_PERIOD,
    digits: int = DEFAULT_DIGITS,
) -> str:
    """
    Generate a TOTP code using RFC 6238 with HMAC-SHA1.

    Args:
        secret: The Base32 encoded secret.
        at: Time to generate the code for (default: now).
        period: Time step in seconds (default: 30).
        digits: Number of digits in the output code (default: 6).

    Returns:
        A zero-padded code string of exactly ``digits`` characters.

    Raises:
        InvalidSecret: If the secret is not Base32 or decodes to nothing.
        ValueError: If period, digits or time are out of range.
    """
    _check_digits(digits)
    key = _decode_secret(secret)
    return _code_for_counter(key, counter_at(at, period), digits)


def verify(
    secret: str,
    code: str,
    window: int = DEFAULT_WINDOW,
    at: Optional[Timestamp] = None,
    period: int = DEFAULT_PERIOD,
    digits: int = DEFAULT_DIGITS,
) -> bool:
    """
    Check a code against the time steps around ``at``.

    Codes from up to ``window`` periods before or after the reference time
    are accepted. Each candidate is compared in constant time.
    Time steps outside the unsigned 64-bit counter range are skipped.

    Raises:
        InvalidSecret: If the secret is not Base32 or decodes to nothing.
        ValueError: If window, period, digits or time are out of range.
    """
    _check_digits(digits)
    if not isinstance(window, int) or window < 0:
        raise ValueError(f"Window must be a non-negative integer, got {window!r}")
    key = _decode_secret(secret)
    counter = counter_at(at, period)

    candidate = code.strip().encode("utf-8")
    if len(candidate) != digits or not candidate.isdigit():
        return False

    for step in range(counter - window, counter + window + 1):
        if not 0 <= step <= MAX_COUNTER:
            continue
        expected = _code_for_counter(key, step, digits).encode("ascii")
        if hmac.compare_digest(expected, candidate):
            return True
    return False


def time_remaining(at: Optional[Timestamp] = None, period: int = DEFAULT_PERIOD) -> int:
    """Seconds until the code rotates, between 1 and ``period``."""
    _check_period(period)
    return period - epoch_seconds(at) % period


def _code_for_counter(key: bytes, counter: int, digits: int) -> str:
    # Convert counter to 8-byte big-endian integer
    try:
        counter_bytes = counter.to_bytes(8, byteorder="big")
    except OverflowError as e:
        raise ValueError(f"Time counter out of 64-bit range: {counter}") from e

    digest = hmac.new(key, counter_bytes, hashlib.sha1).digest()

    # Dynamic truncation (RFC 4226, Section 5.3)
    offset = digest[19] & 0x0F
    binary = int.from_bytes(digest[offset : offset + 4], byteorder="big") & 0x7FFFFFFF

    return f"{binary % 10**digits:0{digits}d}"


def _decode_secret(secret: str) -> bytes:
    try:
        key = decode(secret)
    except InvalidEncoding as e:
        raise InvalidSecret(f"Invalid Base32 secret: {e}") from e
    if not key:
        raise InvalidSecret("Secret decodes to an empty key")
    return key


def _check_digits(digits: int) -> None:
    if not isinstance(digits, int) or not 1 <= digits <= MAX_DIGITS:
        raise ValueError(f"Digits must be between 1 and {MAX_DIGITS}, got {digits!r}")


def _check_period(period: int) -> None:
    if not isinstance(period, int) or period <= 0:
        raise ValueError(f"Period must be a positive integer, got {period!r}")
