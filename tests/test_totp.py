"""Tests for TOTP generation and verification."""

import re
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from totp_vault import totp
from totp_vault.totp import InvalidSecret, generate, time_remaining, verify


# Secret: "12345678901234567890" (Base32: GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ)
SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"

# RFC 6238 test vectors for SHA1 (Appendix B)
RFC6238_TEST_VECTORS = [
    # (unix time, expected 8-digit code)
    (59, "94287082"),
    (1111111109, "07081804"),
    (1111111111, "14050471"),
    (1234567890, "89005924"),
    (2000000000, "69279037"),
    (20000000000, "65353130"),
]


def test_rfc6238_test_vectors():
    """Test TOTP generation against RFC 6238 test vectors."""
    for at, expected_code in RFC6238_TEST_VECTORS:
        code = generate(SECRET, at=at, digits=8)
        assert code == expected_code, f"Time {at}: expected {expected_code}, got {code}"


def test_rfc6238_six_digits():
    """Test that 6-digit codes are the last 6 digits of the 8-digit codes."""
    for at, expected_code in RFC6238_TEST_VECTORS:
        assert generate(SECRET, at=at) == expected_code[-6:]


def test_generate_from_datetime():
    """Test that datetimes are accepted as the time argument."""
    at = datetime(2009, 2, 13, 23, 31, 30, tzinfo=timezone.utc)
    assert generate(SECRET, at=at, digits=8) == "89005924"


def test_generate_now():
    """Test that the current time is used when no time is given."""
    with patch("totp_vault.totp.time.time", return_value=59.5):
        assert generate(SECRET) == "287082"


def test_generate_short_secret():
    """Test generation with a 10-byte secret."""
    code = generate("GEZDGNBVGY3TQOJQ", at=1700000000)
    assert re.fullmatch(r"[0-9]{6}", code)
    assert code == generate("gezd gnbv gy3t qojq", at=1700000000)


@pytest.mark.parametrize("digits", range(1, 10))
def test_generate_digit_lengths(digits):
    """Test that the code is always exactly `digits` decimal characters."""
    for at in (0, 59, 1111111109, 1700000000):
        code = generate(SECRET, at=at, digits=digits)
        assert re.fullmatch(rf"[0-9]{{{digits}}}", code)


def test_generate_deterministic():
    """Test that identical inputs give identical codes."""
    assert generate(SECRET, at=1700000000) == generate(SECRET, at=1700000000)


def test_generate_same_within_period():
    """Test that the code only changes at period boundaries."""
    assert generate(SECRET, at=30) == generate(SECRET, at=59)
    assert generate(SECRET, at=59) != generate(SECRET, at=60)
    assert generate(SECRET, at=59, period=60) == generate(SECRET, at=0, period=60)


@pytest.mark.parametrize("secret", ["", "   ", "====", "A", "not-a-valid-secret"])
def test_generate_invalid_secret(secret):
    """Test that invalid or empty secrets raise InvalidSecret."""
    with pytest.raises(InvalidSecret):
        generate(secret, at=0)


def test_invalid_secret_chained_from_encoding_error():
    """Test that decoding failures are chained."""
    with pytest.raises(InvalidSecret) as exc_info:
        generate("GEZDGNB1", at=0)
    assert isinstance(exc_info.value.__cause__, ValueError)


@pytest.mark.parametrize("digits", [0, 10, -1, 6.0])
def test_generate_invalid_digits(digits):
    """Test that unsupported digit counts are rejected."""
    with pytest.raises(ValueError, match="Digits"):
        generate(SECRET, at=0, digits=digits)


@pytest.mark.parametrize("period", [0, -30])
def test_generate_invalid_period(period):
    """Test that non-positive periods are rejected."""
    with pytest.raises(ValueError, match="Period"):
        generate(SECRET, at=0, period=period)


def test_generate_negative_time():
    """Test that times before the epoch are rejected."""
    with pytest.raises(ValueError, match="epoch"):
        generate(SECRET, at=-1)


def test_verify_self_consistency():
    """Test that a freshly generated code verifies with window 0."""
    for at in (0, 59, 1111111109, 1700000000):
        code = generate(SECRET, at=at)
        assert verify(SECRET, code, window=0, at=at)


def test_verify_window():
    """Test that adjacent periods are accepted and farther ones rejected."""
    at = 1700000000
    assert verify(SECRET, generate(SECRET, at=at - 30), window=1, at=at)
    assert verify(SECRET, generate(SECRET, at=at + 30), window=1, at=at)
    assert not verify(SECRET, generate(SECRET, at=at - 60), window=1, at=at)
    assert verify(SECRET, generate(SECRET, at=at - 60), window=2, at=at)


def test_verify_window_zero():
    """Test that window 0 only accepts the current period."""
    # Counter 1 (t=30..59) is 287082, counter 2 (t=60..89) is 359152
    assert verify(SECRET, "287082", window=0, at=59)
    assert not verify(SECRET, "359152", window=0, at=59)
    assert verify(SECRET, "359152", window=1, at=59)


def test_verify_near_epoch():
    """Test that negative time steps are skipped near the epoch."""
    assert verify(SECRET, "755224", window=2, at=0)
    assert verify(SECRET, "287082", window=1, at=0)


def test_verify_custom_period_and_digits():
    """Test verification with non-default period and digits."""
    code = generate(SECRET, at=1000, period=60, digits=8)
    assert verify(SECRET, code, window=0, at=1019, period=60, digits=8)
    assert not verify(SECRET, code[-6:], window=0, at=1019, period=60, digits=8)


def test_verify_strips_whitespace():
    """Test that surrounding whitespace in the code is ignored."""
    assert verify(SECRET, " 287082\n", window=0, at=59)


@pytest.mark.parametrize("code", ["", "28708", "2870820", "28708a", "287 082", "２８７０８２"])
def test_verify_malformed_code(code):
    """Test that malformed codes are rejected without raising."""
    assert not verify(SECRET, code, window=1, at=59)


def test_verify_invalid_secret():
    """Test that an invalid secret raises even for a malformed code."""
    with pytest.raises(InvalidSecret):
        verify("not-a-valid-secret", "abc", at=59)


def test_verify_invalid_window():
    """Test that a negative window is rejected."""
    with pytest.raises(ValueError, match="Window"):
        verify(SECRET, "287082", window=-1, at=59)


def test_verify_uses_constant_time_comparison():
    """Test that candidate codes are compared with hmac.compare_digest."""
    with patch("totp_vault.totp.hmac.compare_digest", return_value=False) as compare:
        assert not verify(SECRET, "000000", window=1, at=1700000000)
    assert compare.call_count == 3


def test_time_remaining():
    """Test seconds until rotation."""
    assert time_remaining(at=0) == 30
    assert time_remaining(at=1) == 29
    assert time_remaining(at=29) == 1
    assert time_remaining(at=29.9) == 1
    assert time_remaining(at=30) == 30
    assert time_remaining(at=59, period=60) == 1


def test_time_remaining_countdown():
    """Test that the countdown decreases by one and resets at boundaries."""
    previous = time_remaining(at=1700000000)
    for at in range(1700000001, 1700000100):
        remaining = time_remaining(at=at)
        assert 1 <= remaining <= 30
        if at % 30 == 0:
            assert remaining == 30
        else:
            assert remaining == previous - 1
        previous = remaining


def test_time_remaining_invalid_period():
    """Test that non-positive periods are rejected."""
    with pytest.raises(ValueError):
        time_remaining(at=0, period=0)


def test_counter_at():
    """Test the time step counter."""
    assert totp.counter_at(at=59) == 1
    assert totp.counter_at(at=1111111109) == 37037036
    assert totp.counter_at(at=59, period=60) == 0


def test_verify_at_counter_limit():
    """Test that steps past the 64-bit counter range are skipped, not raised."""
    at = totp.MAX_COUNTER
    code = generate(SECRET, at=at, period=1)
    assert verify(SECRET, code, window=1, at=at, period=1)
    assert verify(SECRET, generate(SECRET, at=at - 1, period=1), window=1, at=at, period=1)

    with patch("totp_vault.totp.hmac.compare_digest", return_value=False) as compare:
        assert not verify(SECRET, "000000", window=1, at=at, period=1)
    assert compare.call_count == 2
