"""Secure TOTP code generator that keeps secrets away from automated callers."""

from totp_vault.base32 import InvalidEncoding
from totp_vault.totp import InvalidSecret, generate, time_remaining, verify

__version__ = "1.0.0"

__all__ = [
    "InvalidEncoding",
    "InvalidSecret",
    "generate",
    "time_remaining",
    "verify",
]
