"""RFC 4648 Base32 decoding for TOTP secrets."""

import string

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
# ASCII only; str.upper() maps characters such as "ß" or "ı" into the alphabet
_VALUES = {char: index for index, char in enumerate(ALPHABET)}
_VALUES.update({char.lower(): index for index, char in enumerate(ALPHABET[:26])})
_ASCII_UPPER = str.maketrans(string.ascii_lowercase, string.ascii_uppercase)


class InvalidEncoding(ValueError):
    """Raised when a string is not valid Base32."""


def normalize(value: str) -> str:
    """
    Return the canonical form of a Base32 secret.

    Whitespace is removed, ASCII letters are uppercased and trailing padding is
    stripped. The result is not checked against the alphabet; use decode()
    for that.
    """
    return "".join(value.split()).translate(_ASCII_UPPER).rstrip("=")


def decode(value: str) -> bytes:
    """
    Decode a Base32 string into raw bytes.

    Padding is optional and ignored wherever it appears, as is whitespace.
    Lowercase letters are accepted. Bits left over after the last full byte
    are dropped, so ``n`` data characters always yield ``5 * n // 8`` bytes.

    Args:
        value: The Base32 text.

    Returns:
        Decoded bytes (empty for an empty string).

    Raises:
        InvalidEncoding: If the string contains a character outside the
            Base32 alphabet, ``=`` and whitespace.
    """
    result = bytearray()
    buffer = 0
    bits = 0

    for char in "".join(value.split()):
        if char == "=":
            continue
        try:
            buffer = (buffer << 5) | _VALUES[char]
        except KeyError:
            raise InvalidEncoding(f"Invalid Base32 character: {char!r}") from None
        bits += 5

        if bits >= 8:
            bits -= 8
            result.append((buffer >> bits) & 0xFF)
            buffer &= (1 << bits) - 1

    return bytes(result)
