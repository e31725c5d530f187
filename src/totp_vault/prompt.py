"""Interactive secret entry with terminal echo disabled."""

import getpass
from typing import Callable

SecretReader = Callable[[str], str]


DEFAULT_PROMPT = "Enter TOTP secret (base32): "


def read_secret(
    prompt: str = DEFAULT_PROMPT, reader: SecretReader = getpass.getpass
) -> str:
    """
    Read a secret from the terminal without echoing it.

    Args:
        prompt: Text shown before input.
        reader: Function that reads a line with echo disabled.

    Returns:
        The entered secret with surrounding whitespace removed.

    Raises:
        ValueError: If nothing was entered.
    """
    secret = reader(prompt).strip()
    if not secret:
        raise ValueError("No secret provided")
    return secret
