"""Environment-driven settings for totp-vault."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from totp_vault.totp import DEFAULT_DIGITS, DEFAULT_PERIOD, DEFAULT_WINDOW


APP_NAME = "totp-vault"
APP_AUTHOR = "totp-vault"

BACKENDS = ("keychain", "file", "memory")
DEFAULT_BACKEND = "keychain"
DEFAULT_SERVICE = "totp-vault"

ENV_PREFIX = "TOTP_VAULT_"


@dataclass
class Config:
    backend: str = DEFAULT_BACKEND
    data_dir: Optional[Path] = None
    service: str = DEFAULT_SERVICE
    file_key: Optional[str] = None
    period: int = DEFAULT_PERIOD
    digits: int = DEFAULT_DIGITS
    window: int = DEFAULT_WINDOW


def load_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build a Config from ``TOTP_VAULT_*`` environment variables.

    Args:
        environ: Mapping to read from (default: os.environ).

    Returns:
        Config with defaults filled in for unset variables.

    Raises:
        ValueError: If a numeric variable is not an integer.
    """
    env = os.environ if environ is None else environ

    data_dir = env.get(ENV_PREFIX + "DIR")
    return Config(
        backend=env.get(ENV_PREFIX + "BACKEND", DEFAULT_BACKEND).strip().lower(),
        data_dir=Path(data_dir).expanduser() if data_dir else None,
        service=env.get(ENV_PREFIX + "SERVICE", DEFAULT_SERVICE),
        file_key=env.get(ENV_PREFIX + "KEY") or None,
        period=_int_setting(env, "PERIOD", DEFAULT_PERIOD),
        digits=_int_setting(env, "DIGITS", DEFAULT_DIGITS),
        window=_int_setting(env, "WINDOW", DEFAULT_WINDOW),
    )


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from e
