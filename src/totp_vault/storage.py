"""Named secret storage backends."""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Set

import keyring
from cryptography.fernet import Fernet, InvalidToken
from keyring.errors import KeyringError, PasswordDeleteError
from platformdirs import user_data_dir

from totp_vault.config import APP_AUTHOR, APP_NAME, Config


logger = logging.getLogger(__name__)

INDEX_FILENAME = "names.json"
VAULT_FILENAME = "vault.bin"
KEY_FILENAME = "vault.key"


class SecretStoreError(Exception):
    """Base class for secret store failures."""


class SecretNotFoundError(SecretStoreError, LookupError):
    """Raised when a named secret does not exist."""

    def __init__(self, name: str):
        super().__init__(f"Secret '{name}' not found")
        self.name = name


class SecretExistsError(SecretStoreError, ValueError):
    """Raised when storing under a name that is already taken."""

    def __init__(self, name: str):
        super().__init__(f"Secret '{name}' already exists (use 'remove' first)")
        self.name = name


def get_storage_dir(config: Optional[Config] = None) -> Path:
    """
    Get the directory used for the name index, vault file and key file.

    Returns:
        ``config.data_dir`` if set, otherwise the per-user appdata directory.
    """
    if config is not None and config.data_dir is not None:
        return config.data_dir
    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


def _write_atomic(path: Path, data: bytes, mode: int = 0o600) -> None:
    temp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # A stale temp file would keep its old permissions through O_CREAT
        temp_path.unlink(missing_ok=True)
        fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        temp_path.replace(path)
    except OSError as e:
        raise SecretStoreError(f"Unable to write {path}: {e}") from e


def _check_name(name: str) -> None:
    if not name or not name.strip():
        raise ValueError("Secret name must not be empty")


class SecretStore(ABC):
    """
    A named key-value store for TOTP secrets.

    Implementations never expose secret values through list_names() and
    never log them.
    """

    @abstractmethod
    def store(self, name: str, secret: str) -> None:
        """Store a secret. Raises SecretExistsError if the name is taken."""

    @abstractmethod
    def retrieve(self, name: str) -> str:
        """Return a secret. Raises SecretNotFoundError if absent."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Delete a secret. Does nothing if it is absent."""

    @abstractmethod
    def list_names(self) -> Set[str]:
        """Return the names of all stored secrets."""

    def __contains__(self, name: str) -> bool:
        return name in self.list_names()


class MemoryStore(SecretStore):
    """In-process store, used for tests and embedding."""

    def __init__(self, secrets: Optional[Dict[str, str]] = None):
        self._secrets = dict(secrets or {})

    def store(self, name: str, secret: str) -> None:
        _check_name(name)
        if name in self._secrets:
            raise SecretExistsError(name)
        self._secrets[name] = secret

    def retrieve(self, name: str) -> str:
        try:
            return self._secrets[name]
        except KeyError:
            raise SecretNotFoundError(name) from None

    def delete(self, name: str) -> None:
        self._secrets.pop(name, None)

    def list_names(self) -> Set[str]:
        return set(self._secrets)


class KeychainStore(SecretStore):
    """
    Store secrets in the OS keychain via ``keyring``.

    Each secret is a password entry under ``service`` with the secret name
    as username. keyring cannot enumerate entries, so the names are also
    kept in a JSON index file inside the storage directory.
    """

    def __init__(self, service: str, index_path: Path):
        self.service = service
        self.index_path = index_path

    def store(self, name: str, secret: str) -> None:
        _check_name(name)
        try:
            if keyring.get_password(self.service, name) is not None:
                raise SecretExistsError(name)
            keyring.set_password(self.service, name, secret)
        except KeyringError as e:
            raise SecretStoreError(f"Keychain error: {e}") from e

        try:
            names = self._read_index()
            names.add(name)
            self._write_index(names)
        except SecretStoreError:
            # Keep the keychain in step with the index that list/add rely on
            try:
                keyring.delete_password(self.service, name)
            except KeyringError:
                logger.warning("Could not roll back '%s' in keychain", name)
            raise
        logger.debug("Stored '%s' in keychain service %s", name, self.service)

    def retrieve(self, name: str) -> str:
        try:
            secret = keyring.get_password(self.service, name)
        except KeyringError as e:
            raise SecretStoreError(f"Keychain error: {e}") from e
        if secret is None:
            raise SecretNotFoundError(name)
        return secret

    def delete(self, name: str) -> None:
        try:
            keyring.delete_password(self.service, name)
        except PasswordDeleteError:
            logger.debug("'%s' was not in keychain service %s", name, self.service)
        except KeyringError as e:
            raise SecretStoreError(f"Keychain error: {e}") from e

        names = self._read_index()
        if name in names:
            names.discard(name)
            self._write_index(names)

    def list_names(self) -> Set[str]:
        return self._read_index()

    def _read_index(self) -> Set[str]:
        if not self.index_path.exists():
            return set()
        try:
            content = self.index_path.read_text(encoding="utf-8")
            return set(json.loads(content))
        except OSError as e:
            raise SecretStoreError(f"Unable to read {self.index_path}: {e}") from e
        except (json.JSONDecodeError, TypeError) as e:
            raise SecretStoreError(f"Invalid name index {self.index_path}: {e}") from e

    def _write_index(self, names: Set[str]) -> None:
        data = json.dumps(sorted(names), indent=2).encode("utf-8")
        _write_atomic(self.index_path, data, mode=0o644)


class EncryptedFileStore(SecretStore):
    """
    Store secrets in a single Fernet-encrypted JSON file.

    The Fernet key is taken from ``key`` when given, otherwise read from
    ``key_path``, which is generated with mode 0600 on first use.
    """

    def __init__(self, path: Path, key_path: Path, key: Optional[str] = None):
        self.path = path
        self.key_path = key_path
        self._key = key
        self._fernet: Optional[Fernet] = None

    def store(self, name: str, secret: str) -> None:
        _check_name(name)
        secrets = self._load()
        if name in secrets:
            raise SecretExistsError(name)
        secrets[name] = secret
        self._save(secrets)
        logger.debug("Stored '%s' in %s", name, self.path)

    def retrieve(self, name: str) -> str:
        try:
            return self._load()[name]
        except KeyError:
            raise SecretNotFoundError(name) from None

    def delete(self, name: str) -> None:
        secrets = self._load()
        if secrets.pop(name, None) is not None:
            self._save(secrets)

    def list_names(self) -> Set[str]:
        return set(self._load())

    def _cipher(self) -> Fernet:
        if self._fernet is None:
            try:
                self._fernet = Fernet(self._key or self._load_key())
            except ValueError as e:
                raise SecretStoreError(f"Invalid vault key: {e}") from e
        return self._fernet

    def _load_key(self) -> bytes:
        if self.key_path.exists():
            try:
                return self.key_path.read_bytes().strip()
            except OSError as e:
                raise SecretStoreError(f"Unable to read {self.key_path}: {e}") from e
        key = Fernet.generate_key()
        _write_atomic(self.key_path, key)
        logger.info("Generated new vault key at %s", self.key_path)
        return key

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            token = self.path.read_bytes()
        except OSError as e:
            raise SecretStoreError(f"Unable to read {self.path}: {e}") from e
        try:
            content = self._cipher().decrypt(token)
        except InvalidToken as e:
            raise SecretStoreError(
                f"Unable to decrypt {self.path}: wrong key or corrupted file"
            ) from e
        try:
            return json.loads(content.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SecretStoreError(f"Invalid vault file format: {e}") from e

    def _save(self, secrets: Dict[str, str]) -> None:
        content = json.dumps(secrets).encode("utf-8")
        _write_atomic(self.path, self._cipher().encrypt(content))


def open_store(config: Config) -> SecretStore:
    """
    Create the store selected by ``config.backend``.

    Raises:
        ValueError: If the backend name is unknown.
    """
    storage_dir = get_storage_dir(config)
    logger.debug("Opening %s store (storage dir %s)", config.backend, storage_dir)

    if config.backend == "keychain":
        return KeychainStore(config.service, storage_dir / INDEX_FILENAME)
    if config.backend == "file":
        return EncryptedFileStore(
            storage_dir / VAULT_FILENAME,
            storage_dir / KEY_FILENAME,
            key=config.file_key,
        )
    if config.backend == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown storage backend: {config.backend!r}")
