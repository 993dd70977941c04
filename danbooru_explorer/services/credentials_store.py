"""
Persistence for the Danbooru username and API key.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional
import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from danbooru_explorer.config.constants import (
    KEYRING_API_KEY_KEY,
    KEYRING_SERVICE,
    KEYRING_USERNAME_KEY,
)
from danbooru_explorer.data.models import Credentials
from danbooru_explorer.services.errors import CredentialsStoreError

logger = logging.getLogger(__name__)


class CredentialsStore(ABC):
    """Where credentials live between runs."""

    @abstractmethod
    def load(self) -> Credentials:
        """Load stored credentials, an empty pair if none are stored."""
        ...

    @abstractmethod
    def save(self, credentials: Credentials) -> None:
        """
        Store credentials, sanitized first.

        Raises:
            CredentialsStoreError: If the backend rejects the write
        """
        ...

    @abstractmethod
    def clear(self) -> None:
        """
        Remove stored credentials. Clearing an empty store is not an error.

        Raises:
            CredentialsStoreError: If the backend rejects the delete
        """
        ...


class KeyringCredentialsStore(CredentialsStore):
    """Credentials kept in the platform secure store through keyring."""

    def __init__(self, service: str = KEYRING_SERVICE):
        self.service = service
        self._lock = threading.Lock()

    def load(self) -> Credentials:
        with self._lock:
            username = self._read(KEYRING_USERNAME_KEY)
            api_key = self._read(KEYRING_API_KEY_KEY)
        return Credentials(username=username, api_key=api_key).sanitized()

    def save(self, credentials: Credentials) -> None:
        clean = credentials.sanitized()
        with self._lock:
            self._write(KEYRING_USERNAME_KEY, clean.username)
            self._write(KEYRING_API_KEY_KEY, clean.api_key)

    def clear(self) -> None:
        with self._lock:
            self._delete(KEYRING_USERNAME_KEY)
            self._delete(KEYRING_API_KEY_KEY)

    def _read(self, key: str) -> Optional[str]:
        try:
            return keyring.get_password(self.service, key)
        except KeyringError as e:
            logger.warning("Could not read %s from keyring: %s", key, e)
            return None

    def _write(self, key: str, value: Optional[str]) -> None:
        if value is None:
            self._delete(key)
            return
        try:
            keyring.set_password(self.service, key, value)
        except KeyringError as e:
            raise CredentialsStoreError(f"{e.__class__.__name__}: {e}") from e

    def _delete(self, key: str) -> None:
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError:
            # Nothing stored under this key
            return
        except KeyringError as e:
            raise CredentialsStoreError(f"{e.__class__.__name__}: {e}") from e


class InMemoryCredentialsStore(CredentialsStore):
    """Credentials kept for the lifetime of the process, for tests and previews."""

    def __init__(self, initial: Optional[Credentials] = None):
        self._credentials = (initial or Credentials.empty()).sanitized()
        self._lock = threading.Lock()

    def load(self) -> Credentials:
        with self._lock:
            return self._credentials

    def save(self, credentials: Credentials) -> None:
        with self._lock:
            self._credentials = credentials.sanitized()

    def clear(self) -> None:
        with self._lock:
            self._credentials = Credentials.empty()
