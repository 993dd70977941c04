import pytest
from keyring.errors import KeyringError, PasswordDeleteError
from danbooru_explorer.data.models import Credentials
from danbooru_explorer.services import credentials_store
from danbooru_explorer.services.credentials_store import (
    InMemoryCredentialsStore,
    KeyringCredentialsStore,
)
from danbooru_explorer.services.errors import CredentialsStoreError


class FakeKeyring:
    """In-process stand-in for the keyring backend."""

    def __init__(self):
        self.passwords = {}
        self.fail_writes = False

    def get_password(self, service, key):
        return self.passwords.get((service, key))

    def set_password(self, service, key, value):
        if self.fail_writes:
            raise KeyringError("locked")
        self.passwords[(service, key)] = value

    def delete_password(self, service, key):
        if (service, key) not in self.passwords:
            raise PasswordDeleteError("not found")
        del self.passwords[(service, key)]


@pytest.fixture
def fake_keyring(monkeypatch):
    backend = FakeKeyring()
    monkeypatch.setattr(credentials_store.keyring, "get_password", backend.get_password)
    monkeypatch.setattr(credentials_store.keyring, "set_password", backend.set_password)
    monkeypatch.setattr(credentials_store.keyring, "delete_password", backend.delete_password)
    return backend


def test_in_memory_store_sanitizes():
    store = InMemoryCredentialsStore()
    assert store.load() == Credentials.empty()

    store.save(Credentials(username="  user ", api_key=" key "))
    assert store.load() == Credentials(username="user", api_key="key")

    store.clear()
    store.clear()
    assert store.load() == Credentials.empty()


def test_keyring_store_round_trip(fake_keyring):
    store = KeyringCredentialsStore(service="test.service")

    store.save(Credentials(username=" user ", api_key="key "))

    assert fake_keyring.passwords == {
        ("test.service", "username"): "user",
        ("test.service", "apiKey"): "key",
    }
    assert store.load() == Credentials(username="user", api_key="key")


def test_keyring_store_blank_value_deletes_key(fake_keyring):
    store = KeyringCredentialsStore(service="test.service")
    store.save(Credentials(username="user", api_key="key"))

    store.save(Credentials(username="user", api_key="   "))

    assert ("test.service", "apiKey") not in fake_keyring.passwords
    assert store.load() == Credentials(username="user", api_key=None)


def test_keyring_store_clear_is_idempotent(fake_keyring):
    store = KeyringCredentialsStore(service="test.service")
    store.save(Credentials(username="user", api_key="key"))

    store.clear()
    store.clear()

    assert fake_keyring.passwords == {}
    assert store.load() == Credentials.empty()


def test_keyring_write_failure_raises(fake_keyring):
    fake_keyring.fail_writes = True
    store = KeyringCredentialsStore(service="test.service")

    with pytest.raises(CredentialsStoreError):
        store.save(Credentials(username="user", api_key="key"))


def test_keyring_read_failure_loads_empty(monkeypatch):
    def broken(service, key):
        raise KeyringError("no backend")

    monkeypatch.setattr(credentials_store.keyring, "get_password", broken)

    assert KeyringCredentialsStore(service="test.service").load() == Credentials.empty()
