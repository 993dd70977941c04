import pytest
from danbooru_explorer.data.models import Credentials
from danbooru_explorer.services.credentials_store import InMemoryCredentialsStore
from danbooru_explorer.services.session import AppDependencies, DependenciesStore
from tests.helpers import make_response


@pytest.fixture
def configs():
    return []


@pytest.fixture
def make_store(fake_session, configs):
    def factory(config):
        configs.append(config)
        return AppDependencies.make_default(config, session=fake_session)

    def build(initial=None):
        return DependenciesStore(InMemoryCredentialsStore(initial), factory=factory)

    return build


def test_loads_sanitized_credentials(make_store, configs):
    store = make_store(Credentials(username=" user ", api_key=" key "))

    assert store.credentials == Credentials(username="user", api_key="key")
    assert store.has_credentials
    assert configs[-1].username == "user"
    assert configs[-1].api_key == "key"


def test_update_credentials_rebuilds_services(make_store, configs):
    store = make_store()
    assert not store.has_credentials
    before = store.dependencies

    store.update_credentials("  name ", " secret ")

    assert store.has_credentials
    assert store.persistence.load() == Credentials(username="name", api_key="secret")
    assert store.dependencies is not before
    assert (configs[-1].username, configs[-1].api_key) == ("name", "secret")


def test_incomplete_credentials_clear_the_store(make_store):
    store = make_store(Credentials(username="user", api_key="key"))

    store.update_credentials("user", "   ")

    assert not store.has_credentials
    assert store.persistence.load() == Credentials.empty()


def test_clear_credentials(make_store, configs):
    store = make_store(Credentials(username="user", api_key="key"))

    store.clear_credentials()

    assert store.credentials == Credentials.empty()
    assert configs[-1].username is None


@pytest.mark.asyncio
async def test_refresh_profile(make_store, fake_session):
    fake_session.queue(make_response(200, {"id": 1, "name": "user", "level_string": "Member"}))
    store = make_store(Credentials(username="user", api_key="key"))

    profile = await store.refresh_profile()

    assert profile.name == "user"
    assert store.profile is profile
    assert store.authentication_error is None


@pytest.mark.asyncio
async def test_refresh_profile_failure_records_error(make_store, fake_session):
    fake_session.queue(make_response(401, {"success": False}))
    store = make_store(Credentials(username="user", api_key="wrong"))

    assert await store.refresh_profile() is None
    assert store.profile is None
    assert "invalid credentials" in store.authentication_error


@pytest.mark.asyncio
async def test_refresh_profile_without_credentials(make_store, fake_session):
    store = make_store()

    assert await store.refresh_profile() is None
    assert fake_session.calls == []


def test_handle_authentication_failure_and_recovery(make_store):
    store = make_store(Credentials(username="user", api_key="key"))

    store.handle_authentication_failure("Invalid Danbooru credentials")
    assert store.authentication_error == "Invalid Danbooru credentials"

    store.update_credentials("user", "new-key")
    assert store.authentication_error is None
