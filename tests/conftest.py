import pytest
from danbooru_explorer.data.database import Database
from tests.helpers import FakeSession


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    yield database
    database.close()


@pytest.fixture
def fake_session():
    return FakeSession()
