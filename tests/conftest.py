import pytest
from fastapi.testclient import TestClient

from guestbook.api import create_app
from guestbook.config import Settings
from guestbook.database import create_db_engine, create_session_factory, init_db
from guestbook.security import PasswordHasher
from guestbook.store import UserStore


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite://",
        bcrypt_rounds=4,
        rate_limit_enabled=False,
        seed_entries=False,
        jwt_secret="test-secret",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def engine():
    """Provide an isolated in-memory database for each test."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_local(engine):
    return create_session_factory(engine)


@pytest.fixture
def user_store(session_local):
    return UserStore(session_local)


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def app():
    return create_app(make_settings())


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def app_factory():
    """Build an application with settings overrides."""

    def factory(**overrides):
        return create_app(make_settings(**overrides))

    return factory
