from contextlib import ExitStack

import pytest
from fastapi.testclient import TestClient

from linkworker import config, database, models
from linkworker.main import create_app

SECRET = "secret"


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'links.db'}"


@pytest.fixture
def session_factory(database_url):
    engine = database.make_engine(config.Settings(database_url=database_url))
    models.Base.metadata.create_all(bind=engine)
    yield database.make_sessionmaker(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_client(database_url, session_factory):
    with ExitStack() as stack:
        def _make(**overrides):
            overrides.setdefault("access_password", SECRET)
            overrides.setdefault("database_url", database_url)
            app = create_app(config.Settings(**overrides))
            return stack.enter_context(TestClient(app, base_url="https://host"))

        yield _make


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def stored(session_factory):
    """Read a key straight from the store, outside of any request."""
    def _stored(key):
        session = session_factory()
        try:
            entry = session.query(models.KVEntry).filter_by(key=key).first()
            return entry.value if entry else None
        finally:
            session.close()

    return _stored


@pytest.fixture
def row_count(session_factory):
    def _count():
        session = session_factory()
        try:
            return session.query(models.KVEntry).count()
        finally:
            session.close()

    return _count
