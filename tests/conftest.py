"""Shared fixtures for drive tree tests."""

import os

# settings are read at import time
os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ.setdefault('UPLOAD_CALLBACK_SECRET', 'callback-secret')
os.environ.setdefault('LOG_LEVEL', 'WARNING')

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import drive_api.models  # noqa: E402,F401
from drive_api.api.deps import get_blob_delegate  # noqa: E402
from drive_api.db.base import Base  # noqa: E402
from drive_api.db.session import get_db  # noqa: E402
from drive_api.services.tree_ops import TreeOperations  # noqa: E402
from drive_api.services.tree_store import TreeStore  # noqa: E402
from tests.fakes import OTHER_OWNER, OWNER, FakeBlobStore  # noqa: E402


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads.

    Yields:
        SQLAlchemy engine with all tables created.
    """
    test_engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return TreeStore(db)


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def ops(store, blobs):
    return TreeOperations(store, blobs, max_depth=16, delete_workers=4)


@pytest.fixture
def root(ops):
    """Onboarded root folder for OWNER.

    Returns:
        Root Folder with Trash, Shared and Documents below it.
    """
    return ops.onboard_user(OWNER)


@pytest.fixture
def other_root(ops):
    return ops.onboard_user(OTHER_OWNER)


@pytest.fixture
def upload(ops):
    """Upload helper writing `size` bytes into a folder.

    Returns:
        Callable (folder, name, size, owner) -> File.
    """
    def _upload(folder, name, size=10, owner=OWNER):
        return ops.upload_file(name, b'x' * size, folder.id, owner)

    return _upload


@pytest.fixture
def client(session_factory, blobs):
    """API client wired to the test database and fake blob store.

    Yields:
        FastAPI TestClient.
    """
    from drive_api.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_delegate] = lambda: blobs

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
