"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- Test database sessions
- Sample data factories (applications, releases, files, API keys)
- In-memory object storage double
- Mocked boto3 client
- FastAPI test client with dependency overrides
"""

import base64
import hashlib
import os
import pytest
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
TEST_ADMIN_TOKEN = 'test-admin-token-0123456789abcdef0123456789'
os.environ['UPDATEHUB_DB_URL'] = 'sqlite:///:memory:'
os.environ['UPDATEHUB_CLEANUP_ENABLED'] = 'false'
os.environ['UPDATEHUB_ADMIN_TOKEN'] = TEST_ADMIN_TOKEN

from backend.src.models import Base, Application, Release, ReleaseFile, ApiKey
from backend.src.services.exceptions import StorageError
from backend.src.services.key_service import hash_api_key
from backend.src.services.storage_service import StoredObject


def sha512_base64(content: bytes) -> str:
    """Base64 SHA-512 digest as stored on release files."""
    return base64.b64encode(hashlib.sha512(content).digest()).decode('ascii')


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    from sqlalchemy import event

    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )

    # Release deletion relies on ON DELETE CASCADE
    def _fk_pragma_on_connect(dbapi_con, con_record):
        dbapi_con.execute('pragma foreign_keys=ON')

    event.listen(engine, 'connect', _fk_pragma_on_connect)

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope='function')
def test_db_session(test_db_engine):
    """Create a test database session."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Object Storage Double
# ============================================================================

class InMemoryStorage:
    """
    Stand-in for ObjectStorage keeping objects in a dict.

    Presigned URLs are deterministic strings so tests can assert on them.
    Keys listed in fail_deletes raise StorageError on delete.
    """

    def __init__(self):
        self.bucket = 'test-releases'
        self.objects: Dict[str, StoredObject] = {}
        self.fail_deletes: Set[str] = set()
        self.deleted: List[str] = []
        self.list_calls = 0

    def put(self, key: str, size: int = 1024, age_minutes: Optional[float] = 24 * 60):
        last_modified = None
        if age_minutes is not None:
            last_modified = datetime.utcnow() - timedelta(minutes=age_minutes)
        self.objects[key] = StoredObject(key=key, size=size, last_modified=last_modified)

    def presign_download(self, key: str, expires_in: int, filename: Optional[str] = None) -> str:
        return f'https://storage.test/{self.bucket}/{key}?expires={expires_in}'

    def presign_upload(self, key: str, content_type: str, expires_in: int) -> str:
        return f'https://storage.test/{self.bucket}/{key}?upload=1&expires={expires_in}'

    def list_objects(self, prefix: str = '') -> List[StoredObject]:
        self.list_calls += 1
        return [obj for key, obj in sorted(self.objects.items()) if key.startswith(prefix)]

    def delete_object(self, key: str) -> None:
        if key in self.fail_deletes:
            raise StorageError('delete_object', 'simulated failure')
        self.objects.pop(key, None)
        self.deleted.append(key)


@pytest.fixture
def memory_storage():
    """In-memory object storage."""
    return InMemoryStorage()


@pytest.fixture
def mock_s3_client(mocker):
    """Mock boto3 S3 client for testing ObjectStorage."""
    mock_client = MagicMock()
    mock_client.generate_presigned_url.return_value = 'https://s3.test/presigned'
    mock_client.list_objects_v2.return_value = {'Contents': [], 'IsTruncated': False}
    mocker.patch('boto3.client', return_value=mock_client)
    return mock_client


# ============================================================================
# Sample Data Factories
# ============================================================================

@pytest.fixture
def sample_application(test_db_session):
    """Factory for creating sample Application models in the database."""
    def _create(slug='demo-app', name='Demo App'):
        app = Application(slug=slug, name=name)
        test_db_session.add(app)
        test_db_session.commit()
        test_db_session.refresh(app)
        return app
    return _create


@pytest.fixture
def sample_release(test_db_session, sample_application):
    """Factory for creating sample Release models in the database."""
    def _create(
        application=None,
        version='2.1.0',
        channel='latest',
        platform='windows',
        staging_percentage=100,
        is_public=True,
        published=True,
        release_date=None,
        name=None,
        notes=None,
    ):
        if application is None:
            application = sample_application()
        release = Release(
            app_id=application.id,
            version=version,
            channel=channel,
            platform=platform,
            staging_percentage=staging_percentage,
            is_public=is_public,
            published=published,
            release_date=release_date or datetime(2026, 3, 1, 12, 0, 0, 123000),
            name=name,
            notes=notes,
        )
        test_db_session.add(release)
        test_db_session.commit()
        test_db_session.refresh(release)
        return release
    return _create


@pytest.fixture
def sample_release_file(test_db_session):
    """Factory for creating sample ReleaseFile models in the database."""
    def _create(
        release,
        filename='Demo-Setup-2.1.0.exe',
        storage_key=None,
        size=1024,
        arch=None,
        content=b'installer-bytes',
    ):
        release_file = ReleaseFile(
            release_id=release.id,
            filename=filename,
            storage_key=storage_key or f'{release.channel}/{release.platform}/{release.version}/{filename}',
            sha512=sha512_base64(content),
            size=size,
            arch=arch,
        )
        test_db_session.add(release_file)
        test_db_session.commit()
        test_db_session.refresh(release_file)
        test_db_session.refresh(release)
        return release_file
    return _create


@pytest.fixture
def sample_api_key(test_db_session):
    """Factory for creating ApiKey rows from a known plaintext."""
    def _create(application, plaintext='uhk_test-key-plaintext', name='CI key', expires_at=None):
        api_key = ApiKey(
            app_id=application.id,
            name=name,
            key_hash=hash_api_key(plaintext),
            key_prefix=plaintext[:12],
            expires_at=expires_at,
        )
        test_db_session.add(api_key)
        test_db_session.commit()
        test_db_session.refresh(api_key)
        return api_key
    return _create


# ============================================================================
# FastAPI Test Client Fixture
# ============================================================================

@pytest.fixture
def admin_headers():
    """Authorization header accepted by operator endpoints."""
    return {'Authorization': f'Bearer {TEST_ADMIN_TOKEN}'}


@pytest.fixture
def test_client(test_db_session, memory_storage):
    """Create a test client for FastAPI application."""
    from fastapi.testclient import TestClient
    from backend.src.main import app

    # Override dependencies
    def get_test_db():
        try:
            yield test_db_session
        finally:
            pass

    def get_test_storage():
        return memory_storage

    from backend.src.db.database import get_db
    from backend.src.api.dependencies import get_storage

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_storage] = get_test_storage

    with TestClient(app) as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()
