import asyncio
import os
import shutil
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional, Set

import pytest

# Point the app at a throwaway SQLite catalog before importing app modules.
# Use the system temp directory to avoid cluttering the repo tree.
_SESSION_DIR = Path(tempfile.mkdtemp(prefix="partsportal_pytest_"))

os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_SESSION_DIR / 'catalog.db'}")
os.environ.setdefault("JWT_SECRET_KEY", "test-identity-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")

# Tests inject an in-memory blob store instead of MinIO
os.environ.setdefault("USE_OBJECT_STORAGE", "false")

import jwt  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402

from partsportal.config import settings  # noqa: E402
from partsportal.core.database.models import Principal, Role  # noqa: E402
from partsportal.core.shared.database_service import DatabaseService, database_service  # noqa: E402


def pytest_sessionfinish(session, exitstatus):
    """Cleanup temporary test files after the test session."""
    try:
        shutil.rmtree(_SESSION_DIR, ignore_errors=True)
    except Exception:
        pass


# =============================================================================
# BLOB STORE DOUBLE
# =============================================================================


class FakeBlobStore:
    """
    Dict-backed stand-in for MinIOService.

    ``fail_writes_for`` holds file name fragments whose puts raise;
    ``fail_reads`` makes every get raise.
    """

    def __init__(self, bucket: str = "part-files"):
        self.bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.fail_writes_for: Set[str] = set()
        self.fail_reads = False
        self.deleted = []

    def put_object(self, key, data, length, content_type="application/octet-stream", metadata=None):
        if any(fragment in key for fragment in self.fail_writes_for):
            raise ConnectionError(f"blob store refused {key}")
        content = data.read()
        assert len(content) == length
        self.objects[key] = content
        self.content_types[key] = content_type
        return f"etag-{len(self.objects)}"

    def get_object(self, key):
        if self.fail_reads:
            raise ConnectionError("blob store unreachable")
        if key not in self.objects:
            raise KeyError(key)
        return self.objects[key]

    def list_objects(self, prefix):
        return [key for key in self.objects if key.startswith(prefix)]

    def object_exists(self, key):
        return key in self.objects

    def delete_object(self, key):
        self.objects.pop(key, None)
        self.deleted.append(key)
        return True

    def check_health(self):
        return True, [self.bucket], None

    def ensure_bucket(self):
        return False


# =============================================================================
# HELPERS
# =============================================================================


async def create_principal(
    database: DatabaseService,
    role: Role,
    organization_name: Optional[str] = None,
    display_name: Optional[str] = None,
) -> Principal:
    suffix = uuid.uuid4().hex[:8]
    async with database.get_session() as session:
        principal = Principal(
            email=f"{role.value}-{suffix}@example.test",
            display_name=display_name or f"{role.value.title()} {suffix}",
            role=role,
            organization_name=organization_name,
        )
        session.add(principal)
        await session.flush()
        return principal


class FlakyCatalog:
    """
    Wraps a DatabaseService and fails chosen ``get_session`` calls.

    Calls are counted from 1; during ``submit`` call 1 is the Upload insert
    and the next N calls are the per-file metadata inserts.
    """

    def __init__(self, database: DatabaseService, fail_calls: Set[int]):
        self.database = database
        self.fail_calls = fail_calls
        self.calls = 0

    def get_session(self):
        self.calls += 1
        if self.calls in self.fail_calls:
            raise OperationalError("INSERT INTO files", {}, Exception("disk I/O error"))
        return self.database.get_session()


def make_token(principal_id, expires_in: timedelta = timedelta(hours=1), secret: Optional[str] = None) -> str:
    payload = {
        "sub": str(principal_id),
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, secret or settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def auth_headers(principal) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(principal.id)}"}


# =============================================================================
# SERVICE-LEVEL FIXTURES (fresh catalog per test)
# =============================================================================


@pytest.fixture
async def database(tmp_path):
    db = DatabaseService(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await db.init_db()
    yield db
    await db.close()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
async def vendor_a(database):
    return await create_principal(database, Role.vendor, organization_name="Acme Parts")


@pytest.fixture
async def vendor_b(database):
    return await create_principal(database, Role.vendor, organization_name="Bolt Works")


@pytest.fixture
async def manager(database):
    return await create_principal(database, Role.manager, display_name="Morgan Lee")


# =============================================================================
# HTTP-LEVEL FIXTURES (shared session catalog, unique principals per test)
# =============================================================================


@pytest.fixture(scope="session")
def app_catalog():
    asyncio.run(database_service.init_db())
    return database_service


@pytest.fixture
def api_vendor(app_catalog):
    return asyncio.run(create_principal(app_catalog, Role.vendor, organization_name="Acme Parts"))


@pytest.fixture
def api_other_vendor(app_catalog):
    return asyncio.run(create_principal(app_catalog, Role.vendor, organization_name="Bolt Works"))


@pytest.fixture
def api_manager(app_catalog):
    return asyncio.run(create_principal(app_catalog, Role.manager))


@pytest.fixture
def api_blob_store():
    return FakeBlobStore()


@pytest.fixture
def client(app_catalog, api_blob_store):
    from fastapi.testclient import TestClient

    from partsportal.dependencies import get_blob_store
    from partsportal.main import app

    app.dependency_overrides[get_blob_store] = lambda: api_blob_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
