import socket
import uuid
from collections.abc import AsyncGenerator, Iterator

import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.models.base import Base
from app.providers import factory
from app.providers.identity.mock_adapter import MockIdentityDirectory
from app.providers.notifications.mock_adapter import MockNotificationDispatcher

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Acting administrator for admin API tests (local mode)
TEST_ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")

# Security: Test-only key. Production reads ENCRYPTION_KEY from env.
TEST_ENCRYPTION_KEY = Fernet.generate_key().decode()


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    Provides clear skip message to help diagnose CI/local issues.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.exec_driver_sql("CREATE EXTENSION IF NOT EXISTS pgcrypto")
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def mock_directory() -> Iterator[MockIdentityDirectory]:
    """In-memory identity directory injected into the factory singleton.

    Yields:
        MockIdentityDirectory instance (empty).
    """
    mock = MockIdentityDirectory()
    factory._identity_directory = mock

    yield mock

    factory.reset_providers()


@pytest.fixture
def mock_dispatcher() -> Iterator[MockNotificationDispatcher]:
    """Recording notification dispatcher injected into the factory singleton.

    Yields:
        MockNotificationDispatcher that accepts every trigger.
    """
    mock = MockNotificationDispatcher()
    factory._notification_dispatcher = mock

    yield mock

    factory.reset_providers()


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    db_engine,
    mock_directory,  # noqa: ARG001 - installs the directory singleton
    mock_dispatcher,  # noqa: ARG001 - installs the dispatcher singleton
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test database and mock collaborators.

    Admin endpoints run in local mode, acting as TEST_ADMIN_ID.

    Args:
        db_engine: Test database engine from db_engine fixture.
        mock_directory: Mock identity directory.
        mock_dispatcher: Mock notification dispatcher.

    Yields:
        Configured AsyncClient.
    """
    from app.core.database import get_db
    from app.main import app

    test_session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    # Same commit/rollback contract as the production dependency
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    original_auth_enabled = settings.auth_enabled
    original_admin_id = settings.default_admin_id
    settings.auth_enabled = False
    settings.default_admin_id = TEST_ADMIN_ID

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    settings.auth_enabled = original_auth_enabled
    settings.default_admin_id = original_admin_id
    app.dependency_overrides.clear()


# =============================================================================
# Autouse Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def encryption_key() -> Iterator[str]:
    """Configure a Fernet key for staged-password encryption.

    Yields:
        The key in use for the test.
    """
    original = settings.encryption_key
    settings.encryption_key = SecretStr(TEST_ENCRYPTION_KEY)

    yield TEST_ENCRYPTION_KEY

    settings.encryption_key = original


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Security: Rate limiting is tested separately; disable for other tests
    to avoid flaky failures from rate limit triggers.

    Yields:
        None (autouse fixture).
    """
    from app.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled
