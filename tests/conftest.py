import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

# Explicitly load the test environment variables before the service reads its settings.
dotenv_path = Path(__file__).parent.parent / ".env.test"
if dotenv_path.exists():
    load_dotenv(dotenv_path=dotenv_path, override=True)

_workdir = Path(tempfile.mkdtemp(prefix="messaging-service-tests-"))
DB_PATH = _workdir / "messaging.db"

os.environ["MESSAGING_SERVICE_DATABASE_URL"] = f"sqlite+aiosqlite:///{DB_PATH}"
os.environ.setdefault("MESSAGING_SERVICE_USER_JWT_SECRET_KEY", "test-user-jwt-secret")
os.environ["MESSAGING_SERVICE_UPLOAD_DIR"] = str(_workdir / "uploads")
os.environ["MESSAGING_SERVICE_RATE_LIMIT_ENABLED"] = "false"
os.environ["MESSAGING_SERVICE_ENVIRONMENT"] = "testing"

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import AsyncGenerator, Callable, Dict  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from messaging_service import db  # noqa: E402
from messaging_service.config import settings  # noqa: E402
from messaging_service.main import create_app  # noqa: E402
from messaging_service.models import Base  # noqa: E402


@pytest.fixture
def database():
    """
    Gives every test an empty schema in the SQLite test database and points the
    service's session factory at it.
    """
    sync_engine = create_engine(f"sqlite:///{DB_PATH}")
    Base.metadata.drop_all(sync_engine)
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    # NullPool: sessions are opened from both the test loop and the TestClient loop
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    db.configure_engine(engine)
    yield engine


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    async with db.get_session_factory()() as session:
        yield session


@pytest.fixture
def app(database):
    return create_app()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def token_for() -> Callable[..., str]:
    """Mint user tokens the way the auth service does."""

    def _make(user_id: uuid.UUID, expires_in: timedelta = timedelta(hours=1), **claims) -> str:
        now = datetime.now(tz=timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + expires_in).timestamp()),
            **claims,
        }
        return jwt.encode(
            payload, settings.USER_JWT_SECRET_KEY, algorithm=settings.USER_JWT_ALGORITHM
        )

    return _make


@pytest.fixture
def auth_headers(token_for) -> Callable[[uuid.UUID], Dict[str, str]]:
    def _headers(user_id: uuid.UUID) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user_id)}"}

    return _headers
