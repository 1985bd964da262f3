import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest

from memotrail.core.config import get_settings
from memotrail.db.base import create_engine, create_sessionmaker, init_db
from memotrail.main import create_app
from memotrail.services.memo_service import MemoService
from memotrail.store.sqlalchemy_store import SQLAlchemyMemoStore


@pytest.fixture
def app(tmp_path, monkeypatch):
    db_path = tmp_path / "test_memotrail.db"
    monkeypatch.setenv("DB_URL", f"sqlite+aiosqlite:///{db_path}")
    get_settings.cache_clear()
    app = create_app()
    yield app
    get_settings.cache_clear()


@pytest.fixture
async def client(app):
    await init_db(app.state.engine)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.state.engine.dispose()


@pytest.fixture
async def db_sessionmaker(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test_memotrail_store.db'}")
    await init_db(engine)
    yield create_sessionmaker(engine)
    await engine.dispose()


@pytest.fixture
def store(db_sessionmaker):
    return SQLAlchemyMemoStore(db_sessionmaker)


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def service(store, clock):
    return MemoService(store, clock=clock)


@pytest.fixture
def anyio_backend():
    return "asyncio"


class StepClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(
        self,
        start: datetime = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
        step: timedelta = timedelta(seconds=1),
    ) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + self.step
        return value
