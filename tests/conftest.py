from datetime import date

import pytest
import pytest_asyncio

from database import create_engine, init_db, make_session_factory
from models import Requester
from store import BookingStore


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}"


@pytest_asyncio.fixture
async def store(database_url):
    engine = create_engine(database_url)
    await init_db(engine)
    yield BookingStore(make_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def requester():
    return Requester(name="Ana Reyes", email="ana@example.com", department="Engineering")


@pytest.fixture
def day():
    return date(2026, 3, 2)
