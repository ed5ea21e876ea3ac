"""
Shared fixtures: a temporary SQLite database per test plus fakes for the
cache, generative client and mailer.
"""

from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from actions import InterviewActions
from database import build_engine, build_sessionmaker, init_db
from repository import upsert_user

from fakes import OTHER_SUBJECT_ID, SUBJECT_ID, FakeCache, make_fake_genai


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def genai():
    return make_fake_genai()


@pytest.fixture
def mailer():
    return MagicMock()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = build_sessionmaker(engine)
    async with session_factory() as session:
        await upsert_user(
            session,
            subject_id=SUBJECT_ID,
            email="candidate@example.com",
            industry="Software Engineering",
            skills=["Python", "React"],
        )
        await upsert_user(session, subject_id=OTHER_SUBJECT_ID, industry="Marketing")
        await session.commit()
        yield session


@pytest.fixture
def actions(db, cache, genai, mailer):
    return InterviewActions(db, cache, genai, mailer, app_url="http://localhost:3000", cache_ttl=3600)
