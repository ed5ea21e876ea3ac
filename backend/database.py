from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from typing import Optional
import logging

from fastapi import Request

from config import Settings
from models import Base
from repository import upsert_user

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine, settings: Optional[Settings] = None) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Local development has no identity provider webhook creating users.
    if settings is not None and settings.seed_subject_id:
        session_factory = build_sessionmaker(engine)
        async with session_factory() as session:
            await upsert_user(
                session,
                subject_id=settings.seed_subject_id,
                email=settings.seed_email,
                industry=settings.seed_industry,
            )
            await session.commit()
        logger.info(f"Seeded user {settings.seed_subject_id}")


async def get_db(request: Request):
    async with request.app.state.sessionmaker() as session:
        yield session
