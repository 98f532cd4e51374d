from sqlalchemy.ext.asyncio import async_sessionmaker

from hardware_catalog.db import AsyncSessionLocal


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    return AsyncSessionLocal
