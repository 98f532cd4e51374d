from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from hardware_catalog.core.config import settings

# создаём асинхронный движок
engine = create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO, future=True)

# создаём фабрику сессий
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass
