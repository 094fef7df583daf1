from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from careprofile.core import get_settings


def normalize_database_url(url: str) -> str:
    """Support postgres://, postgresql:// and explicit async URLs (sqlite+aiosqlite, ...)."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://") and "asyncpg" not in url:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def make_engine(url: str, echo: bool = False):
    url = normalize_database_url(url)
    return create_async_engine(
        url,
        echo=echo,
        poolclass=NullPool if "render.com" in url or url.startswith("sqlite") else None,
    )


def make_session_factory(bind) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False, autoflush=False)


_settings = get_settings()
engine = make_engine(_settings.database_url, echo=_settings.sql_echo)
async_session = make_session_factory(engine)
Base = declarative_base()
