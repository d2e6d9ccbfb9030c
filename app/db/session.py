"""
Database Session Management
===========================
Provides async engine for FastAPI application and sync engine for Celery.
"""
import re
import ssl as _ssl

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from app.core.config import settings

# ── ASYNC ENGINE (FastAPI) ───────────────────────────────────────────────────
async_db_url = settings.database_url
_need_ssl = False

if "postgresql" in async_db_url:
    # Ensure standard postgresql:// becomes postgresql+asyncpg://
    if "+asyncpg" not in async_db_url:
        async_db_url = async_db_url.replace("postgresql+psycopg://", "postgresql+asyncpg://")
        async_db_url = async_db_url.replace("postgresql://", "postgresql+asyncpg://")
    if "sslmode=require" in async_db_url or "sslmode=verify" in async_db_url:
        _need_ssl = True
    # asyncpg does not understand libpq query parameters
    async_db_url = re.sub(r'[&?]sslmode=[^&]*', '', async_db_url)
    async_db_url = re.sub(r'[&?]channel_binding=[^&]*', '', async_db_url)
    async_db_url = re.sub(r'\?$', '', async_db_url)
elif "sqlite" in async_db_url:
    if "+aiosqlite" not in async_db_url:
        async_db_url = async_db_url.replace("sqlite://", "sqlite+aiosqlite://")

engine_kwargs = {"echo": settings.debug, "pool_pre_ping": True}

if "sqlite" in async_db_url:
    # aiosqlite connections are bound to the loop that opened them
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    engine_kwargs["poolclass"] = NullPool
else:
    engine_kwargs.update(pool_size=10, max_overflow=20, pool_recycle=300)
    if _need_ssl:
        ssl_ctx = _ssl.create_default_context()
        if not settings.db_ssl_verify:
            ssl_ctx.check_hostname = False
            ssl_ctx.verify_mode = _ssl.CERT_NONE
        engine_kwargs["connect_args"] = {"ssl": ssl_ctx}

async_engine = create_async_engine(async_db_url, **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    expire_on_commit=False,
    class_=AsyncSession,
    autoflush=False
)

# ── SYNC ENGINE (Schema creation / Celery) ───────────────────────────────────
sync_db_url = settings.database_url
if "postgresql" in sync_db_url:
    if "+asyncpg" in sync_db_url:
        sync_db_url = sync_db_url.replace("+asyncpg", "+psycopg")
    elif "psycopg" not in sync_db_url:
        sync_db_url = sync_db_url.replace("postgresql://", "postgresql+psycopg://")
elif "+aiosqlite" in sync_db_url:
    sync_db_url = sync_db_url.replace("+aiosqlite", "")

sync_connect_args = {"check_same_thread": False} if "sqlite" in sync_db_url else {}

engine = create_engine(
    sync_db_url,
    pool_pre_ping=True,
    connect_args=sync_connect_args
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


async def get_db() -> AsyncSession:
    """Async database session dependency generator."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
