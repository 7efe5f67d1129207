from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from alertengine.config.settings import settings


def _engine_kwargs(url: str) -> dict:
    # SQLite (tests, local runs) does not take a connection pool config
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 20, "max_overflow": 0}


# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_kwargs(settings.DATABASE_URL),
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


async def get_db():
    """
    Async generator that yields database sessions for FastAPI Depends.

    Usage in routes:
        async def list_alerts(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
