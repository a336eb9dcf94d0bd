from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from .config import Settings
from .base import Base

def build_engine(settings: Settings) -> AsyncEngine:
    if settings.DATABASE_DSN.startswith("sqlite"):
        return create_async_engine(settings.DATABASE_DSN)
    return create_async_engine(settings.DATABASE_DSN, pool_pre_ping=True)

def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def init_models(engine: AsyncEngine, settings: Settings):
    # In "create_all" mode we own the schema; otherwise migrations do.
    if settings.DB_MANAGE == "create_all":
        import audiolink.modules.audio.models  # noqa: F401  registers tables on Base.metadata
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
