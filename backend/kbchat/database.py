"""数据库连接和会话管理

Review note:
- Single database: sessions, messages, extracted variables, the settings singleton
  and the document text cache all live together.
- The GlobalSettings row (id=1) is find-or-created at startup.
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from typing import AsyncGenerator

from kbchat.config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite needs cross-thread access for aiosqlite."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_async_engine(database_url, connect_args=connect_args, echo=echo)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
async_session_maker = build_session_maker(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话的依赖注入函数"""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(
    bind: AsyncEngine = None,
    session_maker: async_sessionmaker[AsyncSession] = None,
) -> None:
    """初始化数据库表并确保 GlobalSettings 单行存在"""
    from kbchat.models import Base
    from kbchat.crud.settings import global_settings_crud

    bind = bind or engine
    session_maker = session_maker or async_session_maker

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_maker() as db:
        await global_settings_crud.get_or_create(db, default_prompt=settings.DEFAULT_SYSTEM_PROMPT)
