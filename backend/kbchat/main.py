"""FastAPI应用主文件."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

from kbchat.config import settings
from kbchat.database import async_session_maker, init_db
from kbchat.services.factory import build_services
from kbchat.services.sources.document_reader import prune_missing_documents

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("starting %s %s", settings.APP_NAME, settings.APP_VERSION)

    # 确保必要的目录存在
    os.makedirs("data", exist_ok=True)

    # 初始化数据库
    await init_db()
    async with async_session_maker() as db:
        await prune_missing_documents(db)

    app.state.services = build_services(settings, async_session_maker)
    logger.info("database ready, session hub started")

    yield

    await app.state.services.hub.shutdown()
    logger.info("shutting down %s", settings.APP_NAME)


# 创建FastAPI应用
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Knowledge-base assistant chat service",
    lifespan=lifespan,
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """健康检查"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


# 导入并注册路由
from kbchat.api.v1 import chat_ws, sessions, settings as settings_api
app.include_router(chat_ws.router, tags=["chat"])
app.include_router(sessions.router, prefix="/api", tags=["sessions"])
app.include_router(settings_api.router, prefix="/api", tags=["settings"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "kbchat.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "5000")),
        reload=settings.DEBUG,
    )
