"""重建数据库并写入默认全局设置。

Review note:
- 删除 sqlite 文件后按当前模型重建全部表。
- GlobalSettings 重置为默认提示词，知识库与提取字段为空。
"""
import asyncio
import sys
from pathlib import Path
from urllib.parse import unquote

# 添加项目根目录到Python路径
sys.path.insert(0, str(Path(__file__).parent.parent))

from kbchat.config import settings
from kbchat.database import init_db


def _db_file_from_url(url: str) -> Path:
    """从 sqlite+aiosqlite URL 提取文件路径。"""
    prefix = "sqlite+aiosqlite:///"
    if not url.startswith(prefix):
        raise ValueError(f"only sqlite+aiosqlite file databases can be rebuilt, got: {url}")
    raw_path = unquote(url[len(prefix):]).strip()
    if not raw_path:
        raise ValueError("DATABASE_URL has no file path")
    return Path(raw_path)


async def rebuild_db() -> Path:
    db_path = _db_file_from_url(settings.DATABASE_URL).resolve()

    for p in (
        db_path,
        db_path.with_suffix(db_path.suffix + "-wal"),
        db_path.with_suffix(db_path.suffix + "-shm"),
    ):
        if p.exists():
            p.unlink()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    await init_db()
    return db_path


if __name__ == "__main__":
    print("=" * 60)
    print(f"{settings.APP_NAME} - rebuild database")
    print("=" * 60)

    path = asyncio.run(rebuild_db())

    print(f"\nrebuilt: {path}")
    print("   run: uvicorn kbchat.main:app --reload --port 5000")
    print("=" * 60)
