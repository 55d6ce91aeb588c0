"""文档内容缓存的CRUD操作"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from typing import Iterable, Optional
from datetime import datetime

from kbchat.models.base import utcnow
from kbchat.models.document import DocumentContent


class CRUDDocumentContent:
    """文档缓存CRUD操作"""

    async def get(self, db: AsyncSession, file_path: str) -> Optional[DocumentContent]:
        result = await db.execute(
            select(DocumentContent).where(DocumentContent.file_path == file_path)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        db: AsyncSession,
        file_path: str,
        content: str,
        last_modified: datetime,
    ) -> DocumentContent:
        """Insert or replace in one statement; concurrent writers of one path never collide."""
        stmt = sqlite_insert(DocumentContent).values(
            file_path=file_path,
            content=content,
            last_modified=last_modified,
            extracted_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DocumentContent.file_path],
            set_={
                "content": stmt.excluded.content,
                "last_modified": stmt.excluded.last_modified,
                "extracted_at": stmt.excluded.extracted_at,
            },
        )
        await db.execute(stmt)
        await db.commit()
        result = await db.execute(
            select(DocumentContent)
            .where(DocumentContent.file_path == file_path)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def delete_many(self, db: AsyncSession, file_paths: Iterable[str]) -> int:
        paths = list(file_paths)
        if not paths:
            return 0
        result = await db.execute(
            delete(DocumentContent).where(DocumentContent.file_path.in_(paths))
        )
        await db.commit()
        return result.rowcount or 0


# 创建实例
document_crud = CRUDDocumentContent()
