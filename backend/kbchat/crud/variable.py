"""提取变量的CRUD操作"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Dict, List, Mapping

from kbchat.models.base import utcnow
from kbchat.models.variable import ChatVariable


class CRUDChatVariable:
    """提取变量CRUD操作"""

    async def create_many(
        self,
        db: AsyncSession,
        session_key: str,
        values: Mapping[str, str],
    ) -> List[ChatVariable]:
        """Append one record per field. Existing records are left untouched."""
        now = utcnow()
        rows = [
            ChatVariable(
                session_key=session_key,
                variable_name=name,
                variable_value=value,
                timestamp=now,
            )
            for name, value in values.items()
        ]
        db.add_all(rows)
        await db.commit()
        return rows

    async def get_by_session(self, db: AsyncSession, session_key: str) -> List[ChatVariable]:
        """获取会话的全部变量（最新在前）"""
        result = await db.execute(
            select(ChatVariable)
            .where(ChatVariable.session_key == session_key)
            .order_by(ChatVariable.timestamp.desc(), ChatVariable.id.desc())
        )
        return list(result.scalars().all())

    async def latest_values(self, db: AsyncSession, session_key: str) -> Dict[str, str]:
        """Most recent value per field name."""
        latest: Dict[str, str] = {}
        for row in await self.get_by_session(db, session_key):
            latest.setdefault(row.variable_name, row.variable_value)
        return latest


# 创建实例
variable_crud = CRUDChatVariable()
