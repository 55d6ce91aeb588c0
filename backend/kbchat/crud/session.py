"""会话和消息的CRUD操作

Review note:
- Messages carry a per-session `seq` plus a timestamp clamped to be no earlier
  than the previous message, so (timestamp, seq) order equals append order.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from typing import Optional, List, Tuple

from kbchat.models.base import utcnow
from kbchat.models.session import ChatSession
from kbchat.models.message import Message


class CRUDSession:
    """会话CRUD操作"""

    async def get(self, db: AsyncSession, session_key: str) -> Optional[ChatSession]:
        """获取单个会话"""
        result = await db.execute(
            select(ChatSession).where(ChatSession.session_key == session_key)
        )
        return result.scalar_one_or_none()

    async def get_all_with_counts(self, db: AsyncSession) -> List[Tuple[ChatSession, int]]:
        """获取所有会话及其消息数量"""
        result = await db.execute(
            select(ChatSession, func.count(Message.id))
            .outerjoin(Message, Message.session_key == ChatSession.session_key)
            .group_by(ChatSession.session_key)
            .order_by(ChatSession.created_at)
        )
        return [(row[0], int(row[1] or 0)) for row in result.all()]

    async def create(self, db: AsyncSession, session_key: str) -> ChatSession:
        """创建会话"""
        db_obj = ChatSession(session_key=session_key)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def delete(self, db: AsyncSession, session_key: str) -> bool:
        """删除会话及其全部消息"""
        await db.execute(delete(Message).where(Message.session_key == session_key))
        result = await db.execute(
            delete(ChatSession).where(ChatSession.session_key == session_key)
        )
        await db.commit()
        return result.rowcount > 0


class CRUDMessage:
    """消息CRUD操作"""

    async def get_by_session(self, db: AsyncSession, session_key: str) -> List[Message]:
        """获取会话的所有消息（按追加顺序）"""
        result = await db.execute(
            select(Message)
            .where(Message.session_key == session_key)
            .order_by(Message.timestamp, Message.seq)
        )
        return list(result.scalars().all())

    async def get_last(self, db: AsyncSession, session_key: str) -> Optional[Message]:
        result = await db.execute(
            select(Message)
            .where(Message.session_key == session_key)
            .order_by(Message.seq.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        db: AsyncSession,
        session_key: str,
        role: str,
        content: str,
    ) -> Message:
        """追加消息"""
        last = await self.get_last(db, session_key)
        now = utcnow()
        if last is not None and last.timestamp > now:
            now = last.timestamp

        db_obj = Message(
            session_key=session_key,
            seq=(last.seq + 1) if last is not None else 0,
            role=role,
            content=content,
            timestamp=now,
        )
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj


# 创建实例
session_crud = CRUDSession()
message_crud = CRUDMessage()
