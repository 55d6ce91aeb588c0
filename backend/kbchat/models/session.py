"""聊天会话模型"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from kbchat.models.base import Base, utcnow


class ChatSession(Base):
    """One row per live client connection, keyed by the opaque session key."""
    __tablename__ = "chat_sessions"

    session_key = Column(String(64), primary_key=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # 关系
    messages = relationship(
        "Message",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="Message.seq",
    )

    def __repr__(self):
        return f"<ChatSession {self.session_key}>"
