"""消息模型"""
from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship

from kbchat.models.base import Base, utcnow


class Message(Base):
    """消息表"""
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_key = Column(
        String(64),
        ForeignKey("chat_sessions.session_key", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    seq = Column(Integer, nullable=False)  # append order within the session
    role = Column(String(20), nullable=False)  # system, user, assistant
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    # 关系
    session = relationship("ChatSession", back_populates="messages")

    # 约束
    __table_args__ = (
        CheckConstraint("role IN ('user', 'assistant', 'system')", name="check_role"),
        UniqueConstraint("session_key", "seq", name="uq_message_session_seq"),
    )

    def __repr__(self):
        return f"<Message {self.role}: {self.content[:50]}...>"
