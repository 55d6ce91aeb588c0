"""提取变量模型"""
from sqlalchemy import Column, Integer, String, Text, DateTime

from kbchat.models.base import Base, utcnow


class ChatVariable(Base):
    """Extracted field values. Rows accumulate; the newest per field wins on export."""
    __tablename__ = "chat_variables"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_key = Column(String(64), nullable=False, index=True)
    variable_name = Column(String(200), nullable=False)
    variable_value = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<ChatVariable {self.session_key}:{self.variable_name}>"
