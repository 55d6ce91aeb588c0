"""文档内容缓存模型"""
from sqlalchemy import Column, String, Text, DateTime

from kbchat.models.base import Base, utcnow


class DocumentContent(Base):
    """Extracted document text keyed by file path, stamped with the file's mtime."""
    __tablename__ = "document_contents"

    file_path = Column(String(1024), primary_key=True)
    content = Column(Text, nullable=False)
    last_modified = Column(DateTime, nullable=False)
    extracted_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<DocumentContent {self.file_path}>"
