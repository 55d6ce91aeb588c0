"""全局设置模型

Review note:
- Single row (id=1). List-valued columns are JSON text, decoded by the CRUD layer.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime

from kbchat.models.base import Base, utcnow

GLOBAL_SETTINGS_ID = 1


class GlobalSettings(Base):
    """全局设置表"""
    __tablename__ = "global_settings"

    id = Column(Integer, primary_key=True, default=GLOBAL_SETTINGS_ID)
    prompt = Column(Text, nullable=False)
    knowledge_base_sheet_ids = Column(Text, nullable=False, default="[]")
    knowledge_base_urls = Column(Text, nullable=False, default="[]")
    knowledge_base_document_paths = Column(Text, nullable=False, default="[]")
    extraction_headers = Column(Text, nullable=False, default="[]")
    target_spreadsheet_id = Column(String(200), nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<GlobalSettings {self.id}>"
