"""应用配置"""
from pydantic_settings import BaseSettings
from pydantic import model_validator
from typing import List


class Settings(BaseSettings):
    """Process-level settings, read once at import time."""

    # 应用信息
    APP_NAME: str = "Knowledge Base Chat"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # 数据库配置
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/kbchat.db"

    # CORS配置
    CORS_ORIGINS: str = "*"

    # Completion backend
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    CHAT_MODEL: str = "gpt-4o"
    EXTRACTION_MODEL: str = "gpt-4o"
    COMPLETION_TIMEOUT_SEC: float = 60.0

    # Conversation
    MAX_ASSISTANT_CHARS: int = 500
    TRUNCATION_MARKER: str = "..."
    DEFAULT_SYSTEM_PROMPT: str = "You are a helpful assistant."
    SESSION_MAILBOX_SIZE: int = 16

    # Google Sheets (knowledge base + export target)
    SHEETS_API_BASE_URL: str = "https://sheets.googleapis.com/v4"
    SHEETS_ACCESS_TOKEN: str = ""
    SHEETS_API_KEY: str = ""
    KNOWLEDGE_SHEET_RANGE: str = "A:Z"
    EXPORT_SHEET_RANGE: str = "Sheet1!A:Z"
    SHEETS_TIMEOUT_SEC: float = 30.0

    # Web pages
    WEB_FETCH_TIMEOUT_SEC: float = 20.0
    WEB_FETCH_USER_AGENT: str = "kbchat/1.0 (+knowledge-base fetcher)"

    # Documents
    DOCUMENT_SUFFIXES: str = ".pdf"

    @model_validator(mode="before")
    @classmethod
    def treat_empty_env_as_unset(cls, data):
        """
        Treat empty-string environment values as "not configured".
        A blank entry in .env then keeps the declared default.
        """
        if not isinstance(data, dict):
            return data

        cleaned = dict(data)
        for field_name, field in cls.model_fields.items():
            default = field.default

            # 仅当字段本身有可用默认值时，空字符串才回退到默认值
            if default in (None, ""):
                continue

            if cleaned.get(field_name) == "":
                cleaned.pop(field_name, None)

        return cleaned

    @property
    def cors_origins_list(self) -> List[str]:
        """获取CORS允许的源列表"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def document_suffixes(self) -> List[str]:
        return [
            s.strip().lower() if s.strip().startswith(".") else f".{s.strip().lower()}"
            for s in self.DOCUMENT_SUFFIXES.split(",")
            if s.strip()
        ]

    class Config:
        env_file = (".env", "backend/.env")
        case_sensitive = True
        extra = "ignore"


# 全局配置实例
settings = Settings()
