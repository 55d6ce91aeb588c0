"""Schemas包初始化"""
from kbchat.schemas.settings import (
    GlobalSettingsSnapshot,
    PromptUpdate,
    PromptResponse,
    SheetReferenceUpdate,
    SheetReferenceResponse,
    UrlReferenceUpdate,
    UrlReferenceResponse,
    DocumentReferenceUpdate,
    DocumentReferenceResponse,
    ExtractionSettingsResponse,
    ExtractionHeadersUpdate,
    ExtractionHeadersResponse,
    TargetSpreadsheetUpdate,
    TargetSpreadsheetResponse,
)
from kbchat.schemas.session import (
    MessageResponse,
    MessageListResponse,
    SessionSummary,
    SessionListResponse,
    SessionDeleteResponse,
    VariableResponse,
    VariableListResponse,
)

__all__ = [
    # Settings schemas
    "GlobalSettingsSnapshot",
    "PromptUpdate",
    "PromptResponse",
    "SheetReferenceUpdate",
    "SheetReferenceResponse",
    "UrlReferenceUpdate",
    "UrlReferenceResponse",
    "DocumentReferenceUpdate",
    "DocumentReferenceResponse",
    "ExtractionSettingsResponse",
    "ExtractionHeadersUpdate",
    "ExtractionHeadersResponse",
    "TargetSpreadsheetUpdate",
    "TargetSpreadsheetResponse",
    # Session schemas
    "MessageResponse",
    "MessageListResponse",
    "SessionSummary",
    "SessionListResponse",
    "SessionDeleteResponse",
    "VariableResponse",
    "VariableListResponse",
]
