"""全局设置相关的Pydantic schemas"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, List, Optional, Tuple


class GlobalSettingsSnapshot(BaseModel):
    """Immutable view of the settings row, read once per turn."""
    model_config = ConfigDict(frozen=True)

    prompt: str = Field(..., description="Base system prompt")
    knowledge_base_sheet_ids: Tuple[str, ...] = Field(default=(), description="Knowledge-base sheet IDs")
    knowledge_base_urls: Tuple[str, ...] = Field(default=(), description="Knowledge-base web pages")
    knowledge_base_document_paths: Tuple[str, ...] = Field(default=(), description="Knowledge-base document paths")
    extraction_headers: Tuple[str, ...] = Field(default=(), description="Extraction fields, in export column order")
    target_spreadsheet_id: Optional[str] = Field(None, description="Export target sheet")


class PromptUpdate(BaseModel):
    prompt: str = Field(..., description="新的系统提示词")


class PromptResponse(BaseModel):
    prompt: str


class SheetReferenceUpdate(BaseModel):
    sheetId: str = Field(..., min_length=1, description="Google Sheet ID")
    action: Literal["add", "remove"]


class SheetReferenceResponse(BaseModel):
    success: bool = True
    sheetIds: List[str]


class UrlReferenceUpdate(BaseModel):
    url: str = Field(..., min_length=1, description="Web page URL")
    action: Literal["add", "remove"]


class UrlReferenceResponse(BaseModel):
    success: bool = True
    urls: List[str]


class DocumentReferenceUpdate(BaseModel):
    path: str = Field(..., min_length=1, description="Document file path")
    action: Literal["add", "remove"]


class DocumentReferenceResponse(BaseModel):
    success: bool = True
    paths: List[str]


class ExtractionSettingsResponse(BaseModel):
    headers: List[str]
    targetSpreadsheetId: Optional[str] = None


class ExtractionHeadersUpdate(BaseModel):
    headers: List[str] = Field(default_factory=list, description="Ordered extraction field names")


class ExtractionHeadersResponse(BaseModel):
    success: bool = True
    headers: List[str]


class TargetSpreadsheetUpdate(BaseModel):
    spreadsheetId: Optional[str] = Field(None, description="Export target; empty clears it")


class TargetSpreadsheetResponse(BaseModel):
    success: bool = True
    targetSpreadsheetId: Optional[str] = None
