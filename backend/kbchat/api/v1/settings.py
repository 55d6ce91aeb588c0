"""全局设置API

Review note:
- Each update replaces the settings row in one commit (last write wins);
  running turns pick the change up on their next snapshot.
- Adding a knowledge reference validates it first; 400 when unusable.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from kbchat.api.deps import get_services
from kbchat.crud.settings import global_settings_crud
from kbchat.database import get_session
from kbchat.errors import ConfigurationAbsent, SourceUnavailable, TransientFailure
from kbchat.schemas.settings import (
    DocumentReferenceResponse,
    DocumentReferenceUpdate,
    ExtractionHeadersResponse,
    ExtractionHeadersUpdate,
    ExtractionSettingsResponse,
    PromptResponse,
    PromptUpdate,
    SheetReferenceResponse,
    SheetReferenceUpdate,
    TargetSpreadsheetResponse,
    TargetSpreadsheetUpdate,
    UrlReferenceResponse,
    UrlReferenceUpdate,
)
from kbchat.services.factory import Services
from kbchat.services.sources.document_reader import prune_missing_documents

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


async def load_snapshot(db: AsyncSession):
    try:
        return await global_settings_crud.snapshot(db)
    except ConfigurationAbsent:
        raise HTTPException(status_code=404, detail="Global settings not found")


@router.get("/prompt", response_model=PromptResponse)
async def get_prompt(db: AsyncSession = Depends(get_session)):
    snapshot = await load_snapshot(db)
    return PromptResponse(prompt=snapshot.prompt)


@router.post("/prompt")
async def update_prompt(body: PromptUpdate, db: AsyncSession = Depends(get_session)):
    await load_snapshot(db)
    await global_settings_crud.update(db, prompt=body.prompt)
    return {"success": True}


@router.get("/knowledge-base", response_model=SheetReferenceResponse)
async def get_knowledge_base(db: AsyncSession = Depends(get_session)):
    snapshot = await load_snapshot(db)
    return SheetReferenceResponse(sheetIds=list(snapshot.knowledge_base_sheet_ids))


@router.post("/knowledge-base", response_model=SheetReferenceResponse)
async def update_knowledge_base(
    body: SheetReferenceUpdate,
    db: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    await load_snapshot(db)
    field = "knowledge_base_sheet_ids"
    if body.action == "add":
        try:
            await services.sheets.check_access(body.sheetId)
        except (SourceUnavailable, TransientFailure) as exc:
            logger.warning("sheet-validation-failed sheet=%s error=%s", body.sheetId, exc)
            raise HTTPException(status_code=400, detail="Invalid or inaccessible Google Sheet ID")
        snapshot = await global_settings_crud.add_reference(db, field, body.sheetId)
    else:
        snapshot = await global_settings_crud.remove_reference(db, field, body.sheetId)
    return SheetReferenceResponse(sheetIds=list(snapshot.knowledge_base_sheet_ids))


@router.get("/knowledge-base-url", response_model=UrlReferenceResponse)
async def get_knowledge_base_urls(db: AsyncSession = Depends(get_session)):
    snapshot = await load_snapshot(db)
    return UrlReferenceResponse(urls=list(snapshot.knowledge_base_urls))


@router.post("/knowledge-base-url", response_model=UrlReferenceResponse)
async def update_knowledge_base_urls(
    body: UrlReferenceUpdate,
    db: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    await load_snapshot(db)
    field = "knowledge_base_urls"
    if body.action == "add":
        try:
            await services.webpages.fetch_page(body.url)
        except SourceUnavailable as exc:
            logger.warning("url-validation-failed url=%s error=%s", body.url, exc)
            raise HTTPException(status_code=400, detail="Invalid or inaccessible URL")
        snapshot = await global_settings_crud.add_reference(db, field, body.url)
    else:
        snapshot = await global_settings_crud.remove_reference(db, field, body.url)
    return UrlReferenceResponse(urls=list(snapshot.knowledge_base_urls))


@router.get("/knowledge-base-document", response_model=DocumentReferenceResponse)
async def get_knowledge_base_documents(db: AsyncSession = Depends(get_session)):
    await load_snapshot(db)
    await prune_missing_documents(db)
    snapshot = await global_settings_crud.snapshot(db)
    return DocumentReferenceResponse(paths=list(snapshot.knowledge_base_document_paths))


@router.post("/knowledge-base-document", response_model=DocumentReferenceResponse)
async def update_knowledge_base_documents(
    body: DocumentReferenceUpdate,
    db: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    await load_snapshot(db)
    field = "knowledge_base_document_paths"
    if body.action == "add":
        try:
            await services.documents.fetch(body.path)
        except SourceUnavailable as exc:
            logger.warning("document-validation-failed path=%s error=%s", body.path, exc)
            raise HTTPException(status_code=400, detail="Invalid or unreadable document")
        snapshot = await global_settings_crud.add_reference(db, field, body.path)
    else:
        snapshot = await global_settings_crud.remove_reference(db, field, body.path)
    return DocumentReferenceResponse(paths=list(snapshot.knowledge_base_document_paths))


@router.get("/extraction-settings", response_model=ExtractionSettingsResponse)
async def get_extraction_settings(db: AsyncSession = Depends(get_session)):
    snapshot = await load_snapshot(db)
    return ExtractionSettingsResponse(
        headers=list(snapshot.extraction_headers),
        targetSpreadsheetId=snapshot.target_spreadsheet_id,
    )


@router.post("/extraction-headers", response_model=ExtractionHeadersResponse)
async def update_extraction_headers(body: ExtractionHeadersUpdate, db: AsyncSession = Depends(get_session)):
    previous = await load_snapshot(db)
    headers = [h.strip() for h in body.headers if h and h.strip()]
    snapshot = await global_settings_crud.update(db, extraction_headers=headers)
    logger.info(
        "extraction-headers-updated previous=%s new=%s",
        ",".join(previous.extraction_headers),
        ",".join(snapshot.extraction_headers),
    )
    return ExtractionHeadersResponse(headers=list(snapshot.extraction_headers))


@router.post("/target-spreadsheet", response_model=TargetSpreadsheetResponse)
async def update_target_spreadsheet(
    body: TargetSpreadsheetUpdate,
    db: AsyncSession = Depends(get_session),
    services: Services = Depends(get_services),
):
    await load_snapshot(db)
    spreadsheet_id = (body.spreadsheetId or "").strip() or None
    if spreadsheet_id:
        try:
            await services.sheets.check_access(spreadsheet_id)
        except (SourceUnavailable, TransientFailure) as exc:
            logger.warning("sheet-validation-failed sheet=%s error=%s", spreadsheet_id, exc)
            raise HTTPException(status_code=400, detail="Invalid or inaccessible Google Sheet ID")
    snapshot = await global_settings_crud.update(db, target_spreadsheet_id=spreadsheet_id)
    return TargetSpreadsheetResponse(targetSpreadsheetId=snapshot.target_spreadsheet_id)
