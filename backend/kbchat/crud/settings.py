"""全局设置的CRUD操作"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Iterable, List, Optional
import json

from kbchat.errors import ConfigurationAbsent
from kbchat.models.settings import GlobalSettings, GLOBAL_SETTINGS_ID
from kbchat.schemas.settings import GlobalSettingsSnapshot

LIST_FIELDS = (
    "knowledge_base_sheet_ids",
    "knowledge_base_urls",
    "knowledge_base_document_paths",
    "extraction_headers",
)


def _load_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        out.append(item)
    return out


def to_snapshot(row: GlobalSettings) -> GlobalSettingsSnapshot:
    return GlobalSettingsSnapshot(
        prompt=row.prompt or "",
        knowledge_base_sheet_ids=tuple(_load_list(row.knowledge_base_sheet_ids)),
        knowledge_base_urls=tuple(_load_list(row.knowledge_base_urls)),
        knowledge_base_document_paths=tuple(_load_list(row.knowledge_base_document_paths)),
        extraction_headers=tuple(_load_list(row.extraction_headers)),
        target_spreadsheet_id=row.target_spreadsheet_id or None,
    )


class CRUDGlobalSettings:
    """全局设置CRUD操作（单行）"""

    async def get(self, db: AsyncSession) -> Optional[GlobalSettings]:
        result = await db.execute(
            select(GlobalSettings).where(GlobalSettings.id == GLOBAL_SETTINGS_ID)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, db: AsyncSession, default_prompt: str) -> GlobalSettings:
        row = await self.get(db)
        if row:
            return row
        row = GlobalSettings(
            id=GLOBAL_SETTINGS_ID,
            prompt=default_prompt,
            knowledge_base_sheet_ids="[]",
            knowledge_base_urls="[]",
            knowledge_base_document_paths="[]",
            extraction_headers="[]",
            target_spreadsheet_id=None,
        )
        db.add(row)
        await db.commit()
        await db.refresh(row)
        return row

    async def snapshot(self, db: AsyncSession) -> GlobalSettingsSnapshot:
        """Read the row as an immutable snapshot; raises ConfigurationAbsent if missing."""
        row = await self.get(db)
        if not row:
            raise ConfigurationAbsent("global settings not found")
        return to_snapshot(row)

    async def update(self, db: AsyncSession, **fields) -> GlobalSettingsSnapshot:
        """
        Replace the given fields in one commit (last write wins).

        List fields are de-duplicated, keeping first occurrence order.
        """
        row = await self.get(db)
        if not row:
            raise ConfigurationAbsent("global settings not found")

        for name, value in fields.items():
            if name in LIST_FIELDS:
                setattr(row, name, json.dumps(_dedupe(str(v) for v in value or []), ensure_ascii=False))
            elif name in ("prompt", "target_spreadsheet_id"):
                setattr(row, name, value)
            else:
                raise AttributeError(f"unknown settings field: {name}")

        await db.commit()
        await db.refresh(row)
        return to_snapshot(row)

    async def add_reference(self, db: AsyncSession, field: str, value: str) -> GlobalSettingsSnapshot:
        current = getattr(await self.snapshot(db), field)
        if value in current:
            return await self.snapshot(db)
        return await self.update(db, **{field: [*current, value]})

    async def remove_reference(self, db: AsyncSession, field: str, value: str) -> GlobalSettingsSnapshot:
        current = getattr(await self.snapshot(db), field)
        return await self.update(db, **{field: [v for v in current if v != value]})


# 创建实例
global_settings_crud = CRUDGlobalSettings()
