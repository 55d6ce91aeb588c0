"""会话管理API"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from kbchat.api.deps import get_hub
from kbchat.crud.session import message_crud, session_crud
from kbchat.crud.variable import variable_crud
from kbchat.database import get_session
from kbchat.schemas.session import (
    MessageListResponse,
    MessageResponse,
    SessionDeleteResponse,
    SessionListResponse,
    SessionSummary,
    VariableListResponse,
    VariableResponse,
)
from kbchat.services.conversation.hub import SessionHub

router = APIRouter()


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(db: AsyncSession = Depends(get_session)):
    """获取活动会话列表"""
    rows = await session_crud.get_all_with_counts(db)
    return SessionListResponse(
        sessions=[
            SessionSummary(
                sessionId=chat_session.session_key,
                createdAt=chat_session.created_at,
                messageCount=count,
            )
            for chat_session, count in rows
        ]
    )


@router.get("/sessions/{session_key}/messages", response_model=MessageListResponse)
async def get_session_messages(session_key: str, db: AsyncSession = Depends(get_session)):
    """获取会话消息（按追加顺序）"""
    if not await session_crud.get(db, session_key):
        raise HTTPException(status_code=404, detail="Session not found")
    rows = await message_crud.get_by_session(db, session_key)
    return MessageListResponse(messages=[MessageResponse.model_validate(row) for row in rows])


@router.delete("/sessions/{session_key}", response_model=SessionDeleteResponse)
async def delete_session(session_key: str, hub: SessionHub = Depends(get_hub)):
    """结束会话：提取变量、导出，然后删除"""
    ended = await hub.end_session(session_key)
    return SessionDeleteResponse(success=True, ended=ended)


@router.get("/sessions/{session_key}/variables", response_model=VariableListResponse)
async def get_session_variables(session_key: str, db: AsyncSession = Depends(get_session)):
    """获取会话的提取变量（最新在前）"""
    rows = await variable_crud.get_by_session(db, session_key)
    return VariableListResponse(variables=[VariableResponse.model_validate(row) for row in rows])
