"""会话相关的Pydantic schemas"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal
from datetime import datetime

Role = Literal["system", "user", "assistant"]


class MessageResponse(BaseModel):
    """消息响应"""
    model_config = ConfigDict(from_attributes=True)

    session_key: str
    seq: int
    role: Role
    content: str
    timestamp: datetime


class MessageListResponse(BaseModel):
    messages: List[MessageResponse]


class SessionSummary(BaseModel):
    """会话列表项"""
    sessionId: str
    createdAt: datetime
    messageCount: int = Field(default=0, description="消息数量")


class SessionListResponse(BaseModel):
    sessions: List[SessionSummary]


class SessionDeleteResponse(BaseModel):
    success: bool = True
    ended: bool = Field(..., description="Whether this call ran the teardown cycle")


class VariableResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_key: str
    variable_name: str
    variable_value: str
    timestamp: datetime


class VariableListResponse(BaseModel):
    variables: List[VariableResponse]
