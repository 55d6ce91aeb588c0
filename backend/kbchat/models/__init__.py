"""模型包初始化"""
from kbchat.models.base import Base
from kbchat.models.session import ChatSession
from kbchat.models.message import Message
from kbchat.models.settings import GlobalSettings, GLOBAL_SETTINGS_ID
from kbchat.models.variable import ChatVariable
from kbchat.models.document import DocumentContent

__all__ = [
    "Base",
    "ChatSession",
    "Message",
    "GlobalSettings",
    "GLOBAL_SETTINGS_ID",
    "ChatVariable",
    "DocumentContent",
]
