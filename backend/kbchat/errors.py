"""Error taxonomy shared by the orchestration core and its adapters."""

from __future__ import annotations


class KbChatError(RuntimeError):
    """Base class for every error raised by the chat core."""


class ConfigurationAbsent(KbChatError):
    """Raised when the GlobalSettings row does not exist."""


class DuplicateSession(KbChatError):
    """Raised when creating a session whose key is already active."""

    def __init__(self, session_key: str) -> None:
        super().__init__(f"session already active: {session_key}")
        self.session_key = session_key


class UnknownSession(KbChatError):
    """Raised when an operation targets a session that is not active."""

    def __init__(self, session_key: str) -> None:
        super().__init__(f"no active session: {session_key}")
        self.session_key = session_key


class SourceUnavailable(KbChatError):
    """Raised when a knowledge source is missing, inaccessible or unreadable."""


class TransientFailure(KbChatError):
    """Raised when an external service fails in a way that may succeed later."""


class CompletionFailure(KbChatError):
    """Raised when the completion backend call fails or returns unusable output."""


class ExportFailure(KbChatError):
    """Raised when writing the extracted row to the target sheet fails."""
