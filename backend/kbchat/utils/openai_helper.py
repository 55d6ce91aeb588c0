"""OpenAI辅助函数

Review note:
- Every backend error (transport, API status, empty or non-JSON output) is
  surfaced as CompletionFailure; callers never see openai exception types.
"""
from openai import AsyncOpenAI, OpenAIError
from typing import Any, Dict, List, Optional
import json
import logging

from httpx import Timeout

from kbchat.errors import CompletionFailure

logger = logging.getLogger("uvicorn.error")


class CompletionBackend:
    """Chat completion + structured extraction over the OpenAI API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "",
        chat_model: str = "gpt-4o",
        extraction_model: str = "gpt-4o",
        timeout_sec: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.chat_model = chat_model
        self.extraction_model = extraction_model or chat_model
        if client is not None:
            self._client = client
            return

        # 初始化客户端时只传递必要参数
        client_kwargs = {
            "api_key": api_key or "missing-api-key",
            "timeout": Timeout(timeout_sec),
            "max_retries": 0,
        }
        if base_url:
            client_kwargs["base_url"] = base_url
        self._client = AsyncOpenAI(**client_kwargs)

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """Send the full role-tagged message list, return the assistant text."""
        try:
            response = await self._client.chat.completions.create(
                model=self.chat_model,
                messages=messages,
            )
        except OpenAIError as e:
            raise CompletionFailure(f"completion request failed: {e}") from e

        content = _first_content(response)
        if content is None:
            raise CompletionFailure("completion returned no content")
        return content

    async def extract(self, instruction: str, transcript: str) -> Dict[str, Any]:
        """Ask for a flat JSON object and return it parsed."""
        try:
            response = await self._client.chat.completions.create(
                model=self.extraction_model,
                messages=[
                    {"role": "system", "content": instruction},
                    {"role": "user", "content": transcript},
                ],
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise CompletionFailure(f"extraction request failed: {e}") from e

        content = _first_content(response)
        if not content:
            raise CompletionFailure("extraction returned no content")
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as e:
            raise CompletionFailure("extraction returned invalid JSON") from e
        if not isinstance(payload, dict):
            raise CompletionFailure("extraction returned a non-object JSON value")
        return payload


def _first_content(response) -> Optional[str]:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)
