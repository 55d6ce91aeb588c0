"""系统提示词工具"""
from typing import Dict, Iterable, List, Sequence

from kbchat.services.context.assembler import ContextBlock

CONTEXT_PREFIX = "Additional Context:\n"


def block_to_message(block: ContextBlock) -> Dict[str, str]:
    """Knowledge blocks carry the context prefix; the base prompt goes in as-is."""
    if block.kind == "prompt":
        return {"role": "system", "content": block.text}
    return {"role": "system", "content": f"{CONTEXT_PREFIX}{block.text}"}


def build_chat_messages(blocks: Sequence[ContextBlock], history: Iterable) -> List[Dict[str, str]]:
    """System blocks first, then the whole history in order, role preserved."""
    messages = [block_to_message(block) for block in blocks]
    for msg in history:
        messages.append({"role": msg.role, "content": msg.content})
    return messages


def build_extraction_instruction(headers: Sequence[str]) -> str:
    fields = ", ".join(headers)
    return (
        f"Analyze the following chat conversation and extract information for these specific fields: {fields}.\n"
        f"Format the response as a JSON object where each key must exactly match one of these field names: {fields}.\n"
        "If a field's information is not found in the conversation, set its value to an empty string.\n"
        "Only include the specified fields in the response."
    )


def build_transcript(history: Iterable) -> str:
    """Message contents joined by newlines, role-agnostic."""
    return "\n".join(msg.content for msg in history)
