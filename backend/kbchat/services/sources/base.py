"""Common shape of a knowledge source."""

from __future__ import annotations


class ContextSource:
    """
    Turns one external reference into plain text.

    Subclasses set `label` (the heading of the assembled block) and implement
    `fetch`; `describe` names a single reference inside that block.
    """

    kind: str = "source"
    label: str = "Knowledge Base:"

    async def fetch(self, reference: str) -> str:
        raise NotImplementedError

    def describe(self, reference: str) -> str:
        return f"Content from {reference}:"
