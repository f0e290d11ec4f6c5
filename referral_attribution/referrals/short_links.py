from __future__ import annotations

from typing import Protocol
from urllib.parse import quote, urlencode


class ShortLinkProvider(Protocol):
    async def shorten(self, *, code: str, campaign: str) -> str: ...


class MockShortLinkProvider:
    """Stands in for the third-party deep-link service."""

    def __init__(self, base_url: str) -> None:
        self._base_url = base_url.rstrip("/")

    async def shorten(self, *, code: str, campaign: str) -> str:
        query = urlencode({"utm_source": campaign})
        return f"{self._base_url}/i/{quote(code)}?{query}"
