# mediarepo/services/handlers/registry.py
from __future__ import annotations

from functools import lru_cache
from typing import Dict, Iterable, List, Optional

from mediarepo.domain.ports.handler import MediaHandlerPort
from mediarepo.services.handlers.bitmap import BitmapHandler


class HandlerRegistry:
    """MIME type -> handler lookup (implements HandlerLookupPort)."""

    def __init__(self) -> None:
        self._by_mime: Dict[str, MediaHandlerPort] = {}

    def register(self, handler: MediaHandlerPort, mime_types: Optional[Iterable[str]] = None) -> None:
        for mime in mime_types or getattr(handler, "mime_types", ()):
            self._by_mime[mime.lower()] = handler

    def get_handler(self, mime: str) -> Optional[MediaHandlerPort]:
        return self._by_mime.get((mime or "").lower())

    def mime_types(self) -> List[str]:
        return sorted(self._by_mime)


@lru_cache(maxsize=1)
def get_handler_registry() -> HandlerRegistry:
    """Registry with the built-in handlers."""
    reg = HandlerRegistry()
    reg.register(BitmapHandler())
    return reg
