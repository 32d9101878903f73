# mediarepo/domain/ports/purge.py
from __future__ import annotations

from typing import Iterable, Protocol

from mediarepo.domain.dataclasses.events import DerivativeEvent


class EdgeCachePurgerPort(Protocol):
    def purge(self, urls: Iterable[str]) -> int: ...


class PageCacheInvalidatorPort(Protocol):
    """Rendered-page cache owned by the wiki layer."""

    def invalidate(self, name: str) -> None: ...
    def invalidate_backlinks(self, name: str) -> None: ...


class DerivativeObserver(Protocol):
    def on_derivative_produced(self, event: DerivativeEvent) -> None: ...
