# mediarepo/services/purge/cache_purger.py
from __future__ import annotations

from typing import List, Optional
from urllib.parse import quote

from mediarepo.common.logging import get_logger
from mediarepo.domain.entities.media_identity import MediaIdentity
from mediarepo.domain.ports.purge import EdgeCachePurgerPort, PageCacheInvalidatorPort
from mediarepo.services.storage.local_repo import LocalFileRepo

logger = get_logger(__name__)


class CachePurger:
    """
    Invalidates what depends on a file when it changes: its stored
    thumbnails, the cached description page, and pages that embed it.
    """

    def __init__(
        self,
        repo: LocalFileRepo,
        edge: Optional[EdgeCachePurgerPort] = None,
        pages: Optional[PageCacheInvalidatorPort] = None,
        description_base_url: Optional[str] = None,
    ) -> None:
        self.repo = repo
        self.edge = edge
        self.pages = pages
        self.description_base_url = description_base_url

    def description_url(self, identity: MediaIdentity) -> Optional[str]:
        if not self.description_base_url:
            return None
        return f"{self.description_base_url}{quote(identity.name, safe='')}"

    def purge_thumbnails(self, identity: MediaIdentity) -> List[str]:
        """Delete every stored derivative and purge their URLs. Returns the names removed."""
        names = self.repo.list_thumbnails(identity)
        if not names:
            return []
        urls = [identity.get_thumb_url(n) for n in names]
        removed = self.repo.delete_thumbnails(identity, names)
        if self.edge is not None:
            self.edge.purge(urls)
        return removed

    def purge_description(self, identity: MediaIdentity) -> None:
        """Refresh the description page only (e.g. after a history-only change)."""
        if self.pages is not None:
            self.pages.invalidate(identity.name)
        url = self.description_url(identity)
        if url and self.edge is not None:
            self.edge.purge([url])

    def purge_everything(self, identity: MediaIdentity) -> None:
        """The file was created, deleted or substantially changed."""
        removed = self.purge_thumbnails(identity)
        self.purge_description(identity)
        if self.pages is not None:
            self.pages.invalidate_backlinks(identity.name)
        logger.info("purged %s (%d thumbnail(s))", identity.name, len(removed))
