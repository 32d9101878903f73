# mediarepo/services/purge/edge_cache.py
from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urlsplit

import httpx

from mediarepo.common.logging import get_logger
from mediarepo.common.settings import EdgeCacheConfig

logger = get_logger(__name__)


class HttpEdgeCachePurger:
    """
    Sends an HTTP PURGE for each URL to every configured cache server.

    Server-relative URLs are expanded against `server_url`; the request goes
    to the cache server with the original Host header.
    """

    def __init__(self, config: EdgeCacheConfig, server_url: str = "http://localhost",
                 client: Optional[httpx.Client] = None) -> None:
        self.config = config
        self.server_url = server_url.rstrip("/")
        self._client = client

    def _expand(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        if url.startswith("//"):
            return f"{urlsplit(self.server_url).scheme or 'http'}:{url}"
        return f"{self.server_url}/{url.lstrip('/')}"

    def purge(self, urls: Iterable[str]) -> int:
        """Returns the number of PURGE requests the servers accepted."""
        if not self.config.enabled or not self.config.servers:
            return 0
        urls = list(dict.fromkeys(u for u in urls if u))
        if not urls:
            return 0

        client = self._client or httpx.Client(timeout=self.config.timeout_sec)
        done = 0
        try:
            for url in urls:
                parts = urlsplit(self._expand(url))
                target = parts.path + (f"?{parts.query}" if parts.query else "")
                for server in self.config.servers:
                    try:
                        resp = client.request("PURGE", f"http://{server}{target}",
                                              headers={"Host": parts.netloc})
                    except httpx.RequestError as e:
                        logger.warning("PURGE %s via %s failed: %s", url, server, e)
                        continue
                    if resp.status_code >= 400 and resp.status_code != 404:
                        logger.warning("PURGE %s via %s returned %d", url, server, resp.status_code)
                        continue
                    done += 1
        finally:
            if self._client is None:
                client.close()
        logger.debug("purged %d url(s) on %d server(s)", len(urls), len(self.config.servers))
        return done
