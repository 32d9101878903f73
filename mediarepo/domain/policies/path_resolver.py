# mediarepo/domain/policies/path_resolver.py
"""
Pure mapping from (name, zone, archive timestamp, suffix) to storage paths
and URL paths. No I/O, no caching; identical inputs give identical strings.

Layout, relative to the zone root (``h`` is the hash path, e.g. ``f/fa/``):

    public                    h + name
    public  + timestamp       archive/ + h + <ts>!name
    archive                   archive/ + h[:-1]           (directory)
    archive + suffix          archive/ + h + suffix
    thumb|transcoded          h + name [+ / + suffix]
    any zone + timestamp      archive/ + h + <ts>!name [+ / + suffix]

The archive zone shares the public zone's root directory.
"""
from __future__ import annotations

import hashlib
from typing import Callable, Optional
from urllib.parse import quote

from mediarepo.common.timestamps import is_timestamp
from mediarepo.domain.enums.zone import Zone

ARCHIVE_DIR = "archive/"


def archive_name(timestamp: str, name: str) -> str:
    """Storage name of a superseded version: "<YYYYMMDDHHMMSS>!<name>"."""
    if not is_timestamp(timestamp):
        raise ValueError(f"archive timestamp must be 14 digits, got {timestamp!r}")
    return f"{timestamp}!{name}"


def _raw(segment: str) -> str:
    return segment


def _encode(segment: str) -> str:
    # Same set as PHP rawurlencode(): only A-Z a-z 0-9 - _ . ~ stay literal
    return quote(segment, safe="")


class PathResolver:
    def __init__(self, hash_levels: int = 2) -> None:
        if hash_levels < 0:
            raise ValueError("hash_levels must be >= 0")
        self.hash_levels = int(hash_levels)

    def hash_path(self, name: str) -> str:
        """
        Directory sharding prefix for `name`, with trailing '/', e.g. "f/fa/".
        Built from the md5 of the name: level i uses the first i+1 hex digits.
        Empty when hashing is disabled.
        """
        if not self.hash_levels:
            return ""
        digest = hashlib.md5(name.encode("utf-8")).hexdigest()
        return "".join(digest[: i + 1] + "/" for i in range(self.hash_levels))

    # ---- relative paths -------------------------------------------------------

    def rel_path(
        self,
        name: str,
        zone: Zone | str,
        archive_timestamp: Optional[str] = None,
        suffix: Optional[str] = None,
    ) -> str:
        """Path relative to the zone root. Segments are left as-is."""
        return self._build(name, Zone(zone), archive_timestamp, suffix, _raw)

    def url_rel_path(
        self,
        name: str,
        zone: Zone | str,
        archive_timestamp: Optional[str] = None,
        suffix: Optional[str] = None,
    ) -> str:
        """Like rel_path() but URL-encodes the name/suffix segments (hash segments stay literal)."""
        return self._build(name, Zone(zone), archive_timestamp, suffix, _encode)

    # ---- absolute forms -------------------------------------------------------

    def path(self, base_path: str, name: str, zone: Zone | str,
             archive_timestamp: Optional[str] = None, suffix: Optional[str] = None) -> str:
        return _join(base_path, self.rel_path(name, zone, archive_timestamp, suffix))

    def url(self, base_url: str, name: str, zone: Zone | str,
            archive_timestamp: Optional[str] = None, suffix: Optional[str] = None) -> str:
        return _join(base_url, self.url_rel_path(name, zone, archive_timestamp, suffix))

    # ---- internals --------------------------------------------------------------

    def _build(
        self,
        name: str,
        zone: Zone,
        archive_timestamp: Optional[str],
        suffix: Optional[str],
        enc: Callable[[str], str],
    ) -> str:
        hp = self.hash_path(name)
        if archive_timestamp is not None:
            path = ARCHIVE_DIR + hp + enc(archive_name(archive_timestamp, name))
            return path if suffix is None else f"{path}/{enc(suffix)}"
        if zone is Zone.archive:
            path = ARCHIVE_DIR + hp
            # directory form: no trailing separator
            return path[:-1] if suffix is None else path + enc(suffix)
        path = hp + enc(name)
        return path if suffix is None else f"{path}/{enc(suffix)}"


def _join(base: str, rel: str) -> str:
    return f"{base.rstrip('/')}/{rel}"
