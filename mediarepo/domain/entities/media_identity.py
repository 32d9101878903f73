# mediarepo/domain/entities/media_identity.py
from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Any, Collection, Dict, Iterable, Mapping, Optional, Tuple
from urllib.parse import quote, urlencode

from mediarepo.domain.enums.flags import DeletedField, ThumbNameFlags
from mediarepo.domain.enums.media_type import MediaType
from mediarepo.domain.enums.zone import Zone
from mediarepo.domain.errors import RepoNotDefinedError
from mediarepo.domain.policies.derivative_namer import derivative_name
from mediarepo.domain.policies.disposition import make_content_disposition
from mediarepo.domain.policies.extensions import extension_from_name, extension_from_path
from mediarepo.domain.policies.path_resolver import PathResolver, archive_name
from mediarepo.domain.policies.titles import normalize_title
from mediarepo.domain.ports.handler import HandlerLookupPort, MediaHandlerPort
from mediarepo.domain.ports.storage import StorageRepositoryPort


_MISSING = object()


class MediaIdentity:
    """
    The logical media asset: a normalized name inside a repository, plus the
    properties known about the stored file (MIME type, dimensions, size...).

    The name is fixed at construction. Derived values (extension, handler,
    can_render, hash path, page count, local reference) are computed at most
    once per instance; build a new instance to see changed stored data.

    Storage-dependent methods raise RepoNotDefinedError when no repository
    was given.
    """

    def __init__(
        self,
        name: str,
        repo: Optional[StorageRepositoryPort] = None,
        *,
        handlers: Optional[HandlerLookupPort] = None,
        mime_type: str = "unknown/unknown",
        width: Optional[int] = None,
        height: Optional[int] = None,
        page_sizes: Optional[Mapping[int, Tuple[int, int]]] = None,
        size_bytes: Optional[int] = None,
        timestamp: Optional[str] = None,
        sha1: Optional[str] = None,
        visibility: int = 0,
        trusted: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._name = normalize_title(name)
        self.repo = repo
        self._handlers = handlers
        self.mime_type = mime_type or "unknown/unknown"
        self._width = width
        self._height = height
        self._page_sizes = dict(page_sizes or {})
        self._size_bytes = size_bytes
        self._timestamp = timestamp
        self._sha1 = sha1
        self._visibility = DeletedField(visibility)
        self._trusted = trusted
        self.metadata: Dict[str, Any] = dict(metadata or {})

        self.last_error: Optional[str] = None
        self._redirected_from: Optional[str] = None
        self._local_ref: Any = _MISSING

    def __repr__(self) -> str:
        repo = self.repo.name if self.repo is not None else None
        return f"{type(self).__name__}(name={self._name!r}, repo={repo!r})"

    # ---- identity ----------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @staticmethod
    def compare(a: "MediaIdentity", b: "MediaIdentity") -> int:
        """Sort callback: -1/0/1 by name."""
        return (a.name > b.name) - (a.name < b.name)

    @cached_property
    def extension(self) -> str:
        return extension_from_name(self._name)

    @property
    def media_type(self) -> MediaType:
        return MediaType.for_mime(self.mime_type)

    def redirected_from(self, name: str) -> None:
        """Record that this identity was reached through the redirect `name`."""
        self._redirected_from = normalize_title(name)

    def get_redirected(self) -> Optional[str]:
        return self._redirected_from

    @property
    def original_name(self) -> str:
        """The name used to find this file."""
        return self._redirected_from or self._name

    def is_old(self) -> bool:
        return False

    def is_local(self) -> bool:
        return self.repo is not None and self.repo.is_local()

    def get_repo_name(self) -> str:
        return self.repo.name if self.repo is not None else "unknown"

    def require_repo(self) -> StorageRepositoryPort:
        if self.repo is None:
            raise RepoNotDefinedError(f"A storage repository is not set for {self._name}.")
        return self.repo

    # ---- handler & capabilities ----------------------------------------------------

    @cached_property
    def handler(self) -> Optional[MediaHandlerPort]:
        if self._handlers is None:
            return None
        return self._handlers.get_handler(self.mime_type)

    def get_handler(self) -> Optional[MediaHandlerPort]:
        return self.handler

    @cached_property
    def _can_render(self) -> bool:
        return self.handler is not None and bool(self.handler.can_render(self))

    def can_render(self) -> bool:
        """Is transform() output likely to be valid? If not, show a placeholder instead."""
        return self._can_render

    def allow_inline_display(self) -> bool:
        return self.can_render()

    def must_render(self) -> bool:
        """True for formats browsers cannot display directly (they need re-rasterizing)."""
        return self.handler is not None and bool(self.handler.must_render(self))

    def is_vectorized(self) -> bool:
        return self.handler is not None and bool(self.handler.is_vectorized(self))

    def is_multipage(self) -> bool:
        return self.handler is not None and bool(self.handler.is_multi_page(self))

    @cached_property
    def _page_count(self) -> Optional[int]:
        if self.is_multipage():
            return self.handler.page_count(self)  # type: ignore[union-attr]
        return None

    def page_count(self) -> Optional[int]:
        return self._page_count

    def can_animate_thumb_if_appropriate(self) -> bool:
        """False only when the source is animated but its thumbnail will not be."""
        handler = self.handler
        if handler is None:
            return True
        return not (
            self.allow_inline_display()
            and handler.is_animated_image(self)
            and not handler.can_animate_thumbnail(self)
        )

    def is_trusted_file(self) -> bool:
        return self._trusted

    def is_safe_file(self, trusted_media_formats: Iterable[str] = ()) -> bool:
        """Unlikely to carry active content: renderable, flagged trusted, or of a trusted type."""
        if self.allow_inline_display() or self.is_trusted_file():
            return True
        trusted = set(trusted_media_formats)
        media_type = self.media_type
        if media_type is MediaType.UNKNOWN:
            return False
        if str(media_type) in trusted:
            return True
        if self.mime_type == "unknown/unknown":
            return False
        return self.mime_type in trusted

    # ---- dimensions & stored properties -----------------------------------------------

    def get_width(self, page: int = 1) -> Optional[int]:
        if page in self._page_sizes:
            return self._page_sizes[page][0]
        return self._width

    def get_height(self, page: int = 1) -> Optional[int]:
        if page in self._page_sizes:
            return self._page_sizes[page][1]
        return self._height

    def get_image_size(self, path: Path | str) -> Optional[Tuple[int, int]]:
        if self.handler is None:
            return None
        return self.handler.get_image_size(self, path)

    def get_dimensions_string(self) -> str:
        if self.handler is None:
            return ""
        return self.handler.get_dimensions_string(self)

    def get_size(self) -> Optional[int]:
        if self._size_bytes is None and self.repo is not None:
            self._size_bytes = self.repo.get_file_size(self.get_path())
        return self._size_bytes

    def get_timestamp(self) -> Optional[str]:
        if self._timestamp is None:
            self._timestamp = self.require_repo().get_timestamp(self.get_path())
        return self._timestamp

    def get_sha1(self) -> Optional[str]:
        """Base-36 SHA-1 of the stored bytes, computed lazily."""
        if self._sha1 is None:
            self._sha1 = self.require_repo().get_file_sha1(self.get_path())
        return self._sha1

    def get_storage_key(self) -> Optional[str]:
        """Deletion archive key, "<sha1>.<ext>"."""
        sha1 = self.get_sha1()
        if not sha1:
            return None
        return f"{sha1}.{self.extension}" if self.extension else sha1

    # ---- visibility ----------------------------------------------------------------------

    def get_visibility(self) -> DeletedField:
        return self._visibility

    def is_deleted(self, field: DeletedField | int) -> bool:
        return bool(self._visibility & field)

    def user_can(self, field: DeletedField | int, permissions: Collection[str] = ()) -> bool:
        """May a user holding `permissions` view `field` of this version?"""
        if not self.is_deleted(field):
            return True
        needed = "suppressrevision" if self.is_deleted(DeletedField.RESTRICTED) else "deletedhistory"
        return needed in permissions

    def exists(self) -> bool:
        return self.require_repo().exists(self.get_path())

    def is_visible(self) -> bool:
        return self.exists()

    def is_missing(self) -> bool:
        return False

    # ---- paths & URLs -------------------------------------------------------------------

    @cached_property
    def _resolver(self) -> PathResolver:
        return PathResolver(self.require_repo().get_hash_levels())

    @cached_property
    def hash_path(self) -> str:
        """Sharding prefix with trailing slash, e.g. "f/fa/"; "" when the repo is not hashed."""
        return self.require_repo().get_hash_path(self._name)

    def is_hashed(self) -> bool:
        return bool(self.require_repo().get_hash_levels())

    def resolve_path(self, zone: Zone | str, archive_timestamp: Optional[str] = None,
                     suffix: Optional[str] = None) -> str:
        """Storage path of this file (or of `suffix` next to it) in `zone`."""
        repo = self.require_repo()
        return self._resolver.path(repo.get_zone_base_path(zone), self._name, zone, archive_timestamp, suffix)

    def resolve_url(self, zone: Zone | str, archive_timestamp: Optional[str] = None,
                    suffix: Optional[str] = None) -> str:
        repo = self.require_repo()
        base = repo.get_zone_base_url(zone, self.extension)
        return self._resolver.url(base, self._name, zone, archive_timestamp, suffix)

    def get_rel(self) -> str:
        """Path relative to the public zone root."""
        return self._resolver.rel_path(self._name, Zone.public)

    def get_url_rel(self) -> str:
        return self._resolver.url_rel_path(self._name, Zone.public)

    def get_thumb_rel(self, suffix: Optional[str] = None) -> str:
        return self._resolver.rel_path(self._name, Zone.thumb, None, suffix)

    def get_archive_rel(self, suffix: Optional[str] = None) -> str:
        return self._resolver.rel_path(self._name, Zone.archive, None, suffix)

    def get_archive_thumb_rel(self, archive_timestamp: str, suffix: Optional[str] = None) -> str:
        return self._resolver.rel_path(self._name, Zone.thumb, archive_timestamp, suffix)

    @cached_property
    def _path(self) -> str:
        return self.resolve_path(Zone.public)

    def get_path(self) -> str:
        """Storage path of the file. The file need not exist."""
        return self._path

    @cached_property
    def _url(self) -> str:
        return self.resolve_url(Zone.public)

    def get_url(self) -> str:
        return self._url

    def get_full_url(self, server: str) -> str:
        """Expand a server-relative URL against `server` (e.g. "https://example.org")."""
        url = self.get_url()
        if url.startswith(("http://", "https://")):
            return url
        if url.startswith("//"):
            scheme = server.split(":", 1)[0] if "://" in server else "https"
            return f"{scheme}:{url}"
        return f"{server.rstrip('/')}{url}"

    def get_local_ref_path(self) -> Optional[Path]:
        """Local filesystem copy of the file, or None. Negative lookups are cached too."""
        if self._local_ref is _MISSING:
            self._local_ref = self.require_repo().get_local_reference(self.get_path())
        return self._local_ref

    def get_thumb_path(self, suffix: Optional[str] = None) -> str:
        return self.resolve_path(Zone.thumb, None, suffix)

    def get_thumb_url(self, suffix: Optional[str] = None) -> str:
        return self.resolve_url(Zone.thumb, None, suffix)

    def get_transcoded_path(self, suffix: Optional[str] = None) -> str:
        return self.resolve_path(Zone.transcoded, None, suffix)

    def get_transcoded_url(self, suffix: Optional[str] = None) -> str:
        return self.resolve_url(Zone.transcoded, None, suffix)

    def get_archive_path(self, suffix: Optional[str] = None) -> str:
        return self.resolve_path(Zone.archive, None, suffix)

    def get_archive_url(self, suffix: Optional[str] = None) -> str:
        return self.resolve_url(Zone.archive, None, suffix)

    def get_archive_thumb_path(self, archive_timestamp: str, suffix: Optional[str] = None) -> str:
        return self.resolve_path(Zone.thumb, archive_timestamp, suffix)

    def get_archive_thumb_url(self, archive_timestamp: str, suffix: Optional[str] = None) -> str:
        return self.resolve_url(Zone.thumb, archive_timestamp, suffix)

    def get_virtual_url(self, suffix: Optional[str] = None) -> str:
        path = f"{self.require_repo().get_virtual_url(Zone.public)}/{self.get_url_rel()}"
        return path if suffix is None else f"{path}/{quote(suffix, safe='')}"

    def get_archive_virtual_url(self, suffix: Optional[str] = None) -> str:
        repo = self.require_repo()
        return f"{repo.get_virtual_url(Zone.public)}/{self._resolver.url_rel_path(self._name, Zone.archive, None, suffix)}"

    def get_thumb_virtual_url(self, suffix: Optional[str] = None) -> str:
        path = f"{self.require_repo().get_virtual_url(Zone.thumb)}/{self.get_url_rel()}"
        return path if suffix is None else f"{path}/{quote(suffix, safe='')}"

    # ---- derivatives ---------------------------------------------------------------------

    def thumb_name(self, params: Mapping[str, Any], flags: ThumbNameFlags | int = ThumbNameFlags.NONE) -> str:
        return derivative_name(self, params, flags)

    def get_thumb_disposition(self, thumb_name: str) -> str:
        """Content-Disposition for a derivative: the source name, plus the output extension if it differs."""
        file_name = self._name
        thumb_ext = extension_from_path(thumb_name)
        if thumb_ext and thumb_ext != self.extension:
            file_name += f".{thumb_ext}"
        return make_content_disposition("inline", file_name)

    @cached_property
    def _transform_script(self) -> Optional[str]:
        if self.repo is None:
            return None
        script = self.repo.get_thumb_script_url()
        if not script:
            return None
        sep = "&" if "?" in script else "?"
        return f"{script}{sep}{urlencode({'f': self._name})}"

    def get_transform_script(self) -> Optional[str]:
        """URL of the on-request scaling script for this file, if the repository has one."""
        return self._transform_script


class ArchivedMediaIdentity(MediaIdentity):
    """
    A superseded version of a file. It lives at archive/<hash><timestamp>!<name>
    in the public zone and its thumbnails under the same archive name in the
    thumb zone.
    """

    def __init__(self, name: str, repo: Optional[StorageRepositoryPort] = None, *,
                 archive_timestamp: str, **kwargs: Any) -> None:
        super().__init__(name, repo, **kwargs)
        # validates the timestamp
        self.archive_name = archive_name(archive_timestamp, self.name)
        self.archive_timestamp = archive_timestamp

    def is_old(self) -> bool:
        return True

    def get_rel(self) -> str:
        return self._resolver.rel_path(self.name, Zone.public, self.archive_timestamp)

    def get_url_rel(self) -> str:
        return self._resolver.url_rel_path(self.name, Zone.public, self.archive_timestamp)

    def get_thumb_rel(self, suffix: Optional[str] = None) -> str:
        return self.get_archive_thumb_rel(self.archive_timestamp, suffix)

    @cached_property
    def _path(self) -> str:
        return self.resolve_path(Zone.public, self.archive_timestamp)

    @cached_property
    def _url(self) -> str:
        return self.resolve_url(Zone.public, self.archive_timestamp)

    def get_thumb_path(self, suffix: Optional[str] = None) -> str:
        return self.get_archive_thumb_path(self.archive_timestamp, suffix)

    def get_thumb_url(self, suffix: Optional[str] = None) -> str:
        return self.get_archive_thumb_url(self.archive_timestamp, suffix)

    def get_transcoded_path(self, suffix: Optional[str] = None) -> str:
        return self.resolve_path(Zone.transcoded, self.archive_timestamp, suffix)

    def get_transcoded_url(self, suffix: Optional[str] = None) -> str:
        return self.resolve_url(Zone.transcoded, self.archive_timestamp, suffix)
