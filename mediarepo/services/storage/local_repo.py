# mediarepo/services/storage/local_repo.py
from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import unquote

from mediarepo.common.logging import get_logger
from mediarepo.common.path.safe import ensure_inside, resolve_root, safe_join
from mediarepo.common.settings import RepoConfig
from mediarepo.common.timestamps import from_timestamp, now_timestamp, to_timestamp
from mediarepo.domain.dataclasses.status import RepoStatus
from mediarepo.domain.entities.media_identity import ArchivedMediaIdentity, MediaIdentity
from mediarepo.domain.enums.flags import PublishFlags
from mediarepo.domain.enums.zone import Zone
from mediarepo.domain.errors import ReadOnlyError
from mediarepo.domain.policies.derivative_namer import abbreviate_name
from mediarepo.domain.policies.extensions import guess_mime_type
from mediarepo.domain.policies.path_resolver import PathResolver, archive_name
from mediarepo.domain.ports.handler import HandlerLookupPort

logger = get_logger(__name__)

VIRTUAL_SCHEME = "mwrepo://"


def _base36(hexdigest: str, pad: int = 31) -> str:
    n = int(hexdigest, 16)
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return (out or "0").rjust(pad, "0")


class LocalFileRepo:
    """
    Filesystem implementation of StorageRepositoryPort.

    Each zone is a directory under `config.root`; the archive zone shares the
    public zone's directory (archived versions live under its "archive/"
    subtree). Storage paths are absolute filesystem paths confined to those
    roots.
    """

    def __init__(self, config: RepoConfig, handlers: Optional[HandlerLookupPort] = None) -> None:
        self.config = config
        self.handlers = handlers
        self.root = resolve_root(config.root)
        self._resolver = PathResolver(config.hash_levels)
        public = self.root / config.public_dir
        self._zone_dirs: Dict[Zone, Path] = {
            Zone.public: public,
            Zone.archive: public,
            Zone.thumb: self.root / config.thumb_dir,
            Zone.transcoded: self.root / config.transcoded_dir,
        }
        self.temp_dir = self.root / config.temp_dir

    def __repr__(self) -> str:
        return f"LocalFileRepo(name={self.name!r}, root={str(self.root)!r})"

    @property
    def name(self) -> str:
        return self.config.name

    # ---- internals ------------------------------------------------------------

    def _fs(self, path: Path | str) -> Path:
        """Filesystem location of a storage path; refuses anything outside the repository root."""
        p = Path(path)
        ensure_inside(p, self.root)
        return p

    def _check_writable(self) -> Optional[RepoStatus]:
        reason = self.is_read_only()
        if reason:
            return RepoStatus.fatal(f"repository {self.name} is read-only: {reason}")
        return None

    # ---- queries ----------------------------------------------------------------

    def exists(self, path: str) -> bool:
        return self._fs(path).is_file()

    def get_timestamp(self, path: str) -> Optional[str]:
        try:
            return to_timestamp(self._fs(path).stat().st_mtime)
        except FileNotFoundError:
            return None

    def get_file_sha1(self, path: str, chunk_size: int = 1024 * 1024) -> Optional[str]:
        """Base-36 SHA-1 of the file, zero-padded to 31 characters."""
        p = self._fs(path)
        if not p.is_file():
            return None
        h = hashlib.sha1()
        with p.open("rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                h.update(chunk)
        return _base36(h.hexdigest())

    def get_file_size(self, path: str) -> Optional[int]:
        try:
            return self._fs(path).stat().st_size
        except FileNotFoundError:
            return None

    def get_local_reference(self, path: str) -> Optional[Path]:
        p = self._fs(path)
        return p if p.is_file() else None

    # ---- writes -------------------------------------------------------------------

    @staticmethod
    def _stage_copy(src: Path, directory: Path) -> Path:
        """Copy `src` to a private dotfile in `directory`. Raises OSError."""
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile("wb", prefix=".import-", delete=False, dir=str(directory)) as tf:
            staged = Path(tf.name)
        try:
            shutil.copyfile(src, staged)
        except OSError:
            staged.unlink(missing_ok=True)
            raise
        return staged

    def quick_import(self, src: Path | str, dst: str, disposition: Optional[str] = None) -> RepoStatus:
        """
        Copy a local file to `dst`. The bytes go to a private file in the
        destination directory first and are then renamed into place, so
        readers see either the old file or the complete new one.
        """
        refused = self._check_writable()
        if refused:
            return refused
        src_p = Path(src)
        try:
            dst_p = self._fs(dst)
        except ValueError as e:
            return RepoStatus.fatal(str(e))
        if not src_p.is_file():
            return RepoStatus.fatal(f"source file not found: {src_p}")

        tmp_out: Optional[Path] = None
        try:
            tmp_out = self._stage_copy(src_p, dst_p.parent)
            os.replace(tmp_out, dst_p)
        except OSError as e:
            logger.warning("import of %s to %s failed: %s", src_p, dst_p, e)
            return RepoStatus.fatal(f"could not import {src_p.name} to {dst}: {e}")
        finally:
            if tmp_out is not None:
                tmp_out.unlink(missing_ok=True)

        # Plain files carry no headers; the disposition only matters to HTTP-facing stores
        logger.debug("imported %s -> %s (disposition=%s)", src_p, dst_p, disposition)
        return RepoStatus.good(str(dst_p))

    def store(self, src: Path | str, zone: Zone | str, rel: str, *, overwrite: bool = False) -> RepoStatus:
        """Copy `src` to `rel` inside `zone`."""
        try:
            dst = safe_join(self.get_zone_base_path(zone), rel)
        except ValueError as e:
            return RepoStatus.fatal(str(e))
        if dst.exists() and not overwrite:
            return RepoStatus.fatal(f"destination exists: {rel}")
        return self.quick_import(src, str(dst))

    def _free_archive_timestamp(self, identity: MediaIdentity, ts: str) -> str:
        """First timestamp at or after `ts` whose archive slot is unused."""
        when = from_timestamp(ts)
        while Path(identity.resolve_path(Zone.public, to_timestamp(when))).exists():
            when += timedelta(seconds=1)
        return to_timestamp(when)

    def publish(
        self,
        src: Path | str,
        name: str,
        *,
        timestamp: Optional[str] = None,
        flags: PublishFlags | int = PublishFlags.NONE,
    ) -> RepoStatus:
        """
        Make `src` the current version of `name`. A previous current version is
        moved to the archive zone; its archive name ("<ts>!<name>") is the
        status value, or "" when there was nothing to archive. An archive slot
        already taken moves the timestamp forward a second at a time.

        The new bytes are copied next to the current file before anything is
        archived, so a failed publish leaves the current version in place.
        """
        refused = self._check_writable()
        if refused:
            return refused
        identity = MediaIdentity(name, self)
        current = Path(identity.get_path())
        src_p = Path(src)
        if not current.is_file():
            status = self.quick_import(src_p, str(current))
            if not status.ok:
                return status
            archived = ""
        else:
            if not src_p.is_file():
                return RepoStatus.fatal(f"source file not found: {src_p}")
            try:
                ts = self._free_archive_timestamp(identity, timestamp or now_timestamp())
            except ValueError as e:
                return RepoStatus.fatal(str(e))
            archived = archive_name(ts, identity.name)
            dst = Path(identity.resolve_path(Zone.public, ts))

            staged: Optional[Path] = None
            try:
                staged = self._stage_copy(src_p, current.parent)
                dst.parent.mkdir(parents=True, exist_ok=True)
                os.replace(current, dst)
                try:
                    os.replace(staged, current)
                except OSError:
                    os.replace(dst, current)
                    raise
            except OSError as e:
                logger.warning("publish of %s failed: %s", identity.name, e)
                return RepoStatus.fatal(f"could not publish {identity.name}: {e}")
            finally:
                if staged is not None:
                    staged.unlink(missing_ok=True)
            logger.info("archived %s as %s", identity.name, archived)

        if int(flags) & PublishFlags.DELETE_SOURCE:
            src_p.unlink(missing_ok=True)
        return RepoStatus.good(archived)

    # ---- identities -----------------------------------------------------------------

    def _probe(self, name: str, path: Path) -> dict:
        mime = guess_mime_type(name)
        props: dict = {"mime_type": mime}
        if not path.is_file():
            return props
        st = path.stat()
        props["size_bytes"] = st.st_size
        props["timestamp"] = to_timestamp(st.st_mtime)
        handler = self.handlers.get_handler(mime) if self.handlers is not None else None
        if handler is not None:
            size = handler.get_image_size(None, path)
            if size:
                props["width"], props["height"] = size
        return props

    def new_file(self, name: str) -> MediaIdentity:
        """Identity for the current version of `name`, with properties probed from disk."""
        bare = MediaIdentity(name, self)
        return MediaIdentity(bare.name, self, handlers=self.handlers,
                             **self._probe(bare.name, Path(bare.get_path())))

    def find_file(self, name: str) -> Optional[MediaIdentity]:
        identity = self.new_file(name)
        return identity if identity.exists() else None

    def new_archived_file(self, name: str, archive_timestamp: str) -> ArchivedMediaIdentity:
        bare = ArchivedMediaIdentity(name, self, archive_timestamp=archive_timestamp)
        return ArchivedMediaIdentity(bare.name, self, archive_timestamp=archive_timestamp,
                                     handlers=self.handlers, **self._probe(bare.name, Path(bare.get_path())))

    # ---- derivatives ------------------------------------------------------------------

    def list_thumbnails(self, identity: MediaIdentity) -> List[str]:
        """Names of the stored derivatives of `identity`."""
        d = self._fs(identity.get_thumb_path())
        if not d.is_dir():
            return []
        return sorted(p.name for p in d.iterdir() if p.is_file() and not p.name.startswith("."))

    def delete_thumbnails(self, identity: MediaIdentity, names: Optional[List[str]] = None) -> List[str]:
        """Remove stored derivatives (all of them by default); returns the names removed."""
        if self.is_read_only():
            raise ReadOnlyError(f"repository {self.name} is read-only")
        targets = self.list_thumbnails(identity) if names is None else list(names)
        removed: List[str] = []
        for name in targets:
            p = self._fs(identity.get_thumb_path(name))
            try:
                p.unlink()
            except FileNotFoundError:
                continue
            removed.append(name)
        d = Path(identity.get_thumb_path())
        if d.is_dir() and not any(d.iterdir()):
            d.rmdir()
        if removed:
            logger.info("deleted %d thumbnail(s) of %s", len(removed), identity.name)
        return removed

    # ---- layout & policy ----------------------------------------------------------------

    def get_zone_base_path(self, zone: Zone | str) -> str:
        return str(self._zone_dirs[Zone(zone)])

    def get_zone_base_url(self, zone: Zone | str, ext: Optional[str] = None) -> str:
        zone = Zone(zone)
        if zone is Zone.thumb:
            return self.config.effective_thumb_url
        if zone is Zone.transcoded:
            return self.config.effective_transcoded_url
        return self.config.url_base.rstrip("/")

    def get_virtual_url(self, zone: Zone | str | None = None) -> str:
        base = f"{VIRTUAL_SCHEME}{self.name}"
        return base if zone is None else f"{base}/{Zone(zone)}"

    def resolve_virtual_url(self, url: str) -> str:
        """Storage path for a "mwrepo://<repo>/<zone>/<rel>" URL."""
        prefix = f"{VIRTUAL_SCHEME}{self.name}/"
        if not url.startswith(prefix):
            raise ValueError(f"not a virtual URL of repository {self.name}: {url}")
        zone, _, rel = url[len(prefix):].partition("/")
        try:
            root = self.get_zone_base_path(zone)
        except ValueError as e:
            raise ValueError(f"unknown zone in virtual URL: {url}") from e
        return str(safe_join(root, unquote(rel)))

    def get_hash_levels(self) -> int:
        return self._resolver.hash_levels

    def get_hash_path(self, name: str) -> str:
        return self._resolver.hash_path(name)

    def name_for_thumb(self, name: str) -> str:
        return abbreviate_name(name, self.config.abbrv_threshold)

    def is_read_only(self) -> Optional[str]:
        return self.config.read_only_reason

    def supports_deferred_rendering_via_404(self) -> bool:
        return self.config.transform_via_404

    def get_thumb_script_url(self) -> Optional[str]:
        return self.config.thumb_script_url

    def is_local(self) -> bool:
        return True
