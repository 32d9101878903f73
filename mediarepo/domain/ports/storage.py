# mediarepo/domain/ports/storage.py
from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from mediarepo.domain.dataclasses.status import RepoStatus
from mediarepo.domain.enums.zone import Zone


@runtime_checkable
class StorageRepositoryPort(Protocol):
    """
    Key-path object store with named zones. Paths handed to and returned by
    these methods are storage paths (see get_zone_base_path()).
    """

    @property
    def name(self) -> str: ...

    # ---- queries -------------------------------------------------------------
    def exists(self, path: str) -> bool: ...
    def get_timestamp(self, path: str) -> Optional[str]: ...
    def get_file_sha1(self, path: str) -> Optional[str]: ...
    def get_file_size(self, path: str) -> Optional[int]: ...
    def get_local_reference(self, path: str) -> Optional[Path]: ...

    # ---- writes ----------------------------------------------------------------
    def quick_import(self, src: Path | str, dst: str, disposition: Optional[str] = None) -> RepoStatus: ...

    # ---- layout & policy ---------------------------------------------------------
    def get_zone_base_url(self, zone: Zone | str, ext: Optional[str] = None) -> str: ...
    def get_zone_base_path(self, zone: Zone | str) -> str: ...
    def get_virtual_url(self, zone: Zone | str | None = None) -> str: ...
    def get_hash_levels(self) -> int: ...
    def get_hash_path(self, name: str) -> str: ...
    def name_for_thumb(self, name: str) -> str: ...
    def is_read_only(self) -> Optional[str]: ...
    def supports_deferred_rendering_via_404(self) -> bool: ...
    def get_thumb_script_url(self) -> Optional[str]: ...
    def is_local(self) -> bool: ...
