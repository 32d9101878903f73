# mediarepo/domain/entities/transform_output.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from mediarepo.domain.enums.error_kind import ErrorKind

if TYPE_CHECKING:
    from mediarepo.domain.entities.media_identity import MediaIdentity


@dataclass(eq=False)
class TransformOutput:
    """
    Result of transforming a media file.

    `path` is a local file holding the output bytes (it may be a scratch file
    that disappears once this object is discarded); `storage_path` is set once
    the output has been committed to the repository.
    """
    identity: Optional["MediaIdentity"] = None
    url: Optional[str] = None
    path: Optional[Path | str] = None
    width: int = 0
    height: int = 0
    page: Optional[int] = None
    mime_type: Optional[str] = None
    storage_path: Optional[str] = None

    def is_error(self) -> bool:
        return False

    def has_file(self) -> bool:
        return self.path is not None or self.storage_path is not None

    def file_is_source(self) -> bool:
        """True when the output *is* the source file (no scaling was needed)."""
        if self.identity is None or self.path is None or self.identity.repo is None:
            return False
        src = self.identity.get_local_ref_path()
        return src is not None and str(src) == str(self.path)

    def set_storage_path(self, storage_path: str) -> None:
        self.storage_path = storage_path

    def get_url(self) -> Optional[str]:
        return self.url

    def to_text(self) -> str:
        return self.url or ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "page": self.page,
            "mime_type": self.mime_type,
            "error": None,
        }


@dataclass(eq=False)
class ThumbnailImage(TransformOutput):
    """A scaled (or scalable-later) image derivative."""

    @classmethod
    def from_params(
        cls,
        identity: Optional["MediaIdentity"],
        url: Optional[str],
        path: Optional[Path | str],
        params: Dict[str, Any],
        mime_type: Optional[str] = None,
    ) -> "ThumbnailImage":
        return cls(
            identity=identity,
            url=url,
            path=path,
            width=int(params.get("width") or 0),
            height=int(params.get("height") or 0),
            page=params.get("page"),
            mime_type=mime_type,
        )


@dataclass(eq=False)
class TransformError(TransformOutput):
    """
    A failed transform. Carries an error kind and a user-facing message and
    never a usable location: url, path and storage_path are always None.
    """
    kind: ErrorKind = ErrorKind.render
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def __setattr__(self, key: str, value: Any) -> None:
        if key in ("url", "path", "storage_path") and value is not None:
            raise ValueError(f"an error result cannot carry a {key}")
        super().__setattr__(key, value)

    def is_error(self) -> bool:
        return True

    def has_file(self) -> bool:
        return False

    def set_storage_path(self, storage_path: str) -> None:
        raise ValueError("an error result cannot carry a storage path")

    def to_text(self) -> str:
        return self.message

    def as_dict(self) -> Dict[str, Any]:
        out = super().as_dict()
        out["error"] = {"kind": str(self.kind), "message": self.message}
        return out
