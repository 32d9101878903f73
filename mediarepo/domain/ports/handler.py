# mediarepo/domain/ports/handler.py
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, MutableMapping, Optional, Protocol, Tuple

from mediarepo.domain.enums.flags import HandlerFlags

if TYPE_CHECKING:
    from mediarepo.domain.entities.media_identity import MediaIdentity
    from mediarepo.domain.entities.transform_output import TransformOutput


class MediaHandlerPort(Protocol):
    """Capability queries and the pixel transform for one family of MIME types."""

    # ---- capabilities ----------------------------------------------------------
    def can_render(self, identity: "MediaIdentity") -> bool: ...
    def must_render(self, identity: "MediaIdentity") -> bool: ...
    def is_vectorized(self, identity: "MediaIdentity") -> bool: ...
    def is_multi_page(self, identity: "MediaIdentity") -> bool: ...
    def page_count(self, identity: "MediaIdentity") -> Optional[int]: ...
    def is_animated_image(self, identity: "MediaIdentity") -> bool: ...
    def can_animate_thumbnail(self, identity: "MediaIdentity") -> bool: ...

    # ---- parameters & naming -----------------------------------------------------
    def normalize_params(self, identity: "MediaIdentity", params: MutableMapping[str, Any]) -> bool: ...
    def make_param_string(self, params: Mapping[str, Any]) -> str: ...
    def get_thumb_type(
        self, ext: str, mime: str, params: Optional[Mapping[str, Any]] = None
    ) -> Tuple[str, str]: ...

    # ---- transforms ----------------------------------------------------------------
    def do_transform(
        self,
        identity: "MediaIdentity",
        dst_path: Optional[Path | str],
        dst_url: str,
        params: Dict[str, Any],
        flags: HandlerFlags = HandlerFlags.NONE,
    ) -> Optional["TransformOutput"]: ...
    def get_transform(
        self, identity: "MediaIdentity", dst_path: Optional[Path | str], dst_url: str, params: Dict[str, Any]
    ) -> Optional["TransformOutput"]: ...
    def get_scripted_transform(
        self, identity: "MediaIdentity", script_url: str, params: Dict[str, Any]
    ) -> Optional["TransformOutput"]: ...

    # ---- probing ---------------------------------------------------------------------
    def get_image_size(self, identity: Optional["MediaIdentity"], path: Path | str) -> Optional[Tuple[int, int]]: ...
    def get_dimensions_string(self, identity: "MediaIdentity") -> str: ...


class HandlerLookupPort(Protocol):
    def get_handler(self, mime: str) -> Optional[MediaHandlerPort]: ...
