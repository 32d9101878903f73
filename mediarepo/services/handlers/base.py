# mediarepo/services/handlers/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Mapping, MutableMapping, Optional, Tuple
from urllib.parse import urlencode

from mediarepo.domain.entities.transform_output import ThumbnailImage, TransformError, TransformOutput
from mediarepo.domain.enums.error_kind import ErrorKind
from mediarepo.domain.enums.flags import HandlerFlags
from mediarepo.domain.policies.scaling import fit_box_width, scale_height

if TYPE_CHECKING:
    from mediarepo.domain.entities.media_identity import MediaIdentity


class ImageHandler(ABC):
    """
    Shared behavior for handlers whose parameters are a width, an optional
    bounding height and (for multi-page formats) a page number.

    Subclasses supply the pixel work in _render() and may override the
    capability queries.
    """

    mime_types: FrozenSet[str] = frozenset()

    # ---- capabilities ----------------------------------------------------------

    def can_render(self, identity: "MediaIdentity") -> bool:
        return bool(identity.get_width()) and bool(identity.get_height())

    def must_render(self, identity: "MediaIdentity") -> bool:
        return False

    def is_vectorized(self, identity: "MediaIdentity") -> bool:
        return False

    def is_multi_page(self, identity: "MediaIdentity") -> bool:
        return False

    def page_count(self, identity: "MediaIdentity") -> Optional[int]:
        return None

    def is_animated_image(self, identity: "MediaIdentity") -> bool:
        return False

    def can_animate_thumbnail(self, identity: "MediaIdentity") -> bool:
        return True

    # ---- parameters & naming -----------------------------------------------------

    def normalize_params(self, identity: "MediaIdentity", params: MutableMapping[str, Any]) -> bool:
        """
        Complete `params` in place: resolve the page, fit the width into the
        requested bounding height, clamp it to the source width (raster formats
        only) and derive the height from the aspect ratio.

        Returns False when the request cannot be satisfied.
        """
        try:
            width = int(params.get("width") or 0)
        except (TypeError, ValueError):
            return False
        if width <= 0:
            return False

        if self.is_multi_page(identity):
            try:
                page = int(params.get("page") or 1)
            except (TypeError, ValueError):
                page = 1
            count = identity.page_count() or 1
            page = params["page"] = min(max(page, 1), count)
        else:
            params.pop("page", None)
            page = 1

        src_width = int(identity.get_width(page) or 0)
        src_height = int(identity.get_height(page) or 0)
        if src_width <= 0 or src_height <= 0:
            return False

        box_height = params.get("height")
        try:
            box_height = int(box_height) if box_height is not None else -1
        except (TypeError, ValueError):
            box_height = -1
        if box_height > 0:
            width = min(width, fit_box_width(src_width, src_height, box_height) or 1)

        if width > src_width and not self.is_vectorized(identity):
            width = src_width

        params["width"] = width
        params["height"] = max(1, scale_height(src_width, src_height, width))
        return True

    def make_param_string(self, params: Mapping[str, Any]) -> str:
        token = f"{int(params['width'])}px"
        if params.get("page") is not None:
            return f"page{int(params['page'])}-{token}"
        return token

    def get_thumb_type(
        self, ext: str, mime: str, params: Optional[Mapping[str, Any]] = None
    ) -> Tuple[str, str]:
        """Output (extension, MIME type) of a derivative. Same as the source by default."""
        return ext, mime

    def get_script_params(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {"width": params["width"]}
        if params.get("page") is not None:
            out["page"] = params["page"]
        return out

    # ---- transforms ------------------------------------------------------------------

    def get_scripted_transform(
        self, identity: "MediaIdentity", script_url: str, params: Dict[str, Any]
    ) -> Optional[TransformOutput]:
        if not params.get("width"):
            return None
        sep = "&" if "?" in script_url else "?"
        url = f"{script_url}{sep}{urlencode(self.get_script_params(params))}"
        _ext, mime = self.get_thumb_type(identity.extension, identity.mime_type, params)
        return ThumbnailImage.from_params(identity, url, None, params, mime)

    def get_transform(
        self, identity: "MediaIdentity", dst_path: Optional[Path | str], dst_url: str, params: Dict[str, Any]
    ) -> Optional[TransformOutput]:
        """Describe the output at dst_path/dst_url without producing it."""
        return self.do_transform(identity, dst_path, dst_url, params, HandlerFlags.TRANSFORM_LATER)

    def do_transform(
        self,
        identity: "MediaIdentity",
        dst_path: Optional[Path | str],
        dst_url: str,
        params: Dict[str, Any],
        flags: HandlerFlags = HandlerFlags.NONE,
    ) -> Optional[TransformOutput]:
        """Render `identity` into dst_path with already-normalized `params`."""
        width, height = int(params.get("width") or 0), int(params.get("height") or 0)
        if width <= 0 or height <= 0:
            return TransformError(identity=identity, kind=ErrorKind.parameter,
                                  message=f"invalid thumbnail size {width}x{height}")
        page = params.get("page") or 1
        if (
            width == identity.get_width(page)
            and height == identity.get_height(page)
            and not self.must_render(identity)
        ):
            # Full size: the source file itself is the derivative
            return ThumbnailImage.from_params(
                identity, identity.get_url(), identity.get_local_ref_path(), params, identity.mime_type
            )

        _ext, mime = self.get_thumb_type(identity.extension, identity.mime_type, params)
        if int(flags) & HandlerFlags.TRANSFORM_LATER:
            return ThumbnailImage.from_params(identity, dst_url, dst_path, params, mime)

        if dst_path is None:
            return TransformError(identity=identity, kind=ErrorKind.resource,
                                  message="no output file for the thumbnail")
        return self._render(identity, Path(dst_path), dst_url, params, mime)

    @abstractmethod
    def _render(
        self, identity: "MediaIdentity", dst_path: Path, dst_url: str, params: Dict[str, Any], mime: str
    ) -> TransformOutput:
        """Scale the source into dst_path. Failures come back as TransformError."""

    # ---- probing ---------------------------------------------------------------------

    def get_image_size(self, identity: Optional["MediaIdentity"], path: Path | str) -> Optional[Tuple[int, int]]:
        return None

    def get_dimensions_string(self, identity: "MediaIdentity") -> str:
        width, height = identity.get_width(), identity.get_height()
        if not width or not height:
            return ""
        out = f"{width} × {height} pixels"
        count = identity.page_count() if self.is_multi_page(identity) else None
        if count and count > 1:
            out += f", {count} pages"
        return out
