# mediarepo/services/handlers/bitmap.py
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from PIL import Image

from mediarepo.common.logging import get_logger
from mediarepo.domain.entities.transform_output import ThumbnailImage, TransformError, TransformOutput
from mediarepo.domain.enums.error_kind import ErrorKind
from mediarepo.services.handlers.base import ImageHandler

if TYPE_CHECKING:
    from mediarepo.domain.entities.media_identity import MediaIdentity

logger = get_logger(__name__)

# Formats browsers display natively are scaled to themselves; the rest become PNG
_OUTPUT = {
    "image/jpeg": ("jpg", "image/jpeg"),
    "image/png": ("png", "image/png"),
    "image/gif": ("gif", "image/gif"),
    "image/webp": ("webp", "image/webp"),
    "image/tiff": ("png", "image/png"),
    "image/bmp": ("png", "image/png"),
    "image/x-ms-bmp": ("png", "image/png"),
}


class BitmapHandler(ImageHandler):
    """Raster images scaled with Pillow."""

    mime_types = frozenset(_OUTPUT)

    def __init__(self, quality: int = 80) -> None:
        self.quality = int(quality)

    def must_render(self, identity: "MediaIdentity") -> bool:
        return identity.mime_type in ("image/tiff", "image/bmp", "image/x-ms-bmp")

    def get_thumb_type(
        self, ext: str, mime: str, params: Optional[Mapping[str, Any]] = None
    ) -> Tuple[str, str]:
        out_ext, out_mime = _OUTPUT.get(mime, (ext, mime))
        # keep the source spelling when the type is unchanged (e.g. "jpeg")
        if out_mime == mime:
            return ext, mime
        return out_ext, out_mime

    def is_animated_image(self, identity: "MediaIdentity") -> bool:
        if identity.mime_type not in ("image/gif", "image/png", "image/webp"):
            return False
        src = identity.get_local_ref_path() if identity.repo is not None else None
        if src is None:
            return False
        try:
            with Image.open(src) as im:
                return bool(getattr(im, "is_animated", False))
        except OSError:
            return False

    def can_animate_thumbnail(self, identity: "MediaIdentity") -> bool:
        # Only the first frame is scaled
        return False

    def get_image_size(self, identity: Optional["MediaIdentity"], path: Path | str) -> Optional[Tuple[int, int]]:
        try:
            with Image.open(path) as im:
                return im.size
        except OSError:
            return None

    # ---- internals ----

    def _render(
        self, identity: "MediaIdentity", dst_path: Path, dst_url: str, params: Dict[str, Any], mime: str
    ) -> TransformOutput:
        src = identity.get_local_ref_path()
        if src is None:
            return TransformError(identity=identity, kind=ErrorKind.render,
                                  message=f"source file of {identity.name} is not available")
        width, height = int(params["width"]), int(params["height"])
        fmt = _OUTPUT.get(mime, (identity.extension, mime))[0]
        try:
            with Image.open(src) as im:
                im.seek(0)
                scaled = im.resize((width, height), Image.Resampling.LANCZOS)
            self._pillow_save(scaled, dst_path, fmt)
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.warning("scaling %s to %dx%d failed: %s", identity.name, width, height, e)
            return TransformError(identity=identity, kind=ErrorKind.render,
                                  message=f"error creating thumbnail: {e}",
                                  details={"width": width, "height": height})
        return ThumbnailImage.from_params(identity, dst_url, dst_path, params, mime)

    def _pillow_save(self, img: Image.Image, path: Path, fmt: str) -> None:
        fmt = fmt.lower()
        if fmt == "png":
            img.save(path, format="PNG", optimize=True)
        elif fmt in ("jpg", "jpeg"):
            img = img.convert("RGB")
            img.save(path, format="JPEG", quality=self.quality, optimize=True, progressive=True)
        elif fmt == "webp":
            img.save(path, format="WEBP", quality=self.quality, method=6)
        elif fmt == "gif":
            img.save(path, format="GIF")
        else:
            raise ValueError(f"Unsupported format: {fmt}")
