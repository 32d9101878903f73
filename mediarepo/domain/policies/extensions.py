# mediarepo/domain/policies/extensions.py
from __future__ import annotations

import mimetypes
import re
from typing import TYPE_CHECKING, Tuple

if TYPE_CHECKING:
    from mediarepo.domain.entities.media_identity import MediaIdentity

# Synonyms collapse to one canonical spelling
_SQUISH = {
    "htm": "html",
    "jpeg": "jpg",
    "mpeg": "mpg",
    "tiff": "tif",
    "ogv": "ogg",
}
_CLEAN_EXT = re.compile(r"^[0-9a-z]+$")


def normalize_extension(ext: str) -> str:
    """
    Normalize a file extension (without the dot) to its common form.
    Extensions with non-alphanumeric characters are discarded ("" is returned).

      "JPEG" -> "jpg", "HTM" -> "html", "PNG" -> "png", "tif." -> ""
    """
    lower = (ext or "").lower()
    if lower in _SQUISH:
        return _SQUISH[lower]
    if _CLEAN_EXT.match(lower):
        return lower
    return ""


def extension_from_name(name: str) -> str:
    """Normalized extension of the substring after the last '.' ("" if none)."""
    n = name.rfind(".")
    # a leading dot is not an extension separator
    return normalize_extension(name[n + 1:] if n > 0 else "")


def extension_from_path(path: str) -> str:
    """Lower-cased raw extension of the last path segment, no synonym folding."""
    base = str(path).rsplit("/", 1)[-1]
    n = base.rfind(".")
    return base[n + 1:].lower() if n >= 0 else ""


def split_mime(mime: str) -> Tuple[str, str]:
    """Split "text/html" into ("text", "html"); a one-part name gets minor type "unknown"."""
    if "/" in mime:
        major, minor = mime.split("/", 1)
        return major, minor
    return mime, "unknown"


def guess_mime_type(name: str) -> str:
    mime, _ = mimetypes.guess_type(name, strict=False)
    return mime or "unknown/unknown"


def extensions_for_mime(mime: str) -> list[str]:
    return [normalize_extension(e.lstrip(".")) for e in mimetypes.guess_all_extensions(mime, strict=False)]


def is_matching_extension(ext: str, mime: str) -> bool | None:
    """True/False when the MIME type is known, None when we know nothing about it."""
    known = [e for e in extensions_for_mime(mime) if e]
    if not known:
        return None
    return normalize_extension(ext) in known


def check_extension_compatibility(identity: "MediaIdentity", new_name: str) -> bool | None:
    """Would renaming `identity` to `new_name` keep an extension matching its MIME type?"""
    return is_matching_extension(extension_from_name(new_name), identity.mime_type)
