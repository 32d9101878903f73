# mediarepo/domain/policies/derivative_namer.py
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from mediarepo.domain.enums.flags import ThumbNameFlags
from mediarepo.domain.errors import NoHandlerError
from mediarepo.domain.policies.extensions import extension_from_path

if TYPE_CHECKING:
    from mediarepo.domain.entities.media_identity import MediaIdentity


def abbreviate_name(name: str, threshold: int) -> str:
    """Names longer than `threshold` are replaced by "thumbnail[.<ext>]" in derivative names."""
    if len(name) <= threshold:
        return name
    ext = extension_from_path(name)
    return f"thumbnail.{ext}" if ext else "thumbnail"


def derivative_name(
    identity: "MediaIdentity",
    params: Mapping[str, Any],
    flags: ThumbNameFlags | int = ThumbNameFlags.NONE,
) -> str:
    """
    File name of the derivative of `identity` for already-normalized `params`.

    The base is the repository's display name for thumbnails unless
    THUMB_FULL_NAME is passed, in which case the identity name is used as-is.
    """
    repo = identity.repo
    if repo is not None and not (int(flags) & ThumbNameFlags.THUMB_FULL_NAME):
        base = repo.name_for_thumb(identity.name)
    else:
        base = identity.name
    return generate_derivative_name(identity, base, params)


def generate_derivative_name(identity: "MediaIdentity", base_name: str, params: Mapping[str, Any]) -> str:
    """"<param string>-<base_name>[.<output ext>]". Raises NoHandlerError without a handler."""
    handler = identity.get_handler()
    if handler is None:
        raise NoHandlerError(f"no media handler for {identity.name} ({identity.mime_type})")
    extension = identity.extension
    thumb_ext, _thumb_mime = handler.get_thumb_type(extension, identity.mime_type, params)
    name = f"{handler.make_param_string(params)}-{base_name}"
    if thumb_ext != extension:
        name += f".{thumb_ext}"
    return name
