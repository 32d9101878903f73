# mediarepo/domain/enums/flags.py
from __future__ import annotations

from enum import IntFlag


class RenderFlags(IntFlag):
    NONE = 0
    # Render in the current process, skipping scripted and 404-deferred paths
    RENDER_NOW = 1
    # Re-render even if a fresh derivative is already stored
    RENDER_FORCE = 2


class ThumbNameFlags(IntFlag):
    NONE = 0
    # Always use "<params>-<source name>", never the repository's abbreviated name
    THUMB_FULL_NAME = 1


class DeletedField(IntFlag):
    """Independently revokable view permissions of a file version."""
    NONE = 0
    FILE = 1
    COMMENT = 2
    USER = 4
    RESTRICTED = 8


class PublishFlags(IntFlag):
    NONE = 0
    DELETE_SOURCE = 1


class HandlerFlags(IntFlag):
    NONE = 0
    # Describe the output at dst_path/dst_url without producing bytes
    TRANSFORM_LATER = 1
