# mediarepo/domain/enums/media_type.py
from __future__ import annotations

from enum import StrEnum


class MediaType(StrEnum):
    UNKNOWN = "UNKNOWN"
    BITMAP = "BITMAP"
    DRAWING = "DRAWING"
    AUDIO = "AUDIO"
    VIDEO = "VIDEO"
    MULTIMEDIA = "MULTIMEDIA"
    OFFICE = "OFFICE"
    TEXT = "TEXT"
    EXECUTABLE = "EXECUTABLE"
    ARCHIVE = "ARCHIVE"

    @classmethod
    def for_mime(cls, mime: str | None) -> "MediaType":
        if not mime or mime == "unknown/unknown":
            return cls.UNKNOWN
        if mime in _DRAWING_MIMES:
            return cls.DRAWING
        if mime in _OFFICE_MIMES:
            return cls.OFFICE
        major = mime.split("/", 1)[0]
        return {
            "image": cls.BITMAP,
            "audio": cls.AUDIO,
            "video": cls.VIDEO,
            "text": cls.TEXT,
        }.get(major, cls.UNKNOWN)


_DRAWING_MIMES = frozenset({"image/svg+xml", "image/svg", "application/postscript", "image/x-xcf"})
_OFFICE_MIMES = frozenset({
    "application/pdf",
    "image/vnd.djvu",
    "application/msword",
    "application/vnd.oasis.opendocument.text",
})
