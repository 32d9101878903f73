from __future__ import annotations
from enum import StrEnum


class Zone(StrEnum):
    public = "public"
    thumb = "thumb"
    transcoded = "transcoded"
    archive = "archive"
