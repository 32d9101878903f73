# mediarepo/domain/policies/titles.py
from __future__ import annotations

import re

from mediarepo.domain.errors import InvalidTitleError

_NAMESPACE_PREFIX = re.compile(r"^(?:file|image|media)\s*:\s*", re.IGNORECASE)
_ILLEGAL = re.compile(r"[#<>\[\]|{}\x00-\x1f\x7f]")
_WHITESPACE = re.compile(r"[\s_]+")
MAX_TITLE_BYTES = 255


def normalize_title(title: str) -> str:
    """
    Turn a user-facing file title into the storage name (the "db key"):

      - drop a File:/Image:/Media: namespace prefix
      - collapse runs of whitespace/underscores into a single '_'
      - trim leading/trailing '_'
      - upper-case the first character

    Raises InvalidTitleError for empty names, illegal characters, names that
    start with '.' or '/', contain '/' path segments, or exceed 255 bytes.
    """
    if title is None:
        raise InvalidTitleError("empty file title")
    value = _NAMESPACE_PREFIX.sub("", str(title).strip())
    value = _WHITESPACE.sub("_", value).strip("_")

    if not value:
        raise InvalidTitleError(f"`{title}` is not a valid file title.")
    if _ILLEGAL.search(value):
        raise InvalidTitleError(f"`{title}` contains characters not allowed in file titles.")
    if "/" in value or value.startswith("."):
        raise InvalidTitleError(f"`{title}` is not a valid file title.")
    if len(value.encode("utf-8")) > MAX_TITLE_BYTES:
        raise InvalidTitleError(f"`{title}` is too long.")

    return value[0].upper() + value[1:]
