from __future__ import annotations
from enum import StrEnum


class ErrorKind(StrEnum):
    capability = "capability"   # no handler / handler cannot render
    storage = "storage"         # read-only repository, import failure
    render = "render"           # handler-reported transform failure
    resource = "resource"       # scratch file could not be allocated
    parameter = "parameter"     # parameters rejected during normalization
