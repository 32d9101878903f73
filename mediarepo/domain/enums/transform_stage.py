from __future__ import annotations
from enum import StrEnum


class TransformStage(StrEnum):
    """Terminal state a transform request ended in."""
    icon = "icon"
    scripted = "scripted"
    invalid_params = "invalid_params"
    read_only = "read_only"
    deferred = "deferred"
    cached = "cached"
    allocation_failed = "allocation_failed"
    rendered = "rendered"
