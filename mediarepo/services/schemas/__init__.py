from mediarepo.services.schemas.files import (
    FileInfoRead,
    ThumbRead,
    ThumbBatchItem,
    ThumbBatchRequest,
    ThumbBatchResponse,
)
__all__ = [
    "FileInfoRead",
    "ThumbRead",
    "ThumbBatchItem",
    "ThumbBatchRequest",
    "ThumbBatchResponse",
]
