from mediarepo.domain.enums.zone import Zone
from mediarepo.domain.enums.flags import DeletedField, HandlerFlags, PublishFlags, RenderFlags, ThumbNameFlags
from mediarepo.domain.enums.media_type import MediaType
from mediarepo.domain.enums.error_kind import ErrorKind
from mediarepo.domain.enums.transform_stage import TransformStage

__all__ = [
    "Zone",
    "DeletedField",
    "HandlerFlags",
    "PublishFlags",
    "RenderFlags",
    "ThumbNameFlags",
    "MediaType",
    "ErrorKind",
    "TransformStage",
]
