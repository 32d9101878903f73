# mediarepo/services/api/routers/files.py
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Query

from mediarepo.services.api.deps import find_or_404, get_engine, get_repo, raise_for_error
from mediarepo.services.schemas.files import FileInfoRead, ThumbRead
from mediarepo.services.storage.local_repo import LocalFileRepo
from mediarepo.services.transform.engine import TransformEngine

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{name}", response_model=FileInfoRead)
def get_file(
    name: str,
    width: Optional[int] = Query(None, ge=1, le=10000, description="Also produce a thumbnail this wide"),
    repo: LocalFileRepo = Depends(get_repo),
    engine: TransformEngine = Depends(get_engine),
) -> FileInfoRead:
    identity = find_or_404(repo, name)
    dto = FileInfoRead(
        name=identity.name,
        url=identity.get_url(),
        mime_type=identity.mime_type,
        media_type=str(identity.media_type),
        width=identity.get_width(),
        height=identity.get_height(),
        size_bytes=identity.get_size(),
        timestamp=identity.get_timestamp(),
        dimensions=identity.get_dimensions_string(),
        can_render=identity.can_render(),
    )
    if width is not None:
        result = engine.transform(identity, {"width": width})
        if result.is_error():
            raise_for_error(result)  # type: ignore[arg-type]
        dto.thumb = ThumbRead(
            url=result.get_url(),
            width=result.width,
            height=result.height,
            page=result.page,
            mime_type=result.mime_type,
        )
    return dto
