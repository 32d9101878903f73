# mediarepo/services/api/routers/thumbs.py
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse, RedirectResponse

from mediarepo.domain.enums.flags import RenderFlags
from mediarepo.services.api.deps import find_or_404, get_engine, get_repo, get_thumb_service, raise_for_error
from mediarepo.services.schemas.files import ThumbBatchRequest, ThumbBatchResponse
from mediarepo.services.storage.local_repo import LocalFileRepo
from mediarepo.services.transform.engine import TransformEngine
from mediarepo.services.transform.thumb_service import ThumbService

router = APIRouter(tags=["thumbs"])


@router.get("/thumb")
def thumb(
    f: str = Query(..., description="File name"),
    width: int = Query(..., ge=1, le=10000),
    height: Optional[int] = Query(None, ge=1, le=10000),
    page: Optional[int] = Query(None, ge=1),
    repo: LocalFileRepo = Depends(get_repo),
    engine: TransformEngine = Depends(get_engine),
):
    """
    Target of scripted transforms: render now and send the thumbnail bytes.
    """
    identity = find_or_404(repo, f)
    params: Dict[str, Any] = {"width": width}
    if height is not None:
        params["height"] = height
    if page is not None:
        params["page"] = page

    result = engine.transform(identity, params, RenderFlags.RENDER_NOW)
    if result.is_error():
        raise_for_error(result)  # type: ignore[arg-type]

    path = result.storage_path or result.path
    if path is None:
        # icons and other URL-only outputs
        return RedirectResponse(result.get_url() or identity.get_url())
    return FileResponse(
        str(path),
        media_type=result.mime_type,
        headers={"Content-Disposition": identity.get_thumb_disposition(Path(str(path)).name)},
    )


@router.post("/thumbs/render", response_model=ThumbBatchResponse)
def render_thumbs(
    req: ThumbBatchRequest,
    svc: ThumbService = Depends(get_thumb_service),
) -> ThumbBatchResponse:
    rep = svc.run([(i.name, i.widths) for i in req.items], workers=req.workers, force=req.force)
    return ThumbBatchResponse(
        started_at=rep.started_at,
        finished_at=rep.finished_at,
        planned=rep.planned,
        generated=rep.generated,
        cached=rep.cached,
        deferred=rep.deferred,
        skipped=rep.skipped,
        errors=rep.errors,
        error_details=[f"{subject}: {msg}" for subject, msg in rep.error_details],
    )
