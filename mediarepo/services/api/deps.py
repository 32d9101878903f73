# mediarepo/services/api/deps.py
from __future__ import annotations
from http import HTTPStatus

from fastapi import Depends, HTTPException

from mediarepo.common.settings import get_settings
from mediarepo.domain.entities.media_identity import MediaIdentity
from mediarepo.domain.entities.transform_output import TransformError
from mediarepo.domain.enums.error_kind import ErrorKind
from mediarepo.domain.errors import InvalidTitleError
from mediarepo.services.handlers.registry import get_handler_registry
from mediarepo.services.purge.edge_cache import HttpEdgeCachePurger
from mediarepo.services.purge.observers import EdgePurgeObserver
from mediarepo.services.storage.local_repo import LocalFileRepo
from mediarepo.services.transform.engine import TransformEngine
from mediarepo.services.transform.thumb_service import ThumbService


def get_repo() -> LocalFileRepo:
    cfg = get_settings()
    return LocalFileRepo(cfg.repo, get_handler_registry())


def get_engine() -> TransformEngine:
    """
    Engine with the configured transform policy. Edge-cache purging is
    subscribed only when enabled.
    """
    cfg = get_settings()
    observers = []
    if cfg.edge_cache.enabled:
        observers.append(EdgePurgeObserver(HttpEdgeCachePurger(cfg.edge_cache, cfg.server_url)))
    return TransformEngine(cfg.transform, observers)


def get_thumb_service(
    repo: LocalFileRepo = Depends(get_repo),
    engine: TransformEngine = Depends(get_engine),
) -> ThumbService:
    return ThumbService(repo, engine, max_workers=get_settings().max_thumb_workers)


def find_or_404(repo: LocalFileRepo, name: str) -> MediaIdentity:
    try:
        identity = repo.find_file(name)
    except InvalidTitleError as e:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(e))
    if identity is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="File not found")
    return identity


def raise_for_error(result: TransformError) -> None:
    status = HTTPStatus.BAD_REQUEST if result.kind is ErrorKind.parameter else HTTPStatus.INTERNAL_SERVER_ERROR
    raise HTTPException(status_code=status, detail={"kind": str(result.kind), "message": result.message})
