# mediarepo/services/api/app.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware

from mediarepo.common.logging import get_logger
from mediarepo.common.settings import get_settings
from mediarepo.services.api.routers import files, health, thumbs


def create_app() -> FastAPI:
    """
    App factory; run with `uvicorn --factory mediarepo.services.api.app:create_app`.
    """
    cfg = get_settings()
    dev = cfg.app_env.lower() == "development"
    get_logger("mediarepo", cfg.log_level)

    app = FastAPI(
        title="Mediarepo API",
        version="0.1.0",
        docs_url=f"{cfg.api.prefix}/docs",
        openapi_url=f"{cfg.api.prefix}/openapi.json",
    )

    allow_origins = ["*"] if dev else cfg.api.cors_allow_origins
    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_methods=cfg.api.cors_allow_methods,
        allow_headers=cfg.api.cors_allow_headers,
        allow_credentials=cfg.api.cors_allow_credentials,
    )

    # Routers
    app.include_router(health.router)
    app.include_router(files.router, prefix=cfg.api.prefix)
    app.include_router(thumbs.router, prefix=cfg.api.prefix)

    # Stored files; thumb zone first since its URL usually sits under the public one
    root = cfg.repo.root
    if cfg.repo.effective_thumb_url.startswith("/"):
        app.mount(cfg.repo.effective_thumb_url, StaticFiles(directory=str(root / cfg.repo.thumb_dir), check_dir=False),
                  name="thumb-zone")
    if cfg.repo.url_base.startswith("/") and cfg.repo.url_base.rstrip("/"):
        app.mount(cfg.repo.url_base.rstrip("/"), StaticFiles(directory=str(root / cfg.repo.public_dir), check_dir=False),
                  name="public-zone")
    return app
