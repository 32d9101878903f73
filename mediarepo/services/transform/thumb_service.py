# mediarepo/services/transform/thumb_service.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, Optional, Sequence, Tuple

from mediarepo.common.logging import get_logger
from mediarepo.domain.dataclasses.reports import ThumbReport
from mediarepo.domain.enums.flags import RenderFlags
from mediarepo.domain.enums.transform_stage import TransformStage
from mediarepo.services.storage.local_repo import LocalFileRepo
from mediarepo.services.transform.engine import TransformEngine

logger = get_logger(__name__)

_DEFERRED = (TransformStage.scripted, TransformStage.deferred)


class ThumbService:
    """Pre-render thumbnails for many files on a bounded thread pool."""

    def __init__(self, repo: LocalFileRepo, engine: TransformEngine, max_workers: int = 8):
        self.repo = repo
        self.engine = engine
        self.max_workers = max(1, int(max_workers))

    def process_one(self, name: str, width: int, flags: RenderFlags | int = RenderFlags.NONE) -> ThumbReport:
        rep = ThumbReport(planned=1)
        identity = self.repo.find_file(name)
        if identity is None:
            rep.skipped += 1
            rep.add_error(name, "file not found")
            return rep

        event = self.engine.transform_with_event(identity, {"width": width}, flags)
        if event.result.is_error():
            rep.errors += 1
            rep.add_error(f"{name}@{width}px", event.result.to_text())
        elif event.stage is TransformStage.icon:
            rep.skipped += 1
        elif event.stage is TransformStage.cached:
            rep.cached += 1
        elif event.stage in _DEFERRED:
            rep.deferred += 1
        else:
            rep.generated += 1
        return rep

    def run(
        self,
        requests: Iterable[Tuple[str, Sequence[int]]],
        *,
        workers: Optional[int] = None,
        force: bool = False,
    ) -> ThumbReport:
        """
        Render every (name, widths) request. Requests for the same derivative
        may run side by side; the repository's atomic import keeps that safe.
        """
        rep = ThumbReport()
        rep.start()

        jobs = [(name, int(w)) for name, widths in requests for w in widths]
        if not jobs:
            rep.stop()
            return rep

        flags = RenderFlags.RENDER_NOW | (RenderFlags.RENDER_FORCE if force else RenderFlags.NONE)
        # Thread cap: at least 1, no more than configured
        max_workers = max(1, min(int(workers or self.max_workers), self.max_workers))

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {pool.submit(self.process_one, name, w, flags): (name, w) for name, w in jobs}
            for fut in as_completed(futures):
                name, w = futures[fut]
                try:
                    rep.merge(fut.result())
                except Exception as e:
                    logger.exception("thumbnail job %s@%dpx failed", name, w)
                    rep.planned += 1
                    rep.errors += 1
                    rep.add_error(f"{name}@{w}px", str(e))

        rep.stop()
        logger.info("thumbnails: %d planned, %d generated, %d cached, %d errors",
                    rep.planned, rep.generated, rep.cached, rep.errors)
        return rep
