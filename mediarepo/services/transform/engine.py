# mediarepo/services/transform/engine.py
"""
Derivative production for media files.

TransformEngine.transform() walks one request through a fixed sequence of
checks and ends in exactly one TransformStage:

    icon              the handler cannot render the file; placeholder icon
    scripted          a thumbnail script will scale on request (no write)
    invalid_params    the handler rejected the parameters
    read_only         the repository refuses writes
    deferred          the 404 handler will render when the URL is fetched
    cached            a derivative stamped at or after the epoch is stored
    allocation_failed no scratch file could be created
    rendered          the handler ran; the output was committed (or failed)

Operational failures come back as TransformError results. Observers are told
about every terminal state.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from mediarepo.common.logging import get_logger
from mediarepo.common.settings import TransformConfig
from mediarepo.domain.dataclasses.events import DerivativeEvent
from mediarepo.domain.entities.media_identity import MediaIdentity
from mediarepo.domain.entities.transform_output import ThumbnailImage, TransformError, TransformOutput
from mediarepo.domain.enums.error_kind import ErrorKind
from mediarepo.domain.enums.flags import RenderFlags
from mediarepo.domain.enums.transform_stage import TransformStage
from mediarepo.domain.policies.extensions import extension_from_path
from mediarepo.domain.ports.purge import DerivativeObserver
from mediarepo.services.storage.temp_file import TempFile

logger = get_logger(__name__)

ICON_SIZE = 120


class TransformEngine:
    def __init__(self, config: Optional[TransformConfig] = None,
                 observers: Iterable[DerivativeObserver] = ()) -> None:
        self.config = config or TransformConfig()
        self._observers: List[DerivativeObserver] = list(observers)

    def subscribe(self, observer: DerivativeObserver) -> None:
        self._observers.append(observer)

    # ---- entry points ----------------------------------------------------------

    def transform(
        self,
        identity: MediaIdentity,
        params: Mapping[str, Any],
        flags: RenderFlags | int = RenderFlags.NONE,
    ) -> TransformOutput:
        """Produce (or locate, or defer) the derivative of `identity` for `params`."""
        return self.transform_with_event(identity, params, flags).result

    def transform_with_event(
        self,
        identity: MediaIdentity,
        params: Mapping[str, Any],
        flags: RenderFlags | int = RenderFlags.NONE,
    ) -> DerivativeEvent:
        """Like transform(), but also reports the stage the request ended in."""
        event = self._run(identity, dict(params), RenderFlags(int(flags)))
        self._notify(event)
        return event

    # ---- state machine ------------------------------------------------------------

    def _run(self, identity: MediaIdentity, params: Dict[str, Any], flags: RenderFlags) -> DerivativeEvent:
        handler = identity.get_handler()
        if handler is None or not identity.can_render():
            logger.debug("%s: not renderable, using icon", identity.name)
            return DerivativeEvent(identity, self.icon_thumb(identity), TransformStage.icon)

        script = identity.get_transform_script()
        if script and not flags & RenderFlags.RENDER_NOW:
            scripted = handler.get_scripted_transform(identity, script, dict(params))
            if scripted is not None:
                logger.debug("%s: transformation handed to %s", identity.name, script)
                return DerivativeEvent(identity, scripted, TransformStage.scripted)

        if not handler.normalize_params(identity, params):
            identity.last_error = f"invalid thumbnail parameters for {identity.name}"
            err = TransformError(identity=identity, kind=ErrorKind.parameter,
                                 message=identity.last_error, width=int(params.get("width") or 0))
            return DerivativeEvent(identity, err, TransformStage.invalid_params)

        repo = identity.require_repo()
        thumb_name = identity.thumb_name(params)
        thumb_url = identity.get_thumb_url(thumb_name)
        thumb_path = identity.get_thumb_path(thumb_name)

        reason = repo.is_read_only()
        if reason:
            identity.last_error = f"repository {repo.name} is read-only: {reason}"
            err = TransformError(identity=identity, kind=ErrorKind.storage,
                                 message=identity.last_error, width=params["width"])
            return DerivativeEvent(identity, err, TransformStage.read_only, thumb_url, thumb_path)

        if repo.supports_deferred_rendering_via_404() and not flags & RenderFlags.RENDER_NOW:
            logger.debug("%s: transformation deferred to %s", identity.name, thumb_url)
            thumb = self._or_error(identity, handler.get_transform(identity, thumb_path, thumb_url, params), params)
            return DerivativeEvent(identity, thumb, TransformStage.deferred, thumb_url, thumb_path)

        if not flags & RenderFlags.RENDER_FORCE:
            logger.debug("%s: doing stat for %s", identity.name, thumb_path)
            if repo.exists(thumb_path):
                timestamp = repo.get_timestamp(thumb_path)
                if timestamp is not None and timestamp >= self.config.thumbnail_epoch:
                    thumb = self._or_error(identity, handler.get_transform(identity, thumb_path, thumb_url, params),
                                           params)
                    if not thumb.is_error():
                        thumb.set_storage_path(thumb_path)
                    return DerivativeEvent(identity, thumb, TransformStage.cached, thumb_url, thumb_path)
        else:
            logger.debug("%s: forcing rendering of %s", identity.name, thumb_name)

        try:
            tmp = TempFile.factory("transform_", extension_from_path(thumb_path), self.config.temp_dir)
        except OSError as e:
            identity.last_error = f"could not create a temporary file: {e}"
            logger.warning("%s: %s", identity.name, identity.last_error)
            thumb = self.transform_error_output(identity, thumb_path, thumb_url, params, flags,
                                                kind=ErrorKind.resource, message=identity.last_error)
            return DerivativeEvent(identity, thumb, TransformStage.allocation_failed, thumb_url, thumb_path)

        with tmp:
            thumb = handler.do_transform(identity, tmp.path, thumb_url, params)
            if thumb is None:
                identity.last_error = f"the handler produced no output for {identity.name}"
                thumb = TransformError(identity=identity, kind=ErrorKind.parameter,
                                       message=identity.last_error, width=params["width"])
            elif thumb.is_error():
                identity.last_error = thumb.to_text()
                logger.warning("%s: transform failed: %s", identity.name, identity.last_error)
                if self.config.ignore_image_errors and not flags & RenderFlags.RENDER_NOW:
                    thumb = self._or_error(identity, handler.get_transform(identity, tmp.path, thumb_url, params),
                                           params)
            elif thumb.has_file() and not thumb.file_is_source():
                disposition = identity.get_thumb_disposition(thumb_name)
                status = repo.quick_import(tmp.path, thumb_path, disposition)
                if status.ok:
                    thumb.set_storage_path(thumb_path)
                else:
                    identity.last_error = status.message
                    logger.warning("%s: storing %s failed: %s", identity.name, thumb_path, status.message)
                    thumb = self.transform_error_output(identity, thumb_path, thumb_url, params, flags,
                                                        message=status.message)

            # The scratch file lives as long as a result that points at it
            if thumb.path is not None and str(thumb.path) == str(tmp.path):
                tmp.bind(thumb)

        return DerivativeEvent(identity, thumb, TransformStage.rendered, thumb_url, thumb_path, tmp.path)

    def _notify(self, event: DerivativeEvent) -> None:
        for observer in list(self._observers):
            try:
                observer.on_derivative_produced(event)
            except Exception:
                logger.exception("observer %r failed for %s", observer, event.identity.name)

    @staticmethod
    def _or_error(identity: MediaIdentity, thumb: Optional[TransformOutput], params: Mapping[str, Any]) -> TransformOutput:
        if thumb is not None:
            return thumb
        return TransformError(identity=identity, kind=ErrorKind.parameter,
                              message=f"the handler produced no output for {identity.name}",
                              width=int(params.get("width") or 0))

    # ---- fallbacks ---------------------------------------------------------------------

    def transform_error_output(
        self,
        identity: MediaIdentity,
        thumb_path: str,
        thumb_url: str,
        params: Dict[str, Any],
        flags: RenderFlags | int = RenderFlags.NONE,
        *,
        kind: ErrorKind = ErrorKind.storage,
        message: Optional[str] = None,
    ) -> TransformOutput:
        """
        A placeholder describing the would-be derivative when image errors are
        ignored (and RENDER_NOW is not set), otherwise a TransformError.
        """
        handler = identity.get_handler()
        if handler is not None and self.config.ignore_image_errors and not int(flags) & RenderFlags.RENDER_NOW:
            thumb = handler.get_transform(identity, thumb_path, thumb_url, params)
            if thumb is not None:
                return thumb
        return TransformError(identity=identity, kind=kind,
                              message=message or "could not create the thumbnail destination",
                              width=int(params.get("width") or 0))

    def icon_thumb(self, identity: MediaIdentity) -> TransformOutput:
        """File-type icon for media that cannot be rendered."""
        icon_dir = self.config.icon_dir
        if icon_dir is not None:
            for icon in (f"fileicon-{identity.extension}.png", "fileicon.png"):
                if (Path(icon_dir) / icon).is_file():
                    url = f"{self.config.icon_url.rstrip('/')}/{icon}"
                    return ThumbnailImage.from_params(
                        identity, url, None, {"width": ICON_SIZE, "height": ICON_SIZE}, "image/png"
                    )
        return TransformError(identity=identity, kind=ErrorKind.capability,
                              message=f"cannot render {identity.name} ({identity.mime_type})")

    # ---- conveniences ----------------------------------------------------------------------

    def create_thumb(self, identity: MediaIdentity, width: int, height: int = -1) -> str:
        """URL of a thumbnail no larger than width x height, or "" on failure."""
        params: Dict[str, Any] = {"width": width}
        if height != -1:
            params["height"] = height
        thumb = self.transform(identity, params)
        if thumb.is_error():
            return ""
        return thumb.get_url() or ""

    def get_unscaled_thumb(self, identity: MediaIdentity, handler_params: Optional[Mapping[str, Any]] = None) -> TransformOutput:
        """A derivative the same size as the source."""
        params = dict(handler_params or {})
        width = identity.get_width(params.get("page") or 1)
        if not width:
            return self.icon_thumb(identity)
        params["width"] = width
        return self.transform(identity, params)

    def get_view_url(self, identity: MediaIdentity) -> str:
        """URL a browser can display: a full-width rendering for must-render formats."""
        if identity.must_render():
            if identity.can_render():
                return self.create_thumb(identity, identity.get_width() or 0)
            logger.debug("%s: must render but can't", identity.name)
            return ""
        return identity.get_url()

    def is_safe_file(self, identity: MediaIdentity) -> bool:
        return identity.is_safe_file(self.config.trusted_media_formats)
