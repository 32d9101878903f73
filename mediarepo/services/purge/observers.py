# mediarepo/services/purge/observers.py
from __future__ import annotations

from mediarepo.domain.dataclasses.events import DerivativeEvent
from mediarepo.domain.enums.transform_stage import TransformStage
from mediarepo.domain.ports.purge import EdgeCachePurgerPort


class EdgePurgeObserver:
    """
    Purges the thumbnail URL from edge caches after a render, unless the
    "thumbnail" is the original file itself (its URL equals the file URL).
    """

    def __init__(self, purger: EdgeCachePurgerPort) -> None:
        self.purger = purger

    def on_derivative_produced(self, event: DerivativeEvent) -> None:
        if event.stage is not TransformStage.rendered or not event.thumb_url:
            return
        result = event.result
        if result.is_error() or result.get_url() != event.identity.get_url():
            self.purger.purge([event.thumb_url])
