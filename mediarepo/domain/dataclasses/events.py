# mediarepo/domain/dataclasses/events.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from mediarepo.domain.enums.transform_stage import TransformStage

if TYPE_CHECKING:
    from mediarepo.domain.entities.media_identity import MediaIdentity
    from mediarepo.domain.entities.transform_output import TransformOutput


@dataclass(frozen=True)
class DerivativeEvent:
    """Emitted once per transform request, after it reached a terminal state."""
    identity: "MediaIdentity"
    result: "TransformOutput"
    stage: TransformStage
    thumb_url: Optional[str] = None
    thumb_path: Optional[str] = None
    tmp_path: Optional[Path] = None
