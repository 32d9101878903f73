# mediarepo/domain/dataclasses/reports.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class BaseReport:
    """Common report base:
    - timing: started_at / finished_at
    - error capture: error_details
    - helpers: start(), stop(), add_error(), as_dict()
    """
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    # Each tuple is (subject, message)
    error_details: List[Tuple[str, str]] = field(default_factory=list)

    def start(self) -> None:
        if self.started_at is None:
            self.started_at = datetime.now()

    def stop(self) -> None:
        self.finished_at = datetime.now()

    def add_error(self, subject: str, message: str) -> None:
        self.error_details.append((subject, message))

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ThumbReport(BaseReport):
    planned: int = 0
    generated: int = 0   # rendered and stored
    cached: int = 0      # fresh derivative already stored
    deferred: int = 0    # scripted or 404-deferred
    skipped: int = 0     # missing file or not renderable
    errors: int = 0

    def merge(self, other: "ThumbReport") -> "ThumbReport":
        self.planned += other.planned
        self.generated += other.generated
        self.cached += other.cached
        self.deferred += other.deferred
        self.skipped += other.skipped
        self.errors += other.errors
        self.error_details.extend(other.error_details)
        # prefer earliest start and latest finish
        if self.started_at is None or (other.started_at and other.started_at < self.started_at):
            self.started_at = other.started_at
        if other.finished_at and (self.finished_at is None or other.finished_at > self.finished_at):
            self.finished_at = other.finished_at
        return self
