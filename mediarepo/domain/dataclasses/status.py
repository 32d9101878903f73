# mediarepo/domain/dataclasses/status.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List


@dataclass
class RepoStatus:
    """Outcome of a repository write. Never raised; callers check `ok`."""
    ok: bool = True
    errors: List[str] = field(default_factory=list)
    value: Any = None

    @classmethod
    def good(cls, value: Any = None) -> "RepoStatus":
        return cls(ok=True, value=value)

    @classmethod
    def fatal(cls, message: str) -> "RepoStatus":
        return cls(ok=False, errors=[message])

    def fail(self, message: str) -> "RepoStatus":
        self.ok = False
        self.errors.append(message)
        return self

    @property
    def message(self) -> str:
        return "; ".join(self.errors)
