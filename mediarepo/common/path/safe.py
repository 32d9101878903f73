# mediarepo/common/path/safe.py
from __future__ import annotations

from pathlib import Path


def resolve_root(root: Path | str) -> Path:
    """Resolve a repository zone root directory."""
    return Path(root).expanduser().resolve()


def safe_join(root: Path | str, rel: Path | str) -> Path:
    """
    Join 'root' and a relative path safely, ensuring the result stays inside 'root'.
    Raises ValueError if traversal escapes the root.
    """
    r = resolve_root(root)
    p = (r / str(rel).lstrip("/")).resolve()
    ensure_inside(p, r)
    return p


def ensure_inside(path: Path | str, root: Path | str) -> None:
    """Validate that 'path' is inside (or equal to) 'root'. Raises ValueError if not."""
    p = Path(path).resolve()
    r = resolve_root(root)
    if p != r and r not in p.parents:
        raise ValueError(f"path {p} escapes root {r}")
