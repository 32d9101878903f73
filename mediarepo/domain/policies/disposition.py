# mediarepo/domain/policies/disposition.py
from __future__ import annotations


def make_content_disposition(kind: str, filename: str = "") -> str:
    """Build a Content-Disposition value, e.g. 'inline; filename="Foo.png"'."""
    if not filename:
        return kind
    safe = filename.replace("\\", "\\\\").replace('"', '\\"')
    return f'{kind}; filename="{safe}"'
