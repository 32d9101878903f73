# tests/conftest.py
from __future__ import annotations
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
from PIL import Image

from mediarepo.common.settings import RepoConfig, TransformConfig
from mediarepo.domain.entities.transform_output import ThumbnailImage, TransformError, TransformOutput
from mediarepo.domain.enums.error_kind import ErrorKind
from mediarepo.domain.enums.flags import HandlerFlags
from mediarepo.services.handlers.base import ImageHandler
from mediarepo.services.handlers.bitmap import BitmapHandler
from mediarepo.services.handlers.registry import HandlerRegistry
from mediarepo.services.storage.local_repo import LocalFileRepo
from mediarepo.services.transform.engine import TransformEngine

_SVG_SIZE = re.compile(rb'width="(\d+)"\s+height="(\d+)"')


class FakeSvgHandler(ImageHandler):
    """Vector drawings rasterized to PNG; records every do_transform call."""

    mime_types = frozenset({"image/svg+xml"})

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.fail_with: Optional[str] = None

    def must_render(self, identity) -> bool:
        return True

    def is_vectorized(self, identity) -> bool:
        return True

    def get_thumb_type(self, ext, mime, params=None) -> Tuple[str, str]:
        return "png", "image/png"

    def do_transform(self, identity, dst_path, dst_url, params, flags=HandlerFlags.NONE):
        if not int(flags) & HandlerFlags.TRANSFORM_LATER:
            self.calls.append(dict(params, dst_path=dst_path))
        return super().do_transform(identity, dst_path, dst_url, params, flags)

    def _render(self, identity, dst_path: Path, dst_url, params, mime) -> TransformOutput:
        if self.fail_with:
            return TransformError(identity=identity, kind=ErrorKind.render, message=self.fail_with)
        Image.new("RGB", (params["width"], params["height"]), (0, 128, 255)).save(dst_path, format="PNG")
        return ThumbnailImage.from_params(identity, dst_url, dst_path, params, mime)

    def get_image_size(self, identity, path) -> Optional[Tuple[int, int]]:
        m = _SVG_SIZE.search(Path(path).read_bytes())
        return (int(m.group(1)), int(m.group(2))) if m else None


@pytest.fixture()
def svg_handler() -> FakeSvgHandler:
    return FakeSvgHandler()


@pytest.fixture()
def handlers(svg_handler) -> HandlerRegistry:
    reg = HandlerRegistry()
    reg.register(BitmapHandler())
    reg.register(svg_handler)
    return reg


@pytest.fixture()
def repo_config(tmp_path) -> RepoConfig:
    return RepoConfig(name="test", root=tmp_path / "repo")


@pytest.fixture()
def repo(repo_config, handlers) -> LocalFileRepo:
    return LocalFileRepo(repo_config, handlers)


@pytest.fixture()
def engine(tmp_path) -> TransformEngine:
    return TransformEngine(TransformConfig(temp_dir=tmp_path / "scratch"))


@pytest.fixture()
def make_png(tmp_path):
    """Write a solid-color PNG of the given size somewhere outside the repository."""
    counter = {"n": 0}

    def _make(size: Tuple[int, int] = (400, 200), color=(200, 30, 30)) -> Path:
        counter["n"] += 1
        p = tmp_path / "src" / f"img{counter['n']}.png"
        p.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", size, color).save(p, format="PNG")
        return p

    return _make


@pytest.fixture()
def publish_png(repo, make_png):
    def _publish(name: str = "Sunset.png", size: Tuple[int, int] = (400, 200)):
        status = repo.publish(make_png(size), name)
        assert status.ok, status.message
        return repo.new_file(name)

    return _publish


@pytest.fixture()
def publish_svg(repo, tmp_path):
    def _publish(name: str = "Example.svg", size: Tuple[int, int] = (240, 120)):
        src = tmp_path / "src" / name
        src.parent.mkdir(parents=True, exist_ok=True)
        src.write_text(
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{size[0]}" height="{size[1]}"></svg>',
            encoding="utf-8",
        )
        status = repo.publish(src, name)
        assert status.ok, status.message
        return repo.new_file(name)

    return _publish
