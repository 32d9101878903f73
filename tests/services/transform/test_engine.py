import gc
import hashlib
import os
from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

import mediarepo.services.transform.engine as engine_mod
from mediarepo.common.settings import RepoConfig, TransformConfig
from mediarepo.domain.dataclasses.status import RepoStatus
from mediarepo.domain.entities.media_identity import MediaIdentity
from mediarepo.domain.enums.error_kind import ErrorKind
from mediarepo.domain.enums.flags import RenderFlags
from mediarepo.domain.enums.transform_stage import TransformStage
from mediarepo.domain.errors import RepoNotDefinedError
from mediarepo.services.storage.local_repo import LocalFileRepo
from mediarepo.services.transform.engine import TransformEngine


def _hp(name: str) -> str:
    d = hashlib.md5(name.encode("utf-8")).hexdigest()
    return f"{d[0]}/{d[:2]}/"


def _age(path: str, year: int) -> None:
    stamp = datetime(year, 1, 1).timestamp()
    os.utime(path, (stamp, stamp))


def _scratch_files(tmp_path):
    d = tmp_path / "scratch"
    return sorted(p.name for p in d.iterdir()) if d.exists() else []


# ---- end to end ---------------------------------------------------------------

def test_svg_rendered_to_png_end_to_end(publish_svg, engine, svg_handler, repo):
    identity = publish_svg("Example.svg", (240, 120))
    event = engine.transform_with_event(identity, {"width": 120})
    thumb = event.result

    assert event.stage is TransformStage.rendered
    assert not thumb.is_error()
    assert (thumb.width, thumb.height) == (120, 60)
    assert thumb.mime_type == "image/png"

    # A differing output extension is appended and thumbs sit in a per-source directory
    hp = _hp("Example.svg")
    assert event.thumb_path == f"{repo.root}/thumb/{hp}Example.svg/120px-Example.svg.png"
    assert thumb.url == f"/images/thumb/{hp}Example.svg/120px-Example.svg.png"
    assert thumb.storage_path == event.thumb_path
    with Image.open(thumb.storage_path) as im:
        assert im.size == (120, 60)
    assert len(svg_handler.calls) == 1


def test_full_size_raster_uses_source(publish_png, engine, repo):
    identity = publish_png("Wide.png", (400, 200))
    thumb = engine.transform(identity, {"width": 400})
    assert thumb.url == identity.get_url()
    assert thumb.storage_path is None
    assert repo.list_thumbnails(identity) == []


def test_raster_thumbnail_is_stored(publish_png, engine, repo):
    identity = publish_png("Wide.png", (400, 200))
    thumb = engine.transform(identity, {"width": 100})
    assert not thumb.is_error()
    assert repo.list_thumbnails(identity) == ["100px-Wide.png"]
    assert identity.last_error is None


# ---- freshness ----------------------------------------------------------------

def test_fresh_derivative_is_reused(publish_svg, engine, svg_handler):
    identity = publish_svg()
    engine.transform(identity, {"width": 120})
    event = engine.transform_with_event(identity, {"width": 120})
    assert event.stage is TransformStage.cached
    assert event.result.storage_path == event.thumb_path
    assert len(svg_handler.calls) == 1


def test_derivative_older_than_epoch_is_rerendered(publish_svg, engine, svg_handler):
    identity = publish_svg()
    first = engine.transform_with_event(identity, {"width": 120})
    _age(first.thumb_path, 2001)
    event = engine.transform_with_event(identity, {"width": 120})
    assert event.stage is TransformStage.rendered
    assert len(svg_handler.calls) == 2


def test_epoch_bump_invalidates_everything(publish_svg, tmp_path, svg_handler):
    identity = publish_svg()
    TransformEngine(TransformConfig(temp_dir=tmp_path / "scratch")).transform(identity, {"width": 120})
    bumped = TransformEngine(TransformConfig(thumbnail_epoch="29990101000000", temp_dir=tmp_path / "scratch"))
    assert bumped.transform_with_event(identity, {"width": 120}).stage is TransformStage.rendered
    assert len(svg_handler.calls) == 2


def test_force_always_renders(publish_svg, engine, svg_handler):
    identity = publish_svg()
    engine.transform(identity, {"width": 120})
    event = engine.transform_with_event(identity, {"width": 120}, RenderFlags.RENDER_FORCE)
    assert event.stage is TransformStage.rendered
    assert len(svg_handler.calls) == 2


def test_source_edit_does_not_invalidate_fresh_derivative(publish_svg, engine, svg_handler, repo):
    # Freshness looks only at the epoch: a newer source still gets the old derivative
    identity = publish_svg("Example.svg", (240, 120))
    first = engine.transform_with_event(identity, {"width": 120})
    publish_svg("Example.svg", (240, 120))
    assert repo.get_timestamp(identity.get_path()) >= repo.get_timestamp(first.thumb_path)

    event = engine.transform_with_event(repo.new_file("Example.svg"), {"width": 120})
    assert event.stage is TransformStage.cached
    assert len(svg_handler.calls) == 1


# ---- short circuits -------------------------------------------------------------

def _read_only_view(repo_config, handlers, reason="database locked"):
    return LocalFileRepo(repo_config.model_copy(update={"read_only_reason": reason}), handlers)


@pytest.mark.parametrize("flags", [RenderFlags.NONE, RenderFlags.RENDER_FORCE, RenderFlags.RENDER_NOW | RenderFlags.RENDER_FORCE])
def test_read_only_never_renders(publish_svg, repo_config, handlers, svg_handler, tmp_path, flags):
    publish_svg()
    ro = _read_only_view(repo_config, handlers)
    identity = ro.new_file("Example.svg")
    engine = TransformEngine(TransformConfig(ignore_image_errors=True, temp_dir=tmp_path / "scratch"))

    event = engine.transform_with_event(identity, {"width": 120}, flags)
    assert event.stage is TransformStage.read_only
    assert event.result.is_error()
    assert event.result.kind is ErrorKind.storage
    assert "database locked" in event.result.message
    assert event.result.path is None and event.result.storage_path is None
    assert svg_handler.calls == []


def test_read_only_wins_over_fresh_cache(publish_svg, repo_config, handlers, engine, svg_handler):
    identity = publish_svg()
    engine.transform(identity, {"width": 120})
    ro_identity = _read_only_view(repo_config, handlers).new_file("Example.svg")
    assert engine.transform(ro_identity, {"width": 120}).is_error()
    assert len(svg_handler.calls) == 1


def test_404_deferral(publish_svg, repo_config, handlers, engine, svg_handler):
    publish_svg()
    lazy = LocalFileRepo(repo_config.model_copy(update={"transform_via_404": True}), handlers)
    identity = lazy.new_file("Example.svg")

    event = engine.transform_with_event(identity, {"width": 120}, RenderFlags.RENDER_FORCE)
    assert event.stage is TransformStage.deferred
    assert event.result.url == event.thumb_url
    assert (event.result.width, event.result.height) == (120, 60)
    assert not os.path.exists(event.thumb_path)
    assert svg_handler.calls == []

    now = engine.transform_with_event(identity, {"width": 120}, RenderFlags.RENDER_NOW)
    assert now.stage is TransformStage.rendered
    assert os.path.exists(now.thumb_path)


def test_scripted_transform(publish_svg, repo_config, handlers, engine, svg_handler):
    publish_svg()
    scripted = LocalFileRepo(repo_config.model_copy(update={"thumb_script_url": "/api/thumb"}), handlers)
    identity = scripted.new_file("Example.svg")

    event = engine.transform_with_event(identity, {"width": 120})
    assert event.stage is TransformStage.scripted
    assert event.result.url == "/api/thumb?f=Example.svg&width=120"
    assert event.result.path is None
    assert svg_handler.calls == []

    assert engine.transform_with_event(identity, {"width": 120}, RenderFlags.RENDER_NOW).stage is TransformStage.rendered


def test_unrenderable_file_gets_icon(repo, tmp_path):
    icons = tmp_path / "icons"
    icons.mkdir()
    (icons / "fileicon-txt.png").write_bytes(b"png")
    (icons / "fileicon.png").write_bytes(b"png")
    engine = TransformEngine(TransformConfig(icon_dir=icons, icon_url="/static/icons/"))

    txt = MediaIdentity("Notes.txt", repo, mime_type="text/plain")
    event = engine.transform_with_event(txt, {"width": 300})
    assert event.stage is TransformStage.icon
    assert event.result.url == "/static/icons/fileicon-txt.png"
    assert (event.result.width, event.result.height) == (120, 120)

    odd = MediaIdentity("Data.xyz", repo, mime_type="application/x-xyz")
    assert engine.transform(odd, {"width": 300}).url == "/static/icons/fileicon.png"


def test_no_icon_is_a_capability_error(repo, engine):
    result = engine.transform(MediaIdentity("Notes.txt", repo, mime_type="text/plain"), {"width": 300})
    assert result.is_error()
    assert result.kind is ErrorKind.capability


def test_invalid_params(publish_svg, engine, svg_handler):
    identity = publish_svg()
    event = engine.transform_with_event(identity, {"width": 0})
    assert event.stage is TransformStage.invalid_params
    assert event.result.kind is ErrorKind.parameter
    assert identity.last_error
    assert svg_handler.calls == []


# ---- failures -----------------------------------------------------------------

def test_render_failure_is_returned_and_recorded(publish_svg, engine, svg_handler, tmp_path):
    identity = publish_svg()
    svg_handler.fail_with = "corrupt drawing"

    event = engine.transform_with_event(identity, {"width": 120})
    assert event.stage is TransformStage.rendered
    assert event.result.is_error()
    assert event.result.kind is ErrorKind.render
    assert event.result.path is None
    assert identity.last_error == "corrupt drawing"
    assert not os.path.exists(event.thumb_path)
    assert _scratch_files(tmp_path) == []


def test_render_failure_tolerated_unless_render_now(publish_svg, svg_handler, tmp_path):
    identity = publish_svg()
    svg_handler.fail_with = "corrupt drawing"
    tolerant = TransformEngine(TransformConfig(ignore_image_errors=True, temp_dir=tmp_path / "scratch"))

    degraded = tolerant.transform(identity, {"width": 120})
    assert not degraded.is_error()
    assert degraded.width == 120
    assert identity.last_error == "corrupt drawing"

    strict = tolerant.transform(identity, {"width": 120}, RenderFlags.RENDER_NOW)
    assert strict.is_error()


def test_import_failure_is_not_success(publish_svg, engine, repo, monkeypatch, tmp_path):
    identity = publish_svg()
    monkeypatch.setattr(repo, "quick_import", lambda src, dst, disposition=None: RepoStatus.fatal("disk full"))

    result = engine.transform(identity, {"width": 120})
    assert result.is_error()
    assert result.kind is ErrorKind.storage
    assert result.storage_path is None
    assert identity.last_error == "disk full"
    del result
    gc.collect()
    assert _scratch_files(tmp_path) == []


def test_import_failure_tolerated_gives_placeholder(publish_svg, repo, monkeypatch, tmp_path):
    identity = publish_svg()
    monkeypatch.setattr(repo, "quick_import", lambda src, dst, disposition=None: RepoStatus.fatal("disk full"))
    tolerant = TransformEngine(TransformConfig(ignore_image_errors=True, temp_dir=tmp_path / "scratch"))

    event = tolerant.transform_with_event(identity, {"width": 120})
    assert not event.result.is_error()
    assert event.result.url == event.thumb_url
    assert event.result.storage_path is None


def test_temp_file_allocation_failure(publish_svg, engine, svg_handler, monkeypatch):
    identity = publish_svg()

    def _boom(*args, **kwargs):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(engine_mod.TempFile, "factory", _boom)
    event = engine.transform_with_event(identity, {"width": 120})
    assert event.stage is TransformStage.allocation_failed
    assert event.result.kind is ErrorKind.resource
    assert svg_handler.calls == []


def test_zero_byte_temp_file_exists_before_render(publish_svg, engine, svg_handler):
    identity = publish_svg()
    seen = {}
    original = svg_handler._render

    def spy(identity, dst_path, dst_url, params, mime):
        seen["exists"] = dst_path.exists()
        seen["size"] = dst_path.stat().st_size
        seen["suffix"] = dst_path.suffix
        return original(identity, dst_path, dst_url, params, mime)

    svg_handler._render = spy
    engine.transform(identity, {"width": 120})
    assert seen == {"exists": True, "size": 0, "suffix": ".png"}


def test_scratch_file_follows_result_lifetime(publish_svg, engine, tmp_path):
    identity = publish_svg()
    thumb = engine.transform(identity, {"width": 120})
    scratch = Path(thumb.path)
    assert scratch.exists()
    assert scratch.parent == tmp_path / "scratch"
    del thumb
    gc.collect()
    assert not scratch.exists()


def test_unexpected_handler_exception_cleans_up(publish_svg, engine, svg_handler, tmp_path):
    identity = publish_svg()

    def explode(*args, **kwargs):
        raise RuntimeError("cancelled")

    svg_handler._render = explode
    with pytest.raises(RuntimeError):
        engine.transform(identity, {"width": 120})
    assert _scratch_files(tmp_path) == []


def test_identity_without_repo_is_a_contract_violation(handlers, engine):
    identity = MediaIdentity("Example.svg", handlers=handlers, mime_type="image/svg+xml", width=240, height=120)
    with pytest.raises(RepoNotDefinedError):
        engine.transform(identity, {"width": 120})


# ---- conveniences ---------------------------------------------------------------

def test_create_thumb_returns_url_or_empty(publish_svg, engine, svg_handler):
    identity = publish_svg()
    url = engine.create_thumb(identity, 120)
    assert url.endswith("/120px-Example.svg.png")
    # a 50px-high box limits a 2:1 drawing to 100px
    assert engine.create_thumb(identity, 500, 50).endswith("/100px-Example.svg.png")
    svg_handler.fail_with = "nope"
    assert engine.create_thumb(identity, 130) == ""


def test_view_url(publish_svg, publish_png, engine):
    svg = publish_svg("Example.svg", (240, 120))
    assert engine.get_view_url(svg).endswith("/240px-Example.svg.png")
    png = publish_png("Wide.png", (400, 200))
    assert engine.get_view_url(png) == png.get_url()


def test_unscaled_thumb(publish_svg, engine):
    identity = publish_svg("Example.svg", (240, 120))
    thumb = engine.get_unscaled_thumb(identity)
    assert (thumb.width, thumb.height) == (240, 120)


def test_safe_file_uses_configured_formats(repo):
    engine = TransformEngine(TransformConfig(trusted_media_formats=["AUDIO"]))
    assert engine.is_safe_file(MediaIdentity("Song.ogg", repo, mime_type="audio/ogg"))
    assert not engine.is_safe_file(MediaIdentity("Page.html", repo, mime_type="text/html"))
