import hashlib

import pytest

from mediarepo.domain.entities.media_identity import ArchivedMediaIdentity, MediaIdentity
from mediarepo.domain.enums.flags import DeletedField
from mediarepo.domain.enums.media_type import MediaType
from mediarepo.domain.errors import RepoNotDefinedError


def _hp(name: str) -> str:
    d = hashlib.md5(name.encode("utf-8")).hexdigest()
    return f"{d[0]}/{d[:2]}/"


def test_name_is_normalized_and_immutable():
    identity = MediaIdentity("File:example photo.JPEG")
    assert identity.name == "Example_photo.JPEG"
    assert identity.extension == "jpg"
    with pytest.raises(AttributeError):
        identity.name = "Other.png"


def test_storage_operations_need_a_repo():
    identity = MediaIdentity("Example.jpg")
    with pytest.raises(RepoNotDefinedError):
        identity.get_path()
    with pytest.raises(RepoNotDefinedError):
        identity.exists()


def test_paths_and_urls(repo):
    identity = MediaIdentity("Example.jpg", repo)
    hp = _hp("Example.jpg")
    assert identity.hash_path == hp
    assert identity.get_rel() == f"{hp}Example.jpg"
    assert identity.get_path() == f"{repo.root}/public/{hp}Example.jpg"
    assert identity.get_url() == f"/images/{hp}Example.jpg"
    assert identity.get_thumb_url("120px-Example.jpg") == f"/images/thumb/{hp}Example.jpg/120px-Example.jpg"
    assert identity.get_thumb_path("120px-Example.jpg") == f"{repo.root}/thumb/{hp}Example.jpg/120px-Example.jpg"
    assert identity.get_archive_rel() == f"archive/{hp[:-1]}"
    assert identity.get_full_url("https://wiki.example.org") == f"https://wiki.example.org/images/{hp}Example.jpg"
    assert identity.is_hashed()


def test_path_resolution_is_stable(repo):
    a = MediaIdentity("Example.jpg", repo)
    b = MediaIdentity("Example.jpg", repo)
    assert a.get_path() == b.get_path() == a.get_path()
    assert a.resolve_url("thumb", "20240101000000", "x.jpg") == b.resolve_url("thumb", "20240101000000", "x.jpg")


def test_virtual_urls(repo):
    identity = MediaIdentity("A b.png", repo)
    hp = _hp("A_b.png")
    assert identity.get_virtual_url() == f"mwrepo://test/public/{hp}A_b.png"
    assert identity.get_thumb_virtual_url("1 px.png") == f"mwrepo://test/thumb/{hp}A_b.png/1%20px.png"
    assert identity.get_archive_virtual_url() == f"mwrepo://test/public/archive/{hp[:-1]}"


def test_derived_fields_are_computed_once(repo, handlers, monkeypatch):
    calls = []
    real = handlers.get_handler

    def counting(mime):
        calls.append(mime)
        return real(mime)

    monkeypatch.setattr(handlers, "get_handler", counting)
    identity = MediaIdentity("Example.png", repo, handlers=handlers, mime_type="image/png", width=10, height=10)
    for _ in range(3):
        identity.get_handler()
        identity.can_render()
    assert calls == ["image/png"]


def test_local_reference_miss_is_cached(repo, monkeypatch):
    identity = MediaIdentity("Missing.png", repo)
    assert identity.get_local_ref_path() is None
    monkeypatch.setattr(repo, "get_local_reference", lambda path: pytest.fail("looked up twice"))
    assert identity.get_local_ref_path() is None


def test_capabilities_without_handler():
    identity = MediaIdentity("Notes.txt", mime_type="text/plain")
    assert not identity.can_render()
    assert not identity.must_render()
    assert identity.media_type is MediaType.TEXT
    assert identity.get_dimensions_string() == ""


def test_visibility_bits():
    identity = MediaIdentity("Secret.png", visibility=DeletedField.FILE | DeletedField.USER)
    assert identity.is_deleted(DeletedField.FILE)
    assert not identity.is_deleted(DeletedField.COMMENT)
    assert identity.user_can(DeletedField.COMMENT)
    assert not identity.user_can(DeletedField.FILE)
    assert identity.user_can(DeletedField.FILE, {"deletedhistory"})

    restricted = MediaIdentity("Secret.png", visibility=DeletedField.FILE | DeletedField.RESTRICTED)
    assert not restricted.user_can(DeletedField.FILE, {"deletedhistory"})
    assert restricted.user_can(DeletedField.FILE, {"suppressrevision"})


def test_safe_file_rules():
    assert MediaIdentity("Song.ogg", mime_type="audio/ogg").is_safe_file(["AUDIO"])
    assert MediaIdentity("Doc.pdf", mime_type="application/pdf").is_safe_file(["application/pdf"])
    assert not MediaIdentity("Page.html", mime_type="text/html").is_safe_file(["BITMAP"])
    assert MediaIdentity("Page.html", mime_type="text/html", trusted=True).is_safe_file()


def test_redirect_bookkeeping():
    identity = MediaIdentity("New.png")
    assert identity.original_name == "New.png"
    identity.redirected_from("old name.png")
    assert identity.get_redirected() == "Old_name.png"
    assert identity.original_name == "Old_name.png"


def test_compare_sorts_by_name():
    from functools import cmp_to_key
    items = [MediaIdentity("B.png"), MediaIdentity("A.png"), MediaIdentity("C.png")]
    assert [i.name for i in sorted(items, key=cmp_to_key(MediaIdentity.compare))] == ["A.png", "B.png", "C.png"]


def test_thumb_disposition():
    svg = MediaIdentity("Example.svg")
    assert svg.get_thumb_disposition("120px-Example.svg.png") == 'inline; filename="Example.svg.png"'
    png = MediaIdentity("Example.png")
    assert png.get_thumb_disposition("120px-Example.png") == 'inline; filename="Example.png"'


def test_transform_script(tmp_path, handlers):
    from mediarepo.common.settings import RepoConfig
    from mediarepo.services.storage.local_repo import LocalFileRepo

    repo = LocalFileRepo(RepoConfig(root=tmp_path, thumb_script_url="/api/thumb"), handlers)
    assert MediaIdentity("A b.png", repo).get_transform_script() == "/api/thumb?f=A_b.png"
    assert MediaIdentity("A.png").get_transform_script() is None


def test_archived_identity(repo):
    old = ArchivedMediaIdentity("Example.jpg", repo, archive_timestamp="20240101000000")
    hp = _hp("Example.jpg")
    assert old.is_old()
    assert old.archive_name == "20240101000000!Example.jpg"
    assert old.get_rel() == f"archive/{hp}20240101000000!Example.jpg"
    assert old.get_url() == f"/images/archive/{hp}20240101000000%21Example.jpg"
    assert old.get_thumb_path("120px-Example.jpg") == (
        f"{repo.root}/thumb/archive/{hp}20240101000000!Example.jpg/120px-Example.jpg"
    )


def test_archived_identity_validates_timestamp(repo):
    with pytest.raises(ValueError):
        ArchivedMediaIdentity("Example.jpg", repo, archive_timestamp="yesterday")
