"""Tests for the staging store."""

import pytest

from rewind.errors import InvalidArgument, NotFound
from rewind.staging import LocalStagingStore, create_staging_store


def test_stage_file_copies_bytes(store, work):
    f = work / "a.bin"
    f.write_bytes(b"\x00\x01payload")

    snap = store.stage(f)

    assert snap.kind == "file"
    assert snap.source == f.absolute()
    assert snap.staged.read_bytes() == b"\x00\x01payload"
    assert str(snap.staged).startswith(str(store.root))


def test_stage_directory_keeps_empty_subdirectories(store, work, tree):
    (work / "sub" / "empty").mkdir(parents=True)
    (work / "a.txt").write_text("a")

    snap = store.stage(work)

    assert snap.is_directory
    assert tree(snap.staged) == {"a.txt": b"a", "sub": None, "sub/empty": None}


def test_stage_missing_path_raises_not_found(store, work):
    with pytest.raises(NotFound):
        store.stage(work / "missing")
    assert store.list() == []


def test_stage_empty_path_is_invalid(store):
    with pytest.raises(InvalidArgument):
        store.stage("")


def test_restore_directory_overwrites_contents(store, work, tree):
    (work / "a.txt").write_text("original")
    snap = store.stage(work)

    (work / "a.txt").write_text("changed")
    (work / "extra.txt").write_text("extra")
    (work / "newdir").mkdir()

    store.restore(snap)

    assert tree(work) == {"a.txt": b"original"}


def test_restore_file_to_other_destination(store, work):
    f = work / "a.txt"
    f.write_text("hello")
    snap = store.stage(f)

    out = store.restore(snap, work / "nested" / "copy.txt")

    assert out.read_text() == "hello"
    assert f.read_text() == "hello"


def test_restore_file_over_directory(store, work):
    f = work / "a.txt"
    f.write_text("hello")
    snap = store.stage(f)
    f.unlink()
    f.mkdir()

    store.restore(snap)

    assert f.is_file()
    assert f.read_text() == "hello"


def test_restore_after_discard_raises(store, work):
    f = work / "a.txt"
    f.write_text("x")
    snap = store.stage(f)
    store.discard(snap)

    with pytest.raises(NotFound):
        store.restore(snap)


def test_discard_is_idempotent(store, work):
    f = work / "a.txt"
    f.write_text("x")
    snap = store.stage(f)

    store.discard(snap)
    store.discard(snap)

    assert not (store.root / snap.id).exists()


def test_list_reports_leaked_copies(store, work):
    f = work / "a.txt"
    f.write_text("x")
    snap = store.stage(f)

    listed = store.list()

    assert [s["id"] for s in listed] == [snap.id]
    assert listed[0]["source"] == str(f.absolute())
    assert listed[0]["kind"] == "file"
    assert store.snapshot(snap.id) == snap


def test_list_empty_when_root_missing(tmp_path):
    assert LocalStagingStore(tmp_path / "nowhere").list() == []


def test_factory_defaults_to_local(tmp_path):
    store = create_staging_store({"staging_dir": str(tmp_path / "s")})
    assert isinstance(store, LocalStagingStore)
    assert store.root == tmp_path / "s"


def test_factory_rejects_unknown_backend():
    with pytest.raises(ValueError, match="Unknown staging backend"):
        create_staging_store({"staging_backend": "s3"})
