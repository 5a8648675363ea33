from __future__ import annotations

import threading
from pathlib import Path

import pytest

from docsync.mirror import TreeMirror, record_path
from docsync.models import API_SPECS, DOCS, META, ApiSpecRecord, ContentRecord, MetaRecord, MutationEvent
from docsync.store import RecordStore


def test_create_writes_file_without_sync(mirrored_store: RecordStore, docs_dir: Path) -> None:
    mirrored_store.create(DOCS, {"slug": "new", "content": "hello"})
    assert (docs_dir / "new.mdx").read_bytes() == b"hello"


def test_update_rewrites_file(mirrored_store: RecordStore, docs_dir: Path) -> None:
    mirrored_store.create(DOCS, {"slug": "a", "content": "one"})
    mirrored_store.update(DOCS, "a", {"content": "two"})
    assert (docs_dir / "a.mdx").read_text() == "two"


def test_nested_slug_creates_dirs_and_delete_prunes_them(mirrored_store: RecordStore, docs_dir: Path) -> None:
    mirrored_store.create(DOCS, {"slug": "guide/setup/linux", "content": "apt"})
    assert (docs_dir / "guide" / "setup" / "linux.mdx").read_text() == "apt"

    mirrored_store.delete(DOCS, "guide/setup/linux")
    assert not (docs_dir / "guide").exists()
    assert docs_dir.is_dir()


def test_rename_moves_file(mirrored_store: RecordStore, docs_dir: Path) -> None:
    mirrored_store.create(DOCS, {"slug": "old/name", "content": "x"})
    mirrored_store.update(DOCS, "old/name", {"slug": "new-name"})
    assert (docs_dir / "new-name.mdx").read_text() == "x"
    assert not (docs_dir / "old").exists()


def test_meta_record_written_to_meta_json(mirrored_store: RecordStore, docs_dir: Path) -> None:
    mirrored_store.create(META, {"path": "guide", "content": '{"title": "Guide"}'})
    mirrored_store.create(META, {"path": ".", "content": '{"root": true}'})
    assert (docs_dir / "guide" / "meta.json").read_text() == '{"title": "Guide"}'
    assert (docs_dir / "meta.json").read_text() == '{"root": true}'

    mirrored_store.delete(META, "guide")
    assert not (docs_dir / "guide").exists()


def test_delete_of_missing_file_is_swallowed(mirrored_store: RecordStore, docs_dir: Path) -> None:
    mirrored_store.create(DOCS, {"slug": "a", "content": "x"})
    (docs_dir / "a.mdx").unlink()
    mirrored_store.delete(DOCS, "a")
    assert mirrored_store.get(DOCS, "a") is None


def test_missing_content_root_is_created(store: RecordStore, tmp_path: Path) -> None:
    docs_dir = tmp_path / "fresh" / "docs"
    store.subscribe(TreeMirror(docs_dir))
    store.create(DOCS, {"slug": "a", "content": "x"})
    assert (docs_dir / "a.mdx").read_text() == "x"


def test_write_failure_is_logged_and_record_kept(
    mirrored_store: RecordStore, docs_dir: Path, caplog: pytest.LogCaptureFixture
) -> None:
    (docs_dir / "blocked").write_text("a file where a directory should be")
    record = mirrored_store.create(DOCS, {"slug": "blocked/page", "content": "x"})

    assert record.slug == "blocked/page"
    assert mirrored_store.get(DOCS, "blocked/page") is not None
    assert "failed to mirror blocked/page.mdx" in caplog.text


def test_api_specs_are_not_mirrored(docs_dir: Path) -> None:
    mirror = TreeMirror(docs_dir)
    spec = ApiSpecRecord(name="pets", spec_url="http://example.com")
    mirror(MutationEvent("created", API_SPECS, "pets", spec))
    assert list(docs_dir.iterdir()) == []


def test_synthetic_events(docs_dir: Path) -> None:
    mirror = TreeMirror(docs_dir, content_ext=".md")
    record = ContentRecord(slug="x/y", content="body")
    mirror(MutationEvent("created", DOCS, "x/y", record))
    assert (docs_dir / "x" / "y.md").read_text() == "body"
    mirror(MutationEvent("deleted", DOCS, "x/y", record))
    assert not (docs_dir / "x").exists()


def test_record_path() -> None:
    assert record_path(ContentRecord(slug="a/b", content="")) == "a/b.mdx"
    assert record_path(MetaRecord(path="a", content="")) == "a/meta.json"
    assert record_path(ApiSpecRecord(name="n", spec_url="u")) is None


def test_sibling_delete_between_mkdir_and_write(
    mirrored_store: RecordStore, docs_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    mirrored_store.create(DOCS, {"slug": "guide/b", "content": "b"})
    guide = docs_dir / "guide"
    real_mkdir = Path.mkdir
    deleted: list[str] = []

    def mkdir_then_delete_sibling(self: Path, *args, **kwargs) -> None:
        real_mkdir(self, *args, **kwargs)
        if self == guide and not deleted:
            deleted.append("guide/b")
            mirrored_store.delete(DOCS, "guide/b")

    monkeypatch.setattr(Path, "mkdir", mkdir_then_delete_sibling)
    mirrored_store.create(DOCS, {"slug": "guide/a", "content": "a"})

    assert deleted == ["guide/b"]
    assert (guide / "a.mdx").read_text() == "a"
    assert not (guide / "b.mdx").exists()


def test_concurrent_same_slug_updates_leave_file_equal_to_record(
    mirrored_store: RecordStore, docs_dir: Path
) -> None:
    mirrored_store.create(DOCS, {"slug": "guide/page", "content": "0"})

    def writer(n: int) -> None:
        for i in range(10):
            mirrored_store.update(DOCS, "guide/page", {"content": f"{n}-{i}"})

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    record = mirrored_store.get(DOCS, "guide/page")
    assert (docs_dir / "guide" / "page.mdx").read_bytes() == record.content.encode("utf-8")
