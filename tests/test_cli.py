from __future__ import annotations

import urllib.error
from pathlib import Path

import pytest
from click.testing import CliRunner

from docsync.cli import cli
from docsync.config import load_config
from docsync.models import API_SPECS, DOCS
from docsync.store import RecordStore

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "content" / "docs").mkdir(parents=True)
    (tmp_path / "docsync.toml").write_text(
        '[docsync]\nname = "test"\n\n[ingest]\nspec_path = "public/swagger.json"\ngenerator = []\n'
    )
    return tmp_path


def _invoke(project: Path, *args: str):
    return runner.invoke(cli, ["--root", str(project), *args])


def _store(project: Path) -> RecordStore:
    return RecordStore(load_config(project).db_path)


def test_init(tmp_path: Path) -> None:
    (tmp_path / "content").mkdir()
    result = runner.invoke(cli, ["init", "mysite", "--dir", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "docsync.toml").exists()
    assert (tmp_path / ".docsync" / "store.db").exists()
    assert (tmp_path / "content" / "docs").is_dir()

    again = runner.invoke(cli, ["init", "--dir", str(tmp_path)])
    assert again.exit_code == 0
    assert "already exists" in again.output


def test_sync_prints_one_line_per_item(project: Path) -> None:
    docs = project / "content" / "docs"
    (docs / "a.mdx").write_text("X")
    (docs / "c.mdx").write_text("Z")
    store = _store(project)
    store.create(DOCS, {"slug": "a", "content": "X"})
    store.create(DOCS, {"slug": "b", "content": "Y"})

    result = _invoke(project, "sync")

    assert result.exit_code == 0, result.output
    assert "Imported c" in result.output
    assert "Deleted b" in result.output
    assert "Updated" not in result.output
    assert "1 created, 0 updated, 1 deleted, 0 failed" in result.output
    assert {r.key for r in store.list(DOCS)} == {"a", "c"}


def test_sync_per_item_failure_still_exits_zero(project: Path) -> None:
    (project / "content" / "docs" / "empty.mdx").write_text("")
    result = _invoke(project, "sync")
    assert result.exit_code == 0
    assert "Skipped empty" in result.output


def test_sync_unreachable_store_exits_non_zero(project: Path) -> None:
    db_path = project / ".docsync" / "store.db"
    db_path.parent.mkdir()
    db_path.write_bytes(b"")
    result = _invoke(project, "sync")
    assert result.exit_code != 0
    assert "0 bytes" in result.output


def test_put_mirrors_and_rm_removes(project: Path, tmp_path: Path) -> None:
    source = tmp_path / "draft.mdx"
    source.write_text('---\ntitle: "Hello"\n---\nhello')

    result = _invoke(project, "put", "guide/new", str(source))
    assert result.exit_code == 0, result.output
    assert "Created guide/new" in result.output
    target = project / "content" / "docs" / "guide" / "new.mdx"
    assert target.read_text() == source.read_text()

    listed = _invoke(project, "list")
    assert "guide/new" in listed.output
    assert "Hello" in listed.output

    result = _invoke(project, "rm", "guide/new")
    assert result.exit_code == 0
    assert not target.exists()
    assert not target.parent.exists()


def test_rm_missing_fails(project: Path) -> None:
    result = _invoke(project, "rm", "nope")
    assert result.exit_code != 0
    assert "not found" in result.output


def test_meta_put(project: Path, tmp_path: Path) -> None:
    source = tmp_path / "meta.json"
    source.write_text('{"title": "Guide"}')
    result = _invoke(project, "meta-put", "guide", str(source))
    assert result.exit_code == 0, result.output
    assert (project / "content" / "docs" / "guide" / "meta.json").read_text() == '{"title": "Guide"}'

    result = _invoke(project, "meta-rm", "guide")
    assert result.exit_code == 0
    assert not (project / "content" / "docs" / "guide").exists()


def test_export(project: Path) -> None:
    _store(project).create(DOCS, {"slug": "x/y", "content": "body"})
    result = _invoke(project, "export")
    assert result.exit_code == 0, result.output
    assert (project / "content" / "docs" / "x" / "y.mdx").read_text() == "body"
    assert "Exported 1 files" in result.output


def test_spec_add_survives_fetch_failure(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(*args, **kwargs):
        raise urllib.error.URLError(ConnectionRefusedError(111, "Connection refused"))

    monkeypatch.setattr("docsync.ingest.urllib.request.urlopen", refuse)

    result = _invoke(project, "spec", "add", "pets", "http://127.0.0.1:9/spec.json", "--version", "1.0")

    assert result.exit_code == 0, result.output
    assert "Created spec pets" in result.output
    spec = _store(project).get(API_SPECS, "pets")
    assert spec is not None
    assert spec.version == "1.0"
    assert not (project / "public" / "swagger.json").exists()


def test_spec_ingest_warns_and_continues(project: Path, spec_server: str) -> None:
    store = _store(project)
    store.create(API_SPECS, {"name": "broken", "spec_url": f"{spec_server}/missing"})
    store.create(API_SPECS, {"name": "pets", "spec_url": f"{spec_server}/spec.json"})

    result = _invoke(project, "spec", "ingest")

    # generator = [] in the project config, so even a fetched spec fails at generation
    assert result.exit_code == 0, result.output
    assert "failed to generate API docs for broken: Failed to fetch spec: HTTP 404" in result.output
    assert "failed to generate API docs for pets: no generator command configured" in result.output
    assert (project / "public" / "swagger.json").exists()
    assert "0/2 specs ingested" in result.output


def test_spec_ingest_unknown_name(project: Path) -> None:
    result = _invoke(project, "spec", "ingest", "nope")
    assert result.exit_code != 0
    assert "Spec not found" in result.output


def test_spec_ingest_truncated_spec_does_not_stop_later_specs(project: Path, spec_server: str) -> None:
    store = _store(project)
    store.create(API_SPECS, {"name": "a-broken", "spec_url": f"{spec_server}/truncated"})
    store.create(API_SPECS, {"name": "b-data", "spec_url": f"{spec_server}/spec.json"})

    result = _invoke(project, "spec", "ingest")

    assert result.exit_code == 0, result.output
    assert "failed to generate API docs for a-broken: Failed to fetch spec" in result.output
    assert "failed to generate API docs for b-data: no generator command configured" in result.output
    assert (project / "public" / "swagger.json").exists()
    assert "0/2 specs ingested" in result.output
