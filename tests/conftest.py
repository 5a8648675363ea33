from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from docsync.mirror import TreeMirror
from docsync.store import RecordStore

SAMPLE_SPEC = {"openapi": "3.0.0", "info": {"title": "Pets", "version": "1.0"}, "paths": {}}


class RecordingGenerator:
    """DocGenerator fake: records invocations, optionally fails."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[Path] = []
        self.seen_content: list[str] = []
        self.error = error

    def generate(self, spec_path: Path) -> None:
        self.calls.append(spec_path)
        self.seen_content.append(spec_path.read_text() if spec_path.exists() else "")
        if self.error is not None:
            raise self.error


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "content" / "docs"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path / ".docsync" / "store.db")


@pytest.fixture
def mirrored_store(store: RecordStore, docs_dir: Path) -> RecordStore:
    store.subscribe(TreeMirror(docs_dir))
    return store


class _SpecHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        if self.path == "/spec.json":
            body = json.dumps(SAMPLE_SPEC).encode()
            self.send_response(200)
        elif self.path == "/not-json":
            body = b"<html>nope</html>"
            self.send_response(200)
        elif self.path == "/truncated":
            # promises 100 bytes, sends 5, then the connection closes
            self.send_response(200)
            self.send_header("Content-Length", "100")
            self.end_headers()
            self.wfile.write(b'{"ope')
            return
        else:
            body = b"missing"
            self.send_response(404)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        pass


@pytest.fixture
def spec_server(monkeypatch: pytest.MonkeyPatch):
    """Local HTTP server; yields its base URL."""
    for var in ("http_proxy", "HTTP_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("no_proxy", "127.0.0.1,localhost")
    server = ThreadingHTTPServer(("127.0.0.1", 0), _SpecHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
