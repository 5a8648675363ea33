"""API spec ingestion: fetch a remote OpenAPI document, persist it, run the generator.

SpecIngestor is subscribed to the RecordStore and handles api-specs writes:

    1. GET record.spec_url (JSON expected)
    2. write it to the canonical spec path (outside the content tree)
    3. run the doc generator, which reads that path

Every failure along the way is logged as a warning naming the spec and the
cause, and stops the pipeline. Nothing propagates back to the store write,
which has already committed.
"""

from __future__ import annotations

import http.client
import json
import logging
import subprocess
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from docsync.models import API_SPECS, ApiSpecRecord
from docsync.tree import write_file

if TYPE_CHECKING:
    from docsync.models import MutationEvent

logger = logging.getLogger("docsync.ingest")

_TIMEOUT = 30.0  # seconds
_SCHEMES = ("http", "https")


class IngestError(Exception):
    """Base for ingestion failures. Never escapes SpecIngestor.ingest()."""


class SpecFetchError(IngestError):
    """The spec URL could not be fetched or did not contain JSON."""


class GeneratorError(IngestError):
    """The doc generator could not be started or exited non-zero."""


class DocGenerator(Protocol):
    def generate(self, spec_path: Path) -> None:
        """Regenerate docs from spec_path. Raises GeneratorError on failure."""


class CommandGenerator:
    """Run an external command (e.g. `npx tsx scripts/generate-api.ts`).

    The command reads the canonical spec path itself; stdout/stderr are
    inherited so its output shows up alongside ours.
    """

    def __init__(self, command: list[str], cwd: Path | None = None) -> None:
        self.command = command
        self.cwd = cwd

    def generate(self, spec_path: Path) -> None:  # noqa: ARG002
        if not self.command:
            msg = "no generator command configured"
            raise GeneratorError(msg)
        try:
            result = subprocess.run(self.command, cwd=self.cwd, check=False)  # noqa: S603
        except OSError as exc:
            msg = f"cannot run {self.command[0]}: {exc}"
            raise GeneratorError(msg) from exc
        if result.returncode != 0:
            msg = f"{' '.join(self.command)} exited with status {result.returncode}"
            raise GeneratorError(msg)


def fetch_spec(url: str, timeout: float = _TIMEOUT) -> Any:
    """GET url and parse the body as JSON. Only http(s) URLs are fetched."""
    scheme = urllib.parse.urlsplit(url).scheme.lower()
    if scheme not in _SCHEMES:
        msg = f"Failed to fetch spec: unsupported URL scheme {scheme or '(none)'}"
        raise SpecFetchError(msg)
    try:
        req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")  # noqa: S310
        with urllib.request.urlopen(req, timeout=timeout) as resp:  # noqa: S310
            status = getattr(resp, "status", None) or 200
            if not 200 <= status < 300:
                msg = f"Failed to fetch spec: HTTP {status}"
                raise SpecFetchError(msg)
            body = resp.read()
    except urllib.error.HTTPError as exc:
        msg = f"Failed to fetch spec: HTTP {exc.code}"
        raise SpecFetchError(msg) from exc
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as exc:
        # URLError wraps connection refused / DNS failures; HTTPException covers a body cut short
        reason = exc.reason if isinstance(exc, urllib.error.URLError) else exc
        msg = f"Failed to fetch spec: {reason}"
        raise SpecFetchError(msg) from exc

    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        msg = f"Spec is not valid JSON: {exc}"
        raise SpecFetchError(msg) from exc


def write_spec(spec: Any, spec_path: Path) -> Path:
    """Persist the spec at its canonical path (parent dirs created)."""
    return write_file(spec_path.parent, spec_path.name, json.dumps(spec, indent=2))


class SpecIngestor:
    """Store listener for api-specs: fetch -> persist -> generate."""

    def __init__(
        self,
        spec_path: Path,
        generator: DocGenerator,
        *,
        timeout: float = _TIMEOUT,
        fetch: Any = fetch_spec,
    ) -> None:
        self.spec_path = Path(spec_path)
        self.generator = generator
        self.timeout = timeout
        self._fetch = fetch

    def __call__(self, event: MutationEvent) -> None:
        if event.collection != API_SPECS or event.kind == "deleted":
            return
        record = event.record
        if isinstance(record, ApiSpecRecord) and record.spec_url:
            self.ingest(record)

    def run(self, record: ApiSpecRecord) -> None:
        """Fetch, persist and generate for one spec. Raises IngestError."""
        spec = self._fetch(record.spec_url, self.timeout)
        try:
            write_spec(spec, self.spec_path)
        except OSError as exc:
            msg = f"cannot write {self.spec_path}: {exc}"
            raise IngestError(msg) from exc
        self.generator.generate(self.spec_path)

    def ingest(self, record: ApiSpecRecord) -> bool:
        """Run the pipeline for one spec. True on success; never raises."""
        try:
            self.run(record)
        except IngestError as exc:
            logger.warning("Failed to generate API docs for %s: %s", record.name, exc)
            return False
        logger.info("Generated API docs for %s", record.name)
        return True
