"""One-shot reconciliation between the content tree and the record store.

The tree is authoritative for presence during a pass:

    file, no record          -> create record (content = raw file text)
    file, record differs     -> update record
    record, no file          -> delete record
    file == record           -> nothing

Content is compared as raw text, never as parsed frontmatter, so a cosmetic
frontmatter edit still counts as a change.

Known limitation: a pass is not isolated from concurrent mutations. A record
created while the pass runs may be seen once or not at all; the next pass
converges. Store writes made here fire the mirror hook like any other write,
which rewrites an identical file or removes an already-absent one.

export_tree() goes the other way and rebuilds the tree from the store.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from docsync.mirror import record_path
from docsync.models import DOCS, META, META_FILENAME, SyncReport
from docsync.store import RecordStoreError
from docsync.tree import write_file

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from docsync.store import RecordStore

    Reporter = Callable[[str, str], None]

logger = logging.getLogger("docsync.reconcile")


# ---------------------------------------------------------------------------
# Tree scan
# ---------------------------------------------------------------------------

def _read_raw(path: Path) -> str:
    # Bytes then decode: read_text() would translate \r\n and break exact comparison.
    return path.read_bytes().decode("utf-8")


def _is_hidden(rel_parts: tuple[str, ...]) -> bool:
    return any(part.startswith(".") for part in rel_parts)


def scan_docs(docs_dir: Path, content_ext: str = ".mdx") -> dict[str, Path]:
    """Map slug -> file for every content file under docs_dir (recursive)."""
    found: dict[str, Path] = {}
    for path in sorted(docs_dir.rglob(f"*{content_ext}")):
        rel = path.relative_to(docs_dir)
        if not path.is_file() or _is_hidden(rel.parts):
            continue
        found[rel.with_suffix("").as_posix()] = path
    return found


def scan_meta(docs_dir: Path) -> dict[str, Path]:
    """Map directory path ("." for docs_dir) -> meta.json file."""
    found: dict[str, Path] = {}
    for path in sorted(docs_dir.rglob(META_FILENAME)):
        rel = path.relative_to(docs_dir)
        if not path.is_file() or _is_hidden(rel.parts):
            continue
        found[rel.parent.as_posix()] = path
    return found


# ---------------------------------------------------------------------------
# Reconcile
# ---------------------------------------------------------------------------

def _echo(report: Reporter | None, action: str, label: str) -> None:
    if report is not None:
        report(action, label)


def _printable(key: str) -> str:
    # File names that are not valid UTF-8 decode to lone surrogates; escape them for display.
    return key.encode("utf-8", "backslashreplace").decode("utf-8")


def _fail(result: SyncReport, report: Reporter | None, name: str, reason: str) -> None:
    result.failed.append((name, reason))
    _echo(report, "failed", f"{name}: {reason}")


def _reconcile_collection(
    store: RecordStore,
    collection: str,
    key_field: str,
    on_disk: dict[str, Path],
    result: SyncReport,
    label: Callable[[str], str],
    report: Reporter | None,
) -> None:
    existing = {record.key: record for record in store.list(collection)}

    for key, path in on_disk.items():
        name = label(_printable(key))
        if _printable(key) != key:
            logger.warning("Skipped %s, file name is not valid UTF-8", name)
            _fail(result, report, name, "file name is not valid UTF-8")
            continue
        try:
            content = _read_raw(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipped %s, unreadable: %s", name, exc)
            _fail(result, report, name, str(exc))
            continue

        record = existing.get(key)
        if record is None:
            try:
                store.create(collection, {key_field: key, "content": content})
            except RecordStoreError as exc:
                logger.warning("Skipped %s, invalid data: %s", name, exc)
                _fail(result, report, name, str(exc))
                continue
            logger.info("Imported %s", name)
            result.created.append(name)
            _echo(report, "created", name)
        elif record.content != content:
            try:
                store.update(collection, key, {"content": content})
            except RecordStoreError as exc:
                logger.warning("Failed to update %s: %s", name, exc)
                _fail(result, report, name, str(exc))
                continue
            logger.info("Updated %s", name)
            result.updated.append(name)
            _echo(report, "updated", name)

    for key in existing:
        if key in on_disk:
            continue
        name = label(key)
        try:
            store.delete(collection, key)
        except RecordStoreError as exc:
            logger.warning("Failed to delete %s: %s", name, exc)
            _fail(result, report, name, str(exc))
            continue
        logger.info("Deleted %s", name)
        result.deleted.append(name)
        _echo(report, "deleted", name)


def reconcile(
    store: RecordStore,
    docs_dir: Path,
    *,
    content_ext: str = ".mdx",
    include_meta: bool = True,
    report: Reporter | None = None,
) -> SyncReport:
    """Converge the store onto the tree under docs_dir.

    Per-item failures are logged and collected in SyncReport.failed. A store
    that cannot be listed at all raises RecordStoreError.

    A missing docs_dir is treated as a misconfiguration, not as an empty
    tree: nothing is deleted. An existing but empty docs_dir deletes every
    record.
    """
    result = SyncReport()
    if not docs_dir.is_dir():
        logger.warning("Docs directory does not exist: %s", docs_dir)
        return result

    _reconcile_collection(
        store, DOCS, "slug", scan_docs(docs_dir, content_ext), result,
        label=lambda slug: slug, report=report,
    )
    if include_meta:
        _reconcile_collection(
            store, META, "path", scan_meta(docs_dir), result,
            label=lambda path: f"{path}/{META_FILENAME}", report=report,
        )

    logger.info("Sync complete: %s", result.summary())
    return result


def export_tree(
    store: RecordStore,
    docs_dir: Path,
    *,
    content_ext: str = ".mdx",
    report: Reporter | None = None,
) -> int:
    """Write every docs and meta record to the tree. Returns files written."""
    written = 0
    for collection in (DOCS, META):
        for record in store.list(collection):
            rel = record_path(record, content_ext)
            try:
                write_file(docs_dir, rel, record.content)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to export %s: %s", rel, exc)
                _echo(report, "failed", f"{rel}: {exc}")
                continue
            written += 1
            _echo(report, "exported", rel)
    return written
