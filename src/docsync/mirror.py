"""Mirror store mutations onto the content tree, one file per event.

TreeMirror is subscribed to the RecordStore and runs synchronously after each
committed write:

    docs  created/updated  -> write   <docs_dir>/<slug>.mdx
    meta  created/updated  -> write   <docs_dir>/<path>/meta.json
    docs/meta deleted      -> remove  that file, then prune emptied dirs

This keeps the tree converged without a full scan, but never notices changes
made directly on disk. Only reconcile() closes that gap.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from docsync.models import DOCS, META, ContentRecord, MetaRecord
from docsync.tree import remove_file, write_file

if TYPE_CHECKING:
    from pathlib import Path

    from docsync.models import MutationEvent, Record

logger = logging.getLogger("docsync.mirror")


def record_path(record: Record, content_ext: str = ".mdx") -> str | None:
    """Relative file path of a record under the docs dir, or None if not mirrored."""
    if isinstance(record, ContentRecord):
        return f"{record.slug}{content_ext}"
    if isinstance(record, MetaRecord):
        return record.file_path
    return None


class TreeMirror:
    """Store listener that applies single-file writes and deletes."""

    def __init__(self, docs_dir: Path, content_ext: str = ".mdx") -> None:
        self.docs_dir = docs_dir
        self.content_ext = content_ext

    def __call__(self, event: MutationEvent) -> None:
        if event.collection not in (DOCS, META):
            return
        if event.kind == "deleted":
            self._remove(event.record)
            return

        previous = event.previous
        if previous is not None and previous.key != event.record.key:
            # Renamed: the old path would otherwise linger until the next sync.
            self._remove(previous)
        self._write(event.record)

    def _write(self, record: Record) -> None:
        rel = record_path(record, self.content_ext)
        if rel is None:
            return
        try:
            self.docs_dir.mkdir(parents=True, exist_ok=True)
            write_file(self.docs_dir, rel, record.content)
            logger.info("mirrored: %s", rel)
        except (OSError, ValueError):
            logger.exception("failed to mirror %s", rel)

    def _remove(self, record: Record) -> None:
        rel = record_path(record, self.content_ext)
        if rel is None:
            return
        try:
            if remove_file(self.docs_dir, rel):
                logger.info("removed: %s", rel)
        except (OSError, ValueError):
            logger.exception("failed to remove %s", rel)
