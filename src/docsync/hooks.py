"""Wire a RecordStore to its post-commit listeners from config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from docsync.ingest import CommandGenerator, SpecIngestor
from docsync.mirror import TreeMirror
from docsync.store import RecordStore

if TYPE_CHECKING:
    from docsync.config import DocSyncConfig


def open_store(cfg: DocSyncConfig, *, mirror: bool = True, ingest: bool = True) -> RecordStore:
    """Open the store at cfg.db_path with the tree mirror and spec ingestor attached."""
    store = RecordStore(cfg.db_path)
    if mirror:
        store.subscribe(TreeMirror(cfg.docs_dir, cfg.content_ext))
    if ingest:
        store.subscribe(make_ingestor(cfg))
    return store


def make_ingestor(cfg: DocSyncConfig) -> SpecIngestor:
    generator = CommandGenerator(cfg.ingest.generator, cwd=cfg.ingest.generator_cwd)
    return SpecIngestor(cfg.ingest.spec_path, generator, timeout=cfg.ingest.timeout)
