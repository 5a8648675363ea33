"""Record store <-> content tree sync, plus API spec ingestion.

Layout:
    content/docs/
        <slug>.mdx        # one file per docs record (raw content, frontmatter included)
        <dir>/meta.json   # one file per meta record (opaque JSON)
    .docsync/
        store.db          # SQLite record store (source of truth for content)

Two ways to converge:
    reconcile(store, docs_dir)   # batch: tree -> store, tree authoritative for presence
    TreeMirror                   # incremental: store write -> single file write/delete

api-specs records are not mirrored. Writing one fetches its spec_url, stores
it at the canonical spec path, and runs the doc generator (SpecIngestor).
"""

from docsync.config import DocSyncConfig, init_config, load_config
from docsync.hooks import open_store
from docsync.models import ApiSpecRecord, ContentRecord, MetaRecord, MutationEvent, SyncReport
from docsync.reconcile import export_tree, reconcile
from docsync.store import RecordStore

__all__ = [
    "ApiSpecRecord",
    "ContentRecord",
    "DocSyncConfig",
    "MetaRecord",
    "MutationEvent",
    "RecordStore",
    "SyncReport",
    "export_tree",
    "init_config",
    "load_config",
    "open_store",
    "reconcile",
]
