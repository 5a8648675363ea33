"""Write and remove files in the mirrored content tree.

Every operation here is idempotent: writing the same bytes twice, removing an
absent file, or pruning a directory someone else already pruned leaves the
tree in the same state without raising. Concurrent mirror firings and a
reconciliation pass share the tree, so races must degrade to redundant work.
"""

from __future__ import annotations

import contextlib
import uuid
from pathlib import Path


_WRITE_ATTEMPTS = 3


def resolve_path(root: Path, relative_path: str | Path) -> Path:
    """Join root and relative_path, refusing anything that escapes root."""
    rel = Path(relative_path)
    if rel.is_absolute():
        msg = f"Expected a relative path, got: {relative_path}"
        raise ValueError(msg)
    target = root / rel
    if not target.resolve().is_relative_to(root.resolve()):
        msg = f"Path escapes content root: {relative_path}"
        raise ValueError(msg)
    return target


def write_file(root: Path, relative_path: str | Path, content: str | bytes) -> Path:
    """Write content to root/relative_path, creating parent directories.

    str content is encoded as UTF-8 with no newline translation, so the file
    bytes match the record text exactly. Written via tmp + rename.

    A concurrent remove_file() of the last sibling may prune the parent
    between mkdir and write; the write is retried with the parent recreated.
    """
    path = resolve_path(root, relative_path)
    data = content.encode("utf-8") if isinstance(content, str) else content
    attempts = _WRITE_ATTEMPTS
    while True:
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            tmp.replace(path)
            return path
        except FileNotFoundError:
            attempts -= 1
            if attempts <= 0:
                raise
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()


def remove_file(root: Path, relative_path: str | Path) -> bool:
    """Delete root/relative_path and prune emptied parents. True if a file was removed.

    An absent file leaves the tree untouched, pre-existing empty dirs included.
    """
    path = resolve_path(root, relative_path)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    prune_empty_dirs(root, path.parent)
    return True


def prune_empty_dirs(root: Path, start: Path) -> int:
    """Remove empty directories from start upward, never touching root itself.

    Stops at the first non-empty directory. Returns the number removed.
    """
    stop = root.resolve()
    current = start.resolve()
    removed = 0
    while current != stop and current.is_relative_to(stop):
        try:
            current.rmdir()
        except FileNotFoundError:
            pass  # pruned concurrently; keep walking up
        except OSError:
            break  # not empty
        else:
            removed += 1
        current = current.parent
    return removed
