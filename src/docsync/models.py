"""Data models for the record store and the sync engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

DOCS = "docs"
META = "meta"
API_SPECS = "api-specs"

META_FILENAME = "meta.json"

EventKind = Literal["created", "updated", "deleted"]


@dataclass
class ContentRecord:
    """A document: slug -> <slug>.mdx under the docs dir."""

    collection: ClassVar[str] = DOCS
    key_field: ClassVar[str] = "slug"

    slug: str
    content: str
    id: int | None = None
    updated_at: str = ""

    @property
    def key(self) -> str:
        return self.slug

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ContentRecord:
        return cls(
            slug=d["slug"],
            content=d.get("content", ""),
            id=d.get("id"),
            updated_at=d.get("updated_at", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"slug": self.slug, "content": self.content}


@dataclass
class MetaRecord:
    """A per-directory sidecar: path -> <path>/meta.json under the docs dir."""

    collection: ClassVar[str] = META
    key_field: ClassVar[str] = "path"

    path: str                  # "." for the docs dir itself
    content: str               # opaque JSON text
    id: int | None = None
    updated_at: str = ""

    @property
    def key(self) -> str:
        return self.path

    @property
    def file_path(self) -> str:
        return f"{self.path}/{META_FILENAME}"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MetaRecord:
        return cls(
            path=d["path"],
            content=d.get("content", ""),
            id=d.get("id"),
            updated_at=d.get("updated_at", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "content": self.content}


@dataclass
class ApiSpecRecord:
    """A remote OpenAPI document that drives doc generation. Never mirrored."""

    collection: ClassVar[str] = API_SPECS
    key_field: ClassVar[str] = "name"

    name: str
    spec_url: str
    version: str | None = None
    base_url: str | None = None
    description: str | None = None
    id: int | None = None
    updated_at: str = ""

    @property
    def key(self) -> str:
        return self.name

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ApiSpecRecord:
        return cls(
            name=d["name"],
            spec_url=d.get("spec_url") or "",
            version=d.get("version"),
            base_url=d.get("base_url"),
            description=d.get("description"),
            id=d.get("id"),
            updated_at=d.get("updated_at", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name, "spec_url": self.spec_url}
        if self.version:
            d["version"] = self.version
        if self.base_url:
            d["base_url"] = self.base_url
        if self.description:
            d["description"] = self.description
        return d


Record = ContentRecord | MetaRecord | ApiSpecRecord


@dataclass
class MutationEvent:
    """Published by the store after a write commits."""

    kind: EventKind
    collection: str
    key: str
    record: Record
    previous: Record | None = None   # pre-update state (key renames)


@dataclass
class SyncReport:
    """Outcome of a reconciliation pass, keyed by slug (or meta file path)."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)

    def summary(self) -> str:
        return (
            f"{len(self.created)} created, {len(self.updated)} updated, "
            f"{len(self.deleted)} deleted, {len(self.failed)} failed"
        )
