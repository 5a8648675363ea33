"""DocSyncConfig: project-local config for the content sync engine.

Default layout (all relative to the project root, i.e. the CMS directory):

    docsync.toml          # project config (git-tracked)
    .env                  # optional: DOCSYNC_CONTENT_DIR, DOCSYNC_DB_PATH
    .docsync/
        store.db          # SQLite record store
    content/              # content root, if present; else ../doc/content
        docs/
            <slug>.mdx
            <dir>/meta.json

docsync.toml example:

    [docsync]
    name = "my-docs"
    # content_dir = "content"          # default: ./content if it exists, else ../doc/content
    # docs_subdir = "docs"
    # content_ext = ".mdx"
    # db_path = ".docsync/store.db"

    [ingest]
    spec_path = "../doc/public/swagger.json"
    generator = ["npx", "tsx", "scripts/generate-api.ts"]
    generator_cwd = "../doc"
    timeout = 30

    [logging]
    level = "INFO"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "docsync.toml"
_DEFAULT_DB_PATH = ".docsync/store.db"
_DEFAULT_DOCS_SUBDIR = "docs"
_DEFAULT_CONTENT_EXT = ".mdx"
_LOCAL_CONTENT_DIR = "content"
_SIBLING_CONTENT_DIR = "../doc/content"

_DEFAULT_SPEC_PATH = "../doc/public/swagger.json"
_DEFAULT_GENERATOR = ["npx", "tsx", "scripts/generate-api.ts"]
_DEFAULT_GENERATOR_CWD = "../doc"
_DEFAULT_TIMEOUT = 30.0


@dataclass
class IngestConfig:
    spec_path: Path = field(default_factory=Path)     # canonical spec location
    generator: list[str] = field(default_factory=lambda: list(_DEFAULT_GENERATOR))
    generator_cwd: Path = field(default_factory=Path)
    timeout: float = _DEFAULT_TIMEOUT                 # seconds, spec fetch


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class DocSyncConfig:
    """Resolved configuration. Every path is absolute once loaded."""

    root: Path                          # directory that contains docsync.toml
    name: str = ""
    content_dir: Path = field(default_factory=Path)
    docs_subdir: str = _DEFAULT_DOCS_SUBDIR
    content_ext: str = _DEFAULT_CONTENT_EXT
    db_path: Path = field(default_factory=Path)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def docs_dir(self) -> Path:
        return self.content_dir / self.docs_subdir

    def ensure_dirs(self) -> None:
        """Create the docs dir and the store's parent dir if missing."""
        self.docs_dir.mkdir(parents=True, exist_ok=True)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)


def _load_env(root: Path) -> dict[str, str]:
    """Parse a simple KEY=VALUE .env file."""
    env_file = root / ".env"
    if not env_file.exists():
        return {}
    env: dict[str, str] = {}
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            env[k.strip()] = v.strip().strip('"').strip("'")
    return env


def resolve_content_dir(root: Path, configured: str | None) -> Path:
    """Pick the content root once: explicit setting, ./content, else ../doc/content."""
    if configured:
        return (root / configured).resolve()
    local = root / _LOCAL_CONTENT_DIR
    if local.is_dir():
        return local.resolve()
    return (root / _SIBLING_CONTENT_DIR).resolve()


def _normalize_ext(ext: str) -> str:
    return ext if ext.startswith(".") else f".{ext}"


def load_config(root: Path | str | None = None) -> DocSyncConfig:
    """Load docsync.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root).resolve() if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    env = _load_env(root_path)

    main = raw.get("docsync", {})
    ingest_section = raw.get("ingest", {})
    log_section = raw.get("logging", {})

    content_setting = env.get("DOCSYNC_CONTENT_DIR") or main.get("content_dir")
    db_setting = env.get("DOCSYNC_DB_PATH") or main.get("db_path", _DEFAULT_DB_PATH)

    generator = ingest_section.get("generator", list(_DEFAULT_GENERATOR))
    if isinstance(generator, str):
        generator = generator.split()

    return DocSyncConfig(
        root=root_path,
        name=main.get("name", root_path.name),
        content_dir=resolve_content_dir(root_path, content_setting),
        docs_subdir=main.get("docs_subdir", _DEFAULT_DOCS_SUBDIR),
        content_ext=_normalize_ext(main.get("content_ext", _DEFAULT_CONTENT_EXT)),
        db_path=(root_path / db_setting).resolve(),
        ingest=IngestConfig(
            spec_path=(root_path / ingest_section.get("spec_path", _DEFAULT_SPEC_PATH)).resolve(),
            generator=[str(part) for part in generator],
            generator_cwd=(root_path / ingest_section.get("generator_cwd", _DEFAULT_GENERATOR_CWD)).resolve(),
            timeout=float(ingest_section.get("timeout", _DEFAULT_TIMEOUT)),
        ),
        logging=LoggingConfig(
            level=str(log_section.get("level", "INFO")).upper(),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for docsync.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default docsync.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"docsync.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[docsync]
name = "{project_name}"
# content_dir = "content"       # default: ./content if it exists, else ../doc/content
# docs_subdir = "docs"
# content_ext = ".mdx"
# db_path = ".docsync/store.db"

# [ingest]
# spec_path = "../doc/public/swagger.json"
# generator = ["npx", "tsx", "scripts/generate-api.ts"]
# generator_cwd = "../doc"
# timeout = 30                  # seconds for the spec fetch

# [logging]
# level = "INFO"
"""
    config_path.write_text(content)
    return config_path
