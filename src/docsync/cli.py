"""docsync CLI — keep the record store and the content tree in sync.

Commands:
    docsync init [NAME]             create docsync.toml, content dir, store
    docsync sync                    reconcile: tree -> store
    docsync export                  rebuild the tree from the store
    docsync list                    table of docs records
    docsync put SLUG FILE           create/update a doc (mirrored immediately)
    docsync rm SLUG                 delete a doc (file removed immediately)
    docsync meta-put PATH FILE      create/update a directory's meta.json
    docsync meta-rm PATH            delete a directory's meta.json
    docsync spec add NAME URL       register an API spec (fetch + generate)
    docsync spec rm NAME            forget an API spec
    docsync spec ingest [NAME]      re-run ingestion for one or all specs
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from docsync.config import DocSyncConfig, init_config, load_config
from docsync.frontmatter import title_of
from docsync.hooks import make_ingestor, open_store
from docsync.ingest import IngestError
from docsync.models import API_SPECS, DOCS, META, ApiSpecRecord
from docsync.reconcile import export_tree, reconcile
from docsync.store import RecordStore, RecordStoreError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_ACTION_LABELS = {
    "created": "Imported",
    "updated": "Updated",
    "deleted": "Deleted",
    "failed": "Skipped",
    "exported": "Wrote",
}


def _setup_logging(cfg: DocSyncConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")


def _load_cfg(ctx: click.Context) -> DocSyncConfig:
    root = ctx.obj.get("root") if ctx.obj else None
    try:
        cfg = load_config(root)
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc
    _setup_logging(cfg, bool(ctx.obj and ctx.obj.get("verbose")))
    return cfg


def _open(cfg: DocSyncConfig, **kwargs: bool) -> RecordStore:
    try:
        return open_store(cfg, **kwargs)
    except RecordStoreError as exc:
        raise click.ClickException(str(exc)) from exc


def _echo_item(action: str, label: str) -> None:
    click.echo(f"{_ACTION_LABELS.get(action, action)} {label}")


def _read_input(path: str) -> str:
    # Raw bytes: the record must hold exactly what the file holds.
    return Path(path).read_bytes().decode("utf-8")


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="docsync")
@click.option("--root", type=click.Path(file_okay=False), default=None, help="Project root (default: search upward for docsync.toml)")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, root: str | None, verbose: bool) -> None:
    """docsync — record store <-> content tree sync."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# docsync init
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(name: str | None, root: str) -> None:
    """Create docsync.toml, the docs directory and the record store."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("docsync.toml already exists — skipping init")

    cfg = load_config(root_path)
    cfg.ensure_dirs()
    _open(cfg, mirror=False, ingest=False)
    click.echo(f"Docs dir : {cfg.docs_dir}")
    click.echo(f"Store    : {cfg.db_path}")


# ---------------------------------------------------------------------------
# docsync sync / export
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--meta/--no-meta", default=True, show_default=True, help="Also reconcile meta.json files")
@click.pass_context
def sync(ctx: click.Context, meta: bool) -> None:
    """Reconcile the store with the files under the docs directory.

    Files are authoritative for presence: new files are imported, changed
    files update their record, records without a file are deleted.
    """
    cfg = _load_cfg(ctx)
    store = _open(cfg, ingest=False)
    if not cfg.docs_dir.is_dir():
        click.echo(f"Docs directory does not exist: {cfg.docs_dir}")
        return
    try:
        result = reconcile(
            store,
            cfg.docs_dir,
            content_ext=cfg.content_ext,
            include_meta=meta,
            report=_echo_item,
        )
    except RecordStoreError as exc:
        raise click.ClickException(f"Sync aborted: {exc}") from exc
    click.echo(f"Sync complete: {result.summary()}")


@cli.command()
@click.pass_context
def export(ctx: click.Context) -> None:
    """Rebuild the content tree from the store."""
    cfg = _load_cfg(ctx)
    store = _open(cfg, mirror=False, ingest=False)
    try:
        n = export_tree(store, cfg.docs_dir, content_ext=cfg.content_ext, report=_echo_item)
    except RecordStoreError as exc:
        raise click.ClickException(f"Export aborted: {exc}") from exc
    click.echo(f"Exported {n} files to {cfg.docs_dir}")


# ---------------------------------------------------------------------------
# docsync list
# ---------------------------------------------------------------------------


@cli.command("list")
@click.pass_context
def list_docs(ctx: click.Context) -> None:
    """Show every docs record with its frontmatter title."""
    from rich.console import Console
    from rich.table import Table

    cfg = _load_cfg(ctx)
    store = _open(cfg, mirror=False, ingest=False)
    try:
        records = store.list(DOCS)
    except RecordStoreError as exc:
        raise click.ClickException(str(exc)) from exc

    table = Table(title=f"docsync — {cfg.name}", show_header=True, header_style="bold")
    table.add_column("Slug", no_wrap=True)
    table.add_column("Title")
    table.add_column("Size", justify="right")
    table.add_column("Updated", style="dim")
    for record in records:
        table.add_row(
            record.slug,
            title_of(record.content),
            str(len(record.content.encode("utf-8"))),
            record.updated_at[:19],
        )
    Console().print(table)


# ---------------------------------------------------------------------------
# docsync put / rm / meta-put / meta-rm
# ---------------------------------------------------------------------------


def _save(ctx: click.Context, collection: str, key_field: str, key: str, file: str) -> None:
    cfg = _load_cfg(ctx)
    store = _open(cfg, ingest=False)
    try:
        action, _ = store.save(collection, {key_field: key, "content": _read_input(file)})
    except (RecordStoreError, UnicodeDecodeError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"{action.capitalize()} {key}")


def _delete(ctx: click.Context, collection: str, key: str) -> None:
    cfg = _load_cfg(ctx)
    store = _open(cfg, ingest=False)
    try:
        store.delete(collection, key)
    except RecordStoreError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Deleted {key}")


@cli.command()
@click.argument("slug")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def put(ctx: click.Context, slug: str, file: str) -> None:
    """Create or update the doc SLUG with the contents of FILE."""
    _save(ctx, DOCS, "slug", slug, file)


@cli.command()
@click.argument("slug")
@click.pass_context
def rm(ctx: click.Context, slug: str) -> None:
    """Delete the doc SLUG."""
    _delete(ctx, DOCS, slug)


@cli.command("meta-put")
@click.argument("path")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def meta_put(ctx: click.Context, path: str, file: str) -> None:
    """Create or update PATH/meta.json with the contents of FILE."""
    _save(ctx, META, "path", path, file)


@cli.command("meta-rm")
@click.argument("path")
@click.pass_context
def meta_rm(ctx: click.Context, path: str) -> None:
    """Delete PATH/meta.json."""
    _delete(ctx, META, path)


# ---------------------------------------------------------------------------
# docsync spec
# ---------------------------------------------------------------------------


@cli.group()
def spec() -> None:
    """Manage API specs that drive generated API docs."""


@spec.command("add")
@click.argument("name")
@click.argument("url")
@click.option("--version", "api_version", default=None, help="API version")
@click.option("--base-url", default=None, help="API base URL")
@click.option("--description", default=None)
@click.pass_context
def spec_add(
    ctx: click.Context,
    name: str,
    url: str,
    api_version: str | None,
    base_url: str | None,
    description: str | None,
) -> None:
    """Register (or update) spec NAME at URL, then fetch it and generate docs."""
    cfg = _load_cfg(ctx)
    store = _open(cfg, mirror=False)
    data = {
        "name": name,
        "spec_url": url,
        "version": api_version,
        "base_url": base_url,
        "description": description,
    }
    try:
        action, _ = store.save(API_SPECS, {k: v for k, v in data.items() if v is not None})
    except RecordStoreError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"{action.capitalize()} spec {name}")


@spec.command("rm")
@click.argument("name")
@click.pass_context
def spec_rm(ctx: click.Context, name: str) -> None:
    """Forget spec NAME. Generated docs are left in place."""
    _delete(ctx, API_SPECS, name)


@spec.command("ingest")
@click.argument("name", required=False)
@click.pass_context
def spec_ingest(ctx: click.Context, name: str | None) -> None:
    """Re-run ingestion for spec NAME, or for every spec.

    A failing spec prints a warning; the remaining specs still run.
    """
    cfg = _load_cfg(ctx)
    store = _open(cfg, mirror=False, ingest=False)
    try:
        records = [r for r in store.list(API_SPECS) if isinstance(r, ApiSpecRecord)]
    except RecordStoreError as exc:
        raise click.ClickException(str(exc)) from exc
    if name is not None:
        records = [r for r in records if r.key == name]
        if not records:
            raise click.ClickException(f"Spec not found: {name}")

    ingestor = make_ingestor(cfg)
    failed = 0
    for record in records:
        try:
            ingestor.run(record)
        except IngestError as exc:
            failed += 1
            click.echo(f"Warning: failed to generate API docs for {record.name}: {exc}", err=True)
            continue
        click.echo(f"Generated API docs for {record.name}")
    click.echo(f"{len(records) - failed}/{len(records)} specs ingested")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    cli(standalone_mode=True)


if __name__ == "__main__":
    main()
