"""CLI entry point for spec-reconciler."""

import asyncio
import logging
from pathlib import Path

import click

from spec_reconciler.config import Settings, load_settings
from spec_reconciler.errors import ReconcilerError
from spec_reconciler.parser.base import CanonicalEndpoint, Spec
from spec_reconciler.parser.loader import document_info, extract_endpoints, load_file
from spec_reconciler.reconcile.analyzer import ImportAnalyzer
from spec_reconciler.reconcile.defaults import calculate_metadata_completeness
from spec_reconciler.reconcile.merge import MergeExecutor
from spec_reconciler.reconcile.report import Change, ImportAnalysis, ImportOptions
from spec_reconciler.storage.file import JsonFileStorage

FORMAT_CHOICES = click.Choice(["auto", "openapi", "swagger", "postman", "curl"])
LOG_LEVELS = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False)

STATUS_LABELS = {"new": "NEW", "modified": "MODIFIED", "unchanged": "UNCHANGED", "deprecated": "DEPRECATED"}
CHANGE_MARKS = {"added": "+", "removed": "-", "modified": "~"}


def _parse_doc(settings: Settings, doc_path: Path, fmt: str) -> tuple[list[CanonicalEndpoint], Spec]:
    """Parse API document based on format, returning endpoints and spec metadata."""
    try:
        parsed = load_file(doc_path, fmt)
        endpoints = extract_endpoints(parsed, smart_defaults=settings.smart_defaults)
    except ReconcilerError as exc:
        raise click.ClickException(str(exc)) from exc
    info = document_info(parsed)
    spec = Spec(
        name=info.name,
        version=info.version,
        description=info.description,
        base_url=info.base_url,
        raw_spec=parsed.raw,
        format=parsed.format,
    )
    return endpoints, spec


def _describe_change(change: Change) -> str:
    target = change.field
    if change.name is not None:
        target += f" {change.name}"
    if change.location:
        target += f" ({change.location})"
    if change.differences:
        detail = ", ".join(d.property for d in change.differences)
    elif change.added is not None or change.removed is not None:
        detail = f"+{change.added or []} -{change.removed or []}"
    elif change.note:
        detail = change.note
    else:
        detail = f"{change.old_value!r} -> {change.new_value!r}"
    return f"{CHANGE_MARKS[change.type]} {target}: {detail}"


def _print_analysis(analysis: ImportAnalysis) -> None:
    summary = analysis.summary
    click.echo(
        f"Analyzed {analysis.total_endpoints} endpoints against spec {analysis.target_spec_id}: "
        f"{summary.new} new, {summary.modified} modified, {summary.unchanged} unchanged, "
        f"{summary.deprecated} deprecated, {summary.skipped} skipped."
    )
    if summary.total_tests:
        click.echo(f"{summary.total_tests} tests reference duplicated endpoints.")
    for row in analysis.comparisons():
        line = f"  {STATUS_LABELS[row.status]:<11}{row.method} {row.path}"
        if row.affected_tests:
            line += f" ({row.affected_tests} tests)"
        click.echo(line)
        for change in row.changes:
            click.echo(f"      {_describe_change(change)}")
    for entry in analysis.skipped:
        click.echo(f"  SKIPPED    #{entry.index} {entry.method or '?'} {entry.path or '?'}: {entry.reason}")


def _run(coro):
    try:
        return asyncio.run(coro)
    except ReconcilerError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option("--store", type=click.Path(path_type=Path), default=None, help="JSON store file (env: RECONCILER_STORE).")
@click.option("--log-level", type=LOG_LEVELS, default=None, help="Logging level (env: RECONCILER_LOG_LEVEL).")
@click.option("--no-smart-defaults", is_flag=True, help="Do not enrich Postman and cURL imports.")
@click.pass_context
def main(ctx: click.Context, store: Path | None, log_level: str | None, no_smart_defaults: bool):
    """Spec Reconciler: compare and merge re-imported API specs."""
    settings = load_settings()
    settings = settings.model_copy(
        update={
            "store": store or settings.store,
            "log_level": (log_level or settings.log_level).upper(),
            "smart_defaults": settings.smart_defaults and not no_smart_defaults,
        }
    )
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    ctx.obj = settings


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
@click.option("--name", default=None, help="Spec name (defaults to the document title).")
@click.option("--version", "version", default=None, help="Spec version (defaults to the document version).")
@click.option("--previous-spec-id", type=int, default=None, help="Create a new version of this spec.")
@click.option("--format", "fmt", default="auto", type=FORMAT_CHOICES, help="Document format.")
@click.pass_obj
def new_spec(settings: Settings, doc_path: Path, name: str | None, version: str | None, previous_spec_id: int | None, fmt: str):
    """Store a document as a new spec, optionally as a new version of an existing one."""
    click.echo(f"Parsing {doc_path} (format: {fmt})...")
    endpoints, spec = _parse_doc(settings, doc_path, fmt)
    spec = spec.model_copy(update={"name": name or spec.name, "version": version or spec.version})

    storage = JsonFileStorage(settings.store)
    outcome = _run(MergeExecutor(storage).create_spec_version(endpoints, spec, previous_spec_id))
    click.echo(f"Created spec {outcome.spec_id} with {len(outcome.endpoint_ids)} endpoints.")
    if previous_spec_id is not None:
        click.echo(f"Mapped {len(outcome.endpoint_mapping)} endpoints from spec {previous_spec_id}.")


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
@click.option("--spec-id", required=True, type=int, help="Stored spec to compare against.")
@click.option("--format", "fmt", default="auto", type=FORMAT_CHOICES, help="Document format.")
@click.option("--json", "as_json", is_flag=True, help="Print the full analysis as JSON.")
@click.pass_obj
def analyze(settings: Settings, doc_path: Path, spec_id: int, fmt: str, as_json: bool):
    """Compare a document with a stored spec without changing anything."""
    endpoints, _ = _parse_doc(settings, doc_path, fmt)
    storage = JsonFileStorage(settings.store)
    analysis = _run(ImportAnalyzer(storage).analyze(endpoints, spec_id))
    if as_json:
        click.echo(analysis.model_dump_json(indent=2, by_alias=True))
    else:
        _print_analysis(analysis)


@main.command("import")
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
@click.option("--spec-id", required=True, type=int, help="Stored spec to merge into.")
@click.option("--on-duplicate", default="replace", type=click.Choice(["replace", "skip"]), help="What to do with endpoints that already exist.")
@click.option("--replace", "replacements", multiple=True, type=int, help="Only replace these existing endpoint ids (repeatable).")
@click.option("--keep-old", is_flag=True, help="Do not mark replaced endpoints as deprecated.")
@click.option("--deprecate-missing", is_flag=True, help="Deprecate stored endpoints absent from the document.")
@click.option("--format", "fmt", default="auto", type=FORMAT_CHOICES, help="Document format.")
@click.pass_obj
def import_(
    settings: Settings,
    doc_path: Path,
    spec_id: int,
    on_duplicate: str,
    replacements: tuple[int, ...],
    keep_old: bool,
    deprecate_missing: bool,
    fmt: str,
):
    """Merge a document into a stored spec."""
    endpoints, _ = _parse_doc(settings, doc_path, fmt)
    storage = JsonFileStorage(settings.store)
    if _run(storage.get_spec(spec_id)) is None:
        raise click.ClickException(f"Spec with ID {spec_id} not found")

    options = ImportOptions(
        on_duplicate=on_duplicate,
        replacements=list(replacements) or None,
        mark_as_deprecated=not keep_old,
        deprecate_missing=deprecate_missing,
    )
    result = _run(MergeExecutor(storage).apply(endpoints, spec_id, options))
    click.echo(
        f"Imported {result.imported}, replaced {result.replaced}, skipped {result.skipped}, "
        f"deprecated {result.deprecated}, relinked {result.relinked} tests."
    )
    for error in result.errors:
        click.echo(f"  FAILED {error}", err=True)
    if result.failed:
        raise SystemExit(1)


@main.command()
@click.argument("doc_path", type=click.Path(exists=True, path_type=Path))
@click.option("--format", "fmt", default="auto", type=FORMAT_CHOICES, help="Document format.")
@click.pass_obj
def completeness(settings: Settings, doc_path: Path, fmt: str):
    """Score how much optional metadata each endpoint carries."""
    endpoints, _ = _parse_doc(settings, doc_path, fmt)
    for endpoint in endpoints:
        report = calculate_metadata_completeness(endpoint)
        click.echo(f"{report.score:>3}%  {endpoint.method} {endpoint.path}  ({report.complete}/{report.total})")
