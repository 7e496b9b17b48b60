"""Typer-based CLI for mise dependency and impact context."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, NoReturn, Optional

import toml
import typer
from rich.console import Console
from rich.logging import RichHandler

from . import __version__, config
from .analyzer import ExtractionCache, ProjectAnalysis, analyze_project
from .anchors import build_anchor_index
from .config_manager import DepsConfig, load_deps_config, project_config_file, save_deps_config
from .git_diff import GitError, get_change_set
from .impact import analyze_impact, normalize_path
from .models import REASON_EXTERNAL, ChangeSet, DiffSource, UnresolvedImport
from .render import (
    DEPS_FORMATS,
    IMPACT_FORMATS,
    RECORD_FORMATS,
    anchor_records,
    config_record,
    deps_records,
    diagnostic_record,
    error_record,
    impact_records,
    render_deps,
    render_impact,
    render_records,
)
from .scanner import FileListingError, list_source_files

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="🗺️  mise: dependency graphs and change-impact context for agents.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Inspect and edit mise configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")


@dataclass
class CliState:
    root: Path
    fmt: str = "jsonl"
    pretty: bool = False


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"mise v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    handler = RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
    pkg_logger = logging.getLogger("mise_cli")
    pkg_logger.handlers = [handler]
    pkg_logger.setLevel(level)


@app.callback()
def main(
    ctx: typer.Context,
    root: Path = typer.Option(Path("."), "--root", help="Project root directory."),
    fmt: str = typer.Option("jsonl", "--format", "-f", help="Output format: jsonl, json, md, raw."),
    pretty: bool = typer.Option(False, "--pretty", help="Pretty-print JSON output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors."),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """mise: cross-language dependency graph and impact analysis."""
    fmt = fmt.lower()
    if fmt not in RECORD_FORMATS:
        raise typer.BadParameter(f"Format must be one of: {', '.join(RECORD_FORMATS)}")
    _configure_logging(verbose, quiet)
    ctx.obj = CliState(root=root.resolve(), fmt=fmt, pretty=pretty)


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def _state(ctx: typer.Context) -> CliState:
    if isinstance(ctx.obj, CliState):
        return ctx.obj
    return CliState(root=Path(".").resolve())


def _emit(text: str) -> None:
    if text:
        typer.echo(text)


def _fail(state: CliState, code: str, message: str) -> NoReturn:
    """Print a structured error record and exit with status 1."""
    _emit(render_records([error_record(code, message)], state.fmt, state.pretty))
    raise typer.Exit(code=1)


def _load_analysis(state: CliState) -> ProjectAnalysis:
    cfg = load_deps_config(state.root)
    try:
        return analyze_project(state.root, cfg, cache=ExtractionCache())
    except FileListingError as exc:
        _fail(state, exc.code, str(exc))


def _relative(state: CliState, path: str) -> str:
    candidate = Path(path)
    if candidate.is_absolute():
        try:
            candidate = candidate.resolve().relative_to(state.root)
        except ValueError:
            pass
    return normalize_path(candidate.as_posix())


# -------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------

@app.command("deps")
def deps(
    ctx: typer.Context,
    file: Optional[str] = typer.Argument(None, help="Show dependencies of a single file."),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="Show dependents instead."),
    depth: int = typer.Option(1, "--depth", "-d", min=1, help="Traversal depth for a single file."),
    deps_format: Optional[str] = typer.Option(
        None,
        "--deps-format",
        help="jsonl, json, dot, tree, table or mermaid (defaults to --format).",
    ),
):
    """Show the dependency graph, or one file's dependencies."""
    state = _state(ctx)
    fmt = (deps_format or state.fmt).lower()
    if fmt not in DEPS_FORMATS and fmt not in RECORD_FORMATS:
        raise typer.BadParameter(f"Deps format must be one of: {', '.join(DEPS_FORMATS)}")
    if fmt == "tree" and not file:
        _fail(
            state,
            "TREE_REQUIRES_FILE",
            "Tree format requires a specific file. Use: mise deps <file> --deps-format tree",
        )

    analysis = _load_analysis(state)
    target = _relative(state, file) if file else None
    if target is not None and target not in analysis.paths:
        _fail(state, "FILE_NOT_FOUND", f"File not found in project: {target}")

    if fmt in RECORD_FORMATS:
        records = deps_records(analysis.graph, target, reverse, depth, analysis.cycles)
        _emit(render_records(records, fmt, state.pretty))
    else:
        _emit(render_deps(analysis.graph, fmt, target, reverse=reverse, depth=depth))


@app.command("impact")
def impact(
    ctx: typer.Context,
    staged: bool = typer.Option(False, "--staged", help="Analyze staged changes."),
    commit: Optional[str] = typer.Option(None, "--commit", help="Analyze a single commit."),
    diff: Optional[str] = typer.Option(None, "--diff", help="Analyze a range, e.g. main..HEAD."),
    files: Optional[List[str]] = typer.Option(None, "--files", help="Treat these paths as changed (no git)."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=1, help="Transitive depth limit."),
    impact_format: Optional[str] = typer.Option(
        None,
        "--impact-format",
        help="jsonl, json, summary or table (defaults to --format).",
    ),
):
    """Analyze which files and anchors a change affects."""
    state = _state(ctx)
    fmt = (impact_format or state.fmt).lower()
    if fmt not in IMPACT_FORMATS and fmt not in RECORD_FORMATS:
        raise typer.BadParameter(f"Impact format must be one of: {', '.join(IMPACT_FORMATS)}")
    if sum(bool(x) for x in (staged, commit, diff, files)) > 1:
        raise typer.BadParameter("Use only one of --staged, --commit, --diff or --files.")

    if files:
        change_set = ChangeSet(
            files=tuple(_relative(state, f) for f in files),
            source=DiffSource(mode="files"),
        )
    else:
        try:
            change_set = get_change_set(state.root, DiffSource.from_args(staged, commit, diff))
        except GitError as exc:
            _fail(state, exc.code, exc.message)

    cfg = load_deps_config(state.root)
    analysis = _load_analysis(state)
    anchor_index = build_anchor_index(state.root, analysis.files)
    diagnostics = [
        d for d in analysis.diagnostics
        if not (isinstance(d, UnresolvedImport) and d.reason == REASON_EXTERNAL)
    ]
    result = analyze_impact(
        change_set,
        analysis.graph,
        anchor_index,
        max_depth=max_depth or cfg.max_depth,
        diagnostics=diagnostics,
    )

    if fmt in ("md", "raw"):
        _emit(render_records(impact_records(result), fmt, state.pretty))
    else:
        _emit(render_impact(result, fmt, state.pretty))


@app.command("cycles")
def cycles(ctx: typer.Context):
    """List circular dependencies."""
    state = _state(ctx)
    analysis = _load_analysis(state)
    if not analysis.cycles:
        logger.info("No circular dependencies found")
    _emit(render_records([diagnostic_record(c) for c in analysis.cycles], state.fmt, state.pretty))


@app.command("anchors")
def anchors(ctx: typer.Context):
    """List anchors defined in the project."""
    state = _state(ctx)
    cfg = load_deps_config(state.root)
    try:
        files = list_source_files(state.root, max_file_size=cfg.max_file_size)
    except FileListingError as exc:
        _fail(state, exc.code, str(exc))
    index = build_anchor_index(state.root, files)
    _emit(render_records(anchor_records(index), state.fmt, state.pretty))


# -------------------------------------------------------------------
# Config
# -------------------------------------------------------------------

@config_app.command("show")
def config_show(ctx: typer.Context):
    """Print the effective [deps] configuration."""
    state = _state(ctx)
    cfg = load_deps_config(state.root)
    if state.fmt in ("json", "jsonl"):
        payload = {
            "deps": cfg.to_dict(),
            "user_config": str(config.USER_CONFIG_FILE),
            "project_config": str(project_config_file(state.root)),
        }
        _emit(json.dumps(payload, indent=2 if state.pretty else None))
    else:
        _emit(toml.dumps({"deps": cfg.to_dict()}).rstrip())


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key in the [deps] section, e.g. max_depth."),
    value: str = typer.Argument(..., help="TOML value, e.g. 5 or '[\"src\", \"lib\"]'."),
):
    """Write a [deps] setting into the project config."""
    state = _state(ctx)
    known = DepsConfig().to_dict()
    if key not in known:
        raise typer.BadParameter(f"Unknown key '{key}'. Known keys: {', '.join(sorted(known))}")
    try:
        parsed = toml.loads(f"value = {value}")["value"]
    except toml.TomlDecodeError:
        parsed = value
    path = save_deps_config(state.root, {key: parsed})
    _emit(render_records([config_record(key, parsed, str(path))], state.fmt, state.pretty))


if __name__ == "__main__":
    app()
