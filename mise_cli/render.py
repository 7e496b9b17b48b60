"""Output renderers for dependency graphs, impact results and diagnostics.

Two families:

* record formats (``jsonl``, ``json``, ``md``, ``raw``) render a flat list of
  result records, each a plain dict with a ``kind``;
* view formats (``dot``, ``mermaid``, ``tree``, ``table``, ``summary``)
  render a graph or an impact result directly.

Tables and trees are drawn with rich and captured as plain text.
"""

from __future__ import annotations

import json
from io import StringIO
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from .graph import FORWARD, REVERSE, DependencyGraph
from .models import Anchor, Diagnostic, ImpactResult

RECORD_FORMATS = ("jsonl", "json", "md", "raw")
DEPS_FORMATS = ("jsonl", "json", "dot", "tree", "table", "mermaid")
IMPACT_FORMATS = ("jsonl", "json", "summary", "table")

Record = Dict[str, Any]


# ===================================================================
# Records
# ===================================================================

def error_record(code: str, message: str, **data: Any) -> Record:
    record: Record = {"kind": "error", "code": code, "message": message}
    if data:
        record["data"] = data
    return record


def config_record(key: str, value: Any, path: str) -> Record:
    return {
        "kind": "config",
        "code": "CONFIG_UPDATED",
        "message": f"Set deps.{key} = {value!r} in {path}",
        "data": {"key": f"deps.{key}", "value": value, "path": path},
    }


def diagnostic_record(diagnostic: Diagnostic) -> Record:
    payload = diagnostic.to_dict()
    record: Record = {
        "kind": "diagnostic",
        "code": payload.pop("code"),
        "message": payload.pop("message"),
    }
    path = payload.get("origin") or payload.get("file")
    if path is None and payload.get("cycle"):
        path = payload["cycle"][0]
    if path:
        record["path"] = path
    record["data"] = payload
    return record


def deps_records(
    graph: DependencyGraph,
    file: Optional[str] = None,
    reverse: bool = False,
    depth: int = 1,
    diagnostics: Iterable[Diagnostic] = (),
) -> List[Record]:
    """Records for ``mise deps``: diagnostics first, then one record per file."""
    records = [diagnostic_record(d) for d in diagnostics]
    if file is not None:
        direction = REVERSE if reverse else FORWARD
        traversal = graph.traverse([file], direction=direction, max_depth=depth)
        data: Dict[str, Any] = {
            "depended_by" if reverse else "depends_on": [
                path for level in traversal.levels[1:] for path in level
            ],
        }
        if depth > 1:
            data["levels"] = [list(level) for level in traversal.levels[1:]]
            data["truncated"] = traversal.truncated
        records.append({"kind": "deps", "path": file, "data": data})
        return records

    for path in graph.nodes:
        records.append({
            "kind": "deps",
            "path": path,
            "data": {
                "depends_on": graph.forward_neighbors(path),
                "depended_by": graph.reverse_neighbors(path),
            },
        })
    return records


def anchor_records(index: Mapping[str, Anchor]) -> List[Record]:
    records: List[Record] = []
    for anchor in sorted(index.values(), key=lambda a: (a.path, a.start_line, a.id)):
        payload = anchor.to_dict()
        records.append({
            "kind": "anchor",
            "path": payload.pop("path"),
            "range": payload.pop("range"),
            "data": payload,
        })
    return records


def impact_records(result: ImpactResult) -> List[Record]:
    """Flatten an impact result: one record per affected file, then anchors."""
    records = [diagnostic_record(d) for d in result.diagnostics]
    groups = [
        (result.changed_files, "changed", 0),
        (result.direct_impacts, "direct_impact", 1),
        (result.transitive_impacts, "transitive_impact", None),
    ]
    for paths, impact, depth in groups:
        for path in paths:
            data: Dict[str, Any] = {"impact": impact, "source": result.source}
            if depth is not None:
                data["depth"] = depth
            records.append({"kind": "impact", "path": path, "data": data})
    for anchor_id in result.affected_anchors:
        records.append({"kind": "impact", "data": {"impact": "anchor", "anchor": anchor_id}})
    return records


def _dumps(value: Any, pretty: bool) -> str:
    if pretty:
        return json.dumps(value, indent=2, ensure_ascii=False)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _record_label(record: Record) -> str:
    label = f"`{record['path']}`" if record.get("path") else record.get("kind", "")
    rng = record.get("range")
    if rng:
        label += f" (lines {rng['start']}-{rng['end']})"
    return label


def _render_markdown(records: Sequence[Record]) -> str:
    sections = [
        ("Errors", lambda r: r["kind"] == "error"),
        ("Configuration", lambda r: r["kind"] == "config"),
        ("Diagnostics", lambda r: r["kind"] == "diagnostic"),
        ("Anchors", lambda r: r["kind"] == "anchor"),
        ("Dependencies", lambda r: r["kind"] == "deps"),
        ("Impact", lambda r: r["kind"] == "impact"),
    ]
    out: List[str] = []
    for title, matches in sections:
        selected = [r for r in records if matches(r)]
        if not selected:
            continue
        out.append(f"## {title}\n")
        for record in selected:
            if "code" in record:
                line = f"- **{record['code']}**: {record['message']}"
            else:
                line = f"- {_record_label(record)}"
            out.append(line)
            for key, value in (record.get("data") or {}).items():
                if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
                    out.append(f"  - {key}: " + ", ".join(f"`{v}`" for v in value))
                elif title not in ("Errors", "Diagnostics") and not isinstance(value, (list, dict)):
                    out.append(f"  - {key}: {value}")
        out.append("")
    return "\n".join(out)


def _render_raw(records: Sequence[Record]) -> str:
    lines: List[str] = []
    for record in records:
        if "code" in record:
            lines.append(f"{record['code']}: {record['message']}")
        elif record.get("path"):
            lines.append(record["path"])
    return "\n".join(lines)


def render_records(records: Sequence[Record], fmt: str = "jsonl", pretty: bool = False) -> str:
    """Render *records* in one of :data:`RECORD_FORMATS`."""
    if fmt == "jsonl":
        return ("\n\n" if pretty else "\n").join(_dumps(r, pretty) for r in records)
    if fmt == "json":
        return _dumps(list(records), pretty)
    if fmt == "md":
        return _render_markdown(records)
    if fmt == "raw":
        return _render_raw(records)
    raise ValueError(f"Unknown output format: {fmt}")


# ===================================================================
# Graph views
# ===================================================================

def _capture(renderable: Any, width: int = 120) -> str:
    buffer = StringIO()
    console = Console(file=buffer, width=width, no_color=True, highlight=False, emoji=False)
    console.print(renderable)
    return buffer.getvalue().rstrip("\n")


def _focus(graph: DependencyGraph, file: Optional[str]) -> List[str]:
    if file is None:
        return list(graph.nodes)
    selected = {file, *graph.forward_neighbors(file), *graph.reverse_neighbors(file)}
    return sorted(selected)


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def render_dot(graph: DependencyGraph, file: Optional[str] = None) -> str:
    """Graphviz DOT, optionally limited to *file* and its direct neighbours."""
    shown = _focus(graph, file)
    visible = set(shown)
    lines = ["digraph deps {", "  rankdir=LR;", "  node [shape=box, style=rounded];", ""]
    for path in shown:
        lines.append(f'  "{_esc(path)}" [label="{_esc(_basename(path))}"];')
    lines.append("")
    for path in shown:
        for target in graph.forward_neighbors(path):
            if target in visible:
                lines.append(f'  "{_esc(path)}" -> "{_esc(target)}";')
    lines.append("}")
    return "\n".join(lines)


def render_mermaid(graph: DependencyGraph, file: Optional[str] = None) -> str:
    # Mermaid ids cannot contain path characters
    shown = _focus(graph, file)
    ids = {path: f"N{i}" for i, path in enumerate(shown)}
    lines = ["graph LR"]
    for path in shown:
        label = _basename(path).replace('"', "'")
        lines.append(f'    {ids[path]}["{label}"]')
    for path in shown:
        for target in graph.forward_neighbors(path):
            if target in ids:
                lines.append(f"    {ids[path]} --> {ids[target]}")
    return "\n".join(lines)


def render_tree(graph: DependencyGraph, file: str, reverse: bool = False, depth: int = 1) -> str:
    nested = graph.tree(file, direction=REVERSE if reverse else FORWARD, max_depth=depth)

    def _attach(parent: Tree, node: Mapping[str, Any]) -> None:
        for child in node["children"]:
            label = child["path"] + (" (cycle)" if child["cycle"] else "")
            _attach(parent.add(label), child)

    tree = Tree(nested["path"])
    _attach(tree, nested)
    return _capture(tree)


def render_deps_table(graph: DependencyGraph, file: Optional[str] = None) -> str:
    table = Table(box=box.SQUARE, show_header=True)
    table.add_column("File", overflow="fold")
    table.add_column("Depends On", max_width=40, overflow="ellipsis", no_wrap=True)
    table.add_column("Count", justify="right")
    for path in _focus(graph, file):
        deps = graph.forward_neighbors(path)
        joined = ", ".join(_basename(d) for d in deps) or "-"
        table.add_row(path, joined, str(len(deps)))
    return _capture(table)


def render_deps(
    graph: DependencyGraph,
    fmt: str,
    file: Optional[str] = None,
    reverse: bool = False,
    depth: int = 1,
) -> str:
    """Render a non-record deps view (``dot``, ``mermaid``, ``tree``, ``table``)."""
    if fmt == "dot":
        return render_dot(graph, file)
    if fmt == "mermaid":
        return render_mermaid(graph, file)
    if fmt == "table":
        return render_deps_table(graph, file)
    if fmt == "tree":
        if file is None:
            raise ValueError("tree format requires a file")
        return render_tree(graph, file, reverse=reverse, depth=depth)
    raise ValueError(f"Unknown deps format: {fmt}")


# ===================================================================
# Impact views
# ===================================================================

def render_impact_summary(result: ImpactResult) -> str:
    lines = [f"📊 Impact Analysis: {result.source}", "━" * 30, ""]
    if not result.changed_files:
        lines.append("No changes detected.")
        return "\n".join(lines)

    sections = [
        ("🔴 Changed files", result.changed_files),
        ("🟠 Direct impacts", result.direct_impacts),
        ("🟡 Transitive impacts", result.transitive_impacts),
        ("📌 Affected anchors", result.affected_anchors),
    ]
    for title, items in sections:
        if not items and not title.startswith("🔴"):
            continue
        lines.append(f"{title} ({len(items)})")
        lines.extend(f"   {item}" for item in items)
        lines.append("")

    if result.depth_limit_reached:
        lines.append(f"⚠️  Stopped at max depth {result.max_depth}; more dependents exist.")
    if result.diagnostics:
        lines.append(f"⚠️  {len(result.diagnostics)} diagnostic(s); use --impact-format json for details.")
    lines.append(f"Total affected: {result.total_affected} files")
    return "\n".join(lines)


def render_impact_table(result: ImpactResult) -> str:
    if not result.changed_files:
        return "No changes detected."
    table = Table(box=box.SQUARE, show_header=True)
    table.add_column("File", overflow="fold")
    table.add_column("Impact Type")
    rows = [
        (result.changed_files, "🔴 changed"),
        (result.direct_impacts, "🟠 direct impact"),
        (result.transitive_impacts, "🟡 transitive"),
    ]
    for paths, label in rows:
        for path in paths:
            table.add_row(path, label)
    text = _capture(table)
    if result.affected_anchors:
        text += "\n\n📌 Affected anchors: " + ", ".join(result.affected_anchors)
    return text


def render_impact(result: ImpactResult, fmt: str, pretty: bool = False) -> str:
    if fmt == "summary":
        return render_impact_summary(result)
    if fmt == "table":
        return render_impact_table(result)
    if fmt in ("json", "jsonl"):
        return _dumps(result.to_dict(), pretty)
    raise ValueError(f"Unknown impact format: {fmt}")
