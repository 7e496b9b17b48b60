"""Heuristic import extraction for Rust, TypeScript/JavaScript and Python.

Each language gets an :class:`ImportExtractor` strategy registered in
:data:`EXTRACTORS`.  Extraction is a pure read of file content: no grammar,
no filesystem access, safe to run from worker threads.

Comments are blanked out (newlines preserved) before the regexes run so that
line numbers computed from match offsets stay accurate.
"""

from __future__ import annotations

import bisect
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

from .models import (
    KIND_DYNAMIC_IMPORT,
    KIND_EXPORT_FROM,
    KIND_FROM,
    KIND_FROM_MEMBER,
    KIND_IMPORT,
    KIND_MOD,
    KIND_REQUIRE,
    KIND_USE,
    ImportReference,
    Language,
)


# ===================================================================
# Abstract Extractor Interface
# ===================================================================

class ImportExtractor(ABC):
    """Turns file content into an ordered list of raw import references."""

    language: Language = Language.UNKNOWN

    @abstractmethod
    def extract(self, content: str, origin: str) -> List[ImportReference]:
        """Return references found in *content*, ordered by position."""
        ...


# ===================================================================
# Shared Helpers
# ===================================================================

def _line_at(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def _blank(text: str) -> str:
    """Replace everything but newlines with spaces."""
    return re.sub(r"[^\n]", " ", text)


def _scan_c_source(content: str, quotes: str) -> Tuple[str, List[Tuple[int, int]]]:
    """Blank ``//`` and ``/* */`` comments and record string literal spans.

    *quotes* lists the characters that open a string literal.  The returned
    text has the same length and line structure as the input; spans are
    ``(start, end)`` offsets of each literal, quotes included, in order.
    """
    out: List[str] = []
    spans: List[Tuple[int, int]] = []
    i = 0
    n = len(content)
    while i < n:
        ch = content[i]
        nxt = content[i + 1] if i + 1 < n else ""
        if ch == "/" and nxt == "/":
            end = content.find("\n", i)
            end = n if end == -1 else end
            out.append(" " * (end - i))
            i = end
        elif ch == "/" and nxt == "*":
            end = content.find("*/", i + 2)
            end = n if end == -1 else end + 2
            out.append(_blank(content[i:end]))
            i = end
        elif ch in quotes:
            j = i + 1
            while j < n and content[j] != ch:
                if content[j] == "\\":
                    j += 1
                elif content[j] == "\n" and ch != "`":
                    break
                j += 1
            out.append(content[i:j + 1])
            spans.append((i, min(j + 1, n)))
            i = j + 1
        else:
            out.append(ch)
            i += 1
    return "".join(out), spans


def _strip_c_comments(content: str, quotes: str) -> str:
    """Blank ``//`` and ``/* */`` comments, leaving string literals intact."""
    return _scan_c_source(content, quotes)[0]


def _in_string(spans: List[Tuple[int, int]], offset: int) -> bool:
    idx = bisect.bisect_right(spans, (offset, float("inf"))) - 1
    return idx >= 0 and spans[idx][0] <= offset < spans[idx][1]


# ===================================================================
# Rust
# ===================================================================

_RUST_ATTRS = r"(?:\#\[[^\]]*\]\s*)*"
_RUST_VIS = r"(?:pub(?:\s*\([^)]*\))?\s+)?"

_RUST_USE = re.compile(
    rf"^[ \t]*{_RUST_ATTRS}{_RUST_VIS}use\s+(?P<tree>[^;]+);",
    re.MULTILINE,
)

_RUST_MOD = re.compile(
    rf"^[ \t]*{_RUST_ATTRS}{_RUST_VIS}mod\s+(?P<name>(?:r\#)?\w+)\s*;",
    re.MULTILINE,
)

_RUST_ALIAS = re.compile(r"\s+as\s+\w+")


def _split_top_level(text: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    start = 0
    for idx, ch in enumerate(text):
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append(text[start:idx])
            start = idx + 1
    parts.append(text[start:])
    return [p for p in parts if p]


def expand_use_tree(tree: str) -> List[str]:
    """Expand a ``use`` tree into one path per leaf.

    ``crate::{a::{b, c as d}, self}`` becomes ``crate::a::b``,
    ``crate::a::c`` and ``crate``.  Glob segments are dropped.
    """
    compact = re.sub(r"\s+", "", _RUST_ALIAS.sub("", tree))
    if compact.startswith("::"):
        compact = compact[2:]

    def _expand(path: str) -> List[str]:
        brace = path.find("{")
        if brace == -1:
            return [path]
        close = path.rfind("}")
        if close < brace:
            return [path[:brace]]
        prefix = path[:brace]
        leaves: List[str] = []
        for part in _split_top_level(path[brace + 1:close]):
            for sub in _expand(part):
                if sub == "self":
                    leaves.append(prefix.rstrip(":"))
                else:
                    leaves.append(prefix + sub)
        return leaves

    paths: List[str] = []
    for leaf in _expand(compact):
        if leaf.endswith("::*"):
            leaf = leaf[:-3]
        elif leaf == "*":
            continue
        leaf = leaf.strip(":")
        if leaf and leaf not in paths:
            paths.append(leaf)
    return paths


class RustExtractor(ImportExtractor):
    language = Language.RUST

    def extract(self, content: str, origin: str) -> List[ImportReference]:
        text = _strip_c_comments(content, quotes='"')
        found: List[Tuple[int, ImportReference]] = []

        for m in _RUST_USE.finditer(text):
            line = _line_at(text, m.start("tree"))
            for path in expand_use_tree(m.group("tree")):
                found.append((m.start("tree"), ImportReference(path, origin, line, KIND_USE)))

        for m in _RUST_MOD.finditer(text):
            name = m.group("name")
            if name.startswith("r#"):
                name = name[2:]
            found.append((
                m.start("name"),
                ImportReference(name, origin, _line_at(text, m.start("name")), KIND_MOD),
            ))

        found.sort(key=lambda item: item[0])
        return [ref for _, ref in found]


# ===================================================================
# TypeScript / JavaScript
# ===================================================================

_JS_FROM = re.compile(
    r"""\b(?P<kw>import|export)\b[^'";()=]*?\bfrom\s*(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)"""
)

_JS_BARE_IMPORT = re.compile(
    r"""\bimport\s*(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)"""
)

_JS_REQUIRE = re.compile(
    r"""\brequire\s*\(\s*(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)\s*\)"""
)

_JS_DYNAMIC_IMPORT = re.compile(
    r"""\bimport\s*\(\s*(?P<q>['"])(?P<spec>[^'"\n]+)(?P=q)\s*\)"""
)


class JavaScriptExtractor(ImportExtractor):
    language = Language.JAVASCRIPT

    def extract(self, content: str, origin: str) -> List[ImportReference]:
        text, strings = _scan_c_source(content, quotes="'\"`")
        by_offset: Dict[int, ImportReference] = {}

        def _add(m: "re.Match[str]", kind: str) -> None:
            offset = m.start("spec")
            if offset in by_offset or _in_string(strings, m.start()):
                return
            by_offset[offset] = ImportReference(
                m.group("spec").strip(), origin, _line_at(text, offset), kind,
            )

        for m in _JS_FROM.finditer(text):
            _add(m, KIND_IMPORT if m.group("kw") == "import" else KIND_EXPORT_FROM)
        for m in _JS_BARE_IMPORT.finditer(text):
            _add(m, KIND_IMPORT)
        for m in _JS_REQUIRE.finditer(text):
            _add(m, KIND_REQUIRE)
        for m in _JS_DYNAMIC_IMPORT.finditer(text):
            _add(m, KIND_DYNAMIC_IMPORT)

        return [by_offset[k] for k in sorted(by_offset)]


class TypeScriptExtractor(JavaScriptExtractor):
    language = Language.TYPESCRIPT


# ===================================================================
# Python
# ===================================================================

_PY_IMPORT = re.compile(r"^[ \t]*import[ \t]+(?P<mods>[^\n#;]+)", re.MULTILINE)

_PY_FROM = re.compile(
    r"^[ \t]*from[ \t]+(?P<mod>\.+[\w.]*|[A-Za-z_][\w.]*)[ \t]+import[ \t]*"
    r"(?P<names>\([^)]*\)|[^\n#;]+)",
    re.MULTILINE,
)


def _strip_py_source(content: str) -> str:
    """Blank ``#`` comments and string literals in one left-to-right pass.

    Triple-quoted strings may span lines; newlines inside them are kept so
    offsets still map to the right line.
    """
    out: List[str] = []
    i = 0
    n = len(content)
    while i < n:
        ch = content[i]
        if ch == "#":
            end = content.find("\n", i)
            end = n if end == -1 else end
            out.append(" " * (end - i))
            i = end
        elif ch in "'\"":
            triple = content[i:i + 3]
            if triple in ('"""', "'''"):
                j = i + 3
                while j < n and not content.startswith(triple, j):
                    j += 2 if content[j] == "\\" else 1
                end = min(j + 3, n)
            else:
                j = i + 1
                while j < n and content[j] != ch and content[j] != "\n":
                    j += 2 if content[j] == "\\" else 1
                end = min(j + 1, n) if j < n and content[j] == ch else j
            out.append(_blank(content[i:end]))
            i = end
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _imported_names(raw: str) -> List[str]:
    names: List[str] = []
    cleaned = raw.strip().strip("()").replace("\\", " ")
    for line in cleaned.splitlines():
        for part in line.split(","):
            tokens = part.split()
            if tokens and re.fullmatch(r"[A-Za-z_]\w*", tokens[0]):
                names.append(tokens[0])
    return names


class PythonExtractor(ImportExtractor):
    """``import`` and ``from ... import`` statements.

    ``from mod import a, b`` yields ``mod`` plus a ``from_member`` reference
    per name (``mod.a``, ``mod.b``), since each name may be a submodule.
    """

    language = Language.PYTHON

    def extract(self, content: str, origin: str) -> List[ImportReference]:
        text = _strip_py_source(content)
        found: List[Tuple[int, ImportReference]] = []

        for m in _PY_IMPORT.finditer(text):
            line = _line_at(text, m.start("mods"))
            for part in m.group("mods").replace("\\", " ").split(","):
                tokens = part.split()
                if tokens and re.fullmatch(r"[A-Za-z_][\w.]*", tokens[0]):
                    found.append((m.start("mods"), ImportReference(tokens[0], origin, line, KIND_IMPORT)))

        for m in _PY_FROM.finditer(text):
            module = m.group("mod")
            line = _line_at(text, m.start("mod"))
            if module.strip("."):
                found.append((m.start("mod"), ImportReference(module, origin, line, KIND_FROM)))
                prefix = module + "."
            else:
                prefix = module
            for name in _imported_names(m.group("names")):
                found.append((
                    m.start("mod"),
                    ImportReference(prefix + name, origin, line, KIND_FROM_MEMBER),
                ))

        found.sort(key=lambda item: item[0])
        return [ref for _, ref in found]


# ===================================================================
# Registry
# ===================================================================

EXTRACTORS: Dict[Language, ImportExtractor] = {
    Language.RUST: RustExtractor(),
    Language.TYPESCRIPT: TypeScriptExtractor(),
    Language.JAVASCRIPT: JavaScriptExtractor(),
    Language.PYTHON: PythonExtractor(),
}


def supports_language(language: Language) -> bool:
    return language in EXTRACTORS


def extract_imports(content: str, language: Language, origin: str = "") -> List[ImportReference]:
    """Extract raw import references; unsupported languages yield ``[]``."""
    extractor = EXTRACTORS.get(language)
    if extractor is None:
        return []
    return extractor.extract(content, origin)
