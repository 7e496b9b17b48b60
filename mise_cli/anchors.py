"""Anchor index: named regions marked with ``<!--Q:begin-->``/``<!--Q:end-->``.

Marker format::

    <!--Q:begin id=auth-flow tags=auth,api v=2-->
    ...
    <!--Q:end id=auth-flow-->
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union

from .models import Anchor, AnchorIndex, SourceFile

logger = logging.getLogger(__name__)

BEGIN_RE = re.compile(r"<!--\s*Q:begin\s+id=([^\s]+)(?:\s+tags=([^\s]+))?(?:\s+v=(\d+))?\s*-->")
END_RE = re.compile(r"<!--\s*Q:end\s+id=([^\s]+)\s*-->")

ANCHOR_EXTENSIONS = {
    "md", "txt", "rs", "py", "ts", "tsx", "js", "jsx", "go", "java", "c",
    "cpp", "h", "hpp", "html", "css", "scss", "yaml", "yml", "toml", "json",
}


def is_anchor_candidate(path: str) -> bool:
    name = path.rsplit("/", 1)[-1]
    return "." in name and name.rsplit(".", 1)[-1].lower() in ANCHOR_EXTENSIONS


def parse_anchors(content: str, path: str) -> List[Anchor]:
    """Parse every closed anchor in *content*, in order of their end markers.

    An end marker closes the most recent open anchor with the same id, so
    anchors may nest or interleave.  Unclosed anchors are dropped.
    """
    anchors: List[Anchor] = []
    open_markers: List[Tuple[str, Tuple[str, ...], int, int]] = []

    for line_no, line in enumerate(content.splitlines(), start=1):
        begin = BEGIN_RE.search(line)
        if begin:
            tags = tuple(t.strip() for t in (begin.group(2) or "").split(",") if t.strip())
            version = int(begin.group(3)) if begin.group(3) else 1
            open_markers.append((begin.group(1), tags, version, line_no))

        end = END_RE.search(line)
        if end:
            end_id = end.group(1)
            for pos in range(len(open_markers) - 1, -1, -1):
                if open_markers[pos][0] == end_id:
                    anchor_id, tags, version, start = open_markers.pop(pos)
                    anchors.append(Anchor(anchor_id, path, start, line_no, tags, version))
                    break

    for anchor_id, _, _, start in open_markers:
        logger.debug("%s:%d: anchor '%s' is never closed", path, start, anchor_id)
    return anchors


def build_anchor_index(root: Path, files: Iterable[Union[SourceFile, str]]) -> AnchorIndex:
    """Scan candidate text files under *root* and index anchors by id.

    The first definition of an id (in sorted path order) wins.
    """
    paths = sorted(f.path if isinstance(f, SourceFile) else f for f in files)
    index: Dict[str, Anchor] = {}
    for path in paths:
        if not is_anchor_candidate(path):
            continue
        try:
            content = (Path(root) / path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping anchors in %s: %s", path, exc)
            continue
        if "Q:begin" not in content:
            continue
        for anchor in parse_anchors(content, path):
            if anchor.id in index:
                logger.warning(
                    "Duplicate anchor id '%s' in %s (first defined in %s)",
                    anchor.id, path, index[anchor.id].path,
                )
                continue
            index[anchor.id] = anchor
    return index
