"""Tests for anchor marker parsing and indexing."""

from pathlib import Path

from mise_cli.anchors import build_anchor_index, is_anchor_candidate, parse_anchors


def test_parse_single_anchor():
    content = "intro\n<!--Q:begin id=setup tags=install,cli v=3-->\nbody\n<!--Q:end id=setup-->\n"
    anchors = parse_anchors(content, "README.md")
    assert len(anchors) == 1
    anchor = anchors[0]
    assert anchor.id == "setup"
    assert anchor.path == "README.md"
    assert (anchor.start_line, anchor.end_line) == (2, 4)
    assert anchor.tags == ("install", "cli")
    assert anchor.version == 3


def test_defaults_without_tags_or_version():
    anchors = parse_anchors("<!-- Q:begin id=a -->\n<!-- Q:end id=a -->\n", "x.md")
    assert anchors[0].tags == ()
    assert anchors[0].version == 1


def test_nested_and_interleaved_anchors():
    content = "\n".join([
        "<!--Q:begin id=outer-->",
        "<!--Q:begin id=inner-->",
        "<!--Q:begin id=cross-->",
        "<!--Q:end id=inner-->",
        "<!--Q:end id=outer-->",
        "<!--Q:end id=cross-->",
    ])
    ranges = {a.id: (a.start_line, a.end_line) for a in parse_anchors(content, "f.md")}
    assert ranges == {"inner": (2, 4), "outer": (1, 5), "cross": (3, 6)}


def test_unclosed_anchor_is_dropped():
    assert parse_anchors("<!--Q:begin id=open-->\ntext\n", "f.md") == []


def test_anchor_in_source_comment():
    content = "# <!--Q:begin id=py-block-->\nx = 1\n# <!--Q:end id=py-block-->\n"
    assert [a.id for a in parse_anchors(content, "m.py")] == ["py-block"]


def test_candidate_extensions():
    assert is_anchor_candidate("docs/guide.md")
    assert is_anchor_candidate("src/lib.rs")
    assert not is_anchor_candidate("image.png")
    assert not is_anchor_candidate("Makefile")


def test_build_index_first_definition_wins(write_project):
    root = write_project({
        "a.md": "<!--Q:begin id=dup-->\n<!--Q:end id=dup-->\n",
        "b.md": "<!--Q:begin id=dup-->\n<!--Q:end id=dup-->\n",
        "c.png": "<!--Q:begin id=ignored-->\n<!--Q:end id=ignored-->\n",
    })
    index = build_anchor_index(root, ["b.md", "a.md", "c.png"])
    assert list(index) == ["dup"]
    assert index["dup"].path == "a.md"


def test_build_index_on_sample_project(sample_project: Path):
    from mise_cli.scanner import list_source_files

    index = build_anchor_index(sample_project, list_source_files(sample_project))
    assert sorted(index) == ["core-api", "guide-intro"]
    assert index["core-api"].to_dict() == {
        "id": "core-api",
        "path": "py/pkg/core.py",
        "range": {"start": 1, "end": 3},
        "tags": ["py", "api"],
        "version": 2,
    }
