"""Tests for file listing and the project analysis driver."""

from pathlib import Path

import pytest

from mise_cli.analyzer import ExtractionCache, analyze_files, analyze_project
from mise_cli.config_manager import DepsConfig
from mise_cli.models import Language, ParseSkipped, SourceFile, UnresolvedImport
from mise_cli.scanner import FileListingError, list_source_files


class TestScanner:
    """Tests for list_source_files."""

    def test_skips_vendor_and_hidden_entries(self, write_project):
        root = write_project({
            "src/main.ts": "",
            "node_modules/react/index.js": "",
            "target/debug/build.rs": "",
            ".hidden/file.py": "",
            ".env": "",
            "README.md": "",
        })
        paths = [f.path for f in list_source_files(root)]
        assert paths == ["README.md", "src/main.ts"]

    def test_languages_are_tagged(self, write_project):
        root = write_project({"a.rs": "", "b.tsx": "", "c.mjs": "", "d.pyi": "", "e.go": ""})
        languages = {f.path: f.language for f in list_source_files(root)}
        assert languages == {
            "a.rs": Language.RUST,
            "b.tsx": Language.TYPESCRIPT,
            "c.mjs": Language.JAVASCRIPT,
            "d.pyi": Language.PYTHON,
            "e.go": Language.UNKNOWN,
        }

    def test_oversized_files_are_skipped(self, write_project):
        root = write_project({"big.py": "x" * 100, "small.py": "x"})
        paths = [f.path for f in list_source_files(root, max_file_size=10)]
        assert paths == ["small.py"]

    def test_scope_limits_walk(self, write_project):
        root = write_project({"a/x.py": "", "b/y.py": ""})
        assert [f.path for f in list_source_files(root, scope="b")] == ["b/y.py"]

    def test_missing_root_raises(self, temp_dir: Path):
        with pytest.raises(FileListingError):
            list_source_files(temp_dir / "does-not-exist")


class TestAnalyzeProject:
    """Tests for analyze_project."""

    def test_sample_project_edges(self, sample_project: Path, serial_config):
        analysis = analyze_project(sample_project, serial_config)
        edges = {(e.source, e.target) for e in analysis.graph.edges()}
        assert edges == {
            ("src/lib.rs", "src/parser.rs"),
            ("src/lib.rs", "src/utils/mod.rs"),
            ("src/parser.rs", "src/utils/helpers.rs"),
            ("src/parser.rs", "src/utils/mod.rs"),
            ("src/utils/mod.rs", "src/utils/helpers.rs"),
            ("web/index.ts", "web/api.ts"),
            ("web/api.ts", "web/types.ts"),
            ("web/legacy.js", "web/util.js"),
            ("py/app.py", "py/pkg/__init__.py"),
            ("py/app.py", "py/pkg/core.py"),
            ("py/pkg/__init__.py", "py/pkg/core.py"),
            ("py/pkg/core.py", "py/pkg/models.py"),
        }
        assert analysis.cycles == []

    def test_unknown_language_files_are_not_nodes(self, sample_project: Path, serial_config):
        analysis = analyze_project(sample_project, serial_config)
        assert "docs/guide.md" not in analysis.graph
        assert "Cargo.toml" not in analysis.graph
        assert "docs/guide.md" in analysis.paths

    def test_external_diagnostics(self, sample_project: Path, serial_config):
        analysis = analyze_project(sample_project, serial_config)
        external = sorted(
            d.specifier for d in analysis.diagnostics
            if isinstance(d, UnresolvedImport) and d.reason == "external"
        )
        assert external == ["os", "react", "std::collections::HashMap", "std::fmt"]

    def test_parallel_and_serial_builds_match(self, sample_project: Path):
        serial = analyze_project(sample_project, DepsConfig(workers=1))
        parallel = analyze_project(sample_project, DepsConfig(workers=4))
        assert serial.graph.edges() == parallel.graph.edges()
        assert serial.diagnostics == parallel.diagnostics

    def test_cycles_are_reported_not_rejected(self, write_project, serial_config):
        root = write_project({"a.py": "import b\n", "b.py": "import a\n"})
        analysis = analyze_project(root, serial_config)
        assert analysis.graph.forward_neighbors("a.py") == ["b.py"]
        assert [c.cycle for c in analysis.cycles] == [("a.py", "b.py")]

    def test_from_import_links_submodule(self, write_project, serial_config):
        root = write_project({
            "app.py": "from pkg import core, helper\nfrom .pkg import util\n",
            "pkg/__init__.py": "helper = 1\n",
            "pkg/core.py": "x = 1\n",
            "pkg/util.py": "y = 2\n",
        })
        analysis = analyze_project(root, serial_config)
        assert analysis.graph.forward_neighbors("app.py") == [
            "pkg/__init__.py", "pkg/core.py", "pkg/util.py",
        ]
        assert analysis.graph.reverse_neighbors("pkg/core.py") == ["app.py"]
        assert analysis.diagnostics == []

    def test_from_import_of_external_reports_module_once(self, write_project, serial_config):
        root = write_project({"app.py": "from os import path, sep\n"})
        analysis = analyze_project(root, serial_config)
        assert [d.specifier for d in analysis.diagnostics] == ["os"]

    def test_binary_content_is_skipped(self, temp_dir: Path, serial_config):
        (temp_dir / "bad.py").write_bytes(b"import os\x00\xff\xfe")
        (temp_dir / "good.py").write_text("import bad\n")
        analysis = analyze_project(temp_dir, serial_config)
        skipped = [d for d in analysis.diagnostics if isinstance(d, ParseSkipped)]
        assert [s.file for s in skipped] == ["bad.py"]
        assert analysis.graph.forward_neighbors("good.py") == ["bad.py"]

    def test_empty_project(self, temp_dir: Path, serial_config):
        analysis = analyze_project(temp_dir, serial_config)
        assert analysis.graph.nodes == ()
        assert analysis.diagnostics == []


class TestExtractionCache:
    """Tests for content-addressed extraction caching."""

    def test_identical_content_hits_cache(self, write_project, serial_config):
        root = write_project({"a/x.py": "import os\n", "b/x.py": "import os\n"})
        cache = ExtractionCache()
        analysis = analyze_project(root, serial_config, cache=cache)
        assert len(cache) == 1
        assert cache.hits == 1
        origins = sorted(d.origin for d in analysis.diagnostics if isinstance(d, UnresolvedImport))
        assert origins == ["a/x.py", "b/x.py"]

    def test_cache_reused_across_builds(self, write_project, serial_config):
        root = write_project({"m.py": "import json\n"})
        cache = ExtractionCache()
        analyze_project(root, serial_config, cache=cache)
        analyze_project(root, serial_config, cache=cache)
        assert cache.hits == 1
        assert cache.misses == 1


def test_analyze_files_with_explicit_list(write_project, serial_config):
    root = write_project({"a.py": "import b\n", "b.py": "", "c.py": "import a\n"})
    files = [SourceFile("a.py", Language.PYTHON), SourceFile("b.py", Language.PYTHON)]
    analysis = analyze_files(root, files, serial_config)
    assert analysis.graph.nodes == ("a.py", "b.py")
