"""Tests for viewc.toml loading."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from viewc.core.errors import ParseError
from viewc.core.manifest import MANIFEST_FILENAME, load_manifest

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_MINIMAL_TOML = textwrap.dedent("""\
    [project]
    name = "shop"
    version = "0.1.0"
""")


def _write_toml(tmp_path: Path, extra: str = "") -> Path:
    p = tmp_path / MANIFEST_FILENAME
    p.write_text(_MINIMAL_TOML + extra, encoding="utf-8")
    return p


# ---------------------------------------------------------------------------
# load_manifest tests
# ---------------------------------------------------------------------------


class TestLoadManifest:
    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        manifest = load_manifest(tmp_path / MANIFEST_FILENAME)
        assert manifest.name == tmp_path.name
        assert manifest.version == "0.0.0"
        assert manifest.compile.source_dirs == ["src"]
        assert manifest.compile.targets == ["element"]
        assert manifest.compile.mode == "main-trusted"
        assert not manifest.slow_render.enabled

    def test_minimal(self, tmp_path: Path) -> None:
        manifest = load_manifest(_write_toml(tmp_path))
        assert manifest.name == "shop"
        assert manifest.version == "0.1.0"
        assert manifest.compile.out_dir == "build/viewc"
        assert manifest.slow_render.data_dir is None

    def test_compile_and_slow_render_sections(self, tmp_path: Path) -> None:
        toml_path = _write_toml(
            tmp_path,
            textwrap.dedent("""\

                [compile]
                source_dirs = "pages"
                out_dir = "generated"
                targets = ["element", "react"]
                definitions = true
                mode = "main-sandbox"

                [slow_render]
                enabled = true
                data_dir = "slow-data"
            """),
        )
        manifest = load_manifest(toml_path)
        assert manifest.compile.source_dirs == ["pages"]
        assert manifest.compile.out_dir == "generated"
        assert manifest.compile.targets == ["element", "react"]
        assert manifest.compile.definitions
        assert manifest.compile.mode == "main-sandbox"
        assert manifest.slow_render.enabled
        assert manifest.slow_render.out_dir == "build/pre-rendered"
        assert manifest.slow_render.data_dir == "slow-data"

    def test_invalid_toml(self, tmp_path: Path) -> None:
        p = tmp_path / MANIFEST_FILENAME
        p.write_text("[project\nname = ", encoding="utf-8")
        with pytest.raises(ParseError, match="Invalid viewc.toml"):
            load_manifest(p)

    def test_invalid_mode(self, tmp_path: Path) -> None:
        toml_path = _write_toml(tmp_path, '\n[compile]\nmode = "worker"\n')
        with pytest.raises(ParseError, match="'compile.mode' must be one of"):
            load_manifest(toml_path)

    def test_invalid_targets(self, tmp_path: Path) -> None:
        toml_path = _write_toml(tmp_path, "\n[compile]\ntargets = [1, 2]\n")
        with pytest.raises(ParseError, match="'compile.targets' must be a string or a list"):
            load_manifest(toml_path)
