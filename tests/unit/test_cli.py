"""Tests for CLI commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from viewc.cli import app

COUNTER_CONTRACT = """\
name: counter
tags:
  - tag: count
    type: data
    dataType: number
  - tag: add
    type: interactive
    elementType: HTMLButtonElement
"""

PAGE_TEMPLATE = """\
<html>
<head>
  <script type="application/jay-data" contract="../contracts/counter.jay-contract"></script>
</head>
<body>
  <div><span>{count}</span><button ref="add">+</button></div>
</body>
</html>
"""

BROKEN_TEMPLATE = (
    '<html><head><script type="application/jay-data">data:\n  a: string\n</script>'
    "</head><body><div>{b}</div></body></html>"
)


@pytest.fixture
def cli_runner():
    """Return a CLI test runner."""
    return CliRunner()


@pytest.fixture
def test_project(tmp_path: Path):
    """Create a temporary project with one page and one contract."""
    (tmp_path / "src" / "pages").mkdir(parents=True)
    (tmp_path / "src" / "contracts").mkdir()
    (tmp_path / "src" / "contracts" / "counter.jay-contract").write_text(COUNTER_CONTRACT)
    (tmp_path / "src" / "pages" / "counter.jay-html").write_text(PAGE_TEMPLATE)

    manifest = tmp_path / "viewc.toml"
    manifest.write_text(
        """
[project]
name = "shop"
version = "0.1.0"

[compile]
source_dirs = ["src"]
targets = ["element", "react"]
"""
    )
    return tmp_path


@pytest.fixture
def counter_page(test_project: Path) -> Path:
    return test_project / "src" / "pages" / "counter.jay-html"


def test_version(cli_runner: CliRunner):
    result = cli_runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("viewc ")
    assert "Environment:" in result.output


def test_compile_writes_next_to_template(cli_runner: CliRunner, counter_page: Path):
    result = cli_runner.invoke(app, ["compile", str(counter_page)])
    assert result.exit_code == 0, result.output
    generated = counter_page.parent / "counter.jay-html.ts"
    assert generated.exists()
    assert "export function render(" in generated.read_text()


def test_compile_all_targets(cli_runner: CliRunner, counter_page: Path, tmp_path: Path):
    out = tmp_path / "out"
    result = cli_runner.invoke(
        app, ["compile", str(counter_page), "--target", "all", "--definitions", "--out", str(out)]
    )
    assert result.exit_code == 0, result.output
    assert sorted(str(p.relative_to(out)) for p in out.rglob("*.ts*")) == [
        "counter.jay-html.d.ts",
        "counter.jay-html.sandbox-root.ts",
        "counter.jay-html.ts",
        "counter.jay-html.tsx",
        "sandbox/counter.jay-html.ts",
    ]


def test_compile_reports_validations(cli_runner: CliRunner, tmp_path: Path):
    template = tmp_path / "broken.jay-html"
    template.write_text(BROKEN_TEMPLATE)
    result = cli_runner.invoke(app, ["compile", str(template)])
    assert result.exit_code == 1
    assert "the data field [b] not found in Jay data" in result.output
    assert (tmp_path / "broken.jay-html.ts").exists()


def test_compile_strict_writes_nothing(cli_runner: CliRunner, tmp_path: Path):
    template = tmp_path / "broken.jay-html"
    template.write_text(BROKEN_TEMPLATE)
    result = cli_runner.invoke(app, ["compile", str(template), "--strict"])
    assert result.exit_code == 1
    assert not (tmp_path / "broken.jay-html.ts").exists()


def test_compile_strict_in_production(
    cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv("VIEWC_ENV", "production")
    template = tmp_path / "broken.jay-html"
    template.write_text(BROKEN_TEMPLATE)
    result = cli_runner.invoke(app, ["compile", str(template)])
    assert result.exit_code == 1
    assert not (tmp_path / "broken.jay-html.ts").exists()


def test_compile_unknown_target(cli_runner: CliRunner, counter_page: Path):
    result = cli_runner.invoke(app, ["compile", str(counter_page), "--target", "svelte"])
    assert result.exit_code == 1
    assert "Stack 'svelte' not found" in result.output


def test_contract_command(cli_runner: CliRunner, test_project: Path):
    contract = test_project / "src" / "contracts" / "counter.jay-contract"
    result = cli_runner.invoke(app, ["contract", str(contract)])
    assert result.exit_code == 0, result.output
    declaration = contract.parent / "counter.jay-contract.d.ts"
    assert "export type CounterContract = JayContract<" in declaration.read_text()


def test_check_command(cli_runner: CliRunner, test_project: Path, counter_page: Path):
    contract = test_project / "src" / "contracts" / "counter.jay-contract"
    result = cli_runner.invoke(app, ["check", str(counter_page), str(contract)])
    assert result.exit_code == 0, result.output
    assert "2 file(s) checked" in result.output
    assert not (counter_page.parent / "counter.jay-html.ts").exists()


def test_check_command_with_problems(cli_runner: CliRunner, tmp_path: Path):
    template = tmp_path / "broken.jay-html"
    template.write_text(BROKEN_TEMPLATE)
    result = cli_runner.invoke(app, ["check", str(template)])
    assert result.exit_code == 1
    assert "1 problem(s) found" in result.output


def test_slow_render_to_stdout(cli_runner: CliRunner, counter_page: Path, tmp_path: Path):
    data = tmp_path / "slow.json"
    data.write_text(json.dumps({"count": 5}))
    result = cli_runner.invoke(app, ["slow-render", str(counter_page), "--data", str(data)])
    assert result.exit_code == 0, result.output
    assert "<span>5</span>" in result.output


def test_slow_render_missing_value(cli_runner: CliRunner, counter_page: Path, tmp_path: Path):
    data = tmp_path / "slow.json"
    data.write_text("{}")
    out = tmp_path / "pre" / "counter.jay-html"
    result = cli_runner.invoke(
        app, ["slow-render", str(counter_page), "--data", str(data), "--out", str(out)]
    )
    assert result.exit_code == 1
    assert "Slow-phase binding {count}" in result.output
    assert "<span>undefined</span>" in out.read_text()


def test_slow_render_invalid_json(cli_runner: CliRunner, counter_page: Path, tmp_path: Path):
    data = tmp_path / "slow.json"
    data.write_text("{count")
    result = cli_runner.invoke(app, ["slow-render", str(counter_page), "--data", str(data)])
    assert result.exit_code == 1
    assert "Invalid JSON" in result.output


def test_build_command(cli_runner: CliRunner, test_project: Path):
    result = cli_runner.invoke(app, ["build", "--manifest", str(test_project / "viewc.toml")])
    assert result.exit_code == 0, result.output
    out = test_project / "build" / "viewc"
    assert (out / "pages" / "counter.jay-html.ts").exists()
    assert (out / "pages" / "counter.jay-html.tsx").exists()
    assert (out / "contracts" / "counter.jay-contract.d.ts").exists()


def test_build_with_slow_render(cli_runner: CliRunner, test_project: Path):
    manifest = test_project / "viewc.toml"
    manifest.write_text(
        manifest.read_text() + '\n[slow_render]\nenabled = true\ndata_dir = "slow-data"\n'
    )
    (test_project / "slow-data").mkdir()
    (test_project / "slow-data" / "counter.json").write_text('{"count": 7}')
    result = cli_runner.invoke(app, ["build", "--manifest", str(manifest)])
    assert result.exit_code == 0, result.output
    pre_rendered = test_project / "build" / "pre-rendered" / "counter.jay-html"
    assert "<span>7</span>" in pre_rendered.read_text()


def test_build_invalid_manifest(cli_runner: CliRunner, tmp_path: Path):
    manifest = tmp_path / "viewc.toml"
    manifest.write_text("[compile]\nmode = 'worker'\n")
    result = cli_runner.invoke(app, ["build", "--manifest", str(manifest)])
    assert result.exit_code == 1
    assert "Parse error" in result.output


def test_stacks_command(cli_runner: CliRunner):
    result = cli_runner.invoke(app, ["stacks"])
    assert result.exit_code == 0
    assert "element" in result.output
    assert "react" in result.output
