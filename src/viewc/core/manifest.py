import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from viewc.core.errors import ParseError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "viewc.toml"

DEFAULT_TARGETS = ["element"]
RUNTIME_MODES = ("main-trusted", "main-sandbox")


@dataclass
class CompileConfig:
    """Which sources to compile, and for which targets."""

    source_dirs: list[str] = field(default_factory=lambda: ["src"])
    out_dir: str = "build/viewc"
    targets: list[str] = field(default_factory=lambda: list(DEFAULT_TARGETS))
    definitions: bool = False  # also emit .jay-html.d.ts next to each element module
    mode: str = "main-trusted"  # "main-trusted" | "main-sandbox"


@dataclass
class SlowRenderConfig:
    """Slow-phase pre-render configuration.

    Examples in viewc.toml:

        [slow_render]
        enabled = true
        out_dir = "build/pre-rendered"
        data_dir = "slow-data"
    """

    enabled: bool = False
    out_dir: str = "build/pre-rendered"
    data_dir: str | None = None  # folder of {page}.json slow view states


@dataclass
class ProjectManifest:
    """
    Project manifest loaded from viewc.toml.

    Contains project metadata, compile settings and slow render settings.
    """

    name: str
    version: str
    project_root: str
    compile: CompileConfig = field(default_factory=CompileConfig)
    slow_render: SlowRenderConfig = field(default_factory=SlowRenderConfig)


def default_manifest(project_root: Path) -> ProjectManifest:
    return ProjectManifest(name=project_root.resolve().name, version="0.0.0", project_root=".")


def _string_list(value: object, key: str) -> list[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ParseError(f"'{key}' must be a string or a list of strings in {MANIFEST_FILENAME}")
    return value


def load_manifest(path: Path) -> ProjectManifest:
    """
    Load viewc.toml; a missing file yields the defaults.

    Raises:
        ParseError: If the file is not valid TOML or a list setting has the wrong shape
    """
    if not path.exists():
        logger.debug("No manifest at %s, using defaults", path)
        return default_manifest(path.parent)

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ParseError(f"Invalid {MANIFEST_FILENAME}: {e}") from e

    project = data.get("project", {})
    compile_data = data.get("compile", {})
    slow_data = data.get("slow_render", {})

    mode = compile_data.get("mode", "main-trusted")
    if mode not in RUNTIME_MODES:
        raise ParseError(
            f"'compile.mode' must be one of {', '.join(RUNTIME_MODES)}, got '{mode}'"
        )

    compile_config = CompileConfig(
        source_dirs=_string_list(compile_data.get("source_dirs", ["src"]), "compile.source_dirs"),
        out_dir=compile_data.get("out_dir", "build/viewc"),
        targets=_string_list(compile_data.get("targets", DEFAULT_TARGETS), "compile.targets"),
        definitions=compile_data.get("definitions", False),
        mode=mode,
    )

    slow_render_config = SlowRenderConfig(
        enabled=slow_data.get("enabled", False),
        out_dir=slow_data.get("out_dir", "build/pre-rendered"),
        data_dir=slow_data.get("data_dir"),
    )

    return ProjectManifest(
        name=project.get("name", path.parent.resolve().name),
        version=project.get("version", "0.0.0"),
        project_root=str(project.get("root", ".")),
        compile=compile_config,
        slow_render=slow_render_config,
    )
