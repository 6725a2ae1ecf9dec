"""Tests for the compile pipeline and project builds."""

from __future__ import annotations

from pathlib import Path

import pytest

from viewc.core.compiler import (
    build_project,
    compile_contract_file,
    compile_template,
    compile_template_file,
    discover_sources,
    output_path_for,
    slow_render_file,
    write_outputs,
)
from viewc.core.errors import BackendError, ValidationError
from viewc.core.manifest import default_manifest
from viewc.core.template_ir import RuntimeMode

BROKEN_TEMPLATE = (
    '<html><head><script type="application/jay-data">data:\n  a: string\n</script>'
    "</head><body><div>{b}</div></body></html>"
)


class TestCompileTemplate:
    def test_element(self, counter_template: str) -> None:
        result = compile_template(counter_template, "counter.jay-html")
        assert result.validations == ()
        assert "export function render(options?: RenderElementOptions)" in result.val

    def test_each_target(self, counter_template: str) -> None:
        react = compile_template(counter_template, "counter.jay-html", "react")
        assert "export const render = mimicJayElement(reactRender);" in react.val
        bridge = compile_template(counter_template, "counter.jay-html", "bridge")
        assert "elementBridge(" in bridge.val

    def test_mode_is_passed_to_the_stack(self, counter_template: str) -> None:
        result = compile_template(
            counter_template, "counter.jay-html", mode=RuntimeMode.MAIN_SANDBOX
        )
        assert result.val is not None

    def test_unparseable_template(self) -> None:
        result = compile_template("<html><body></body></html>", "x.jay-html")
        assert result.val is None
        assert result.validations

    def test_validations_are_kept(self) -> None:
        result = compile_template(BROKEN_TEMPLATE, "x.jay-html")
        assert result.val is not None
        assert result.validations == ("the data field [b] not found in Jay data",)

    def test_unknown_target(self, counter_template: str) -> None:
        with pytest.raises(BackendError):
            compile_template(counter_template, "counter.jay-html", "svelte")


class TestOutputPaths:
    def test_suffixes(self) -> None:
        assert output_path_for("element", "counter.jay-html") == Path("counter.jay-html.ts")
        assert output_path_for("definition", "counter.jay-html") == Path("counter.jay-html.d.ts")
        assert output_path_for("react", "counter.jay-html") == Path("counter.jay-html.tsx")
        assert output_path_for("sandbox-root", "page.jay-html") == Path(
            "page.jay-html.sandbox-root.ts"
        )

    def test_bridge_goes_to_sandbox_folder(self) -> None:
        assert output_path_for("bridge", "counter.jay-html") == Path(
            "sandbox/counter.jay-html.ts"
        )


class TestCompileFiles:
    def test_template_file(self, write_file, counter_template: str) -> None:
        path = write_file("counter.jay-html", counter_template)
        outputs = compile_template_file(path, ["element", "definition"])
        assert [output.target for output in outputs] == ["element", "definition"]
        assert all(output.ok for output in outputs)

    def test_strict_raises(self, write_file) -> None:
        path = write_file("broken.jay-html", BROKEN_TEMPLATE)
        with pytest.raises(ValidationError) as exc_info:
            compile_template_file(path, ["element"], strict=True)
        assert exc_info.value.validations == ["the data field [b] not found in Jay data"]

    def test_not_strict_reports(self, write_file) -> None:
        path = write_file("broken.jay-html", BROKEN_TEMPLATE)
        (output,) = compile_template_file(path, ["element"])
        assert not output.ok
        assert output.content is not None

    def test_contract_file(self, counter_contract_file: Path) -> None:
        output = compile_contract_file(counter_contract_file)
        assert output.relative_path == Path("counter.jay-contract.d.ts")
        assert output.ok
        assert "export type CounterContract = JayContract<" in output.content


class TestBuildProject:
    def _project(self, write_file, counter_template: str) -> Path:
        write_file("src/pages/counter.jay-html", counter_template)
        contract = "name: counter\ntags:\n  - tag: count\n    type: data\n    dataType: number\n"
        return write_file("src/counter.jay-contract", contract).parents[1]

    def test_discover_sources(self, write_file, counter_template: str) -> None:
        root = self._project(write_file, counter_template)
        templates, contracts = discover_sources(root, default_manifest(root))
        assert [p.name for p in templates] == ["counter.jay-html"]
        assert [p.name for p in contracts] == ["counter.jay-contract"]

    def test_outputs_keep_folders(self, write_file, counter_template: str) -> None:
        root = self._project(write_file, counter_template)
        manifest = default_manifest(root)
        manifest.compile.targets = ["element", "bridge"]
        manifest.compile.definitions = True
        result = build_project(root, manifest)
        assert result.ok
        assert sorted(str(output.relative_path) for output in result.outputs) == [
            "counter.jay-contract.d.ts",
            "pages/counter.jay-html.d.ts",
            "pages/counter.jay-html.ts",
            "sandbox/pages/counter.jay-html.ts",
        ]

    def test_write_outputs(self, write_file, counter_template: str, tmp_path: Path) -> None:
        root = self._project(write_file, counter_template)
        result = build_project(root, default_manifest(root))
        written = write_outputs(result.outputs, tmp_path / "out")
        assert (tmp_path / "out" / "pages" / "counter.jay-html.ts") in written
        assert (tmp_path / "out" / "pages" / "counter.jay-html.ts").read_text().startswith(
            "import {"
        )

    def test_missing_source_dir(self, tmp_path: Path) -> None:
        result = build_project(tmp_path, default_manifest(tmp_path))
        assert result.outputs == []
        assert result.ok


class TestSlowRenderFile:
    def test_contract_from_jay_data(self, write_file, counter_contract_file: Path) -> None:
        path = write_file(
            "counter.jay-html",
            '<html><head><script type="application/jay-data" contract="./counter.jay-contract">'
            "</script></head><body><span>{count}</span></body></html>",
        )
        result = slow_render_file(path, {"count": 5})
        assert result.validations == ()
        assert "<span>5</span>" in result.val


ITEM_CONTRACT = """\
name: item
tags:
  - tag: title
    type: data
    dataType: string
  - tag: buy
    type: interactive
    elementType: HTMLButtonElement
"""

SHOP_CONTRACT = """\
name: shop
tags:
  - tag: heading
    type: data
    dataType: string
  - tag: items
    type: sub-contract
    link: ./item
    repeated: true
    trackBy: title
"""

SHOP_TEMPLATE = """\
<html>
<head>
  <script type="application/jay-data" contract="../contracts/shop.jay-contract"></script>
</head>
<body>
  <ul>
    <li forEach="items" trackBy="title"><span>{title}</span><button ref="buy">Buy</button></li>
  </ul>
</body>
</html>
"""

ITEM_IMPORT = (
    "import { ItemViewState, ItemRefs, ItemRepeatedRefs } "
    "from '../contracts/item.jay-contract';"
)


class TestLinkedContractTemplates:
    def _page(self, write_file) -> Path:
        write_file("contracts/item.jay-contract", ITEM_CONTRACT)
        write_file("contracts/shop.jay-contract", SHOP_CONTRACT)
        return write_file("pages/shop.jay-html", SHOP_TEMPLATE)

    def test_linked_types_are_imported(self, write_file) -> None:
        outputs = compile_template_file(
            self._page(write_file), ["element", "bridge", "sandbox-root", "react"]
        )
        for output in outputs:
            assert output.validations == (), output.target
            assert ITEM_IMPORT in output.content, output.target

    def test_loop_is_typed_by_the_linked_contract(self, write_file) -> None:
        (element, react) = compile_template_file(self._page(write_file), ["element", "react"])
        assert "items: Array<ItemViewState>;" in element.content
        assert "(vs: ShopViewState) => vs.items," in element.content
        assert "(vs1: ItemViewState) => {" in element.content
        assert "dt(vs1 => vs1.title)" in element.content
        assert "buy: HTMLElementCollectionProxy<ItemViewState, HTMLButtonElement>;" in (
            element.content
        )
        assert "vs.items.map((vs1: ItemViewState) =>" in react.content
