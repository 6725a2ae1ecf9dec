"""Tests for the code generation stacks and their registry."""

import pytest

from viewc.core.errors import BackendError
from viewc.core.template_ir import RuntimeMode, build_template_ir
from viewc.core.template_parser import parse_jay_file
from viewc.stacks import Stack, StackRegistry, get_stack, list_stacks
from viewc.stacks.element import ElementStack

TODO_TEMPLATE = """\
<html>
<head>
  <script type="application/jay-data">
data:
  show: boolean
  items:
    - id: string
      text: string
  </script>
</head>
<body>
  <ul>
    <li if="show" forEach="items" trackBy="id"><span ref="label">{text}</span></li>
  </ul>
</body>
</html>
"""


def _generate(source: str, target: str, filename: str = "counter.jay-html", **options) -> str:
    jay_file = parse_jay_file(source, filename)
    assert jay_file.validations == ()
    ir = build_template_ir(jay_file.val)
    result = get_stack(target).generate(ir.val, **options)
    assert result.validations == ()
    return result.val


class TestRegistry:
    def test_builtin_stacks(self) -> None:
        assert list_stacks() == ["element", "definition", "bridge", "sandbox-root", "react"]
        assert isinstance(get_stack("element"), ElementStack)

    def test_unknown_stack(self) -> None:
        with pytest.raises(BackendError) as exc_info:
            get_stack("vue")
        assert str(exc_info.value).startswith("Stack 'vue' not found. Available stacks: [")

    def test_duplicate_registration(self) -> None:
        registry = StackRegistry()
        registry.register("element", ElementStack)
        with pytest.raises(BackendError, match="already registered"):
            registry.register("element", ElementStack)

    def test_only_stacks_register(self) -> None:
        with pytest.raises(BackendError, match="must extend Stack"):
            StackRegistry().register("bad", dict)

    def test_output_suffixes(self) -> None:
        suffixes = {
            name: get_stack(name).get_capabilities().output_suffix for name in list_stacks()
        }
        assert suffixes == {
            "element": ".jay-html.ts",
            "definition": ".jay-html.d.ts",
            "bridge": ".jay-html.ts",
            "sandbox-root": ".jay-html.sandbox-root.ts",
            "react": ".jay-html.tsx",
        }
        assert all(isinstance(get_stack(name), Stack) for name in list_stacks())


class TestElementStack:
    def test_counter_module(self, counter_template: str) -> None:
        module = _generate(counter_template, "element")
        assert module.startswith(
            "import { JayElement, element as e, dynamicText as dt, RenderElement, "
            "ReferencesManager, ConstructContext, HTMLElementProxy, RenderElementOptions, "
            "JayContract } from '@jay-framework/runtime';\n\n"
        )
        assert "export interface CounterViewState {\n    count: number;\n    title: string;\n}" in (
            module
        )
        assert "export type CounterElement = JayElement<CounterViewState, CounterElementRefs>;" in (
            module
        )
        assert "export type CounterInteractiveViewState = CounterViewState;" in module
        assert (
            "export function render(options?: RenderElementOptions): CounterElementPreRender {"
            in module
        )
        assert (
            "    const [refManager, [refSubtract, refAdd]] = "
            "ReferencesManager.for(options, ['subtract', 'add'], [], [], []);"
        ) in module
        assert "e('h1', {}, [dt(vs => vs.title)])" in module
        assert "e('button', {}, ['-'], refSubtract())" in module
        assert "return [refManager.getPublicAPI() as CounterElementRefs, render];" in module
        assert module.endswith("}\n")

    def test_conditional_loop(self) -> None:
        module = _generate(TODO_TEMPLATE, "element", "todo.jay-html")
        assert "de('ul', {}, [" in module
        assert "c(vs => vs.show, () => forEach(" in module
        assert "(vs: TodoViewState) => vs.items," in module
        assert "(vs1: ItemOfTodoViewState) => {" in module
        assert "return e('li', {}, [e('span', {}, [dt(vs1 => vs1.text)], refLabel())]);" in module
        assert "'id'," in module
        assert (
            "const [itemsRefManager, [refLabel]] = "
            "ReferencesManager.for(options, [], ['label'], [], []);"
        ) in module
        assert "label: HTMLElementCollectionProxy<ItemOfTodoViewState, HTMLSpanElement>;" in (
            module
        )

    def test_missing_binding_is_a_validation(self) -> None:
        source = (
            '<html><head><script type="application/jay-data">data:\n  a: string\n</script>'
            "</head><body><div>{b}</div></body></html>"
        )
        ir = build_template_ir(parse_jay_file(source, "x.jay-html").val).val
        result = get_stack("element").generate(ir)
        assert result.validations == ("the data field [b] not found in Jay data",)

    def test_main_sandbox_mode_uses_secure_child_components(self, write_file) -> None:
        write_file("counter.ts", "export function Counter(props) {}\n")
        source = (
            '<html><head><script type="application/jay-data">data:\n  n: number\n</script>'
            '<script type="application/jay-headfull" src="./counter" names="Counter"></script>'
            '</head><body><div><Counter initial="{n}"></Counter></div></body></html>'
        )
        path = write_file("page.jay-html", source)
        ir = build_template_ir(parse_jay_file(source, path.name, path).val).val
        trusted = get_stack("element").generate(ir).val
        assert "childComp(Counter, (vs: PageViewState) => ({ initial: vs.n }), refAR1())" in (
            trusted
        )
        sandboxed = get_stack("element").generate(ir, mode=RuntimeMode.MAIN_SANDBOX).val
        assert "secureChildComp(Counter," in sandboxed
        assert "import { Counter } from './counter';" in sandboxed

    def test_definition(self, counter_template: str) -> None:
        module = _generate(counter_template, "definition")
        assert module.startswith(
            "import { JayElement, RenderElement, HTMLElementProxy, RenderElementOptions, "
            "JayContract } from '@jay-framework/runtime';"
        )
        assert module.endswith(
            "export declare function render(options?: RenderElementOptions): "
            "CounterElementPreRender;\n"
        )
        assert "ConstructContext" not in module


class TestSandboxStacks:
    def test_bridge_keeps_only_refs(self, counter_template: str) -> None:
        module = _generate(counter_template, "bridge")
        assert "from '@jay-framework/secure';" in module
        assert (
            "const [refManager, [refSubtract, refAdd]] = "
            "SecureReferencesManager.forElement(['subtract', 'add'], [], [], []);"
        ) in module
        assert "elementBridge(viewState, refManager, () => [" in module
        assert "e(refSubtract())," in module
        assert "dt(" not in module

    def test_bridge_loops(self) -> None:
        module = _generate(TODO_TEMPLATE, "bridge", "todo.jay-html")
        assert "forEach((vs: TodoViewState) => vs.items, 'id', () => [e(refLabel())])" in module

    def test_sandbox_root(self, counter_template: str) -> None:
        module = _generate(counter_template, "sandbox-root")
        assert "export function initializeWorker() {\n    sandboxRoot(() => {" in module
        assert (
            "const [, [refSubtract, refAdd]] = "
            "SecureReferencesManager.forSandboxRoot(['subtract', 'add'], [], [], []);"
        ) in module
        assert module.endswith(
            "setWorkerPort(new JayPort(new HandshakeMessageJayChannel(self)));\n"
            "initializeWorker();\n"
        )


class TestReactStack:
    def test_counter(self, counter_template: str) -> None:
        module = _generate(counter_template, "react")
        assert (
            "export interface CounterElementProps "
            "extends Jay4ReactElementProps<CounterViewState> {}"
        ) in module
        assert "<h1>{vs.title}</h1>" in module
        assert "<button {...eventsFor(context, 'subtract')}>-</button>" in module
        assert "from '@jay-framework/4-react';" in module
        assert module.endswith("export const render = mimicJayElement(reactRender);\n")

    def test_loop_derives_item_context(self) -> None:
        module = _generate(TODO_TEMPLATE, "react", "todo.jay-html")
        assert "{(vs.show) && (vs.items.map((vs1: ItemOfTodoViewState) => {" in module
        assert "const cx1 = context.child(vs1.id, vs1);" in module
        assert "<li key={vs1.id}>" in module

    def test_class_and_style_attributes(self) -> None:
        source = (
            '<html><head><script type="application/jay-data">data:\n  w: number\n</script>'
            '</head><body><div class="box" style="color: red; width: {w}px" for="x">'
            "</div></body></html>"
        )
        module = _generate(source, "react", "box.jay-html")
        assert (
            '<div className="box" style={{ color: \'red\', width: `${vs.w}px` }} htmlFor="x" />'
            in module
        )

    def test_async_is_reported(self) -> None:
        source = (
            '<html><head><script type="application/jay-data">data:\n  async n: number\n'
            '</script></head><body><div><span when-resolved="n">{.}</span></div></body></html>'
        )
        ir = build_template_ir(parse_jay_file(source, "x.jay-html").val).val
        result = get_stack("react").generate(ir)
        assert result.validations == (
            "when-resolved directive is not supported by the react target",
        )
