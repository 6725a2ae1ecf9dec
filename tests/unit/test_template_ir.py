"""Tests for the shared template walk."""

import pytest

from viewc.core.errors import TemplateCompileError
from viewc.core.template_ir import (
    ComponentNode,
    ConditionalNode,
    ElementNamespace,
    ElementNode,
    ForEachNode,
    RecurseNode,
    TextNode,
    WithDataNode,
    build_template_ir,
    element_type_for,
)
from viewc.core.template_parser import parse_jay_file

TODO_DATA = """\
data:
  title: string
  show: boolean
  items:
    - id: string
      text: string
"""

TREE_DATA = """\
data:
  name: string
  children: array<$/>
"""


def _walk(body: str, data: str = TODO_DATA, head: str = ""):
    source = (
        '<html><head><script type="application/jay-data">\n'
        f"{data}</script>{head}</head><body>{body}</body></html>"
    )
    jay_file = parse_jay_file(source, "todo.jay-html")
    assert jay_file.validations == ()
    return build_template_ir(jay_file.val)


class TestWalk:
    def test_elements_and_text(self) -> None:
        ir = _walk('<div class="x"><h1 ref="heading">{title}</h1></div>').val
        root = ir.root
        assert isinstance(root, ElementNode)
        assert root.attributes == {"class": "x"}
        heading = root.children[0]
        assert isinstance(heading.children[0], TextNode)
        assert heading.children[0].text == "{title}"
        assert heading.ref_key == ((), "heading")
        assert ir.refs.find_ref([], "heading").element_type == element_type_for("h1")

    def test_body_needs_one_root(self) -> None:
        result = _walk("<div></div><div></div>")
        assert result.val is None
        assert result.validations == (
            "jay file body must have exactly one root element, found 2",
        )

    def test_for_each_scope_and_refs(self) -> None:
        ir = _walk(
            '<ul><li forEach="items" trackBy="id"><span ref="label">{text}</span></li></ul>'
        ).val
        loop = ir.root.children[0]
        assert isinstance(loop, ForEachNode)
        assert loop.track_by == "id"
        assert loop.item_variables.current_var == "vs1"
        assert ir.refs.children["items"].repeated
        label = ir.refs.find_ref(["items"], "label")
        assert label.is_collection
        assert label.view_state_type.name == "ItemOfTodoViewState"

    def test_for_each_without_track_by(self) -> None:
        result = _walk('<ul><li forEach="items">{text}</li></ul>')
        assert "forEach directive - missing trackBy attribute [forEach=items]" in (
            result.validations
        )

    def test_for_each_over_non_array(self) -> None:
        result = _walk('<ul><li forEach="title" trackBy="id"></li></ul>')
        assert result.validations == (
            "forEach directive - resolved forEach type is not an array [forEach=title]",
        )

    def test_for_each_over_missing_field(self) -> None:
        result = _walk('<ul><li forEach="products" trackBy="id"></li></ul>')
        assert result.validations == (
            "the data field [products] not found in Jay data",
            "forEach directive - failed to resolve forEach type [forEach=products]",
        )

    def test_if_wraps_for_each(self) -> None:
        ir = _walk('<ul><li if="show" forEach="items" trackBy="id">{text}</li></ul>').val
        conditional = ir.root.children[0]
        assert isinstance(conditional, ConditionalNode)
        assert conditional.condition == "show"
        assert isinstance(conditional.child, ForEachNode)

    def test_refs_inside_loops_live_under_the_loop_path(self) -> None:
        result = _walk(
            '<div><span ref="x"></span>'
            '<p forEach="items" trackBy="id"><b ref="x"></b></p></div>'
        )
        assert result.validations == ()
        assert not result.val.refs.find_ref([], "x").is_collection
        assert result.val.refs.find_ref(["items"], "x").is_collection

    def test_svg_namespace(self) -> None:
        ir = _walk('<div><svg><circle r="1"></circle></svg></div>').val
        svg = ir.root.children[0]
        assert svg.namespace == ElementNamespace.SVG
        assert svg.children[0].namespace == ElementNamespace.SVG


class TestComponents:
    def test_component_gets_auto_ref(self, write_file) -> None:
        write_file("counter.ts", "export function Counter(props) {}\n")
        head = '<script type="application/jay-headfull" src="./counter" names="Counter"></script>'
        source = (
            '<html><head><script type="application/jay-data">\ndata:\n  count: number\n'
            f'</script>{head}</head><body><div><Counter initial="{{count}}"></Counter>'
            "</div></body></html>"
        )
        path = write_file("page.jay-html", source)
        ir = build_template_ir(parse_jay_file(source, path.name, path).val).val
        component = ir.root.children[0]
        assert isinstance(component, ComponentNode)
        assert component.props == {"initial": "{count}"}
        assert component.ref_key == ((), "aR1")
        assert ir.refs.find_ref([], "aR1").auto_ref


class TestRecursion:
    def test_region_is_hoisted(self) -> None:
        ir = _walk(
            '<div ref="node"><span>{name}</span><ul><li forEach="children" trackBy="name">'
            '<recurse ref="node"></recurse></li></ul></div>',
            TREE_DATA,
        ).val
        assert isinstance(ir.root, RecurseNode)
        assert ir.root.function_name == "renderRecursiveRegion_node"
        region = ir.regions[0]
        assert region.ref_name == "node"
        loop = region.root.children[1].children[0]
        assert isinstance(loop, ForEachNode)
        assert isinstance(loop.child.children[0], RecurseNode)

    def test_recurse_with_accessor(self) -> None:
        data = "data:\n  name: string\n  child: $/\n  show: boolean\n"
        ir = _walk(
            '<div ref="node"><span if="show"><recurse ref="node" accessor="child"></recurse>'
            "</span></div>",
            data,
        ).val
        conditional = ir.regions[0].root.children[0]
        call = conditional.child.children[0]
        assert isinstance(call, WithDataNode)
        assert isinstance(call.child, RecurseNode)

    def test_unguarded_recurse(self) -> None:
        with pytest.raises(TemplateCompileError, match="must be guarded"):
            _walk('<div ref="node"><recurse ref="node"></recurse></div>', TREE_DATA)

    def test_recurse_without_anchor(self) -> None:
        with pytest.raises(TemplateCompileError, match="has no enclosing element"):
            _walk(
                '<div><p if="name"><recurse ref="node"></recurse></p></div>', TREE_DATA
            )

    def test_recursion_type_mismatch(self) -> None:
        result = _walk(
            '<div ref="node"><ul><li forEach="children" trackBy="name">'
            '<recurse ref="node" accessor="name"></recurse></li></ul></div>',
            TREE_DATA,
        )
        assert any("recurse ref [node] is used with view state" in v for v in result.validations)


class TestWithData:
    def test_with_data_scope(self) -> None:
        data = "data:\n  user:\n    name: string\n"
        ir = _walk(
            '<div><with-data accessor="user"><span ref="name">{name}</span></with-data></div>',
            data,
        ).val
        node = ir.root.children[0]
        assert isinstance(node, WithDataNode)
        assert node.child_variables.current_type.name == "UserOfTodoViewState"
        assert ir.refs.find_ref(["user"], "name") is not None

    def test_with_data_requires_accessor(self) -> None:
        result = _walk("<div><with-data><span></span></with-data></div>")
        assert "with-data directive must specify an accessor attribute" in result.validations
