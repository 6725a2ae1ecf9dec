"""Tests for reading .jay-html templates."""

import pytest

from viewc.core.errors import ParseError
from viewc.core.template_parser import (
    ImportedName,
    base_element_name,
    get_jay_html_imports,
    parse_jay_file,
)
from viewc.core.types import (
    NUMBER,
    STRING,
    ArrayType,
    EnumType,
    PromiseType,
    TypeKind,
    is_unknown,
)


def _template(data: str, body: str = "<div></div>", head: str = "") -> str:
    return (
        "<html><head>"
        f'<script type="application/jay-data">\n{data}\n</script>{head}'
        f"</head><body>{body}</body></html>"
    )


class TestParseJayFile:
    def test_counter(self, counter_template: str) -> None:
        result = parse_jay_file(counter_template, "counter.jay-html")
        assert result.validations == ()
        jay_file = result.val
        assert jay_file.base_element_name == "Counter"
        assert jay_file.filename == "counter"
        assert jay_file.view_state.name == "CounterViewState"
        assert jay_file.view_state.props == {"count": NUMBER, "title": STRING}
        assert jay_file.body.tag == "body"

    def test_base_element_name(self) -> None:
        assert base_element_name("src/collection-with-refs.jay-html") == "CollectionWithRefs"

    def test_nested_data(self) -> None:
        data = (
            "data:\n  status: enum (open | closed)\n  async price: number\n"
            "  user:\n    name: string\n  items:\n    - name: string\n      id: string\n"
        )
        view_state = parse_jay_file(_template(data), "shop.jay-html").val.view_state
        assert view_state.props["status"] == EnumType("StatusOfShopViewState", ["open", "closed"])
        assert view_state.props["price"] == PromiseType(NUMBER)
        assert view_state.props["user"].name == "UserOfShopViewState"
        items = view_state.props["items"]
        assert isinstance(items, ArrayType)
        assert items.item_type.name == "ItemOfShopViewState"

    def test_recursive_data(self) -> None:
        data = "data:\n  name: string\n  children: array<$/>\n"
        view_state = parse_jay_file(_template(data), "tree.jay-html").val.view_state
        children = view_state.props["children"]
        assert children.item_type.kind == TypeKind.RECURSIVE
        assert children.item_type.resolved_type is view_state

    def test_missing_jay_data(self) -> None:
        result = parse_jay_file("<html><body><div></div></body></html>", "x.jay-html")
        assert result.val is None
        assert result.validations == (
            "jay file should have exactly one jay-data script, found none",
        )

    def test_invalid_type(self) -> None:
        result = parse_jay_file(_template("data:\n  count: widget\n"), "x.jay-html")
        assert result.val is None
        assert result.validations == ("invalid type [widget] found at [data.count]",)

    def test_invalid_yaml_raises(self) -> None:
        with pytest.raises(ParseError):
            parse_jay_file(_template("data: [unclosed"), "x.jay-html")

    def test_missing_body(self) -> None:
        source = '<html><head><script type="application/jay-data">data:</script></head></html>'
        assert parse_jay_file(source, "x.jay-html").validations == (
            "jay file must have exactly a body tag",
        )

    def test_head_links_and_namespaces(self) -> None:
        source = (
            '<html xmlns:svg="http://www.w3.org/2000/svg"><head>'
            '<link rel="stylesheet" href="main.css" media="screen">'
            '<link rel="import" href="./ignored">'
            '<script type="application/jay-data">data:</script></head><body></body></html>'
        )
        jay_file = parse_jay_file(source, "x.jay-html").val
        assert [(link.rel, link.href, link.attributes) for link in jay_file.head_links] == [
            ("stylesheet", "main.css", {"media": "screen"})
        ]
        assert [(ns.prefix, ns.namespace) for ns in jay_file.namespaces] == [
            ("svg", "http://www.w3.org/2000/svg")
        ]


class TestImports:
    def test_headfull_component(self, write_file) -> None:
        write_file("counter.ts", "export function Counter(props) {}\n")
        head = '<script type="application/jay-headfull" src="./counter" names="Counter"></script>'
        path = write_file("page.jay-html", _template("data:", head=head))
        result = parse_jay_file(path.read_text(), path.name, path)
        assert result.validations == ()
        assert result.val.imported_components == {"Counter": False}
        assert result.val.imports[0].render() == "import { Counter } from './counter';"

    def test_sandboxed_import(self, write_file) -> None:
        write_file("counter.ts", "export const Counter = makeComponent();\n")
        head = (
            '<script type="application/jay-headfull" src="./counter" names="Counter as C" '
            "sandbox></script>"
        )
        path = write_file("page.jay-html", _template("data:", head=head))
        result = parse_jay_file(path.read_text(), path.name, path)
        assert result.val.imported_components == {"C": True}

    def test_imported_data_type(self, write_file) -> None:
        write_file("types.ts", "export interface Product {\n  name: string;\n}\n")
        head = '<script type="application/jay-headfull" src="./types" names="Product"></script>'
        path = write_file("page.jay-html", _template("data:\n  product: Product", head=head))
        view_state = parse_jay_file(path.read_text(), path.name, path).val.view_state
        assert view_state.props["product"].kind == TypeKind.IMPORTED
        assert view_state.props["product"].name == "Product"

    def test_missing_export(self, write_file) -> None:
        write_file("counter.ts", "export function Counter() {}\n")
        head = '<script type="application/jay-headfull" src="./counter" names="Other"></script>'
        path = write_file("page.jay-html", _template("data:", head=head))
        result = parse_jay_file(path.read_text(), path.name, path)
        assert result.val is None
        assert result.validations == (
            "failed to find exported member Other type in module ./counter",
        )

    def test_headless_contract_adds_keyed_field(self, write_file, counter_contract_file) -> None:
        head = (
            '<script type="application/jay-headless" src="./counter" name="counter" '
            'contract="./counter.jay-contract" key="counter"></script>'
        )
        path = write_file("page.jay-html", _template("data:\n  title: string", head=head))
        jay_file = parse_jay_file(path.read_text(), path.name, path).val
        assert list(jay_file.view_state.props) == ["counter", "title"]
        assert jay_file.view_state.props["counter"].name == "CounterViewState"
        headless = jay_file.headless_imports[0]
        assert headless.key == "counter"
        assert headless.refs.imported_refs_name == "CounterRefs"

    def test_headless_requires_key(self) -> None:
        head = (
            '<script type="application/jay-headless" src="./counter" name="counter" '
            'contract="./counter.jay-contract"></script>'
        )
        result = parse_jay_file(_template("data:", head=head), "page.jay-html")
        assert result.validations[0].startswith("headless import must specify key attribute")

    def test_data_from_contract(self, write_file, counter_contract_file) -> None:
        source = (
            '<html><head><script type="application/jay-data" '
            'contract="./counter.jay-contract"></script></head><body></body></html>'
        )
        path = write_file("counter.jay-html", source)
        jay_file = parse_jay_file(source, path.name, path).val
        assert jay_file.contract.name == "counter"
        assert jay_file.view_state.props == {"count": NUMBER}

    def test_contract_links_become_imports(self, write_file) -> None:
        write_file(
            "contracts/item.jay-contract",
            "name: item\ntags:\n  - tag: title\n    type: data\n    dataType: string\n",
        )
        write_file(
            "contracts/list.jay-contract",
            "name: list\ntags:\n  - tag: items\n    type: sub-contract\n"
            "    link: ./item\n    repeated: true\n    trackBy: title\n",
        )
        source = (
            '<html><head><script type="application/jay-data" '
            'contract="../contracts/list.jay-contract"></script></head><body></body></html>'
        )
        path = write_file("pages/list.jay-html", source)
        jay_file = parse_jay_file(source, path.name, path).val
        assert [link.render() for link in jay_file.imports] == [
            "import { ItemViewState, ItemRefs, ItemRepeatedRefs } "
            "from '../contracts/item.jay-contract';"
        ]
        assert jay_file.view_state.props["items"].kind == TypeKind.ARRAY

    def test_imported_name_is_untyped_until_analyzed(self) -> None:
        name = ImportedName("Counter", "MyCounter")
        assert is_unknown(name.type)
        assert name.local_name == "MyCounter"
        assert name.render() == "Counter as MyCounter"

    def test_get_jay_html_imports(self) -> None:
        head = (
            '<script type="application/jay-headfull" src="./a" names="A"></script>'
            '<script type="application/jay-headless" src="./b" name="b"></script>'
        )
        assert get_jay_html_imports(_template("data:", head=head)) == ["./a", "./b"]
