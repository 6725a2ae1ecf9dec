"""Tests for contract ViewState/Refs conversion and the contract declaration module."""

import pytest

from viewc.core.contract_parser import parse_contract
from viewc.core.contract_types import compile_contract, contract_to_view_state_and_refs
from viewc.core.errors import RecursiveTypeError
from viewc.core.ir.contract import Contract

COUNTER_DECLARATIONS = """\
import { HTMLElementCollectionProxy, HTMLElementProxy, JayContract } from '@jay-framework/runtime';

export interface CounterViewState {
    count: number;
}

export type CounterSlowViewState = Pick<CounterViewState, 'count'>;

export type CounterFastViewState = {};

export type CounterInteractiveViewState = {};

export interface CounterRefs {
    add: HTMLElementProxy<CounterViewState, HTMLButtonElement>;
    subtract: HTMLElementProxy<CounterViewState, HTMLButtonElement>;
}

export interface CounterRepeatedRefs {
    add: HTMLElementCollectionProxy<CounterViewState, HTMLButtonElement>;
    subtract: HTMLElementCollectionProxy<CounterViewState, HTMLButtonElement>;
}

export type CounterContract = JayContract<CounterViewState, CounterRefs, \
CounterSlowViewState, CounterFastViewState, CounterInteractiveViewState>;
"""


def _contract(text: str) -> Contract:
    result = parse_contract(text, "test.jay-contract")
    assert result.validations == ()
    return result.val


class TestViewStateAndRefs:
    def test_nested_interface_names(self, todo_contract: Contract) -> None:
        converted = contract_to_view_state_and_refs(todo_contract).val
        view_state = converted.view_state
        assert view_state.name == "TodoViewState"
        assert list(view_state.props) == ["title", "filter", "items"]
        assert view_state.props["items"].item_type.name == "ItemOfTodoViewState"

    def test_refs_inside_repeated_sub_contract_are_collections(
        self, todo_contract: Contract
    ) -> None:
        refs = contract_to_view_state_and_refs(todo_contract).val.refs
        toggle = refs.find_ref(["items"], "toggle")
        assert toggle is not None
        assert toggle.is_collection
        assert toggle.view_state_type.name == "ItemOfTodoViewState"

    def test_tag_names_are_camel_cased(self) -> None:
        contract = _contract(
            "name: x\ntags:\n  - tag: first-name\n  - tag: save-button\n"
            "    type: interactive\n    elementType: HTMLButtonElement\n"
        )
        converted = contract_to_view_state_and_refs(contract).val
        assert list(converted.view_state.props) == ["firstName"]
        assert converted.refs.find_ref([], "saveButton").const_name == "refSaveButton"


class TestCompileContract:
    def test_counter_module(self, counter_contract: Contract) -> None:
        result = compile_contract(counter_contract)
        assert result.validations == ()
        assert result.val == COUNTER_DECLARATIONS

    def test_enum_and_nested_interfaces(self, todo_contract: Contract) -> None:
        module = compile_contract(todo_contract).val
        assert "export enum Filter {\n    all,\n    active,\n    completed\n}" in module
        assert (
            "export interface ItemOfTodoViewState {\n"
            "    id: string;\n"
            "    text: string;\n"
            "    done: boolean;\n"
            "}"
        ) in module
        assert module.index("interface ItemOfTodoViewState") < module.index(
            "interface TodoViewState"
        )
        assert (
            "    items: {\n"
            "        toggle: HTMLElementCollectionProxy<ItemOfTodoViewState, HTMLInputElement>;\n"
            "    };"
        ) in module

    def test_recursive_contract(self) -> None:
        contract = _contract(
            "name: tree\ntags:\n  - tag: name\n  - tag: parent\n    dataType: $/\n"
            "  - tag: children\n    type: sub-contract\n    repeated: true\n"
            "    trackBy: id\n    link: $/\n"
        )
        module = compile_contract(contract).val
        assert "    parent: TreeViewState | null;" in module
        assert "    children: Array<TreeViewState>;" in module

    def test_unresolvable_recursion_raises(self) -> None:
        contract = _contract("name: x\ntags:\n  - tag: broken\n    dataType: $/nowhere\n")
        with pytest.raises(RecursiveTypeError):
            compile_contract(contract)

    def test_props_and_params(self) -> None:
        contract = _contract(
            "name: product-page\ntags: []\nprops:\n  - name: product-id\n    required: true\n"
            "  - name: quantity\n    dataType: number\nparams:\n  - slug\n"
        )
        module = compile_contract(contract).val
        assert (
            "export interface ProductPageProps {\n"
            "    productId: string;\n"
            "    quantity?: number;\n"
            "}"
        ) in module
        assert "export interface ProductPageParams {\n    slug: string;\n}" in module

    def test_linked_contract_imports(self, write_file) -> None:
        from viewc.core.contract_loader import FileContractResolver

        write_file("item.jay-contract", "name: item\ntags:\n  - tag: label\n")
        main = write_file(
            "list.jay-contract",
            "name: list\ntags:\n  - tag: items\n    type: sub-contract\n"
            "    repeated: true\n    trackBy: id\n    link: ./item\n",
        )
        resolver = FileContractResolver()
        contract = resolver.load_contract(main).val
        module = compile_contract(contract).val
        assert (
            "import { ItemViewState, ItemRefs, ItemRepeatedRefs } from './item.jay-contract';"
            in module
        )
        assert "    items: Array<ItemViewState>;" in module
