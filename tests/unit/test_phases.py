"""Tests for the rendering phase engine."""

from viewc.core.contract_parser import parse_contract
from viewc.core.ir.contract import PHASES, Contract, Phase
from viewc.core.phases import (
    effective_phase,
    filter_tags_by_phase,
    generate_phase_type,
    phase_type_name,
    validate_contract_phases,
)


def _tag_names(tags) -> list:
    names = []
    for tag in tags:
        if tag.tags is not None:
            names.append((tag.tag, _tag_names(tag.tags)))
        else:
            names.append(tag.tag)
    return names


class TestEffectivePhase:
    def test_defaults(self, todo_contract: Contract) -> None:
        title = todo_contract.find_tag(["title"])
        assert effective_phase(title) == Phase.SLOW

    def test_interactive_is_always_fast_interactive(self, counter_contract: Contract) -> None:
        assert effective_phase(counter_contract.find_tag(["add"]), Phase.SLOW) == (
            Phase.FAST_INTERACTIVE
        )

    def test_children_inherit_from_repeated_parent(self, todo_contract: Contract) -> None:
        text = todo_contract.find_tag(["items", "text"])
        assert effective_phase(text, Phase.FAST) == Phase.FAST

    def test_phase_order(self) -> None:
        assert Phase.SLOW.is_before(Phase.FAST)
        assert Phase.FAST.is_before(Phase.FAST_INTERACTIVE)
        assert not Phase.FAST_INTERACTIVE.is_before(Phase.SLOW)


class TestValidatePhases:
    def test_child_earlier_than_array(self) -> None:
        result = parse_contract(
            "name: x\ntags:\n  - tag: items\n    repeated: true\n    trackBy: id\n"
            "    phase: fast\n    tags:\n      - tag: id\n      - tag: label\n"
            "        phase: slow\n",
            "x.jay-contract",
        )
        assert result.validations == (
            "Tag [items.label] has phase [slow] which is earlier than parent phase [fast]. "
            "Child phases must be same or later than parent (slow < fast < fast+interactive)",
        )

    def test_object_sub_contract_imposes_no_constraint(self) -> None:
        result = parse_contract(
            "name: x\ntags:\n  - tag: user\n    phase: fast\n    tags:\n"
            "      - tag: name\n        phase: slow\n",
            "x.jay-contract",
        )
        assert result.validations == ()
        assert validate_contract_phases(result.val) == []


class TestFilterByPhase:
    def test_partition(self, todo_contract: Contract) -> None:
        assert _tag_names(filter_tags_by_phase(todo_contract.tags, Phase.SLOW)) == ["title"]
        assert _tag_names(filter_tags_by_phase(todo_contract.tags, Phase.FAST)) == [
            ("items", ["id", "text"])
        ]
        assert _tag_names(filter_tags_by_phase(todo_contract.tags, Phase.FAST_INTERACTIVE)) == [
            "filter",
            ("items", ["done"]),
        ]

    def test_refs_only_tags_are_never_kept(self, counter_contract: Contract) -> None:
        for phase in PHASES:
            kept = filter_tags_by_phase(counter_contract.tags, phase)
            assert "add" not in _tag_names(kept)


class TestPhaseTypes:
    def test_type_names(self) -> None:
        assert phase_type_name("todo-list", Phase.SLOW) == "TodoListSlowViewState"
        assert phase_type_name("todo-list", Phase.FAST_INTERACTIVE) == (
            "TodoListInteractiveViewState"
        )

    def test_counter_projections(self, counter_contract: Contract) -> None:
        assert generate_phase_type(counter_contract, Phase.SLOW, "CounterViewState") == (
            "export type CounterSlowViewState = Pick<CounterViewState, 'count'>;"
        )
        assert generate_phase_type(counter_contract, Phase.FAST, "CounterViewState") == (
            "export type CounterFastViewState = {};"
        )

    def test_fast_includes_interactive_fields(self, todo_contract: Contract) -> None:
        assert generate_phase_type(todo_contract, Phase.FAST, "TodoViewState") == (
            "export type TodoFastViewState = Pick<TodoViewState, 'filter'> & {\n"
            "    items: Array<TodoViewState['items'][number]>;\n"
            "};"
        )

    def test_track_by_kept_in_partial_array(self, todo_contract: Contract) -> None:
        assert generate_phase_type(todo_contract, Phase.FAST_INTERACTIVE, "TodoViewState") == (
            "export type TodoInteractiveViewState = Pick<TodoViewState, 'filter'> & {\n"
            "    items: Array<Pick<TodoViewState['items'][number], 'id' | 'done'>>;\n"
            "};"
        )

    def test_array_with_only_track_by_is_dropped(self, todo_contract: Contract) -> None:
        assert generate_phase_type(todo_contract, Phase.SLOW, "TodoViewState") == (
            "export type TodoSlowViewState = Pick<TodoViewState, 'title'>;"
        )
