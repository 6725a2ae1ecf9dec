"""
Rendering phase engine.

Every data field of a contract is available in one of three phases,
ordered slow < fast < fast+interactive. This module computes effective
phases, validates the ordering rule for arrays, filters tag trees by phase
and renders the per-phase ViewState projections as ``Pick<...>`` types over
the full ViewState.

Inheritance rule: only repeated sub-contracts hand their phase down to
their children. A plain object sub-contract passes along whatever default
it received itself, and imposes no ordering constraint on its children.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from viewc.core.ir.contract import PHASES, Contract, ContractTag, Phase
from viewc.core.strings import camel_case, pascal_case

DEFAULT_PHASE = Phase.SLOW


def effective_phase(tag: ContractTag, inherited: Phase | None = None) -> Phase:
    """
    Phase a tag's value becomes available in.

    Examples:
        - interactive tag → fast+interactive, always
        - tag with ``phase: fast`` → fast
        - tag without phase inside a fast array → fast
        - top level tag without phase → slow
    """
    if tag.is_interactive:
        return Phase.FAST_INTERACTIVE
    if tag.phase is not None:
        return Phase(tag.phase)
    return inherited or DEFAULT_PHASE


def child_default_phase(tag: ContractTag, inherited: Phase | None) -> Phase | None:
    """Default phase handed to the children of a sub-contract."""
    if tag.repeated:
        return effective_phase(tag, inherited)
    return inherited


def _has_view_state_field(tag: ContractTag) -> bool:
    return not tag.is_refs_only


# =============================================================================
# Validation
# =============================================================================


def _validate_tags(
    tags: list[ContractTag],
    inherited: Phase | None,
    array_phase: Phase | None,
    parent_path: str,
) -> list[str]:
    validations: list[str] = []
    for tag in tags:
        path = f"{parent_path}.{tag.tag}" if parent_path else tag.tag
        phase = effective_phase(tag, inherited)
        if array_phase is not None and phase.is_before(array_phase):
            validations.append(
                f"Tag [{path}] has phase [{phase.value}] which is earlier than parent phase "
                f"[{array_phase.value}]. Child phases must be same or later than parent "
                f"(slow < fast < fast+interactive)"
            )
        if tag.is_sub_contract and tag.tags:
            child_constraint = phase if tag.repeated else array_phase
            validations.extend(
                _validate_tags(
                    tag.tags, child_default_phase(tag, inherited), child_constraint, path
                )
            )
    return validations


def validate_contract_phases(contract: Contract) -> list[str]:
    """
    Check that no descendant of an array is available earlier than the array.

    Returns:
        One validation per offending tag, keyed by its dotted path.
    """
    return _validate_tags(contract.tags, None, None, "")


# =============================================================================
# Filtering
# =============================================================================


def filter_tags_by_phase(
    tags: list[ContractTag], phase: Phase, inherited: Phase | None = None
) -> list[ContractTag]:
    """
    Keep the tags whose effective phase is exactly ``phase``.

    Inline sub-contracts are structural: they are kept, with their children
    filtered, as long as any child survives. Linked sub-contracts are
    treated as leaves. Interactive tags without a dataType belong to the
    Refs type and are never kept. Over the three phases the results
    partition the data and variant leaves of a contract.
    """
    kept: list[ContractTag] = []
    for tag in tags:
        if not _has_view_state_field(tag):
            continue
        if tag.is_sub_contract and tag.tags is not None:
            children = filter_tags_by_phase(tag.tags, phase, child_default_phase(tag, inherited))
            if children:
                kept.append(tag.model_copy(update={"tags": children}))
        elif effective_phase(tag, inherited) == phase:
            kept.append(tag)
    return kept


def phase_contract(contract: Contract, phase: Phase) -> Contract:
    """A copy of ``contract`` holding only the tags of ``phase``."""
    return contract.model_copy(update={"tags": filter_tags_by_phase(contract.tags, phase)})


# =============================================================================
# Phase ViewState types
# =============================================================================


def _included_in(field_phase: Phase, target: Phase) -> bool:
    """fast+interactive fields are also set at request time, so fast includes them."""
    if target == Phase.FAST:
        return field_phase in (Phase.FAST, Phase.FAST_INTERACTIVE)
    return field_phase == target


@dataclass
class _Projection:
    """Property paths selected for one phase, grouped by parent path."""

    groups: dict[tuple[str, ...], list[str]] = field(default_factory=dict)
    arrays: set[tuple[str, ...]] = field(default_factory=set)
    promises: set[tuple[str, ...]] = field(default_factory=set)

    def add(self, parent: tuple[str, ...], name: str) -> None:
        self.groups.setdefault(parent, []).append(name)

    def size(self) -> int:
        return sum(len(names) for names in self.groups.values())

    def extend(self, other: _Projection) -> None:
        for parent, names in other.groups.items():
            self.groups.setdefault(parent, []).extend(names)
        self.arrays |= other.arrays
        self.promises |= other.promises

    def children_of(self, path: tuple[str, ...]) -> list[str]:
        names: list[str] = []
        depth = len(path)
        for key in self.groups:
            if len(key) > depth and key[:depth] == path and key[depth] not in names:
                names.append(key[depth])
        return names


def _project(
    tags: list[ContractTag],
    target: Phase,
    parent: tuple[str, ...],
    inherited: Phase | None,
    track_by: str | None,
) -> _Projection:
    projection = _Projection()
    for tag in tags:
        if not _has_view_state_field(tag):
            continue
        phase = effective_phase(tag, inherited)
        name = camel_case(tag.tag)
        path = parent + (name,)

        if tag.is_sub_contract and tag.is_self_link:
            # the target type is the enclosing one, so it is selected as a whole
            if _included_in(phase, target):
                projection.add(parent, name)
                if tag.repeated:
                    projection.arrays.add(path)
                if tag.async_:
                    projection.promises.add(path)
        elif tag.is_sub_contract:
            children = tag.child_tags
            if not children:
                continue
            child_track_by = tag.track_by if tag.repeated else None
            nested = _project(
                children, target, path, child_default_phase(tag, inherited), child_track_by
            )
            only_track_by = (
                child_track_by is not None
                and nested.size() == 1
                and nested.groups.get(path) == [camel_case(child_track_by)]
            )
            if nested.size() and not only_track_by:
                projection.extend(nested)
                if tag.repeated:
                    projection.arrays.add(path)
                if tag.async_:
                    projection.promises.add(path)
        elif _included_in(phase, target) or tag.tag == track_by:
            # trackBy keys stay in every phase so items can be merged
            projection.add(parent, name)
    return projection


def _child_tags_at(tags: list[ContractTag], path: tuple[str, ...]) -> list[ContractTag]:
    current = tags
    for segment in path:
        tag = next(
            (t for t in current if t.is_sub_contract and camel_case(t.tag) == segment), None
        )
        if tag is None or tag.is_self_link:
            return []
        current = tag.child_tags
    return current


def _is_fully_included(
    projection: _Projection, tags: list[ContractTag], path: tuple[str, ...]
) -> bool:
    total = sum(1 for tag in _child_tags_at(tags, path) if _has_view_state_field(tag))
    if total == 0:
        return False
    nested = projection.children_of(path)
    direct = [name for name in projection.groups.get(path, []) if name not in nested]
    if len(direct) + len(nested) != total:
        return False
    return all(_is_fully_included(projection, tags, path + (name,)) for name in nested)


def _path_access(
    base: str, path: tuple[str, ...], projection: _Projection, skip_final_index: bool = False
) -> str:
    """``Base['items'][number]['options']``; a promised final array is left for ``Awaited``."""
    access = base
    for index in range(len(path)):
        prefix = path[: index + 1]
        access += f"['{path[index]}']"
        is_array = prefix in projection.arrays
        is_final = index == len(path) - 1
        skip = is_final and (skip_final_index or (is_array and prefix in projection.promises))
        if is_array and not skip:
            access += "[number]"
    return access


def _pick_expression(
    base: str,
    projection: _Projection,
    tags: list[ContractTag],
    path: tuple[str, ...],
    depth: int,
) -> str:
    nested = projection.children_of(path)
    direct = [name for name in projection.groups.get(path, []) if name not in nested]
    indent = "    " * (depth + 1)

    pick = ""
    if direct:
        names = " | ".join(f"'{name}'" for name in direct)
        pick = f"Pick<{_path_access(base, path, projection)}, {names}>"

    members: list[str] = []
    for name in nested:
        child = path + (name,)
        is_array = child in projection.arrays
        is_async = child in projection.promises
        access = _path_access(base, child, projection)
        if _is_fully_included(projection, tags, child):
            if is_async and is_array:
                expression = f"Promise<Array<Awaited<{access}>[number]>>"
            elif is_array and not is_async:
                expression = f"Array<{access}>"
            else:
                expression = access
        else:
            expression = _pick_expression(base, projection, tags, child, depth + 1)
            if is_async and is_array:
                unwrapped = expression.replace(access, f"Awaited<{access}>[number]", 1)
                expression = f"Promise<Array<{unwrapped}>>"
            elif is_async:
                unwrapped = expression.replace(access, f"Awaited<{access}>", 1)
                expression = f"Promise<{unwrapped}>"
            elif is_array:
                expression = f"Array<{expression}>"
        members.append(f"{indent}{name}: {expression};")

    if not members:
        return pick or "{}"
    body = "{\n" + "\n".join(members) + "\n" + "    " * depth + "}"
    return f"{pick} & {body}" if pick else body


def phase_type_name(contract_name: str, phase: Phase) -> str:
    return f"{pascal_case(contract_name)}{phase.type_suffix}ViewState"


def generate_phase_type(contract: Contract, phase: Phase, base_name: str) -> str:
    """
    Render the ViewState projection of one phase.

    Examples:
        export type CounterSlowViewState = Pick<CounterViewState, 'count'>;
        export type TodoFastViewState = {
            items: Array<TodoViewState['items'][number]>;
        };
    """
    type_name = phase_type_name(contract.name, phase)
    projection = _project(contract.tags, phase, (), None, None)
    if not projection.size():
        return f"export type {type_name} = {{}};"
    expression = _pick_expression(base_name, projection, contract.tags, (), 0)
    return f"export type {type_name} = {expression};"


def generate_phase_types(contract: Contract, base_name: str) -> str:
    """Render the slow, fast and interactive projections, blank line separated."""
    return "\n\n".join(generate_phase_type(contract, phase, base_name) for phase in PHASES)
