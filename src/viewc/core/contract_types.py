"""
Contract to ViewState and Refs.

Converts a parsed contract into its ViewState object type and Refs tree,
and renders the full declaration module of a ``.jay-contract`` file.

Type construction runs in two passes. The first builds object skeletons top
down and records every ``$/`` reference as a placeholder in a ``TypeArena``;
the second patches the placeholders once the whole tree exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from viewc.core.contract_loader import ContractResolver, resolve_links
from viewc.core.declarations import (
    INDENT,
    collect_declared_types,
    render_enum,
    render_interface,
    render_type_ref,
)
from viewc.core.imports import ImportsFor, RuntimeImport
from viewc.core.ir.contract import PHASES, Contract, ContractTag
from viewc.core.phases import generate_phase_types, phase_type_name
from viewc.core.refs import RefsTree, make_ref, merge_refs_trees, nest_refs, render_refs_type
from viewc.core.strings import camel_case, pascal_case, to_interface_name
from viewc.core.types import (
    UNKNOWN,
    ArrayType,
    HTMLType,
    ImportedType,
    ObjectType,
    PromiseType,
    Type,
    TypeArena,
    TypeKind,
    resolve_recursive_types,
)
from viewc.core.validations import WithValidations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkedImport:
    """Declarations imported from a linked contract module."""

    module: str
    names: tuple[str, ...]

    def render(self) -> str:
        return f"import {{ {', '.join(self.names)} }} from '{self.module}';"


@dataclass
class ContractViewStateAndRefs:
    view_state: ObjectType
    refs: RefsTree
    linked_imports: list[LinkedImport] = field(default_factory=list)


def view_state_name(contract_name: str) -> str:
    return pascal_case(f"{contract_name} ViewState")


def refs_name(contract_name: str, repeated: bool = False) -> str:
    return pascal_case(contract_name) + ("RepeatedRefs" if repeated else "Refs")


def _instantiate(node: Type, arena: TypeArena) -> Type:
    """Copy a parsed data type, registering fresh placeholders for ``$/`` references."""
    match node.kind:
        case TypeKind.RECURSIVE:
            return arena.placeholder(node.reference_path)
        case TypeKind.ARRAY:
            return ArrayType(_instantiate(node.item_type, arena))
        case TypeKind.PROMISE:
            return PromiseType(_instantiate(node.item_type, arena))
        case _:
            return node


class _Builder:
    """One contract's skeleton pass: objects, refs and linked imports."""

    def __init__(self, root_name: str) -> None:
        self.root_name = root_name
        self.arena = TypeArena()
        self.refs = RefsTree()
        self.linked_imports: dict[str, LinkedImport] = {}
        self.validations: list[str] = []

    def build_object(
        self,
        name: str,
        tags: list[ContractTag],
        tag_path: list[str],
        refs_path: list[str],
        in_repeated: bool,
    ) -> ObjectType:
        obj = ObjectType(name)
        if not tag_path:
            self.arena.register([], obj)
        for tag in tags:
            self._add_tag(obj, tag, tag_path, refs_path, in_repeated)
        return obj

    def _add_tag(
        self,
        obj: ObjectType,
        tag: ContractTag,
        tag_path: list[str],
        refs_path: list[str],
        in_repeated: bool,
    ) -> None:
        name = camel_case(tag.tag)
        if tag.is_interactive:
            element_type = HTMLType(" | ".join(tag.element_type or ["HTMLElement"]))
            ref = make_ref(tag.tag, obj, element_type, dynamic_ref=in_repeated)
            self.refs = self.refs.add_ref(ref, refs_path)

        if tag.is_sub_contract:
            field_type = self._sub_contract_type(tag, tag_path, refs_path, in_repeated)
        elif tag.data_type is not None:
            field_type = _instantiate(tag.data_type, self.arena)
        else:
            return
        obj.props[name] = field_type
        self.arena.register([*tag_path, tag.tag], field_type)

    def _sub_contract_type(
        self,
        tag: ContractTag,
        tag_path: list[str],
        refs_path: list[str],
        in_repeated: bool,
    ) -> Type:
        child_refs_path = [*refs_path, camel_case(tag.tag)]
        if tag.is_self_link:
            item: Type = self.arena.placeholder(tag.link)
        elif tag.link:
            if tag.linked_contract is None:
                self.validations.append(
                    f"Linked contract [{tag.link}] for tag [{'.'.join([*tag_path, tag.tag])}] "
                    f"was not loaded"
                )
                return UNKNOWN
            item = self._linked_type(tag, child_refs_path)
        else:
            names = [self.root_name, *tag_path, tag.tag]
            item = self.build_object(
                to_interface_name(names),
                tag.tags or [],
                [*tag_path, tag.tag],
                child_refs_path,
                in_repeated or tag.repeated,
            )
        field_type = ArrayType(item) if tag.repeated else item
        return PromiseType(field_type) if tag.async_ else field_type

    def _linked_type(self, tag: ContractTag, refs_path: list[str]) -> Type:
        linked = tag.linked_contract
        converted = contract_to_view_state_and_refs(linked)
        self.validations.extend(converted.validations)
        vs_name = view_state_name(linked.name)
        names = (vs_name, refs_name(linked.name), refs_name(linked.name, repeated=True))
        self.linked_imports.setdefault(tag.link, LinkedImport(tag.link, names))
        imported_refs = RefsTree(
            repeated=tag.repeated,
            imported_refs_name=names[1],
            imported_repeated_refs_name=names[2],
        )
        self.refs = merge_refs_trees(self.refs, nest_refs(refs_path, imported_refs))
        return ImportedType(vs_name, converted.val.view_state)


def contract_to_view_state_and_refs(
    contract: Contract,
) -> WithValidations[ContractViewStateAndRefs]:
    """
    Build the ViewState type and Refs tree of a contract.

    Linked sub-contracts must already carry ``linked_contract`` (see
    ``resolve_links``); they become imported types.

    Raises:
        RecursiveTypeError: If a ``$/`` link does not address an object or
            array of the contract
    """
    builder = _Builder(view_state_name(contract.name))
    root = builder.build_object(builder.root_name, contract.tags, [], [], False)
    resolve_recursive_types(builder.arena)
    result = ContractViewStateAndRefs(root, builder.refs, list(builder.linked_imports.values()))
    return WithValidations(result, tuple(builder.validations))


def _render_members(name: str, members: list[str]) -> str:
    if not members:
        return f"export interface {name} {{}}"
    return f"export interface {name} {{\n" + "\n".join(members) + "\n}"


def render_props(contract: Contract) -> str | None:
    if not contract.props:
        return None
    members = [
        f"{INDENT}{camel_case(prop.name)}{'' if prop.required else '?'}: "
        f"{render_type_ref(prop.data_type or UNKNOWN)};"
        for prop in contract.props
    ]
    return _render_members(f"{pascal_case(contract.name)}Props", members)


def render_params(contract: Contract) -> str | None:
    if not contract.params:
        return None
    members = [f"{INDENT}{camel_case(param.name)}: string;" for param in contract.params]
    return _render_members(f"{pascal_case(contract.name)}Params", members)


def render_contract_alias(contract: Contract) -> str:
    base = pascal_case(contract.name)
    type_args = [view_state_name(contract.name), refs_name(contract.name)]
    type_args.extend(phase_type_name(contract.name, phase) for phase in PHASES)
    return f"export type {base}Contract = JayContract<{', '.join(type_args)}>;"


def compile_contract(
    contract: Contract,
    contract_path: Path | None = None,
    resolver: ContractResolver | None = None,
) -> WithValidations[str]:
    """
    Render the declaration module of a contract.

    Args:
        contract: The parsed contract
        contract_path: Location of the contract file, for relative links
        resolver: Loads linked contracts; links stay unresolved without one

    Returns:
        Module text: runtime imports, linked contract imports, enums,
        ViewState interfaces, phase projections, Refs and RepeatedRefs,
        Props, Params and the ``JayContract`` alias.

    Example:
        >>> compile_contract(parse_contract(text, "counter.jay-contract").val).val
        "import { JayContract } from '@jay-framework/runtime';..."
    """
    validations: list[str] = []
    if resolver is not None and contract_path is not None:
        resolved = resolve_links(contract, contract_path, resolver)
        contract = resolved.val
        validations.extend(resolved.validations)

    converted = contract_to_view_state_and_refs(contract)
    validations.extend(converted.validations)
    view_state = converted.val.view_state
    base_refs = refs_name(contract.name)

    refs_text, refs_imports = render_refs_type(converted.val.refs, base_refs)
    repeated_text, repeated_imports = render_refs_type(
        converted.val.refs, refs_name(contract.name, repeated=True), all_collections=True
    )
    imports = refs_imports.plus(repeated_imports).plus(RuntimeImport.JAY_CONTRACT)

    enums, objects = collect_declared_types(view_state)
    for prop in contract.props:
        if prop.data_type is not None and prop.data_type.kind == TypeKind.ENUM:
            if all(enum.name != prop.data_type.name for enum in enums):
                enums.append(prop.data_type)

    header = [imports.render(ImportsFor.DEFINITION)]
    header.extend(linked.render() for linked in converted.val.linked_imports)
    blocks = ["\n".join(header)]
    blocks.extend(render_enum(enum) for enum in enums)
    blocks.extend(render_interface(obj) for obj in objects)
    blocks.append(generate_phase_types(contract, view_state.name))
    blocks.extend([refs_text, repeated_text])
    blocks.extend(block for block in (render_props(contract), render_params(contract)) if block)
    blocks.append(render_contract_alias(contract))

    logger.debug("Compiled contract %s (%s validations)", contract.name, len(validations))
    return WithValidations("\n\n".join(blocks) + "\n", tuple(validations))