"""
Refs tree: the interactive handles a generated module exposes.

A ``RefsTree`` mirrors the nesting of sub-contracts (or template scopes):
each node holds the refs declared at that level and named child subtrees.
Trees are immutable; builders combine them with ``merge_refs_trees`` and
``nest_refs``. ``optimize_refs`` folds duplicate names once per module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import StrEnum

from viewc.core.imports import Imports, RuntimeImport
from viewc.core.strings import camel_case
from viewc.core.types import Type, TypeKind, union_of
from viewc.core.validations import WithValidations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ref:
    """
    A named handle to an element or child component.

    Attributes:
        ref: Public name (camelCased)
        original_name: Name as written in the template or contract
        const_name: Local variable bound by the reference manager
        dynamic_ref: True when declared inside a forEach (a collection)
        auto_ref: Generated for internal wiring, never part of the public type
        view_state_type: Type of the view state in scope where the ref lives
        element_type: HTML element type, component type or a union of those
    """

    ref: str
    original_name: str
    const_name: str
    dynamic_ref: bool
    auto_ref: bool
    view_state_type: Type
    element_type: Type

    @property
    def is_component(self) -> bool:
        return _is_component_type(self.element_type)

    @property
    def is_collection(self) -> bool:
        return self.dynamic_ref


def _is_component_type(node: Type) -> bool:
    if node.kind == TypeKind.UNION:
        return any(_is_component_type(member) for member in node.of_types)
    return node.kind == TypeKind.COMPONENT


def make_ref(
    name: str,
    view_state_type: Type,
    element_type: Type,
    dynamic_ref: bool = False,
    auto_ref: bool = False,
) -> Ref:
    """Create a ref with the conventional ``ref`` and ``const_name`` spelling."""
    return Ref(
        ref=camel_case(name),
        original_name=name,
        const_name=camel_case(f"ref {name}"),
        dynamic_ref=dynamic_ref,
        auto_ref=auto_ref,
        view_state_type=view_state_type,
        element_type=element_type,
    )


@dataclass(frozen=True)
class RefsTree:
    refs: tuple[Ref, ...] = ()
    children: dict[str, RefsTree] = field(default_factory=dict)
    repeated: bool = False
    imported_refs_name: str | None = None
    imported_repeated_refs_name: str | None = None

    @property
    def is_imported(self) -> bool:
        return self.imported_refs_name is not None

    def add_ref(self, ref: Ref, path: list[str] | None = None) -> RefsTree:
        """Return a tree with ``ref`` added at ``path`` (this node when empty)."""
        if not path:
            return replace(self, refs=self.refs + (ref,))
        head, rest = path[0], path[1:]
        child = self.children.get(head, RefsTree(repeated=ref.dynamic_ref))
        return replace(self, children={**self.children, head: child.add_ref(ref, rest)})

    def with_child(self, path: list[str], repeated: bool = False) -> RefsTree:
        """Return a tree where the subtree at ``path`` exists, the last one marked ``repeated``."""
        if not path:
            return self
        head, rest = path[0], path[1:]
        child = self.children.get(head, RefsTree())
        if not rest and repeated and not child.repeated:
            child = replace(child, repeated=True)
        return replace(self, children={**self.children, head: child.with_child(rest, repeated)})

    def find_ref(self, path: list[str], name: str) -> Ref | None:
        node: RefsTree | None = self
        for segment in path:
            node = node.children.get(segment) if node is not None else None
        if node is None:
            return None
        return next((ref for ref in node.refs if ref.ref == name), None)

    def has_refs(self, include_auto: bool = False) -> bool:
        if any(include_auto or not ref.auto_ref for ref in self.refs):
            return True
        if self.is_imported:
            return True
        return any(child.has_refs(include_auto) for child in self.children.values())

    def all_refs(self) -> list[Ref]:
        """Refs of this node followed by every descendant's, depth first."""
        collected = list(self.refs)
        for child in self.children.values():
            collected.extend(child.all_refs())
        return collected


def merge_refs_trees(*trees: RefsTree) -> RefsTree:
    """
    Merge trees level by level.

    Refs are concatenated in order, children merged by name, ``repeated`` is
    true when any input is repeated and the first imported name wins.
    """
    refs: list[Ref] = []
    keys: list[str] = []
    for tree in trees:
        refs.extend(tree.refs)
        for key in tree.children:
            if key not in keys:
                keys.append(key)
    children = {
        key: merge_refs_trees(*[tree.children[key] for tree in trees if key in tree.children])
        for key in keys
    }
    imported = next((tree for tree in trees if tree.is_imported), None)
    return RefsTree(
        refs=tuple(refs),
        children=children,
        repeated=any(tree.repeated for tree in trees),
        imported_refs_name=imported.imported_refs_name if imported else None,
        imported_repeated_refs_name=imported.imported_repeated_refs_name if imported else None,
    )


def nest_refs(path: list[str], tree: RefsTree) -> RefsTree:
    """Wrap ``tree`` so it sits under ``path`` from a new root."""
    nested = tree
    for name in reversed(path):
        nested = RefsTree(children={name: nested})
    return nested


# =============================================================================
# Optimization
# =============================================================================


def optimize_refs(tree: RefsTree) -> WithValidations[RefsTree]:
    """
    Fold refs that share a name within each node.

    Refs used with different view state types, or once inside a forEach and
    once outside, are reported. Refs that differ only by element type are
    merged into one ref whose element type is the union of both.
    """
    merged: dict[str, Ref] = {}
    validations: list[str] = []
    for ref in tree.refs:
        first = merged.get(ref.ref)
        if first is None:
            merged[ref.ref] = ref
        elif first.view_state_type != ref.view_state_type:
            validations.append(
                f"invalid usage of refs: the ref [{ref.ref}] is used with two different view "
                f"types [{first.view_state_type.name}, {ref.view_state_type.name}]"
            )
        elif first.dynamic_ref != ref.dynamic_ref:
            validations.append(
                f"invalid usage of refs: the ref [{ref.ref}] is used once with forEach "
                f"and second time without"
            )
        elif first.element_type != ref.element_type:
            merged[ref.ref] = replace(
                first, element_type=union_of(first.element_type, ref.element_type)
            )

    children: dict[str, RefsTree] = {}
    for name, child in tree.children.items():
        optimized = optimize_refs(child)
        validations.extend(optimized.validations)
        children[name] = optimized.val

    result = replace(tree, refs=tuple(merged.values()), children=children)
    return WithValidations(result, tuple(validations))


class AutoRefNames:
    """Generates ``aR1, aR2, ...`` for one compilation."""

    def __init__(self) -> None:
        self._next_id = 1

    def next(self) -> str:
        name = f"aR{self._next_id}"
        self._next_id += 1
        return name


# =============================================================================
# Refs type rendering
# =============================================================================


class RefsTypeFlavor(StrEnum):
    """Component ref aliases differ between the trusted and the react output."""

    JAY = "jay"
    REACT = "react"


def _element_type_name(ref: Ref) -> str:
    return ref.element_type.name


def render_refs_type(
    tree: RefsTree,
    interface_name: str,
    all_collections: bool = False,
    flavor: RefsTypeFlavor = RefsTypeFlavor.JAY,
) -> tuple[str, Imports]:
    """
    Render the refs interface for ``tree``.

    Element refs become ``HTMLElementProxy<VS, X>``, or
    ``HTMLElementCollectionProxy<VS, X>`` inside loops (and everywhere when
    ``all_collections`` is set, which renders the repeated variant). Component
    refs become ``{C}Ref<VS>`` / ``{C}Refs<VS>`` with helper aliases emitted
    before the interface. Auto refs are excluded.

    Returns:
        (rendered declarations, imports they need)
    """
    imports = Imports.none()
    component_refs: dict[str, bool] = {}

    if not tree.has_refs():
        return f"export interface {interface_name} {{}}", imports

    def render_node(node: RefsTree, repeated: bool, indent: str) -> list[str]:
        nonlocal imports
        lines: list[str] = []
        for ref in node.refs:
            if ref.auto_ref:
                continue
            collection = repeated or ref.is_collection
            vs_name = ref.view_state_type.name
            if ref.is_component:
                component_name = _element_type_name(ref)
                if collection:
                    member_type = f"{component_name}Refs<{vs_name}>"
                    component_refs[component_name] = True
                else:
                    member_type = f"{component_name}Ref<{vs_name}>"
                    component_refs.setdefault(component_name, False)
            elif collection:
                member_type = f"HTMLElementCollectionProxy<{vs_name}, {_element_type_name(ref)}>"
                imports = imports.plus(RuntimeImport.HTML_ELEMENT_COLLECTION_PROXY)
            else:
                member_type = f"HTMLElementProxy<{vs_name}, {_element_type_name(ref)}>"
                imports = imports.plus(RuntimeImport.HTML_ELEMENT_PROXY)
            lines.append(f"{indent}{ref.ref}: {member_type};")

        for name, child in node.children.items():
            if child.is_imported:
                imported_name = (
                    child.imported_repeated_refs_name
                    if repeated or child.repeated
                    else child.imported_refs_name
                )
                lines.append(f"{indent}{name}: {imported_name};")
            elif child.has_refs():
                nested = render_node(child, repeated or child.repeated, indent + "    ")
                lines.append(f"{indent}{name}: {{")
                lines.extend(nested)
                lines.append(f"{indent}}};")
        return lines

    body = render_node(tree, all_collections, "    ")
    declarations: list[str] = []
    for component_name, needs_collection in component_refs.items():
        element_type = (
            f"ReturnType<typeof {component_name}>" if flavor == RefsTypeFlavor.JAY else "any"
        )
        declarations.append(
            f"export type {component_name}Ref<ParentVS> = "
            f"MapEventEmitterViewState<ParentVS, {element_type}>;"
        )
        imports = imports.plus(RuntimeImport.MAP_EVENT_EMITTER_VIEW_STATE)
        if needs_collection:
            declarations.append(
                f"export type {component_name}Refs<ParentVS> = "
                f"ComponentCollectionProxy<ParentVS, {component_name}Ref<ParentVS>> & "
                f"OnlyEventEmitters<{component_name}Ref<ParentVS>>;"
            )
            imports = imports.plus(RuntimeImport.COMPONENT_COLLECTION_PROXY).plus(
                RuntimeImport.ONLY_EVENT_EMITTERS
            )
    declarations.append("\n".join([f"export interface {interface_name} {{", *body, "}"]))
    return "\n".join(declarations), imports


# =============================================================================
# Reference managers
# =============================================================================


class ReferenceManagerTarget(StrEnum):
    ELEMENT = "element"
    ELEMENT_BRIDGE = "element-bridge"
    SANDBOX_ROOT = "sandbox-root"


_REFERENCE_MANAGER_INIT: dict[ReferenceManagerTarget, tuple[str, RuntimeImport]] = {
    ReferenceManagerTarget.ELEMENT: ("ReferencesManager.for", RuntimeImport.REFERENCES_MANAGER),
    ReferenceManagerTarget.ELEMENT_BRIDGE: (
        "SecureReferencesManager.forElement",
        RuntimeImport.SECURE_REFERENCES_MANAGER,
    ),
    ReferenceManagerTarget.SANDBOX_ROOT: (
        "SecureReferencesManager.forSandboxRoot",
        RuntimeImport.SECURE_REFERENCES_MANAGER,
    ),
}


RefKey = tuple[tuple[str, ...], str]


@dataclass(frozen=True)
class ReferenceNames:
    """
    Local variable names bound by the reference managers of one module.

    ``managers`` maps a refs tree path to its manager variable and
    ``consts`` maps (path, ref name) to the ref accessor constant. Names are
    unique across the module: a repeated base name gets a numeric suffix.
    """

    managers: dict[tuple[str, ...], str]
    consts: dict[RefKey, str]

    def const_for(self, key: RefKey) -> str:
        return self.consts[key]


def name_references(tree: RefsTree, root_name: str = "refManager") -> ReferenceNames:
    """Assign manager and const names, children first and depth first."""
    used: dict[str, int] = {root_name: 1} if root_name else {}
    managers: dict[tuple[str, ...], str] = {}
    consts: dict[RefKey, str] = {}

    def unique(base: str) -> str:
        count = used.get(base, 0) + 1
        used[base] = count
        return base if count == 1 else f"{base}{count}"

    def visit(path: tuple[str, ...], node: RefsTree) -> None:
        for child_name, child in node.children.items():
            visit((*path, child_name), child)
        managers[path] = unique(camel_case(f"{path[-1]}RefManager")) if path else root_name
        for ref in node.refs:
            consts[(path, ref.ref)] = unique(ref.const_name)

    visit((), tree)
    return ReferenceNames(managers, consts)


def render_reference_managers(
    tree: RefsTree,
    target: ReferenceManagerTarget,
    names: ReferenceNames | None = None,
    indent: str = "    ",
) -> tuple[str, Imports]:
    """
    Render the reference manager declarations for ``tree``.

    Child managers come first so that the parent can pass them by name.

    Examples:
        const [itemsRefManager, [refDone]] = ReferencesManager.for(options, [], ['done'], [], []);
        const [refManager, []] = ReferencesManager.for(options, [], [], [], [], {
            items: itemsRefManager,
        });
    """
    names = names or name_references(tree)
    init, runtime_import = _REFERENCE_MANAGER_INIT[target]
    options = "options, " if target == ReferenceManagerTarget.ELEMENT else ""

    def quoted(refs: list[Ref]) -> str:
        return "[" + ", ".join(f"'{r.ref}'" for r in refs) + "]"

    def render_node(path: tuple[str, ...], node: RefsTree) -> list[str]:
        rendered: list[str] = []
        for child_name, child in node.children.items():
            rendered.extend(render_node((*path, child_name), child))

        elem = [r for r in node.refs if not r.is_component and not r.is_collection]
        elem_coll = [r for r in node.refs if not r.is_component and r.is_collection]
        comp = [r for r in node.refs if r.is_component and not r.is_collection]
        comp_coll = [r for r in node.refs if r.is_component and r.is_collection]
        ordered = [*elem, *elem_coll, *comp, *comp_coll]
        variables = ", ".join(names.consts[(path, r.ref)] for r in ordered)
        arguments = (
            f"{options}{quoted(elem)}, {quoted(elem_coll)}, {quoted(comp)}, {quoted(comp_coll)}"
        )
        declaration = f"{indent}const [{names.managers[path]}, [{variables}]] = {init}({arguments}"
        if node.children:
            members = [
                f"{indent}    {child_name}: {names.managers[(*path, child_name)]},"
                for child_name in node.children
            ]
            rendered.append("\n".join([f"{declaration}, {{", *members, f"{indent}}});"]))
        else:
            rendered.append(f"{declaration});")
        return rendered

    logger.debug("Rendering reference managers for %s", target.value)
    return "\n".join(render_node((), tree)), Imports.of(runtime_import)
