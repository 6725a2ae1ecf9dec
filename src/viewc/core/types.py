"""
Type model for view state, refs and component surfaces.

A closed set of type nodes. Every node carries a ``kind`` so generators can
dispatch over ``TypeKind`` exhaustively instead of probing with isinstance.

Recursion is expressed with ``RecursiveType`` placeholders that hold a
``$/path`` reference. Placeholders are created while object skeletons are
built and are patched afterwards by ``resolve_recursive_types``; object
nodes never point back at their ancestors during construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import ClassVar, Union

from viewc.core.errors import RecursiveTypeError


class TypeKind(StrEnum):
    """Discriminator carried by every type node."""

    ATOMIC = "atomic"
    ENUM = "enum"
    HTML = "html"
    IMPORTED = "imported"
    COMPONENT = "component"
    OBJECT = "object"
    ARRAY = "array"
    UNION = "union"
    PROMISE = "promise"
    RECURSIVE = "recursive"


@dataclass
class AtomicType:
    name: str
    kind: ClassVar[TypeKind] = TypeKind.ATOMIC


@dataclass
class EnumType:
    name: str
    values: list[str]
    kind: ClassVar[TypeKind] = TypeKind.ENUM


@dataclass
class HTMLType:
    """DOM element type such as ``HTMLButtonElement``."""

    name: str
    kind: ClassVar[TypeKind] = TypeKind.HTML


@dataclass
class ImportedType:
    """A type declared in another module, referenced by its alias name."""

    name: str
    type: Type
    kind: ClassVar[TypeKind] = TypeKind.IMPORTED


@dataclass
class ComponentApiMember:
    property: str
    is_event: bool = False


@dataclass
class ComponentType:
    """A child component constructor together with its exposed API."""

    name: str
    api: list[ComponentApiMember] = field(default_factory=list)
    kind: ClassVar[TypeKind] = TypeKind.COMPONENT


@dataclass
class ObjectType:
    """
    A named object shape.

    Field order is preserved for rendering but ignored by equality, since
    dict comparison is order independent.
    """

    name: str
    props: dict[str, Type] = field(default_factory=dict)
    kind: ClassVar[TypeKind] = TypeKind.OBJECT


@dataclass
class ArrayType:
    item_type: Type
    kind: ClassVar[TypeKind] = TypeKind.ARRAY

    @property
    def name(self) -> str:
        return f"Array<{self.item_type.name}>"


@dataclass(eq=False)
class UnionType:
    """Union of distinct member types. Members never include another union."""

    of_types: list[Type]
    kind: ClassVar[TypeKind] = TypeKind.UNION

    @property
    def name(self) -> str:
        return " | ".join(member.name for member in self.of_types)

    def has_type(self, other: Type) -> bool:
        return any(member == other for member in self.of_types)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnionType):
            return NotImplemented
        return len(self.of_types) == len(other.of_types) and all(
            other.has_type(member) for member in self.of_types
        )


@dataclass
class PromiseType:
    item_type: Type
    kind: ClassVar[TypeKind] = TypeKind.PROMISE

    @property
    def name(self) -> str:
        return f"Promise<{self.item_type.name}>"


@dataclass(eq=False)
class RecursiveType:
    """
    Placeholder for a reference to an enclosing object type.

    ``reference_path`` is ``$/`` for the root, ``$/a/b`` for a nested
    object or array, and ``$/a/b[]`` for the item type of an array.
    ``resolved_type`` is filled in by ``resolve_recursive_types``.
    Equality looks at the path and the resolved target's name only, so
    comparing two cyclic graphs terminates.
    """

    reference_path: str
    resolved_type: Type | None = field(default=None, repr=False)
    kind: ClassVar[TypeKind] = TypeKind.RECURSIVE

    @property
    def name(self) -> str:
        if self.resolved_type is not None:
            return self.resolved_type.name
        return f"Recursive<{self.reference_path}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecursiveType):
            return NotImplemented
        mine = self.resolved_type.name if self.resolved_type else None
        theirs = other.resolved_type.name if other.resolved_type else None
        return self.reference_path == other.reference_path and mine == theirs


Type = Union[
    AtomicType,
    EnumType,
    HTMLType,
    ImportedType,
    ComponentType,
    ObjectType,
    ArrayType,
    UnionType,
    PromiseType,
    RecursiveType,
]


STRING = AtomicType("string")
NUMBER = AtomicType("number")
BOOLEAN = AtomicType("boolean")
DATE = AtomicType("Date")
UNKNOWN = AtomicType("Unknown")

ERROR_TYPE = ObjectType("Error", {"message": STRING, "name": STRING, "stack": STRING})

_PRIMITIVES: dict[str, AtomicType] = {
    "string": STRING,
    "number": NUMBER,
    "boolean": BOOLEAN,
    "date": DATE,
}

RECURSIVE_MARKER = "$/"


def resolve_primitive_type(name: str) -> AtomicType:
    """Map a primitive type name to its atomic constant, ``UNKNOWN`` otherwise."""
    return _PRIMITIVES.get(name.strip().lower(), UNKNOWN) if name else UNKNOWN


def is_primitive_name(name: str) -> bool:
    return name.strip().lower() in _PRIMITIVES


def is_unknown(node: Type) -> bool:
    return node.kind == TypeKind.ATOMIC and node.name == UNKNOWN.name


def union_of(first: Type, second: Type) -> Type:
    """
    Widen two types into one.

    Equal types collapse to the first. Unions are flattened so the result
    never nests a union inside another.
    """
    members: list[Type] = []
    for candidate in (first, second):
        parts = candidate.of_types if isinstance(candidate, UnionType) else [candidate]
        for part in parts:
            if not any(existing == part for existing in members):
                members.append(part)
    if len(members) == 1:
        return members[0]
    return UnionType(members)


def is_recursive_path(value: str) -> bool:
    return value.strip().startswith(RECURSIVE_MARKER)


# =============================================================================
# Recursive resolution
# =============================================================================


@dataclass
class TypeArena:
    """
    Objects constructed while building a type, addressed by ``$/path``.

    Builders call ``register`` for every object they construct and
    ``placeholder`` for every recursive reference they meet.
    """

    objects: dict[str, Type] = field(default_factory=dict)
    placeholders: list[RecursiveType] = field(default_factory=list)

    def register(self, path: list[str], obj: Type) -> None:
        self.objects[arena_key(path)] = obj

    def placeholder(self, reference_path: str) -> RecursiveType:
        placeholder = RecursiveType(reference_path.strip())
        self.placeholders.append(placeholder)
        return placeholder


def arena_key(path: list[str]) -> str:
    return RECURSIVE_MARKER + "/".join(path)


def resolve_recursive_types(arena: TypeArena) -> None:
    """
    Patch every placeholder recorded in ``arena`` with its target object.

    Raises:
        RecursiveTypeError: when a reference does not start with ``$/`` or
            addresses no constructed object
    """
    for placeholder in arena.placeholders:
        reference = placeholder.reference_path
        if not reference.startswith(RECURSIVE_MARKER):
            raise RecursiveTypeError(
                f"Recursive reference [{reference}] must start with {RECURSIVE_MARKER}"
            )
        body = reference[len(RECURSIVE_MARKER) :].strip("/")
        unwrap_item = body.endswith("[]")
        if unwrap_item:
            body = body[:-2]
        target = arena.objects.get(RECURSIVE_MARKER + body)
        if target is None and (body == "data" or body.startswith("data/")):
            # $/data addresses the root, $/data/a the same object as $/a
            target = arena.objects.get(RECURSIVE_MARKER + body[len("data") :].lstrip("/"))
        if unwrap_item and target is not None:
            target = target.item_type if target.kind == TypeKind.ARRAY else None
        if target is None:
            raise RecursiveTypeError(
                f"Recursive reference [{reference}] does not point to an object or array type"
            )
        placeholder.resolved_type = target


def assert_resolved(root: Type) -> None:
    """Raise when any recursive placeholder reachable from ``root`` is unresolved."""
    seen: set[int] = set()

    def visit(node: Type) -> None:
        if id(node) in seen:
            return
        seen.add(id(node))
        match node.kind:
            case TypeKind.RECURSIVE:
                if node.resolved_type is None:
                    raise RecursiveTypeError(
                        f"Recursive reference [{node.reference_path}] was never resolved"
                    )
            case TypeKind.OBJECT:
                for child in node.props.values():
                    visit(child)
            case TypeKind.ARRAY | TypeKind.PROMISE:
                visit(node.item_type)
            case TypeKind.IMPORTED:
                visit(node.type)
            case TypeKind.UNION:
                for member in node.of_types:
                    visit(member)
            case TypeKind.ATOMIC | TypeKind.ENUM | TypeKind.HTML | TypeKind.COMPONENT:
                pass

    visit(root)


def unwrap(node: Type) -> Type:
    """Follow imported aliases and resolved recursive references."""
    while True:
        if node.kind == TypeKind.IMPORTED:
            node = node.type
        elif node.kind == TypeKind.RECURSIVE and node.resolved_type is not None:
            node = node.resolved_type
        else:
            return node
