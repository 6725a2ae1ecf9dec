"""
TypeScript declarations for view state types.

Renders enums and interfaces for an object type tree. Interfaces come out
children first, so every name is declared before the interface that uses
it. Imported types are declared elsewhere and are only referenced.
"""

from __future__ import annotations

from collections.abc import Callable

from viewc.core.types import EnumType, ObjectType, Type, TypeKind

INDENT = "    "


def render_type_ref(node: Type, nullable_recursion: bool = True) -> str:
    """
    The type expression used for a field.

    A direct reference to an enclosing object (``left: $/``) may be absent,
    so it renders as ``X | null``. References inside arrays never do.
    """
    match node.kind:
        case TypeKind.RECURSIVE:
            target = node.resolved_type
            if nullable_recursion and target is not None and target.kind == TypeKind.OBJECT:
                return f"{node.name} | null"
            return node.name
        case TypeKind.ARRAY:
            return f"Array<{render_type_ref(node.item_type, False)}>"
        case TypeKind.PROMISE:
            return f"Promise<{render_type_ref(node.item_type, False)}>"
        case TypeKind.UNION:
            return " | ".join(render_type_ref(member, False) for member in node.of_types)
        case _:
            return node.name


def _walk(
    root: Type,
    on_enum: Callable[[EnumType], object],
    on_object: Callable[[ObjectType], object],
) -> None:
    seen: set[int] = set()

    def visit(node: Type) -> None:
        match node.kind:
            case TypeKind.ENUM:
                on_enum(node)
            case TypeKind.OBJECT:
                if id(node) in seen:
                    return
                seen.add(id(node))
                for child in node.props.values():
                    visit(child)
                on_object(node)
            case TypeKind.ARRAY | TypeKind.PROMISE:
                visit(node.item_type)
            case TypeKind.UNION:
                for member in node.of_types:
                    visit(member)
            case _:
                # imported, recursive, atomic, html and component nodes declare nothing
                pass

    visit(root)


def collect_declared_types(root: Type) -> tuple[list[EnumType], list[ObjectType]]:
    """Enums in first-use order and objects children first, each named once."""
    enums: dict[str, EnumType] = {}
    objects: dict[str, ObjectType] = {}
    _walk(
        root,
        lambda enum: enums.setdefault(enum.name, enum),
        lambda obj: objects.setdefault(obj.name, obj),
    )
    return list(enums.values()), list(objects.values())


def render_enum(enum: EnumType) -> str:
    values = ",\n".join(f"{INDENT}{value}" for value in enum.values)
    return f"export enum {enum.name} {{\n{values}\n}}"


def render_interface(obj: ObjectType) -> str:
    if not obj.props:
        return f"export interface {obj.name} {{}}"
    members = "\n".join(
        f"{INDENT}{name}: {render_type_ref(prop)};" for name, prop in obj.props.items()
    )
    return f"export interface {obj.name} {{\n{members}\n}}"


def render_view_state_declarations(root: Type) -> str:
    """Every enum and interface reachable from ``root``, blank line separated."""
    enums, objects = collect_declared_types(root)
    blocks = [render_enum(enum) for enum in enums]
    blocks.extend(render_interface(obj) for obj in objects)
    return "\n\n".join(blocks)
