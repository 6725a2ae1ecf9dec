"""
Runtime import catalog.

Every symbol a generated module may import from the external runtime is
listed once in ``RuntimeImport``. Fragments carry an ``Imports`` set; the
final module renders only the members it actually uses, grouped by module
in a stable order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum, StrEnum

JAY_RUNTIME = "@jay-framework/runtime"
JAY_SECURE = "@jay-framework/secure"
REACT = "react"
JAY_4_REACT = "@jay-framework/4-react"

_MODULE_ORDER = {JAY_RUNTIME: 1, JAY_SECURE: 2, REACT: 3, JAY_4_REACT: 4}


class ImportsFor(StrEnum):
    """Which flavour of output a statement is rendered into."""

    DEFINITION = "definition"
    IMPLEMENTATION = "implementation"
    ELEMENT_SANDBOX = "element-sandbox"


_D = ImportsFor.DEFINITION
_I = ImportsFor.IMPLEMENTATION
_S = ImportsFor.ELEMENT_SANDBOX


class RuntimeImport(Enum):
    """(module, import statement, usages) for every importable runtime symbol."""

    BASE_JAY_ELEMENT = (JAY_RUNTIME, "BaseJayElement", (_I, _S))
    JAY_ELEMENT = (JAY_RUNTIME, "JayElement", (_D, _I, _S))
    ELEMENT = (JAY_RUNTIME, "element as e", (_I,))
    SVG_ELEMENT = (JAY_RUNTIME, "svgElement as svg", (_I,))
    MATHML_ELEMENT = (JAY_RUNTIME, "mathMLElement as ml", (_I,))
    DYNAMIC_TEXT = (JAY_RUNTIME, "dynamicText as dt", (_I,))
    DYNAMIC_ATTRIBUTE = (JAY_RUNTIME, "dynamicAttribute as da", (_I,))
    BOOLEAN_ATTRIBUTE = (JAY_RUNTIME, "booleanAttribute as ba", (_I,))
    DYNAMIC_PROPERTY = (JAY_RUNTIME, "dynamicProperty as dp", (_I,))
    RENDER_ELEMENT = (JAY_RUNTIME, "RenderElement", (_I, _D, _S))
    REFERENCES_MANAGER = (JAY_RUNTIME, "ReferencesManager", (_I,))
    SECURE_REFERENCES_MANAGER = (JAY_SECURE, "SecureReferencesManager", (_S,))
    CONDITIONAL = (JAY_RUNTIME, "conditional as c", (_I,))
    WITH_DATA = (JAY_RUNTIME, "withData", (_I,))
    DYNAMIC_ELEMENT = (JAY_RUNTIME, "dynamicElement as de", (_I,))
    SVG_DYNAMIC_ELEMENT = (JAY_RUNTIME, "svgDynamicElement as dsvg", (_I,))
    MATHML_DYNAMIC_ELEMENT = (JAY_RUNTIME, "mathMLDynamicElement as dml", (_I,))
    FOR_EACH = (JAY_RUNTIME, "forEach", (_I,))
    SLOW_FOR_EACH_ITEM = (JAY_RUNTIME, "slowForEachItem", (_I,))
    RESOLVED = (JAY_RUNTIME, "resolved", (_I,))
    PENDING = (JAY_RUNTIME, "pending", (_I,))
    REJECTED = (JAY_RUNTIME, "rejected", (_I,))
    CONSTRUCT_CONTEXT = (JAY_RUNTIME, "ConstructContext", (_I,))
    HTML_ELEMENT_COLLECTION_PROXY = (JAY_RUNTIME, "HTMLElementCollectionProxy", (_D, _I, _S))
    HTML_ELEMENT_PROXY = (JAY_RUNTIME, "HTMLElementProxy", (_D, _I, _S))
    CHILD_COMP = (JAY_RUNTIME, "childComp", (_I,))
    RENDER_ELEMENT_OPTIONS = (JAY_RUNTIME, "RenderElementOptions", (_I, _D))
    MAP_EVENT_EMITTER_VIEW_STATE = (JAY_RUNTIME, "MapEventEmitterViewState", (_I, _D, _S))
    ONLY_EVENT_EMITTERS = (JAY_RUNTIME, "OnlyEventEmitters", (_I, _D, _S))
    COMPONENT_COLLECTION_PROXY = (JAY_RUNTIME, "ComponentCollectionProxy", (_I, _D, _S))
    SANDBOX_ELEMENT_BRIDGE = (JAY_SECURE, "elementBridge", (_S,))
    SANDBOX_ROOT = (JAY_SECURE, "sandboxRoot", (_S,))
    SANDBOX_ELEMENT = (JAY_SECURE, "sandboxElement as e", (_S,))
    SANDBOX_CHILD_COMP = (JAY_SECURE, "sandboxChildComp as childComp", (_S,))
    SANDBOX_FOR_EACH = (JAY_SECURE, "sandboxForEach as forEach", (_S,))
    HANDSHAKE_MESSAGE_JAY_CHANNEL = (JAY_SECURE, "HandshakeMessageJayChannel", (_S,))
    JAY_PORT = (JAY_SECURE, "JayPort", (_S,))
    SET_WORKER_PORT = (JAY_SECURE, "setWorkerPort", (_S,))
    SECURE_MAIN_ROOT = (JAY_SECURE, "mainRoot as mr", (_I,))
    SECURE_CHILD_COMP = (JAY_SECURE, "secureChildComp", (_I,))
    FUNCTION_REPOSITORY = ("./function-repository", "funcRepository", (_I,))
    REACT_ELEMENT = (REACT, "ReactElement", (_I, _D))
    JAY_4_REACT_ELEMENT_PROPS = (JAY_4_REACT, "Jay4ReactElementProps", (_I, _D))
    EVENTS_FOR = (JAY_4_REACT, "eventsFor", (_I, _D))
    JAY_2_REACT = (JAY_4_REACT, "jay2React", (_I, _D))
    MIMIC_JAY_ELEMENT = (JAY_4_REACT, "mimicJayElement", (_I, _D))
    JAY_CONTRACT = (JAY_RUNTIME, "JayContract", (_I, _D, _S))
    INJECT_HEAD_LINKS = (JAY_RUNTIME, "injectHeadLinks", (_I,))

    @property
    def module(self) -> str:
        return self.value[0]

    @property
    def statement(self) -> str:
        return self.value[1]

    @property
    def usages(self) -> tuple[ImportsFor, ...]:
        return self.value[2]

    @property
    def local_name(self) -> str:
        """Name the symbol is bound to in the generated module."""
        return self.statement.split(" as ")[-1]


_CATALOG_ORDER = {member: index for index, member in enumerate(RuntimeImport)}


@dataclass(frozen=True)
class Imports:
    """An immutable set of runtime imports."""

    members: frozenset[RuntimeImport] = field(default_factory=frozenset)

    @classmethod
    def none(cls) -> Imports:
        return cls()

    @classmethod
    def of(cls, *imports: RuntimeImport) -> Imports:
        return cls(frozenset(imports))

    @classmethod
    def merge_all(cls, collection: Iterable[Imports]) -> Imports:
        members: set[RuntimeImport] = set()
        for imports in collection:
            members.update(imports.members)
        return cls(frozenset(members))

    def plus(self, other: RuntimeImport | Imports) -> Imports:
        if isinstance(other, Imports):
            return Imports(self.members | other.members)
        return Imports(self.members | {other})

    def minus(self, other: RuntimeImport | Imports) -> Imports:
        if isinstance(other, Imports):
            return Imports(self.members - other.members)
        return Imports(self.members - {other})

    def has(self, runtime_import: RuntimeImport) -> bool:
        return runtime_import in self.members

    def __bool__(self) -> bool:
        return bool(self.members)

    def render(self, imports_for: ImportsFor) -> str:
        """
        Render import statements, one line per module.

        Statements keep catalog order within a module; modules follow the
        runtime, secure, react, 4-react order.

        Examples:
            >>> Imports.of(RuntimeImport.ELEMENT, RuntimeImport.JAY_ELEMENT).render(
            ...     ImportsFor.IMPLEMENTATION)
            "import { JayElement, element as e } from '@jay-framework/runtime';"
        """
        by_module: dict[str, list[str]] = {}
        for member in sorted(self.members, key=_CATALOG_ORDER.__getitem__):
            if imports_for in member.usages:
                by_module.setdefault(member.module, []).append(member.statement)
        modules = sorted(by_module, key=lambda module: _MODULE_ORDER.get(module, 999))
        return "\n".join(
            f"import {{ {', '.join(by_module[module])} }} from '{module}';" for module in modules
        )
