"""
Shared pieces of the code generation stacks.

Every stack renders from the same ``TemplateIR``. This module holds the
stack interface, the names of the generated element types and the type
declaration blocks (ViewState, Refs, phase projections, element aliases)
that the element, bridge and sandbox modules share.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from viewc.core.declarations import render_view_state_declarations
from viewc.core.expression_lang import Variables, quote_single
from viewc.core.imports import Imports, RuntimeImport
from viewc.core.ir.contract import PHASES, Phase
from viewc.core.phases import generate_phase_types, phase_type_name
from viewc.core.refs import RefsTypeFlavor, render_refs_type
from viewc.core.template_ir import TemplateIR
from viewc.core.template_parser import HeadLink, JayHtmlFile
from viewc.core.types import TypeKind
from viewc.core.validations import WithValidations

INDENT = "    "


@dataclass
class StackCapabilities:
    """
    Describes what a stack generates.

    Used for introspection and CLI help text.
    """

    name: str
    description: str
    output_suffix: str


class Stack(ABC):
    """
    A code generation target.

    Stacks are pure renderers over the shared template walk; they never
    re-walk the HTML tree.
    """

    @abstractmethod
    def generate(self, ir: TemplateIR, **options: Any) -> WithValidations[str]:
        """
        Render the module for one walked template.

        Args:
            ir: The walked template
            **options: Stack specific options (the element stack takes ``mode``)

        Returns:
            Module text with the validations raised while rendering it
        """

    @abstractmethod
    def get_capabilities(self) -> StackCapabilities: ...

    def output_filename(self, file: JayHtmlFile) -> str:
        return f"{file.filename}{self.get_capabilities().output_suffix}"


# =============================================================================
# Names
# =============================================================================


@dataclass(frozen=True)
class ElementTypeNames:
    """Generated type names for a template base name such as ``Counter``."""

    base: str
    view_state: str

    @property
    def element(self) -> str:
        return f"{self.base}Element"

    @property
    def refs(self) -> str:
        return f"{self.base}ElementRefs"

    @property
    def render(self) -> str:
        return f"{self.base}ElementRender"

    @property
    def pre_render(self) -> str:
        return f"{self.base}ElementPreRender"

    @property
    def contract(self) -> str:
        return f"{self.base}Contract"

    @property
    def props(self) -> str:
        return f"{self.base}ElementProps"

    def phase(self, phase: Phase) -> str:
        return f"{self.base}{phase.type_suffix}ViewState"


def names_for(ir: TemplateIR) -> ElementTypeNames:
    return ElementTypeNames(ir.file.base_element_name, ir.view_state_type.name)


def scope_param(variables: Variables) -> str:
    """``(vs1: Item)``, the typed parameter of an accessor function."""
    return f"({variables.current_var}: {variables.current_type.name})"


def indent_lines(text: str, indent: str) -> str:
    return "\n".join(indent + line if line else line for line in text.split("\n"))


def join_blocks(*blocks: str | None) -> str:
    return "\n\n".join(block for block in blocks if block) + "\n"


# =============================================================================
# Declarations
# =============================================================================


def render_import_links(file: JayHtmlFile) -> str:
    return "\n".join(link.render() for link in file.imports if link.names)


def _phase_type_names(ir: TemplateIR, names: ElementTypeNames) -> list[str]:
    contract = ir.file.contract
    if contract is not None:
        return [phase_type_name(contract.name, phase) for phase in PHASES]
    return [names.phase(phase) for phase in PHASES]


def render_phase_types(ir: TemplateIR, names: ElementTypeNames) -> str:
    """
    Phase projections of the template's ViewState.

    A template bound to a contract uses the contract's projections; a
    template with inline data is entirely interactive.
    """
    contract = ir.file.contract
    if contract is not None:
        return generate_phase_types(contract, names.view_state)
    return "\n".join(
        [
            f"export type {names.phase(Phase.SLOW)} = {{}};",
            f"export type {names.phase(Phase.FAST)} = {{}};",
            f"export type {names.phase(Phase.FAST_INTERACTIVE)} = {names.view_state};",
        ]
    )


def render_element_types(names: ElementTypeNames, refs_type: str | None = None) -> str:
    refs_type = refs_type or names.refs
    return "\n".join(
        [
            f"export type {names.element} = JayElement<{names.view_state}, {refs_type}>;",
            f"export type {names.render} = "
            f"RenderElement<{names.view_state}, {refs_type}, {names.element}>;",
            f"export type {names.pre_render} = [{refs_type}, {names.render}];",
        ]
    )


def render_contract_type(ir: TemplateIR, names: ElementTypeNames) -> str:
    type_args = [names.view_state, names.refs, *_phase_type_names(ir, names)]
    return f"export type {names.contract} = JayContract<{', '.join(type_args)}>;"


@dataclass(frozen=True)
class TypeBlocks:
    view_state: str
    refs: str
    phases: str
    element: str
    contract: str
    imports: Imports

    def all(self) -> list[str]:
        return [self.view_state, self.refs, self.phases, self.element, self.contract]


def render_type_blocks(
    ir: TemplateIR, flavor: RefsTypeFlavor = RefsTypeFlavor.JAY
) -> TypeBlocks:
    """Declarations shared by every module generated for a template."""
    names = names_for(ir)
    view_state = ir.view_state_type
    declarations = (
        render_view_state_declarations(view_state) if view_state.kind == TypeKind.OBJECT else ""
    )
    refs_text, refs_imports = render_refs_type(ir.refs, names.refs, flavor=flavor)
    imports = refs_imports.plus(RuntimeImport.JAY_ELEMENT).plus(RuntimeImport.RENDER_ELEMENT)
    return TypeBlocks(
        view_state=declarations,
        refs=refs_text,
        phases=render_phase_types(ir, names),
        element=render_element_types(names),
        contract=render_contract_type(ir, names),
        imports=imports.plus(RuntimeImport.JAY_CONTRACT),
    )


def render_head_links(links: list[HeadLink], indent: str) -> str:
    """
    The ``injectHeadLinks`` call for the head links of a template.

    Examples:
        injectHeadLinks([
            { rel: 'stylesheet', href: 'styles.css' },
        ]);
    """
    entries = []
    for link in links:
        members = [f"rel: {quote_single(link.rel)}", f"href: {quote_single(link.href)}"]
        if link.attributes:
            attributes = ", ".join(
                f"{quote_single(name)}: {quote_single(value)}"
                for name, value in link.attributes.items()
            )
            members.append(f"attributes: {{ {attributes} }}")
        entries.append(f"{indent}{INDENT}{{ {', '.join(members)} }},")
    return "\n".join([f"{indent}injectHeadLinks([", *entries, f"{indent}]);"])
