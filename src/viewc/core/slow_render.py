"""
Slow-phase pre-render of templates.

Resolves everything the slow view state already knows, ahead of the first
render: simple ``{a.b}`` bindings become literal text, slow ``forEach`` loops
are unrolled into one clone per item and slow ``if`` conditions are decided
or simplified. Fast and interactive bindings stay in the template for the
runtime.

Usage:
    result = slow_render_transform(html, {"title": "Hello"}, contract)
    if result.val is not None:
        Path("page.slow.jay-html").write_text(result.val)
"""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from viewc.core.expression_lang import (
    PhaseInfo,
    Resolved,
    SlowRenderContext,
    parse_condition_for_slow_render,
)
from viewc.core.expression_lang.slow_eval import lookup_value
from viewc.core.html_tree import Element, Node, Text, parse_html
from viewc.core.ir.contract import Contract, ContractTag, Phase
from viewc.core.phases import child_default_phase, effective_phase
from viewc.core.strings import camel_case
from viewc.core.types import TypeKind
from viewc.core.validations import WithValidations

logger = logging.getLogger(__name__)

_BINDING_RE = re.compile(r"\{([^}]+)\}")
_SIMPLE_PATH_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_.]*$")

# Attributes the transform reads or writes itself
_TRANSFORM_ATTRIBUTES = frozenset(
    {"foreach", "trackby", "slowforeach", "jayindex", "jaytrackby", "if", "ref"}
)

HEADLESS_INSTANCE_PREFIX = "jay:"


@dataclass(frozen=True)
class HeadlessContractInfo:
    """A headless component contract; its tags live under ``key`` in the view state."""

    key: str
    contract: Contract


@dataclass
class DiscoveredHeadlessInstance:
    """
    A ``<jay:name>`` component instance found in a pre-rendered template.

    ``coordinate`` is built from the ``jayTrackBy`` values of the unrolled
    loops around the instance followed by ``name:ref``.
    """

    contract_name: str
    props: dict[str, str] = field(default_factory=dict)
    coordinate: list[str] = field(default_factory=list)


@dataclass
class HeadlessDiscovery:
    instances: list[DiscoveredHeadlessInstance]
    pre_rendered_html: str


# =============================================================================
# Phase map
# =============================================================================


def build_phase_map(
    contract: Contract | None,
    headless_contracts: list[HeadlessContractInfo] | None = None,
) -> dict[str, PhaseInfo]:
    """
    Map every view state path declared by the contracts to its phase.

    Headless contract paths are prefixed with the component's key.
    """
    phase_map: dict[str, PhaseInfo] = {}

    def visit(tag: ContractTag, prefix: str, inherited: Phase | None) -> None:
        path = f"{prefix}.{camel_case(tag.tag)}" if prefix else camel_case(tag.tag)
        data_type = tag.data_type
        enum_values = (
            list(data_type.values)
            if data_type is not None and data_type.kind == TypeKind.ENUM
            else None
        )
        phase_map[path] = PhaseInfo(
            phase=effective_phase(tag, inherited),
            is_array=tag.repeated,
            track_by=tag.track_by,
            enum_values=enum_values,
        )
        if tag.is_self_link:
            return
        for child in tag.child_tags:
            visit(child, path, child_default_phase(tag, inherited))

    if contract is not None:
        for tag in contract.tags:
            visit(tag, "", None)
    for headless in headless_contracts or []:
        for tag in headless.contract.tags:
            visit(tag, headless.key, None)
    return phase_map


def has_slow_phase_properties(contract: Contract | None) -> bool:
    """True when any tag of ``contract`` is rendered in the slow phase."""
    if contract is None:
        return False
    return any(
        info.phase == Phase.SLOW for info in build_phase_map(contract).values()
    )


# =============================================================================
# Bindings
# =============================================================================


def _is_slow(path: str, phase_map: Mapping[str, PhaseInfo]) -> bool:
    info = phase_map.get(path)
    return info is not None and info.phase == Phase.SLOW


def _lookup(data: Any, path: str) -> Any:
    return lookup_value(data if isinstance(data, Mapping) else None, path.split("."))


def format_value(value: Any) -> str:
    """Render a slow value the way the runtime would stringify it."""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def resolve_bindings(
    text: str,
    data: Any,
    phase_map: Mapping[str, PhaseInfo],
    context_path: str = "",
    escape: bool = False,
) -> WithValidations[str]:
    """
    Replace the slow simple bindings of ``text`` with their values.

    A slow binding without a value is reported and rendered as ``undefined``
    so that the missing data is visible in the output. Expressions that are
    not simple paths, and paths that are not slow, are kept as written.
    """
    validations: list[str] = []

    def replace(match: re.Match[str]) -> str:
        expression = match.group(1).strip()
        if not _SIMPLE_PATH_RE.match(expression):
            return match.group(0)
        full_path = f"{context_path}.{expression}" if context_path else expression
        if not _is_slow(full_path, phase_map):
            return match.group(0)
        value = _lookup(data, expression)
        if value is None:
            got = "null" if _has_path(data, expression) else "undefined"
            validations.append(
                f'Slow-phase binding {{{expression}}} at path "{full_path}" has no value in '
                f"slowViewState. Expected a value but got {got}."
            )
            return "undefined"
        rendered = format_value(value)
        return html.escape(rendered, quote=False) if escape else rendered

    return WithValidations(_BINDING_RE.sub(replace, text), tuple(validations))


def _has_path(data: Any, path: str) -> bool:
    """True when the last segment of ``path`` is present (holding ``None``)."""
    *parents, last = path.split(".")
    parent = _lookup(data, ".".join(parents)) if parents else data
    return isinstance(parent, Mapping) and last in parent


# =============================================================================
# Transform
# =============================================================================


class _SlowRenderer:
    def __init__(self, phase_map: Mapping[str, PhaseInfo]) -> None:
        self.phase_map = phase_map
        self.validations: list[str] = []

    def children(self, parent: Element, context_path: str, data: Any) -> list[Node]:
        transformed: list[Node] = []
        for child in parent.children:
            if isinstance(child, Element):
                transformed.extend(self.element(child, context_path, data))
            elif isinstance(child, Text) and _BINDING_RE.search(child.text):
                resolved = resolve_bindings(
                    child.text, data, self.phase_map, context_path, escape=True
                )
                self.validations.extend(resolved.validations)
                transformed.append(Text(resolved.val))
            else:
                transformed.append(child)
        return transformed

    def element(self, element: Element, context_path: str, data: Any) -> list[Element]:
        for_each = element.get_attr("forEach")
        if for_each:
            unrolled = self.unroll(element, for_each, context_path, data)
            if unrolled is not None:
                return unrolled

        condition = element.get_attr("if")
        if condition:
            ctx = SlowRenderContext(
                slow_data=data if isinstance(data, Mapping) else {},
                phase_map=self.phase_map,
                context_path=context_path,
            )
            result = parse_condition_for_slow_render(condition, ctx)
            if isinstance(result, Resolved):
                if not result.value:
                    return []
                element.remove_attr("if")
            elif result.simplified_expr != condition:
                element.set_attr("if", result.simplified_expr)

        for name, value in list(element.attrs.items()):
            if name.lower() in _TRANSFORM_ATTRIBUTES or not value:
                continue
            if _BINDING_RE.search(value):
                resolved = resolve_bindings(value, data, self.phase_map, context_path)
                self.validations.extend(resolved.validations)
                element.attrs[name] = resolved.val

        element.children = self.children(element, context_path, data)
        return [element]

    def unroll(
        self, element: Element, for_each: str, context_path: str, data: Any
    ) -> list[Element] | None:
        """Clone ``element`` once per item of a slow array, or ``None`` to keep the loop."""
        full_path = f"{context_path}.{for_each}" if context_path else for_each
        info = self.phase_map.get(full_path)
        if info is not None and info.phase != Phase.SLOW:
            return None
        items = _lookup(data, for_each)
        if not isinstance(items, list):
            return None

        track_by = element.get_attr("trackBy") or "id"
        clones: list[Element] = []
        for index, item in enumerate(items):
            clone = element.clone()
            for directive in ("forEach", "trackBy"):
                clone.remove_attr(directive)
            clone.set_attr("slowForEach", for_each)
            clone.set_attr("jayIndex", str(index))
            key = item.get(track_by) if isinstance(item, Mapping) else None
            clone.set_attr("jayTrackBy", format_value(key) if key is not None else str(index))
            clone.children = self.children(clone, full_path, item)
            clones.append(clone)
        return clones


def slow_render_transform(
    template_html: str,
    slow_view_state: Mapping[str, Any],
    contract: Contract | None = None,
    headless_contracts: list[HeadlessContractInfo] | None = None,
) -> WithValidations[str | None]:
    """
    Pre-render the slow phase of a template.

    Args:
        template_html: The ``.jay-html`` source
        slow_view_state: Values of the slow view state projection
        contract: Page contract, the source of field phases
        headless_contracts: Headless component contracts keyed into the view state

    Returns:
        The pre-rendered template, or ``None`` when it has no body. Missing
        slow values are reported as validations.

    Raises:
        ExpressionParseError: If an ``if`` condition cannot be parsed
    """
    phase_map = build_phase_map(contract, headless_contracts)
    # headless components that supplied no slow data keep their bindings
    for headless in headless_contracts or []:
        if headless.key not in slow_view_state:
            prefix = f"{headless.key}."
            for path in [p for p in phase_map if p == headless.key or p.startswith(prefix)]:
                del phase_map[path]

    root = parse_html(template_html)
    body = root.find("body")
    if body is None:
        return WithValidations(None, ("jay-html must have a body element",))

    renderer = _SlowRenderer(phase_map)
    body.children = renderer.children(body, "", slow_view_state)
    logger.debug(
        "Slow rendered template: %s slow paths, %s validations",
        sum(1 for info in phase_map.values() if info.phase == Phase.SLOW),
        len(renderer.validations),
    )
    return WithValidations(root.to_html(), tuple(renderer.validations))


# =============================================================================
# Headless instances
# =============================================================================


def discover_headless_instances(pre_rendered_html: str) -> HeadlessDiscovery:
    """
    Find the ``<jay:name>`` instances of a pre-rendered template.

    Instances inside a loop that was not unrolled, or with props that still
    hold bindings, are skipped. An instance without a ``ref`` gets one,
    numbered per contract within its coordinate scope, and the numbering is
    written back into the returned HTML.
    """
    root = parse_html(pre_rendered_html)
    instances: list[DiscoveredHeadlessInstance] = []
    counters: dict[str, int] = {}

    def walk(element: Element, prefix: list[str], in_runtime_loop: bool) -> None:
        tag = element.tag_lower
        if tag.startswith(HEADLESS_INSTANCE_PREFIX):
            if not in_runtime_loop:
                contract_name = tag[len(HEADLESS_INSTANCE_PREFIX):]
                props = {
                    camel_case(name): value or ""
                    for name, value in element.attrs.items()
                    if name.lower() != "ref" and not name.lower().startswith("jay")
                }
                if not any(_BINDING_RE.search(value) for value in props.values()):
                    ref = element.get_attr("ref")
                    if not ref:
                        counter_key = "/".join([*prefix, contract_name])
                        ref = str(counters.get(counter_key, 0))
                        counters[counter_key] = int(ref) + 1
                        element.set_attr("ref", ref)
                    instances.append(
                        DiscoveredHeadlessInstance(
                            contract_name, props, [*prefix, f"{contract_name}:{ref}"]
                        )
                    )
            return

        track_by = element.get_attr("jayTrackBy")
        child_prefix = [*prefix, track_by] if track_by is not None else prefix
        loop = in_runtime_loop or element.has_attr("forEach")
        for child in element.element_children:
            walk(child, child_prefix, loop)

    body = root.find("body")
    if body is not None:
        walk(body, [], False)
    return HeadlessDiscovery(instances, root.to_html())
