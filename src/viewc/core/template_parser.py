"""
Template file parser.

Reads a ``.jay-html`` document into a ``JayHtmlFile``: the root ViewState
type, the imports it declares, head links, XML namespaces and the ``<body>``
element the code generators walk.

Example template::

    <html>
      <head>
        <script type="application/jay-data">
          data:
            count: number
        </script>
      </head>
      <body>
        <div><span>{count}</span><button ref="add">+</button></div>
      </body>
    </html>

Any validation raised while reading the head aborts the parse: the result
then carries no file, only the validations.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from viewc.core.contract_loader import ContractResolver, FileContractResolver
from viewc.core.contract_types import contract_to_view_state_and_refs, refs_name
from viewc.core.errors import ExpressionParseError, LinkError, ParseError
from viewc.core.expression_lang.parser import parse_enum_values, parse_import_names, parse_is_enum
from viewc.core.html_tree import Element, parse_html
from viewc.core.ir.contract import Contract
from viewc.core.ir.expressions import ImportName
from viewc.core.refs import RefsTree
from viewc.core.strings import pascal_case, to_interface_name
from viewc.core.types import (
    UNKNOWN,
    ArrayType,
    ComponentType,
    EnumType,
    ImportedType,
    ObjectType,
    PromiseType,
    Type,
    TypeArena,
    TypeKind,
    is_recursive_path,
    is_unknown,
    resolve_primitive_type,
    resolve_recursive_types,
)
from viewc.core.validations import WithValidations

logger = logging.getLogger(__name__)

TEMPLATE_EXTENSION = ".jay-html"
JAY_DATA = "application/jay-data"
JAY_HEADFULL = "application/jay-headfull"
JAY_HEADLESS = "application/jay-headless"

_ASYNC_PREFIX = "async "
_ARRAY_RECURSIVE_RE = re.compile(r"^array<(\$/.*)>$")


@dataclass
class ImportedName:
    """One imported symbol, typed once the module's exports are analyzed."""

    name: str
    as_name: str | None = None
    type: Type = field(default_factory=lambda: UNKNOWN)

    @property
    def local_name(self) -> str:
        return self.as_name or self.name

    def render(self) -> str:
        return f"{self.name} as {self.as_name}" if self.as_name else self.name


@dataclass
class ImportLink:
    module: str
    names: list[ImportedName] = field(default_factory=list)
    sandbox: bool = False

    def render(self) -> str:
        names = ", ".join(name.render() for name in self.names)
        return f"import {{ {names} }} from '{self.module}';"


@dataclass
class HeadlessImport:
    """A headless component whose contract contributes a keyed ViewState field."""

    key: str
    contract: Contract
    root_type: ObjectType
    refs: RefsTree
    contract_links: list[ImportLink]
    code_link: ImportLink


@dataclass(frozen=True)
class HeadLink:
    rel: str
    href: str
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Namespace:
    prefix: str
    namespace: str


@dataclass
class JayHtmlFile:
    """A parsed template, ready for the shared walk."""

    view_state: Type
    body: Element
    base_element_name: str
    filename: str
    imports: list[ImportLink] = field(default_factory=list)
    headless_imports: list[HeadlessImport] = field(default_factory=list)
    head_links: list[HeadLink] = field(default_factory=list)
    namespaces: list[Namespace] = field(default_factory=list)
    contract: Contract | None = None
    source_path: Path | None = None

    @property
    def imported_components(self) -> dict[str, bool]:
        """Local component names mapped to whether they are sandboxed."""
        components: dict[str, bool] = {}
        for link in self.imports:
            for name in link.names:
                target = name.type.type if name.type.kind == TypeKind.IMPORTED else name.type
                if target.kind == TypeKind.COMPONENT:
                    components[name.local_name] = link.sandbox
        return components


def normalize_filename(filename: str) -> str:
    name = Path(filename).name
    return name[: -len(TEMPLATE_EXTENSION)] if name.endswith(TEMPLATE_EXTENSION) else name


def base_element_name(filename: str) -> str:
    """``collection-with-refs.jay-html`` → ``CollectionWithRefs``."""
    return pascal_case(normalize_filename(filename))


# =============================================================================
# Data types
# =============================================================================


def _resolve_imported_type(imports: list[ImportedName], type_name: Any) -> Type:
    for name in imports:
        if name.local_name == type_name:
            return name.type
    return UNKNOWN


class _DataTypeBuilder:
    """Turns the ``data:`` mapping of a jay-data block into object types."""

    def __init__(self, imports: list[ImportedName]) -> None:
        self.imports = imports
        self.arena = TypeArena()
        self.validations: list[str] = []

    def resolve_object(
        self, data: dict[str, Any], names: list[str], prop_path: list[str]
    ) -> ObjectType:
        obj = ObjectType(to_interface_name(list(names)))
        self.arena.register(prop_path, obj)
        for key, value in data.items():
            key = str(key)
            is_async = key.startswith(_ASYNC_PREFIX)
            prop = key[len(_ASYNC_PREFIX) :].strip() if is_async else key
            resolved = self.resolve_value(value, names, prop_path, prop)
            if resolved is None:
                continue
            obj.props[prop] = PromiseType(resolved) if is_async else resolved
        return obj

    def resolve_value(
        self, value: Any, names: list[str], prop_path: list[str], prop: str
    ) -> Type | None:
        path = [*prop_path, prop]
        if isinstance(value, dict):
            return self.resolve_object(value, [*names, prop], path)
        if isinstance(value, list):
            if value and isinstance(value[0], dict):
                array: Type = ArrayType(self.resolve_object(value[0], [*names, prop], path))
            elif value:
                item = self.resolve_value(value[0], names, path, prop)
                if item is None:
                    return None
                array = ArrayType(item)
            else:
                self._invalid(value, prop_path, prop)
                return None
            self.arena.register(path, array)
            return array
        if not isinstance(value, str):
            self._invalid(value, prop_path, prop)
            return None

        text = value.strip()
        primitive = resolve_primitive_type(text)
        if not is_unknown(primitive):
            return primitive
        imported = _resolve_imported_type(self.imports, text)
        if not is_unknown(imported):
            return imported
        if parse_is_enum(text):
            return EnumType(to_interface_name([*names, prop]), parse_enum_values(text))
        if is_recursive_path(text):
            return self.arena.placeholder(text)
        array_match = _ARRAY_RECURSIVE_RE.match(text)
        if array_match:
            return ArrayType(self.arena.placeholder(array_match.group(1)))
        self._invalid(value, prop_path, prop)
        return None

    def _invalid(self, value: Any, prop_path: list[str], prop: str) -> None:
        location = ".".join(["data", *prop_path, prop])
        self.validations.append(f"invalid type [{value}] found at [{location}]")


def parse_types(
    data: Any,
    base_name: str,
    imports: list[ImportedName],
    headless_imports: list[HeadlessImport],
) -> WithValidations[Type]:
    """
    Resolve the jay-data ``data`` section into the root ViewState type.

    A mapping becomes an object named ``{Base}ViewState``; a string names an
    imported type. Headless component keys are added before the data fields.

    Raises:
        RecursiveTypeError: If a ``$/`` reference does not address an
            object or array of the data
    """
    if isinstance(data, str):
        return WithValidations.pure(_resolve_imported_type(imports, data.strip()))
    builder = _DataTypeBuilder(imports)
    root = builder.resolve_object(data or {}, [f"{base_name}ViewState"], [])
    resolve_recursive_types(builder.arena)
    headless_props: dict[str, Type] = {
        headless.key: ImportedType(headless.root_type.name, headless.root_type)
        for headless in headless_imports
    }
    root.props = {**headless_props, **root.props}
    return WithValidations(root, tuple(builder.validations))


# =============================================================================
# Head
# =============================================================================


def parse_namespaces(root: Element) -> list[Namespace]:
    html_element = root.find("html")
    if html_element is None:
        return []
    return [
        Namespace(name[len("xmlns:") :], value or "")
        for name, value in html_element.attrs.items()
        if name.lower().startswith("xmlns:")
    ]


def _scripts(root: Element, script_type: str) -> list[Element]:
    return [el for el in root.iter() if el.get_attr("type") == script_type]


def parse_jay_data(root: Element) -> WithValidations[Element | None]:
    scripts = _scripts(root, JAY_DATA)
    if len(scripts) != 1:
        found = "none" if not scripts else str(len(scripts))
        return WithValidations(
            None, (f"jay file should have exactly one jay-data script, found {found}",)
        )
    return WithValidations.pure(scripts[0])


def _load_yaml(script: Element, filename: str) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(script.text_content())
    except yaml.YAMLError as e:
        raise ParseError(f"failed to parse jay-data YAML for {filename}, {e}.") from e
    return loaded if isinstance(loaded, dict) else {}


def _is_sandboxed(value: str | None) -> bool:
    return value == "" or (bool(value) and value != "false")


def parse_headfull_imports(
    elements: list[Element], file_path: Path, resolver: ContractResolver
) -> WithValidations[list[ImportLink]]:
    """
    Read ``<script type="application/jay-headfull" src names [sandbox]>``.

    Every imported name is typed from the exports of the resolved module.
    """
    links: list[ImportLink] = []
    validations: list[str] = []
    for element in elements:
        module = element.get_attr("src") or ""
        sandbox = _is_sandboxed(element.get_attr("sandbox"))
        try:
            names = [
                ImportedName(parsed.name, parsed.as_name)
                for parsed in _import_names(element.get_attr("names") or "")
            ]
            if not names:
                validations.append(f"import for module {module} does not specify what to import")
            exported = resolver.analyze_exported_types(resolver.resolve_link(file_path, module))
        except (ExpressionParseError, LinkError, OSError) as e:
            validations.append(f"failed to parse import names for module {module} - {e}")
            links.append(ImportLink(module, [], sandbox))
            continue
        for name in names:
            exported_type = next((t for t in exported if t.name == name.name), None)
            if exported_type is None:
                validations.append(
                    f"failed to find exported member {name.name} type in module {module}"
                )
            elif is_unknown(exported_type):
                validations.append(
                    f"imported name {name.name} from {module} has an unsupported type"
                )
            else:
                name.type = ImportedType(name.local_name, exported_type)
        links.append(ImportLink(module, names, sandbox))
    return WithValidations(links, tuple(validations))


def _import_names(raw: str) -> list[ImportName]:
    if not raw.strip():
        return []
    return parse_import_names(raw)


def parse_headless_imports(
    elements: list[Element], file_path: Path, resolver: ContractResolver
) -> WithValidations[list[HeadlessImport]]:
    """Read ``<script type="application/jay-headless" src name contract key>``."""
    result: list[HeadlessImport] = []
    validations: list[str] = []
    for element in elements:
        module = element.get_attr("src")
        name = element.get_attr("name")
        contract_path = element.get_attr("contract")
        key = element.get_attr("key")
        if not module:
            validations.append(
                "headless import must specify src attribute, module path to headless "
                "component implementation"
            )
            continue
        if not name:
            validations.append(
                f"headless import must specify name of the constant to import from {module}"
            )
            continue
        if not contract_path:
            validations.append(
                "headless import must specify contract attribute, module path to headless "
                "component contract"
            )
            continue
        if not key:
            validations.append(
                "headless import must specify key attribute, used for this component "
                "ViewState and Refs member for the contract"
            )
            continue

        try:
            loaded = resolver.load_contract(resolver.resolve_link(file_path, contract_path))
        except (LinkError, ParseError, OSError) as e:
            validations.append(f"failed to parse linked contract {contract_path} - {e}")
            continue
        validations.extend(loaded.validations)
        if loaded.val is None:
            continue

        converted = contract_to_view_state_and_refs(loaded.val)
        validations.extend(converted.validations)
        contract_name = loaded.val.name
        root_type = converted.val.view_state
        refs = RefsTree(
            refs=converted.val.refs.refs,
            children=converted.val.refs.children,
            repeated=converted.val.refs.repeated,
            imported_refs_name=refs_name(contract_name),
            imported_repeated_refs_name=refs_name(contract_name, repeated=True),
        )
        contract_link = ImportLink(
            contract_path,
            [
                ImportedName(root_type.name, type=root_type),
                ImportedName(refs_name(contract_name)),
                ImportedName(refs_name(contract_name, repeated=True)),
            ],
        )
        code_link = ImportLink(module, [ImportedName(name, type=ComponentType(name))])
        result.append(
            HeadlessImport(key, loaded.val, root_type, refs, [contract_link], code_link)
        )
    return WithValidations(result, tuple(validations))


def parse_head_links(root: Element) -> list[HeadLink]:
    """``<link>`` elements of ``<head>`` other than ``rel="import"``."""
    head = root.find("head")
    if head is None:
        return []
    links: list[HeadLink] = []
    for link in head.find_all("link"):
        rel = link.get_attr("rel") or ""
        if rel == "import":
            continue
        attributes = {
            name: value or ""
            for name, value in link.attrs.items()
            if name.lower() not in ("rel", "href")
        }
        links.append(HeadLink(rel, link.get_attr("href") or "", attributes))
    return links


def _module_from_template(contract_path: str, module: str) -> str:
    """Re-anchor a module linked by the contract to the template folder."""
    joined = posixpath.normpath(posixpath.join(posixpath.dirname(contract_path), module))
    return joined if joined.startswith(".") else f"./{joined}"


def _contract_view_state(
    script: Element, file_path: Path, resolver: ContractResolver
) -> WithValidations[tuple[Contract, Type, list[ImportLink]] | None]:
    contract_path = script.get_attr("contract") or ""
    try:
        loaded = resolver.load_contract(resolver.resolve_link(file_path, contract_path))
    except (LinkError, ParseError, OSError) as e:
        return WithValidations(None, (f"failed to load contract {contract_path} - {e}",))
    if loaded.val is None:
        return WithValidations(None, loaded.validations)
    converted = contract_to_view_state_and_refs(loaded.val)
    links = [
        ImportLink(
            _module_from_template(contract_path, linked.module),
            [ImportedName(name) for name in linked.names],
        )
        for linked in converted.val.linked_imports
    ]
    return WithValidations(
        (loaded.val, converted.val.view_state, links),
        loaded.validations + converted.validations,
    )


# =============================================================================
# Entry point
# =============================================================================


def parse_jay_file(
    source: str,
    filename: str,
    file_path: Path | None = None,
    resolver: ContractResolver | None = None,
) -> WithValidations[JayHtmlFile | None]:
    """
    Parse a template.

    Args:
        source: Template text
        filename: File name, used for the base element name
        file_path: Location of the template; imports and contracts resolve
            relative to it (defaults to ``filename`` in the working directory)
        resolver: Loads contracts and module exports

    Returns:
        The parsed file, or ``None`` together with the validations that
        prevented parsing.

    Raises:
        ParseError: If the jay-data block is not valid YAML
        RecursiveTypeError: If a recursive data reference cannot be resolved
    """
    resolver = resolver or FileContractResolver()
    file_path = Path(file_path or filename)
    base_name = base_element_name(filename)
    root = parse_html(source)

    jay_data = parse_jay_data(root)
    if jay_data.val is None:
        return WithValidations(None, jay_data.validations)
    script = jay_data.val

    headfull = parse_headfull_imports(_scripts(root, JAY_HEADFULL), file_path, resolver)
    headless = parse_headless_imports(_scripts(root, JAY_HEADLESS), file_path, resolver)
    validations = list(headfull.validations + headless.validations)
    imported_names = [name for link in headfull.val for name in link.names]

    contract: Contract | None = None
    contract_links: list[ImportLink] = []
    if script.has_attr("contract"):
        from_contract = _contract_view_state(script, file_path, resolver)
        validations.extend(from_contract.validations)
        if from_contract.val is None:
            return WithValidations(None, tuple(validations))
        contract, view_state, contract_links = from_contract.val
        if headless.val:
            view_state.props = {
                **{h.key: ImportedType(h.root_type.name, h.root_type) for h in headless.val},
                **view_state.props,
            }
    else:
        data = _load_yaml(script, filename).get("data")
        types = parse_types(data, base_name, imported_names, headless.val)
        validations.extend(types.validations)
        view_state = types.val

    if validations:
        return WithValidations(None, tuple(validations))

    body = root.find("body")
    if body is None:
        return WithValidations(None, ("jay file must have exactly a body tag",))

    imports = [*headfull.val, *contract_links]
    for headless_import in headless.val:
        imports.extend(headless_import.contract_links)

    logger.debug("Parsed template %s (%s imports)", filename, len(imports))
    return WithValidations.pure(
        JayHtmlFile(
            view_state=view_state,
            body=body,
            base_element_name=base_name,
            filename=normalize_filename(filename),
            imports=imports,
            headless_imports=headless.val,
            head_links=parse_head_links(root),
            namespaces=parse_namespaces(root),
            contract=contract,
            source_path=file_path,
        )
    )


def get_jay_html_imports(source: str) -> list[str]:
    """Module paths referenced by headfull and headless imports."""
    root = parse_html(source)
    scripts = _scripts(root, JAY_HEADFULL) + _scripts(root, JAY_HEADLESS)
    return [src for src in (script.get_attr("src") for script in scripts) if src]
