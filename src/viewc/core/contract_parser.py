"""
Contract file parser.

Reads a ``.jay-contract`` YAML document into the ``Contract`` IR. Shape
problems are collected as validations, one per violation, keyed by the
dotted tag path; only unreadable YAML is raised.

Example contract::

    name: counter
    tags:
      - tag: count
        type: data
        dataType: number
      - tag: add
        type: interactive
        elementType: HTMLButtonElement
"""

from __future__ import annotations

import logging
import re
from typing import Any

import yaml

from viewc.core.errors import ParseError
from viewc.core.expression_lang.parser import parse_enum_values, parse_is_enum
from viewc.core.ir.contract import (
    Contract,
    ContractParam,
    ContractProp,
    ContractTag,
    ContractTagType,
    Phase,
)
from viewc.core.phases import validate_contract_phases
from viewc.core.strings import pascal_case
from viewc.core.types import (
    ArrayType,
    EnumType,
    PromiseType,
    RecursiveType,
    Type,
    is_recursive_path,
    resolve_primitive_type,
)
from viewc.core.validations import WithValidations

logger = logging.getLogger(__name__)

CONTRACT_EXTENSION = ".jay-contract"

_TAG_TYPES = {t.value: t for t in ContractTagType}
_ARRAY_RECURSIVE_RE = re.compile(r"^array<(\$/.*)>$")
_VALID_PHASES = ", ".join(phase.value for phase in Phase)


def _parse_types(raw: Any, path: str) -> WithValidations[list[ContractTagType]]:
    """``type`` may be one name, a comma/space separated string or a list."""
    if isinstance(raw, list):
        names = [str(item).strip() for item in raw]
    else:
        names = [name for name in re.split(r"[,\s]+", str(raw).strip()) if name]
    types: list[ContractTagType] = []
    validations: list[str] = []
    for name in names:
        tag_type = _TAG_TYPES.get(name)
        if tag_type is None:
            validations.append(f"Tag [{path}] has an unknown tag type [{name}]")
        elif tag_type not in types:
            types.append(tag_type)
    return WithValidations(types, tuple(validations))


def parse_data_type(tag_name: str, data_type: str) -> Type:
    """
    Resolve a ``dataType`` string to a type node.

    Examples:
        - number → NUMBER
        - enum (a | b) → EnumType(PascalCase(tag), [a, b])
        - $/ → RecursiveType("$/")
        - array<$/> → ArrayType(RecursiveType("$/"))
    """
    text = str(data_type).strip()
    if parse_is_enum(text):
        return EnumType(pascal_case(tag_name), parse_enum_values(text))
    if is_recursive_path(text):
        return RecursiveType(text)
    array_match = _ARRAY_RECURSIVE_RE.match(text)
    if array_match:
        return ArrayType(RecursiveType(array_match.group(1)))
    return resolve_primitive_type(text)


def _parse_description(raw: Any) -> list[str] | None:
    if not raw:
        return None
    if isinstance(raw, list):
        return [str(line) for line in raw]
    return [str(raw)]


def _parse_element_type(raw: Any) -> list[str] | None:
    if not raw:
        return None
    return [part.strip() for part in str(raw).split("|")]


def _parse_phase(
    raw: Any, path: str, types: list[ContractTagType]
) -> WithValidations[Phase | None]:
    if raw is None or raw == "":
        return WithValidations.pure(None)
    try:
        phase = Phase(str(raw))
    except ValueError:
        return WithValidations(
            None,
            (f"Tag [{path}] has invalid phase [{raw}]. Valid phases are: {_VALID_PHASES}",),
        )
    if ContractTagType.INTERACTIVE in types:
        return WithValidations(
            None,
            (
                f"Tag [{path}] of type [interactive] cannot have an explicit phase attribute "
                f"(implicitly fast+interactive)",
            ),
        )
    return WithValidations.pure(phase)


def _validate_track_by(raw: dict[str, Any], path: str) -> list[str]:
    """Checks that a sub-contract's trackBy names a slow string/number data tag."""
    track_by = raw.get("trackBy")
    sub_tags = raw.get("tags")
    if not track_by or not isinstance(sub_tags, list):
        return []
    target = next(
        (t for t in sub_tags if isinstance(t, dict) and t.get("tag") == track_by), None
    )
    if target is None:
        return [
            f"Tag [{path}] trackBy references [{track_by}] which does not exist in the sub-contract"
        ]
    validations: list[str] = []
    target_types = _parse_types(target.get("type") or "data", track_by).val
    if ContractTagType.DATA not in target_types:
        validations.append(
            f"Tag [{path}] trackBy must reference a data tag, but [{track_by}] is not a data tag"
        )
    data_type = target.get("dataType")
    if data_type and str(data_type).lower() not in ("string", "number"):
        validations.append(
            f"Tag [{path}] trackBy must reference a string or number property, "
            f"but [{track_by}] is type [{data_type}]"
        )
    phase = target.get("phase")
    if phase and phase != Phase.SLOW.value:
        validations.append(
            f"Tag [{path}] trackBy field [{track_by}] should have phase 'slow' (or no phase) "
            f"since identity is slow-changing data. Found phase: [{phase}]. "
            f"Note: trackBy fields are automatically included in all phases for merging."
        )
    return validations


def _shape_validations(raw: dict[str, Any], path: str, types: list[ContractTagType]) -> list[str]:
    name = path
    validations: list[str] = []
    if ContractTagType.SUB_CONTRACT in types and len(types) > 1:
        validations.append(f"Tag [{name}] cannot be both sub-contract and other types")
    if ContractTagType.VARIANT in types and not raw.get("dataType"):
        validations.append(f"Tag [{name}] of type [variant] must have a dataType")
    if ContractTagType.INTERACTIVE in types and not raw.get("elementType"):
        validations.append(f"Tag [{name}] of type [interactive] must have an elementType")

    if ContractTagType.SUB_CONTRACT in types:
        has_tags = raw.get("tags") is not None
        has_link = bool(raw.get("link"))
        if not has_tags and not has_link:
            validations.append(
                f"Tag [{name}] of type [sub-contract] must have either tags or a link"
            )
        if raw.get("dataType"):
            validations.append(f"Tag [{name}] of type [sub-contract] cannot have a dataType")
        if raw.get("elementType"):
            validations.append(f"Tag [{name}] of type [sub-contract] cannot have an elementType")
        if raw.get("repeated") and not raw.get("trackBy"):
            validations.append(
                f"Tag [{name}] is a repeated sub-contract and requires a trackBy attribute"
            )
        if raw.get("trackBy") and not raw.get("repeated"):
            validations.append(f"Tag [{name}] has trackBy but is not marked as repeated")
        validations.extend(_validate_track_by(raw, name))
    else:
        types_text = ", ".join(t.value for t in types)
        if raw.get("tags") is not None:
            validations.append(f"Tag [{name}] of type [{types_text}] cannot have tags")
        if raw.get("link"):
            validations.append(f"Tag [{name}] of type [{types_text}] cannot have link")
        if raw.get("trackBy"):
            validations.append(f"Tag [{name}] of type [{types_text}] cannot have trackBy")
    return validations


def _normalize_link(link: str) -> str:
    link = link.strip()
    if is_recursive_path(link) or link.endswith(CONTRACT_EXTENSION):
        return link
    return link + CONTRACT_EXTENSION


def _parse_tag(raw: Any, parent_path: str) -> WithValidations[ContractTag | None]:
    """Parse one tag mapping. A tag with any validation is dropped (value None)."""
    if not isinstance(raw, dict) or not raw.get("tag"):
        where = f" in [{parent_path}]" if parent_path else ""
        return WithValidations.failed(f"Contract tag{where} must have a tag name")

    name = str(raw["tag"])
    path = f"{parent_path}.{name}" if parent_path else name
    default_type = "sub-contract" if raw.get("tags") is not None else "data"
    types_result = _parse_types(raw.get("type") or default_type, path)
    types = types_result.val
    validations = list(types_result.validations)
    validations.extend(_shape_validations(raw, path, types))

    phase_result = _parse_phase(raw.get("phase"), path, types)
    validations.extend(phase_result.validations)

    data_type: Type | None = None
    if ContractTagType.SUB_CONTRACT not in types:
        raw_data_type = raw.get("dataType")
        if raw_data_type is None and ContractTagType.DATA in types:
            raw_data_type = "string"
        if raw_data_type is not None:
            data_type = parse_data_type(name, raw_data_type)
            if raw.get("async") is True and data_type is not None:
                data_type = PromiseType(data_type)

    if validations:
        return WithValidations(None, tuple(validations))

    common = dict(
        tag=name,
        description=_parse_description(raw.get("description")),
        required=bool(raw.get("required", False)),
        phase=phase_result.val,
    )
    if ContractTagType.SUB_CONTRACT in types:
        if raw.get("link"):
            return WithValidations.pure(
                ContractTag(
                    types=[ContractTagType.SUB_CONTRACT],
                    repeated=bool(raw.get("repeated", False)),
                    track_by=raw.get("trackBy"),
                    async_=raw.get("async") is True,
                    link=_normalize_link(str(raw["link"])),
                    **common,
                )
            )
        children = _parse_tags(raw.get("tags") or [], path)
        return children.map(
            lambda tags: ContractTag(
                types=[ContractTagType.SUB_CONTRACT],
                tags=tags,
                repeated=bool(raw.get("repeated", False)),
                track_by=raw.get("trackBy"),
                async_=raw.get("async") is True,
                **common,
            )
        )

    return WithValidations.pure(
        ContractTag(
            types=types,
            data_type=data_type,
            element_type=_parse_element_type(raw.get("elementType")),
            async_=raw.get("async") is True,
            **common,
        )
    )


def _parse_tags(raw_tags: list[Any], parent_path: str) -> WithValidations[list[ContractTag]]:
    """Parse a tag list, dropping invalid tags and reporting duplicate names."""
    results = WithValidations.all(_parse_tag(raw, parent_path) for raw in raw_tags)
    tags = [tag for tag in results.val if tag is not None]
    validations = list(results.validations)
    seen: set[str] = set()
    for tag in tags:
        if tag.tag in seen:
            if parent_path:
                validations.append(
                    f"Duplicate tag name [{tag.tag}] in sub-contract [{parent_path}]"
                )
            else:
                validations.append(f"Duplicate tag name [{tag.tag}]")
        seen.add(tag.tag)
    return WithValidations(tags, tuple(validations))


def _parse_props(raw_props: Any) -> WithValidations[list[ContractProp]]:
    props: list[ContractProp] = []
    validations: list[str] = []
    for raw in raw_props or []:
        if not isinstance(raw, dict) or not raw.get("name"):
            validations.append("Contract prop must have a name")
            continue
        name = str(raw["name"])
        data_type = parse_data_type(name, raw.get("dataType") or "string")
        default = raw.get("default")
        props.append(
            ContractProp(
                name=name,
                data_type=data_type,
                required=bool(raw.get("required", False)),
                default=None if default is None else str(default),
                description=_parse_description(raw.get("description")),
            )
        )
    return WithValidations(props, tuple(validations))


def _parse_params(raw_params: Any) -> WithValidations[list[ContractParam]]:
    params: list[ContractParam] = []
    validations: list[str] = []
    for raw in raw_params or []:
        name = raw.get("name") if isinstance(raw, dict) else raw
        if not name:
            validations.append("Contract param must have a name")
            continue
        params.append(ContractParam(name=str(name)))
    return WithValidations(params, tuple(validations))


def parse_contract(text: str, filename: str) -> WithValidations[Contract | None]:
    """
    Parse contract YAML text into a Contract.

    Args:
        text: The contract file content
        filename: Used in error messages

    Returns:
        The contract (None when the name or tags are missing) with every
        shape and phase validation found.

    Raises:
        ParseError: If the text is not valid YAML
    """
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"failed to parse contract YAML for {filename}, {e}.") from e

    if not isinstance(document, dict):
        document = {}
    validations: list[str] = []
    if not document.get("name"):
        validations.append("Contract must have a name")
    if not isinstance(document.get("tags"), list):
        validations.append("Contract must have tags as an array of the contract tags")
    if validations:
        return WithValidations(None, tuple(validations))

    tags = _parse_tags(document["tags"], "")
    props = _parse_props(document.get("props"))
    params = _parse_params(document.get("params"))
    contract = Contract(
        name=str(document["name"]), tags=tags.val, props=props.val, params=params.val
    )
    phase_validations = validate_contract_phases(contract)
    logger.debug("Parsed contract %s with %s tags", contract.name, len(contract.tags))
    return WithValidations(
        contract,
        tags.validations + props.validations + params.validations + tuple(phase_validations),
    )
