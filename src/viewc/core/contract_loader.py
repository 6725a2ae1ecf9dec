"""
Linked contract resolution.

A sub-contract tag may ``link`` to another contract file. The loader walks a
parsed contract, loads every linked file through a ``ContractResolver`` and
attaches it to the linking tag. Self links (``$/...``) point into the
contract being parsed and are never loaded.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from viewc.core.contract_parser import parse_contract
from viewc.core.errors import LinkError, ParseError
from viewc.core.ir.contract import Contract, ContractTag
from viewc.core.types import ComponentType, ImportedType, ObjectType, Type
from viewc.core.validations import WithValidations

logger = logging.getLogger(__name__)

_EXPORTED_COMPONENT_RE = re.compile(
    r"^export\s+(?:declare\s+)?(?:async\s+)?(?:function|const|class)\s+([A-Za-z_$][\w$]*)",
    re.MULTILINE,
)
_EXPORTED_TYPE_RE = re.compile(
    r"^export\s+(?:declare\s+)?(?:interface|type)\s+([A-Za-z_$][\w$]*)", re.MULTILINE
)
_SOURCE_SUFFIXES = ("", ".ts", ".tsx", ".d.ts", ".js")


class ContractResolver(Protocol):
    """Loads contracts and exported types referenced from the file being compiled."""

    def resolve_link(self, from_path: Path, link: str) -> Path: ...

    def load_contract(self, path: Path) -> WithValidations[Contract | None]: ...

    def analyze_exported_types(self, path: Path) -> list[Type]: ...


class FileContractResolver:
    """
    Resolves links against the local filesystem.

    Loaded contracts are cached by absolute path, so a contract linked from
    several places in one compilation is read and parsed once.

    Example:
        resolver = FileContractResolver()
        contract = resolver.load_contract(Path("todo.jay-contract")).val
    """

    def __init__(self) -> None:
        self._contracts: dict[Path, WithValidations[Contract | None]] = {}
        self._exports: dict[Path, list[Type]] = {}

    def resolve_link(self, from_path: Path, link: str) -> Path:
        return (Path(from_path).parent / link).resolve()

    def load_contract(self, path: Path) -> WithValidations[Contract | None]:
        """
        Read and parse a contract file, with its own links resolved.

        Raises:
            LinkError: If the file does not exist
            ParseError: If the file is not valid YAML
        """
        key = Path(path).resolve()
        cached = self._contracts.get(key)
        if cached is not None:
            return cached
        if not key.is_file():
            raise LinkError(f"Contract file not found: {key}")
        logger.debug("Loading contract %s", key)
        parsed = parse_contract(key.read_text(encoding="utf-8"), key.name)
        # cache before resolving links so that mutual links terminate
        self._contracts[key] = parsed
        if parsed.val is not None:
            resolved = resolve_links(parsed.val, key, self)
            parsed = WithValidations(resolved.val, parsed.validations + resolved.validations)
            self._contracts[key] = parsed
        return parsed

    def analyze_exported_types(self, path: Path) -> list[Type]:
        """
        List the names a TypeScript module exports.

        Functions, constants and classes are taken as components; interfaces
        and type aliases as imported types.

        Raises:
            LinkError: If no source file exists for ``path``
        """
        source = _find_source(Path(path))
        cached = self._exports.get(source)
        if cached is not None:
            return cached
        text = source.read_text(encoding="utf-8")
        exported: list[Type] = [
            ComponentType(name) for name in _EXPORTED_COMPONENT_RE.findall(text)
        ]
        exported.extend(
            ImportedType(name, ObjectType(name)) for name in _EXPORTED_TYPE_RE.findall(text)
        )
        logger.debug("Module %s exports %s", source, [t.name for t in exported])
        self._exports[source] = exported
        return exported


def _find_source(path: Path) -> Path:
    for suffix in _SOURCE_SUFFIXES:
        candidate = path.with_name(path.name + suffix) if suffix else path
        if candidate.is_file():
            return candidate.resolve()
    raise LinkError(f"Module source not found: {path}")


def _resolve_tag(
    tag: ContractTag, contract_path: Path, resolver: ContractResolver, parent_path: str
) -> WithValidations[ContractTag]:
    path = f"{parent_path}.{tag.tag}" if parent_path else tag.tag
    if tag.link and not tag.is_self_link:
        try:
            linked_path = resolver.resolve_link(contract_path, tag.link)
            loaded = resolver.load_contract(linked_path)
        except (LinkError, ParseError, OSError) as e:
            return WithValidations(
                tag, (f"Failed to load linked contract [{tag.link}] for tag [{path}]: {e}",)
            )
        if loaded.val is None:
            return WithValidations(
                tag,
                (
                    f"Failed to load linked contract [{tag.link}] for tag [{path}]: "
                    + "; ".join(loaded.validations),
                ),
            )
        return WithValidations(tag.model_copy(update={"linked_contract": loaded.val}))
    if tag.tags:
        children = _resolve_tags(tag.tags, contract_path, resolver, path)
        return children.map(lambda tags: tag.model_copy(update={"tags": tags}))
    return WithValidations.pure(tag)


def _resolve_tags(
    tags: list[ContractTag], contract_path: Path, resolver: ContractResolver, parent_path: str
) -> WithValidations[list[ContractTag]]:
    return WithValidations.all(
        _resolve_tag(tag, contract_path, resolver, parent_path) for tag in tags
    )


def resolve_links(
    contract: Contract, contract_path: Path, resolver: ContractResolver
) -> WithValidations[Contract]:
    """
    Attach every linked contract to the tag that links it.

    Args:
        contract: The parsed contract
        contract_path: Location of the contract, links are relative to it
        resolver: Where linked contracts are loaded from

    Returns:
        A contract whose linking tags carry ``linked_contract``, with one
        validation per link that could not be loaded.
    """
    tags = _resolve_tags(contract.tags, Path(contract_path), resolver, "")
    return tags.map(lambda resolved: contract.model_copy(update={"tags": resolved}))


def load_contract_file(
    path: Path, resolver: ContractResolver | None = None
) -> WithValidations[Contract | None]:
    """Parse a contract file and resolve its links."""
    return (resolver or FileContractResolver()).load_contract(Path(path))
