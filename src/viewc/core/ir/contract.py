"""
Contract types for viewc IR.

A contract is a standalone declaration of a component's surface: the data
fields that make up its ViewState, the interactive elements exposed as refs,
variants, nested sub-contracts, props and URL params.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Phase(str, Enum):
    """
    Rendering phase, ordered slow < fast < fast+interactive.

    slow values are known at build time, fast values per request, and
    fast+interactive values may change in the browser.
    """

    SLOW = "slow"
    FAST = "fast"
    FAST_INTERACTIVE = "fast+interactive"

    @property
    def order(self) -> int:
        return _PHASE_ORDER[self]

    def is_before(self, other: Phase) -> bool:
        return self.order < other.order

    @property
    def type_suffix(self) -> str:
        """Suffix used in phase projection type names."""
        if self is Phase.FAST_INTERACTIVE:
            return "Interactive"
        return self.value.capitalize()


_PHASE_ORDER = {Phase.SLOW: 0, Phase.FAST: 1, Phase.FAST_INTERACTIVE: 2}

PHASES = (Phase.SLOW, Phase.FAST, Phase.FAST_INTERACTIVE)


class ContractTagType(str, Enum):
    """Kinds of contract tags. A tag may combine data, interactive and variant."""

    DATA = "data"
    INTERACTIVE = "interactive"
    VARIANT = "variant"
    SUB_CONTRACT = "sub-contract"


class ContractTag(BaseModel):
    """
    One named member of a contract.

    Examples:
        - count (data, number) → ViewState field ``count: number``
        - add (interactive, HTMLButtonElement) → Refs member ``add``
        - items (sub-contract, repeated, trackBy id) → ``items: Array<Item...>``
    """

    tag: str = Field(description="Tag name as written in the contract")
    types: list[ContractTagType] = Field(description="One or more tag kinds")
    data_type: Any = Field(default=None, description="Resolved type node for data/variant")
    element_type: list[str] | None = Field(
        default=None, description="Possible element type names for interactive tags"
    )
    description: list[str] | None = None
    required: bool = False
    repeated: bool = False
    async_: bool = False
    track_by: str | None = None
    phase: Phase | None = None
    tags: list[ContractTag] | None = Field(default=None, description="Nested sub-contract tags")
    link: str | None = Field(default=None, description="Linked contract path or $/ self link")
    linked_contract: Contract | None = Field(
        default=None, description="Linked contract, once resolved by the loader"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def is_sub_contract(self) -> bool:
        return ContractTagType.SUB_CONTRACT in self.types

    @property
    def is_interactive(self) -> bool:
        return ContractTagType.INTERACTIVE in self.types

    @property
    def is_data(self) -> bool:
        return ContractTagType.DATA in self.types

    @property
    def is_variant(self) -> bool:
        return ContractTagType.VARIANT in self.types

    @property
    def is_self_link(self) -> bool:
        return bool(self.link) and self.link.strip().startswith("$/")

    @property
    def is_refs_only(self) -> bool:
        """Interactive tags without a dataType live only in the Refs type."""
        return self.is_interactive and self.data_type is None

    @property
    def child_tags(self) -> list[ContractTag]:
        """Nested tags, inline or taken from the resolved linked contract."""
        if self.tags is not None:
            return list(self.tags)
        if self.linked_contract is not None:
            return list(self.linked_contract.tags)
        return []


class ContractProp(BaseModel):
    """A component prop declared by a contract."""

    name: str
    data_type: Any = Field(default=None, description="Resolved type node")
    required: bool = False
    default: str | None = None
    description: list[str] | None = None

    model_config = ConfigDict(frozen=True)


class ContractParam(BaseModel):
    """A URL param. Params are always rendered as strings."""

    name: str

    model_config = ConfigDict(frozen=True)


class Contract(BaseModel):
    """A parsed contract file."""

    name: str
    tags: list[ContractTag] = Field(default_factory=list)
    props: list[ContractProp] = Field(default_factory=list)
    params: list[ContractParam] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def find_tag(self, path: list[str]) -> ContractTag | None:
        """Find a tag by its path of tag names."""
        tags = self.tags
        found: ContractTag | None = None
        for segment in path:
            found = next((tag for tag in tags if tag.tag == segment), None)
            if found is None:
                return None
            tags = found.child_tags
        return found


ContractTag.model_rebuild()
Contract.model_rebuild()
