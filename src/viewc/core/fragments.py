"""
Render fragments: generated code text plus what it depends on.

Every renderer returns a ``RenderFragment`` carrying the rendered text, the
runtime imports it needs, validations raised while rendering and the refs it
declares. Fragments are combined with ``merge`` so none of those are lost.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from viewc.core.imports import Imports, RuntimeImport
from viewc.core.refs import RefsTree, merge_refs_trees
from viewc.core.validations import Validations


@dataclass(frozen=True)
class RenderFragment:
    rendered: str
    imports: Imports = field(default_factory=Imports.none)
    validations: Validations = ()
    refs: RefsTree = field(default_factory=RefsTree)

    @classmethod
    def empty(cls) -> RenderFragment:
        return cls("")

    def map(self, fn: Callable[[str], str]) -> RenderFragment:
        return RenderFragment(fn(self.rendered), self.imports, self.validations, self.refs)

    def plus_import(self, imports: RuntimeImport | Imports) -> RenderFragment:
        return RenderFragment(
            self.rendered, self.imports.plus(imports), self.validations, self.refs
        )

    def with_validations(self, *messages: str) -> RenderFragment:
        return RenderFragment(
            self.rendered, self.imports, self.validations + tuple(messages), self.refs
        )

    def with_refs(self, refs: RefsTree) -> RenderFragment:
        return RenderFragment(self.rendered, self.imports, self.validations, refs)

    @staticmethod
    def merge(
        first: RenderFragment, second: RenderFragment, combinator: str = ""
    ) -> RenderFragment:
        """
        Combine two fragments.

        Text is joined with ``combinator`` only when both sides rendered
        something; imports, validations and refs are always combined.
        """
        if first.rendered and second.rendered:
            rendered = f"{first.rendered}{combinator}{second.rendered}"
        else:
            rendered = first.rendered or second.rendered
        return RenderFragment(
            rendered,
            first.imports.plus(second.imports),
            first.validations + second.validations,
            merge_refs_trees(first.refs, second.refs),
        )

    @staticmethod
    def merge_all(fragments: Iterable[RenderFragment], combinator: str = "") -> RenderFragment:
        result = RenderFragment.empty()
        for fragment in fragments:
            result = RenderFragment.merge(result, fragment, combinator)
        return result
