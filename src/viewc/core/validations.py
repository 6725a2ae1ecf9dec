"""
Value + validation message pairs.

Every compilation step returns a ``WithValidations`` instead of appending to
a shared list; callers combine results explicitly so that one run reports
every independent problem.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")

Validations = tuple[str, ...]


@dataclass(frozen=True)
class WithValidations(Generic[T]):
    """A computed value together with the validations raised computing it."""

    val: T
    validations: Validations = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.validations

    @classmethod
    def pure(cls, val: T) -> WithValidations[T]:
        return cls(val, ())

    @classmethod
    def failed(cls, *messages: str) -> WithValidations[None]:
        return WithValidations(None, tuple(messages))

    @classmethod
    def all(cls, results: Iterable[WithValidations[T]]) -> WithValidations[list[T]]:
        """Collect a list of results into one result holding a list."""
        values: list[T] = []
        validations: list[str] = []
        for result in results:
            values.append(result.val)
            validations.extend(result.validations)
        return WithValidations(values, tuple(validations))

    def map(self, fn: Callable[[T], U]) -> WithValidations[U]:
        return WithValidations(fn(self.val), self.validations)

    def flat_map(self, fn: Callable[[T], WithValidations[U]]) -> WithValidations[U]:
        result = fn(self.val)
        return WithValidations(result.val, self.validations + result.validations)

    def merge(
        self, other: WithValidations[U], combine: Callable[[T, U], object]
    ) -> WithValidations:
        return WithValidations(combine(self.val, other.val), self.validations + other.validations)

    def with_validations(self, *messages: str) -> WithValidations[T]:
        return WithValidations(self.val, self.validations + tuple(messages))
