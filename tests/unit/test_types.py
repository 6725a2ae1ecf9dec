"""Tests for the type model, runtime imports and result carriers."""

from viewc.core.fragments import RenderFragment
from viewc.core.imports import Imports, ImportsFor, RuntimeImport
from viewc.core.types import (
    BOOLEAN,
    NUMBER,
    STRING,
    UNKNOWN,
    ArrayType,
    PromiseType,
    UnionType,
    is_recursive_path,
    resolve_primitive_type,
    union_of,
)
from viewc.core.validations import WithValidations


class TestTypes:
    def test_primitive_names(self) -> None:
        assert resolve_primitive_type(" Number ") == NUMBER
        assert resolve_primitive_type("widget") == UNKNOWN
        assert resolve_primitive_type("") == UNKNOWN

    def test_names(self) -> None:
        assert ArrayType(STRING).name == "Array<string>"
        assert PromiseType(NUMBER).name == "Promise<number>"
        assert UnionType([STRING, NUMBER]).name == "string | number"

    def test_union_of(self) -> None:
        assert union_of(STRING, STRING) == STRING
        widened = union_of(union_of(STRING, NUMBER), union_of(BOOLEAN, STRING))
        assert isinstance(widened, UnionType)
        assert widened.of_types == [STRING, NUMBER, BOOLEAN]
        assert UnionType([NUMBER, STRING]) == UnionType([STRING, NUMBER])

    def test_recursive_path(self) -> None:
        assert is_recursive_path(" $/items")
        assert not is_recursive_path("items")


class TestImports:
    def test_render_groups_by_module(self) -> None:
        imports = Imports.of(
            RuntimeImport.SANDBOX_ELEMENT_BRIDGE,
            RuntimeImport.RENDER_ELEMENT,
            RuntimeImport.JAY_ELEMENT,
        )
        assert imports.render(ImportsFor.ELEMENT_SANDBOX) == (
            "import { JayElement, RenderElement } from '@jay-framework/runtime';\n"
            "import { elementBridge } from '@jay-framework/secure';"
        )

    def test_render_filters_by_usage(self) -> None:
        imports = Imports.of(RuntimeImport.ELEMENT, RuntimeImport.JAY_ELEMENT)
        assert imports.render(ImportsFor.DEFINITION) == (
            "import { JayElement } from '@jay-framework/runtime';"
        )
        assert Imports.none().render(ImportsFor.IMPLEMENTATION) == ""

    def test_set_operations(self) -> None:
        imports = Imports.none().plus(RuntimeImport.ELEMENT).plus(Imports.of(RuntimeImport.ELEMENT))
        assert imports.has(RuntimeImport.ELEMENT)
        assert not imports.minus(RuntimeImport.ELEMENT)
        assert RuntimeImport.DYNAMIC_TEXT.local_name == "dt"


class TestResults:
    def test_with_validations(self) -> None:
        combined = WithValidations.all(
            [WithValidations.pure(1), WithValidations(2, ("two",)), WithValidations(3, ("three",))]
        )
        assert combined.val == [1, 2, 3]
        assert combined.validations == ("two", "three")
        assert not combined.ok
        chained = WithValidations(1, ("a",)).flat_map(lambda v: WithValidations(v + 1, ("b",)))
        assert (chained.val, chained.validations) == (2, ("a", "b"))
        assert WithValidations.failed("x") == WithValidations(None, ("x",))

    def test_fragment_merge(self) -> None:
        first = RenderFragment("a", Imports.of(RuntimeImport.ELEMENT), ("v1",))
        merged = RenderFragment.merge_all(
            [first, RenderFragment(""), RenderFragment("b", validations=("v2",))], ", "
        )
        assert merged.rendered == "a, b"
        assert merged.imports.has(RuntimeImport.ELEMENT)
        assert merged.validations == ("v1", "v2")
