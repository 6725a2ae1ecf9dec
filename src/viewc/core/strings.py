"""
String utility functions for viewc.

Case conversion and singularization used to derive generated type and
variable names from contract tags and template data keys.
"""

from __future__ import annotations

import re

# Irregular plurals that don't follow standard rules (plural -> singular)
_IRREGULAR_SINGULARS = {
    "people": "person",
    "children": "child",
    "men": "man",
    "women": "woman",
    "feet": "foot",
    "teeth": "tooth",
    "geese": "goose",
    "mice": "mouse",
    "oxen": "ox",
    "data": "data",
    "metadata": "metadatum",
    "media": "medium",
    "criteria": "criterion",
    "indices": "index",
    "matrices": "matrix",
    "vertices": "vertex",
    "leaves": "leaf",
    "halves": "half",
    "shelves": "shelf",
    "wolves": "wolf",
    "knives": "knife",
    "wives": "wife",
    "lives": "life",
}

# Words ending in -s that are already singular
_SINGULAR_S_WORDS = {
    "status",
    "address",
    "class",
    "process",
    "bus",
    "alias",
    "canvas",
    "news",
    "series",
    "species",
    "analysis",
    "basis",
    "axis",
    "access",
    "focus",
    "campus",
    "bonus",
    "progress",
    "success",
    "business",
}

_O_PLURALS = {"hero", "potato", "tomato", "echo", "veto"}

_WORD_BOUNDARY_RE = re.compile(r"[^a-zA-Z0-9]+")
_CAMEL_SPLIT_RE = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?=[A-Z][a-z0-9]|\b|$)|[A-Z]")


def singularize(word: str) -> str:
    """
    Convert a plural English word to its singular form.

    Handles the inverse of common English pluralization rules and only
    touches the last word of a camelCase or PascalCase identifier.

    Examples:
        >>> singularize("items")
        'item'
        >>> singularize("groupItems")
        'groupItem'
        >>> singularize("categories")
        'category'
        >>> singularize("children")
        'child'
        >>> singularize("CounterViewState")
        'CounterViewState'
    """
    if not word:
        return word

    camel_match = re.match(r"^(.*[a-z0-9])([A-Z][a-z]+)$", word)
    if camel_match:
        prefix, last_word = camel_match.groups()
        return prefix + singularize(last_word)

    lower_word = word.lower()

    if lower_word in _IRREGULAR_SINGULARS:
        singular = _IRREGULAR_SINGULARS[lower_word]
        if word[0].isupper():
            return singular.capitalize()
        return singular

    if lower_word in _SINGULAR_S_WORDS or lower_word.endswith(("ss", "us", "is")):
        return word

    if lower_word.endswith("ies") and len(word) > 3:
        # categories -> category
        return word[:-3] + "y"
    if lower_word.endswith(("xes", "zes", "ches", "shes")):
        # boxes -> box, churches -> church
        return word[:-2]
    if lower_word.endswith("ses") and lower_word[:-2].endswith(("ss", "us", "is", "as")):
        # classes -> class, statuses -> status
        return word[:-2]
    if lower_word.endswith("oes") and lower_word[:-2] in _O_PLURALS:
        return word[:-2]
    if lower_word.endswith("s") and len(word) > 1:
        return word[:-1]
    return word


def split_words(value: str) -> list[str]:
    """Split kebab, snake, space separated and camel cased text into words."""
    words: list[str] = []
    for chunk in _WORD_BOUNDARY_RE.split(value):
        if chunk:
            words.extend(_CAMEL_SPLIT_RE.findall(chunk))
    return words


def pascal_case(value: str) -> str:
    """
    Convert text to PascalCase.

    Examples:
        >>> pascal_case("collection-with-refs")
        'CollectionWithRefs'
        >>> pascal_case("counter ViewState")
        'CounterViewState'
    """
    return "".join(word[:1].upper() + word[1:] for word in split_words(value))


def camel_case(value: str) -> str:
    """
    Convert text to camelCase.

    Examples:
        >>> camel_case("ref add-item")
        'refAddItem'
        >>> camel_case("Count")
        'count'
        >>> camel_case("_id")
        '_id'
    """
    stripped = value.lstrip("_")
    prefix = value[: len(value) - len(stripped)]
    pascal = pascal_case(stripped)
    if not pascal:
        return prefix + pascal
    return prefix + pascal[0].lower() + pascal[1:]


def kebab_to_camel(value: str) -> str:
    """Convert a CSS style property name to its DOM property name."""
    return re.sub(r"-([a-z])", lambda m: m.group(1).upper(), value.strip())


def to_interface_name(path: list[str]) -> str:
    """
    Derive a nested interface name from a path of names.

    The path is reversed and every segment is singularized and PascalCased,
    then joined with ``Of``.

    Examples:
        >>> to_interface_name(["TodoViewState", "items"])
        'ItemOfTodoViewState'
        >>> to_interface_name(["ShopViewState", "groups", "groupItems"])
        'GroupItemOfGroupOfShopViewState'
    """
    return "Of".join(pascal_case(singularize(segment)) for segment in reversed(path))
