"""Shared pytest fixtures for viewc tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from viewc.core.contract_parser import parse_contract
from viewc.core.ir.contract import Contract

COUNTER_CONTRACT = """\
name: counter
tags:
  - tag: count
    type: data
    dataType: number
  - tag: add
    type: interactive
    elementType: HTMLButtonElement
  - tag: subtract
    type: interactive
    elementType: HTMLButtonElement
"""

TODO_CONTRACT = """\
name: todo
tags:
  - tag: title
    type: data
    dataType: string
  - tag: filter
    type: variant
    dataType: enum (all | active | completed)
    phase: fast+interactive
  - tag: items
    type: sub-contract
    repeated: true
    trackBy: id
    phase: fast
    tags:
      - tag: id
        type: data
        dataType: string
      - tag: text
        type: data
        dataType: string
      - tag: done
        type: data
        dataType: boolean
        phase: fast+interactive
      - tag: toggle
        type: interactive
        elementType: HTMLInputElement
"""

COUNTER_TEMPLATE = """\
<html>
<head>
  <script type="application/jay-data">
data:
  count: number
  title: string
  </script>
</head>
<body>
  <div>
    <h1>{title}</h1>
    <button ref="subtract">-</button>
    <span>{count}</span>
    <button ref="add">+</button>
  </div>
</body>
</html>
"""


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write ``content`` to ``tmp_path / name`` and return the path."""

    def write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return write


@pytest.fixture
def counter_contract() -> Contract:
    result = parse_contract(COUNTER_CONTRACT, "counter.jay-contract")
    assert result.validations == ()
    assert result.val is not None
    return result.val


@pytest.fixture
def todo_contract() -> Contract:
    result = parse_contract(TODO_CONTRACT, "todo.jay-contract")
    assert result.validations == ()
    assert result.val is not None
    return result.val


@pytest.fixture
def counter_template() -> str:
    return COUNTER_TEMPLATE


@pytest.fixture
def counter_contract_file(write_file: Callable[[str, str], Path]) -> Path:
    return write_file("counter.jay-contract", COUNTER_CONTRACT)
