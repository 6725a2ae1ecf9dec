"""
viewc - compiler for view templates and their contracts.

Turns ``.jay-contract`` YAML files and ``.jay-html`` templates into typed
view-state declarations, phase projections and render modules for the
trusted, sandboxed and React runtimes.
"""

from __future__ import annotations

from ._version import get_version

# Re-export commonly used types for convenience
from .core import ir
from .core.errors import BackendError, LinkError, ParseError, ValidationError, ViewcError

__version__ = get_version()

__all__ = [
    "__version__",
    "ir",
    "ViewcError",
    "ParseError",
    "LinkError",
    "ValidationError",
    "BackendError",
]
