"""
Code generation stacks for viewc.

A stack renders one walked template (``TemplateIR``) into one generated
module: the trusted element implementation, its type definitions, the
sandbox bridge, the sandbox root or the React rendering.
"""

from __future__ import annotations

from viewc.core.errors import BackendError
from viewc.stacks.base import Stack, StackCapabilities
from viewc.stacks.bridge import BridgeStack
from viewc.stacks.element import DefinitionStack, ElementStack
from viewc.stacks.react import ReactStack
from viewc.stacks.sandbox_root import SandboxRootStack

_BUILTIN_STACKS: dict[str, type[Stack]] = {
    "element": ElementStack,
    "definition": DefinitionStack,
    "bridge": BridgeStack,
    "sandbox-root": SandboxRootStack,
    "react": ReactStack,
}


class StackRegistry:
    """
    Registry for code generation stacks.

    Supports:
    - Manual registration via register()
    - Lookup by name
    """

    def __init__(self) -> None:
        self._stacks: dict[str, type[Stack]] = {}

    def register(self, name: str, stack_class: type[Stack]) -> None:
        """
        Register a stack class.

        Args:
            name: Stack name (used in CLI: --target <name>)
            stack_class: Stack class (must extend Stack)

        Raises:
            BackendError: If name already registered or class invalid
        """
        if name in self._stacks:
            raise BackendError(
                f"Stack '{name}' is already registered. Cannot register {stack_class.__name__}."
            )

        if not issubclass(stack_class, Stack):
            raise BackendError(f"Stack class {stack_class.__name__} must extend Stack")

        self._stacks[name] = stack_class

    def get(self, name: str) -> Stack:
        """
        Get a stack instance by name.

        Raises:
            BackendError: If stack not found
        """
        if name not in self._stacks:
            available = list(self._stacks.keys())
            raise BackendError(f"Stack '{name}' not found. Available stacks: {available}")
        return self._stacks[name]()

    def list_stacks(self) -> list[str]:
        return list(self._stacks.keys())

    def register_builtins(self) -> None:
        for name, stack_class in _BUILTIN_STACKS.items():
            if name not in self._stacks:
                self.register(name, stack_class)


# Global registry instance
_registry: StackRegistry | None = None


def get_registry() -> StackRegistry:
    """
    Get the global stack registry.

    Registers the built-in stacks on first call.
    """
    global _registry
    if _registry is None:
        _registry = StackRegistry()
        _registry.register_builtins()
    return _registry


def register_stack(name: str, stack_class: type[Stack]) -> None:
    get_registry().register(name, stack_class)


def get_stack(name: str) -> Stack:
    """
    Get a stack instance by name.

    Raises:
        BackendError: If stack not found
    """
    return get_registry().get(name)


def list_stacks() -> list[str]:
    return get_registry().list_stacks()


__all__ = [
    "BackendError",
    "Stack",
    "StackCapabilities",
    "StackRegistry",
    "get_registry",
    "get_stack",
    "list_stacks",
    "register_stack",
]
