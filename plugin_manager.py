# plugin_manager.py
"""
Plugin Manager for the X MCP Bridge
===================================

This module discovers operation providers and decides, once at startup, which
operations are exposed for the credentials the process runs with.

Operations at capability level ``none`` and ``read`` are always exposed.
Operations at level ``delegated`` are exposed only when the credentials carry
a complete OAuth 1.0a user context. Operations that are not exposed are never
registered at all: calling one by name fails exactly like calling a name that
does not exist.

Usage:
------
    from plugin_manager import plugin_manager

    plugin_manager.discover_plugins()
    registry = plugin_manager.build_registry(credentials)

    descriptor = registry.get("search_tweets")
    result = await descriptor.invoke({"query": "python"})
"""

import importlib
import logging
import os
from typing import Dict, Iterable, Iterator, List, Optional

from auth.credentials import CredentialSet
from plugins import (
    OperationDescriptor,
    OperationProvider,
    get_all_operation_providers
)

logger = logging.getLogger(__name__)


class UnknownOperationError(LookupError):
    """Raised when an operation name is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class DuplicateOperationError(ValueError):
    """Raised when two operations are registered under the same name."""


def select_operations(
    credentials: CredentialSet,
    descriptors: Iterable[OperationDescriptor],
) -> List[OperationDescriptor]:
    """
    Keep the operations whose capability the credentials satisfy.

    Args:
        credentials (CredentialSet): The credentials the process runs with
        descriptors (Iterable[OperationDescriptor]): The full catalogue

    Returns:
        List[OperationDescriptor]: The exposed operations, in catalogue order
    """
    return [d for d in descriptors if d.capability.is_satisfied_by(credentials)]


class CapabilityRegistry:
    """
    Ordered collection of the operations exposed to callers.

    Operations are registered once at startup and never removed or replaced.
    """

    def __init__(self, descriptors: Iterable[OperationDescriptor] = ()):
        self._operations: Dict[str, OperationDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: OperationDescriptor) -> None:
        """
        Register an operation.

        Raises:
            DuplicateOperationError: If the name is already registered
        """
        if descriptor.name in self._operations:
            raise DuplicateOperationError(f"Operation already registered: {descriptor.name}")
        self._operations[descriptor.name] = descriptor

    def get(self, name: str) -> OperationDescriptor:
        """
        Look up an operation by name.

        Raises:
            UnknownOperationError: If no operation with that name is registered
        """
        try:
            return self._operations[name]
        except KeyError:
            raise UnknownOperationError(name) from None

    def names(self) -> List[str]:
        return list(self._operations)

    def __contains__(self, name: str) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self._operations.values())

    def __len__(self) -> int:
        return len(self._operations)


class PluginManager:
    """
    Discovers operation providers and builds the capability registry.

    Attributes:
        providers (List[OperationProvider]): Provider instances created by build_registry
    """

    def __init__(self):
        self._plugin_dir = os.path.join(os.path.dirname(__file__), "plugins")
        self._loaded_plugins = set()
        self.providers: List[OperationProvider] = []
        self.declared_count = 0

    def discover_plugins(self):
        """
        Import every plugin package under the plugins directory.

        Each package registers its providers on import.
        """
        for item in sorted(os.listdir(self._plugin_dir)):
            if os.path.isdir(os.path.join(self._plugin_dir, item)) and not item.startswith('__'):
                module_name = f"plugins.{item}"
                if module_name not in self._loaded_plugins:
                    importlib.import_module(module_name)
                    self._loaded_plugins.add(module_name)
                    logger.info(f"Discovered plugin: {module_name}")

    def create_providers(self, credentials: CredentialSet, **options) -> List[OperationProvider]:
        """
        Instantiate every registered provider.

        Args:
            credentials (CredentialSet): The credentials the process runs with
            **options: Passed to every provider constructor

        Returns:
            List[OperationProvider]: The provider instances
        """
        providers = []
        for service_name, provider_class in get_all_operation_providers().items():
            logger.debug(f"Creating operation provider: {service_name}")
            providers.append(provider_class(credentials, **options))
        return providers

    def build_registry(
        self,
        credentials: CredentialSet,
        providers: Optional[List[OperationProvider]] = None,
        **options
    ) -> CapabilityRegistry:
        """
        Declare all operations and register the ones the credentials can serve.

        Logs a warning with the active and full operation counts when the
        credentials are not delegated-capable.

        Args:
            credentials (CredentialSet): The credentials the process runs with
            providers (Optional[List[OperationProvider]]): Providers to use instead
                of the registered ones
            **options: Passed to provider constructors

        Returns:
            CapabilityRegistry: The exposed operations
        """
        if providers is None:
            providers = self.create_providers(credentials, **options)
        self.providers = providers

        declared: List[OperationDescriptor] = []
        for provider in providers:
            declared.extend(provider.get_operations())
        self.declared_count = len(declared)

        registry = CapabilityRegistry(select_operations(credentials, declared))

        if len(registry) < len(declared):
            logger.warning(
                f"OAuth credentials not found; running with {len(registry)} of "
                f"{len(declared)} tools (bearer token only)"
            )
            logger.warning(
                "Set X_API_KEY, X_API_SECRET, X_ACCESS_TOKEN, X_ACCESS_TOKEN_SECRET "
                f"for full {len(declared)}-tool access"
            )
        else:
            logger.info(f"Running with all {len(registry)} tools")
        return registry

    async def aclose(self) -> None:
        for provider in self.providers:
            await provider.aclose()


# Create a singleton instance
plugin_manager = PluginManager()
