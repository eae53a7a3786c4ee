# plugins/__init__.py
"""
Plugin System for the X MCP Bridge
==================================

This module provides the foundation for the plugin architecture of the bridge.
It defines the descriptor every exposed operation is declared with, the
capability levels that gate those operations, and the registry of operation
providers.

Capability Levels:
-----------------
Every operation declares the minimum credential class it needs:
- none: needs no upstream credentials at all
- read: needs the app-only bearer token
- delegated: needs OAuth 1.0a user credentials (consumer key/secret plus
  access token/secret)

Plugin Lifecycle:
---------------
1. An operation provider is defined in a plugin package under 'plugins/'
2. The package registers its provider with register_operation_provider
3. The plugin manager discovers plugin packages at startup
4. Each provider declares its full operation catalogue
5. The plugin manager keeps only the operations the credentials can serve

Adding a New Plugin:
------------------
To add support for a new service:
1. Create a new directory under 'plugins/'
2. Implement an OperationProvider that declares OperationDescriptors
3. Register the provider in the __init__.py of your plugin package
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type
import logging
from enum import Enum

from pydantic import BaseModel

from auth.credentials import CredentialSet

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[Any]]


class Capability(str, Enum):
    """
    Enum defining the credential class an operation requires.

    Types:
        NONE: No upstream credentials required
        READ: App-only bearer token required
        DELEGATED: OAuth 1.0a user context required
    """
    NONE = "none"
    READ = "read"
    DELEGATED = "delegated"

    def is_satisfied_by(self, credentials: CredentialSet) -> bool:
        """
        Check whether a credential set provides this capability.

        Args:
            credentials (CredentialSet): The credentials the process runs with

        Returns:
            bool: True if operations at this level can be served
        """
        if self is Capability.DELEGATED:
            return credentials.is_delegated_capable
        if self is Capability.READ:
            return credentials.is_read_capable
        return True


class EmptyInput(BaseModel):
    """Input model for operations that take no arguments."""


class OperationDescriptor(BaseModel):
    """
    Declaration of a single exposed operation.

    Attributes:
        name (str): Unique, stable operation name
        description (str): Human-readable description shown to the caller
        input_model (Type[BaseModel]): Pydantic model validating the arguments;
            its JSON schema is the operation's input schema
        capability (Capability): Minimum credential class required
        handler (Handler): Coroutine function receiving the validated input
    """

    name: str
    description: str
    input_model: Type[BaseModel] = EmptyInput
    capability: Capability = Capability.READ
    handler: Handler

    class Config:
        frozen = True
        arbitrary_types_allowed = True

    @property
    def input_schema(self) -> Dict[str, Any]:
        """
        JSON schema of the operation's arguments.

        Field name maps to type, bounds, default and description.
        """
        schema = self.input_model.model_json_schema()
        schema.setdefault("properties", {})
        return schema

    async def invoke(self, arguments: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Validate the arguments and run the handler.

        Raises:
            pydantic.ValidationError: If the arguments do not match the input model
        """
        data = self.input_model.model_validate(dict(arguments or {}))
        return await self.handler(data)


class OperationProvider:
    """
    Base class for plugins that declare operations.

    Class Attributes:
        service_name (str): Unique identifier for the service this plugin supports
    """

    service_name: str

    def __init__(self, credentials: CredentialSet):
        self.credentials = credentials

    def get_operations(self) -> List[OperationDescriptor]:
        """
        Declare the provider's full operation catalogue.

        Operations whose capability the credentials cannot satisfy must still
        be declared; the plugin manager filters them out. Their handlers are
        never reached.

        Returns:
            List[OperationDescriptor]: All operations, in presentation order

        Raises:
            NotImplementedError: If the subclass doesn't implement this method
        """
        raise NotImplementedError("Subclasses must implement get_operations")

    async def aclose(self) -> None:
        """Release any resources held by the provider."""

    @classmethod
    def get_metadata(cls) -> Dict[str, Any]:
        return {
            "service_name": cls.service_name,
            "class_name": cls.__name__
        }


# Plugin registry
_operation_providers: Dict[str, Type[OperationProvider]] = {}

def register_operation_provider(provider_class: Type[OperationProvider]) -> None:
    """
    Register an operation provider with the system.

    Each provider is registered under its service_name, which must be unique
    across all providers.

    Args:
        provider_class (Type[OperationProvider]): The provider class to register

    Example:
        >>> class MyProvider(OperationProvider):
        ...     service_name = "my_service"
        ...     # Implementation...
        >>> register_operation_provider(MyProvider)
    """
    _operation_providers[provider_class.service_name] = provider_class
    logger.info(f"Registered operation provider: {provider_class.service_name}")

def get_operation_provider(service_name: str) -> Optional[Type[OperationProvider]]:
    """
    Get an operation provider class by its service name.

    Returns:
        Optional[Type[OperationProvider]]: The provider class if found, None otherwise
    """
    return _operation_providers.get(service_name)

def get_all_operation_providers() -> Dict[str, Type[OperationProvider]]:
    """
    Get all registered operation providers.

    The dictionary is a copy of the internal registry, so modifying it will
    not affect the registry.
    """
    return _operation_providers.copy()
