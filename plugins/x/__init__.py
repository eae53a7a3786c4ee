# plugins/x/__init__.py
"""
X Plugin Package for the X MCP Bridge
=====================================

This package exposes the X (Twitter) API as a catalogue of operations.

Clients:
-------
- XBearerClient: app-only requests with the bearer token
- XDelegatedClient: OAuth 1.0a signed requests in the user's context

Operations:
----------
- XOperationProvider: declares the read, delegated and toggle operations

The provider is registered with the plugin system when this package is
imported.
"""

from .client import UpstreamError, XBearerClient, XDelegatedClient
from .identity import IdentityCache
from .operations import XOperationProvider
from .toggles import TOGGLE_OPERATIONS, ToggleSpec

from plugins import register_operation_provider

# Automatically register the provider when this package is imported
register_operation_provider(XOperationProvider)
