"""
Authentication module for the X MCP bridge.

This module provides the authentication subsystem:
- OAuth 1.0a parameter encoding and HMAC-SHA1 request signing
- The credential bundle and its capability predicates
- The interactive three-legged authorization flow and its callback listener
"""

from .credentials import (
    OAuthToken,
    CredentialSet,
    ConfigurationError,
    SigningPreconditionError,
    load_credentials
)

from .encoding import (
    percent_encode,
    build_parameter_string,
    normalize_base_url,
    parse_form_encoded
)

from .signing import (
    SigningContext,
    sign,
    authorization_header
)

from .flow import (
    AuthorizationFlow,
    AuthorizationResult,
    AuthorizationSession,
    AuthorizationFlowError,
    RequestRejected,
    PortUnavailable,
    ProviderUnreachable,
    Timeout,
    ConsentDenied,
    ExchangeRejected,
    FlowAlreadyActiveError,
    FlowState
)

__all__ = [
    # Credentials
    "OAuthToken",
    "CredentialSet",
    "ConfigurationError",
    "SigningPreconditionError",
    "load_credentials",

    # Encoding
    "percent_encode",
    "build_parameter_string",
    "normalize_base_url",
    "parse_form_encoded",

    # Signing
    "SigningContext",
    "sign",
    "authorization_header",

    # Authorization flow
    "AuthorizationFlow",
    "AuthorizationResult",
    "AuthorizationSession",
    "AuthorizationFlowError",
    "RequestRejected",
    "PortUnavailable",
    "ProviderUnreachable",
    "Timeout",
    "ConsentDenied",
    "ExchangeRejected",
    "FlowAlreadyActiveError",
    "FlowState"
]
