# Standard library imports
import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

# Third-party imports
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

# Local imports
from config import Settings, get_settings
from auth import (
    AuthorizationFlow,
    AuthorizationFlowError,
    ConfigurationError,
    FlowAlreadyActiveError,
    OAuthToken,
    load_credentials
)

# Plugin system
from plugin_manager import CapabilityRegistry, plugin_manager

logger = logging.getLogger(__name__)

SERVER_NAME = "x-mcp"


def configure_logging(settings: Settings) -> None:
    # stdout carries the MCP stdio transport, so logs go to stderr
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )


async def call_operation(
    registry: CapabilityRegistry,
    name: str,
    arguments: Optional[Dict[str, Any]] = None
) -> Any:
    """
    Route a tool call to its operation.

    Raises:
        UnknownOperationError: If the name is not registered
        pydantic.ValidationError: If the arguments are invalid
        UpstreamError: If the X API rejects the request
    """
    descriptor = registry.get(name)
    return await descriptor.invoke(arguments)


def create_server(registry: CapabilityRegistry) -> Server:
    """Create an MCP server exposing the registry's operations as tools."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> List[Tool]:
        return [
            Tool(name=d.name, description=d.description, inputSchema=d.input_schema)
            for d in registry
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
        try:
            result = await call_operation(registry, name, arguments)
        except Exception as e:
            logger.error(f"Error in tool {name}: {e}")
            raise
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    return server


async def serve(settings: Settings) -> None:
    credentials = load_credentials(settings)
    plugin_manager.discover_plugins()
    registry = plugin_manager.build_registry(credentials, timeout=settings.HTTP_TIMEOUT_SECONDS)
    server = create_server(registry)

    logger.info(f"{SERVER_NAME} MCP server starting...")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await plugin_manager.aclose()


def format_env(settings: Settings, access_token: str, access_token_secret: str) -> List[str]:
    """Render the environment variables the operator needs to add to their MCP config."""
    return [
        f"X_BEARER_TOKEN={settings.BEARER_TOKEN or '<ask your app owner for this>'}",
        f"X_API_KEY={settings.API_KEY}",
        f"X_API_SECRET={settings.API_SECRET}",
        f"X_ACCESS_TOKEN={access_token}",
        f"X_ACCESS_TOKEN_SECRET={access_token_secret}",
    ]


async def run_setup(settings: Settings) -> int:
    """
    Run the one-time OAuth 1.0a authorization and print the resulting credentials.

    Returns:
        int: Process exit status
    """
    if not settings.API_KEY or not settings.API_SECRET:
        print("\n  Missing env vars. Run with:\n", file=sys.stderr)
        print("  X_BEARER_TOKEN=... X_API_KEY=... X_API_SECRET=... x-mcp --setup\n", file=sys.stderr)
        print("  (X_BEARER_TOKEN is optional here but needed for the MCP server)\n", file=sys.stderr)
        return 1

    print("\n  x-mcp OAuth Setup\n")
    flow = AuthorizationFlow(
        OAuthToken(settings.API_KEY, settings.API_SECRET),
        settings=settings,
        notify=lambda message: print(f"  {message}")
    )
    try:
        result = await flow.run()
    except (AuthorizationFlowError, FlowAlreadyActiveError) as e:
        print(f"\n  Error: {e}", file=sys.stderr)
        hint = getattr(e, "hint", None)
        if hint:
            print(f"\n  {hint}", file=sys.stderr)
        return 1

    print(f"\n  Success! Authorized as @{result.screen_name} (ID: {result.user_id})\n")
    print("  Add these to your MCP client config env:\n")
    for line in format_env(settings, result.access_token, result.access_token_secret):
        print(f"  {line}")
    if not settings.BEARER_TOKEN:
        print("\n  X_BEARER_TOKEN was not provided. Ask your app owner for it.")
    print("\n  These tokens don't expire. Store them securely.\n")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog=SERVER_NAME, description="MCP server for the X API")
    parser.add_argument(
        "--setup",
        action="store_true",
        help="Authorize an X account with OAuth 1.0a and print its access token"
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)

    if args.setup:
        sys.exit(asyncio.run(run_setup(settings)))

    try:
        asyncio.run(serve(settings))
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
