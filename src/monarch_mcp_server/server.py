"""
Monarch Money MCP Server - Main entry point.

Serves the tool catalog over stdio.
Run with: python -m monarch_mcp_server.server

Or via the CLI: monarch-mcp
"""

import json
import logging
import os
import signal
import sys
from typing import Any, Dict, List, Optional

import anyio
import anyio.abc
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from . import __version__
from .api import MonarchClient, MonarchAPIError, ConfigurationError, get_token
from .tools import ToolExecutor

logger = logging.getLogger(__name__)

SERVER_NAME = "monarch-mcp-server"
LOG_LEVEL_ENV_VAR = "MONARCH_MCP_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# ============================================================================
# LOGGING
# ============================================================================

def configure_logging(level: Optional[str] = None) -> None:
    """Send logs to stderr; stdout carries the protocol."""
    level_name = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ============================================================================
# MCP SERVER SETUP
# ============================================================================

def format_error(e: Exception) -> types.CallToolResult:
    """Error-flagged response for a failed tool call."""
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=f"Error: {e}")],
        isError=True,
    )


async def handle_call_tool(
    executor: ToolExecutor,
    name: str,
    arguments: Optional[Dict[str, Any]],
) -> types.CallToolResult:
    """Run a tool and render its envelope as a single text block."""
    try:
        result = await executor.execute(name, arguments or {})
    except Exception as e:
        logger.error("Tool call %s failed: %s", name, e)
        return format_error(e)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=json.dumps(result, indent=2))],
    )


def create_server(executor: ToolExecutor) -> Server:
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return executor.list_tools()

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: Dict[str, Any]) -> types.CallToolResult:
        return await handle_call_tool(executor, name, arguments)

    return server


async def _shutdown_on_signal(
    client: MonarchClient,
    *,
    task_status: anyio.abc.TaskStatus = anyio.TASK_STATUS_IGNORED,
) -> None:
    """
    Exit with status 0 on SIGINT/SIGTERM.

    The stdin reader of the stdio transport blocks in a worker thread that
    cannot be cancelled, so the process ends here instead of unwinding.
    In-flight responses are dropped.
    """
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        task_status.started()
        async for signum in signals:
            logger.info("Received %s, shutting down gracefully...", signal.Signals(signum).name)
            await client.close()
            sys.stdout.flush()
            logging.shutdown()
            os._exit(0)


async def serve(client: MonarchClient) -> None:
    """Serve tools on stdio until the client disconnects or a signal arrives."""
    server = create_server(ToolExecutor(client))

    async with client, stdio_server() as (read_stream, write_stream):
        async with anyio.create_task_group() as tg:
            await tg.start(_shutdown_on_signal, client)
            logger.info("Monarch Money MCP server running on stdio")
            await server.run(read_stream, write_stream, server.create_initialization_options())
            tg.cancel_scope.cancel()

    logger.info("Monarch Money MCP server stopped")


# ============================================================================
# CLI ENTRY POINT
# ============================================================================

async def check_token() -> int:
    """Report whether a token is configured and whether Monarch accepts it."""
    try:
        token = get_token()
    except ConfigurationError as e:
        print(f"✗ {e}")
        return 1

    print(f"✓ Token found ({len(token)} characters)")
    print(f"  First 8 chars: {token[:8]}...")

    try:
        async with MonarchClient(token) as client:
            accounts = await client.get_accounts()
    except MonarchAPIError as e:
        print(f"✗ {e}")
        return 1

    print(f"✓ Token validated - found {len(accounts)} accounts")
    return 0


def main():
    """Main entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Monarch Money MCP Server")
    parser.add_argument(
        "command",
        nargs="?",
        choices=["run", "check-token"],
        default="run",
        help="Command to execute (default: run)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"Logging level (default: ${LOG_LEVEL_ENV_VAR} or INFO)",
    )

    args = parser.parse_args()
    configure_logging(args.log_level)

    if args.command == "check-token":
        sys.exit(anyio.run(check_token))

    try:
        client = MonarchClient()
    except ConfigurationError as e:
        logger.error("Failed to start server: %s", e)
        sys.exit(1)

    try:
        anyio.run(serve, client)
    except Exception:
        logger.exception("Failed to start server")
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
