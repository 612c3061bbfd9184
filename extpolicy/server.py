"""
extpolicy MCP Server

Exposes the extension allow-list tools over MCP (stdio), so an assistant can
inspect and apply the policy on the local machine.

Usage:
    # Run directly
    python -m extpolicy.server

    # Or via the installed command
    extpolicy-mcp
"""

import asyncio
import json
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from extpolicy import __version__
from extpolicy.core.config import ensure_dirs
from extpolicy.tools import policy

logger = logging.getLogger("extpolicy")

app = Server("extpolicy")

_CONTEXT_PROPERTIES = {
    "context": {
        "type": "string",
        "enum": ["user", "system"],
        "description": "user = settings.json, system = machine-wide policy (default: user).",
        "default": "user",
    },
    "force_system": {
        "type": "boolean",
        "description": "Use the system policy even if VS Code is not installed machine-wide.",
        "default": False,
    },
}

_ID_LIST = {"type": "array", "items": {"type": "string"}}


# ─────────────────────────────────────────────────────────────
# Tool Definitions
# ─────────────────────────────────────────────────────────────

@app.list_tools()
async def list_tools() -> list[Tool]:
    """Register all extpolicy tools with the MCP server."""
    return [
        Tool(
            name="get_extension_policy",
            description="Show the current VS Code extension allow-list. Read-only.",
            inputSchema={
                "type": "object",
                "properties": dict(_CONTEXT_PROPERTIES),
            },
        ),
        Tool(
            name="apply_extension_policy",
            description=(
                "Update the VS Code extension allow-list. 'add' allows identifiers "
                "(publisher or publisher.extension), 'deny' marks them denied, "
                "'remove' deletes rules. remove wins over deny, deny over add. "
                "⚠️ With remove_unapproved=true, every installed extension not "
                "allowed by the updated list is uninstalled."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "add": {**_ID_LIST, "description": "Identifiers to allow."},
                    "deny": {**_ID_LIST, "description": "Identifiers to deny."},
                    "remove": {**_ID_LIST, "description": "Identifiers to drop from the list."},
                    **_CONTEXT_PROPERTIES,
                    "remove_unapproved": {
                        "type": "boolean",
                        "description": "Uninstall extensions the list does not allow.",
                        "default": False,
                    },
                    "dry_run": {
                        "type": "boolean",
                        "description": "Report what would change without writing or uninstalling.",
                        "default": False,
                    },
                    "auto_update": {"type": "boolean", "description": "extensions.autoUpdate"},
                    "auto_check_updates": {
                        "type": "boolean",
                        "description": "extensions.autoCheckUpdates",
                    },
                    "gallery_enabled": {
                        "type": "boolean",
                        "description": "extensions.gallery.enabled (system context only).",
                    },
                },
            },
        ),
        Tool(
            name="check_extension_compliance",
            description=(
                "List installed extensions and whether the current allow-list "
                "permits each one. Nothing is uninstalled."
            ),
            inputSchema={
                "type": "object",
                "properties": dict(_CONTEXT_PROPERTIES),
            },
        ),
        Tool(
            name="list_installed_extensions",
            description="List installed VS Code extensions via the `code` CLI.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


# ─────────────────────────────────────────────────────────────
# Tool Execution
# ─────────────────────────────────────────────────────────────

@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Execute a tool and return its result as JSON text."""
    try:
        result = await _dispatch_tool(name, arguments or {})
    except Exception as e:
        logger.error(f"Tool execution error: {name}: {e}")
        result = {"error": str(e)}

    return [TextContent(
        type="text",
        text=json.dumps(result, indent=2, ensure_ascii=False, default=str),
    )]


async def _dispatch_tool(name: str, arguments: dict) -> dict:
    """Route tool call to the correct function."""

    tool_map = {
        "get_extension_policy": lambda args: policy.get_extension_policy(
            context=args.get("context", "user"),
            force_system=args.get("force_system", False),
        ),
        "apply_extension_policy": lambda args: policy.apply_extension_policy(
            add=args.get("add"),
            deny=args.get("deny"),
            remove=args.get("remove"),
            context=args.get("context", "user"),
            force_system=args.get("force_system", False),
            remove_unapproved=args.get("remove_unapproved", False),
            dry_run=args.get("dry_run", False),
            auto_update=args.get("auto_update"),
            auto_check_updates=args.get("auto_check_updates"),
            gallery_enabled=args.get("gallery_enabled"),
        ),
        "check_extension_compliance": lambda args: policy.check_extension_compliance(
            context=args.get("context", "user"),
            force_system=args.get("force_system", False),
        ),
        "list_installed_extensions": lambda args: policy.list_installed_extensions(),
    }

    handler = tool_map.get(name)
    if handler:
        return await handler(arguments)
    else:
        return {"error": f"Unknown tool: {name}"}


# ─────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────

async def _run_server():
    """Run the MCP server using stdio transport."""
    async with stdio_server() as (read_stream, write_stream):
        init_options = app.create_initialization_options()
        await app.run(read_stream, write_stream, init_options)


def main():
    """Start the extpolicy MCP server."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    ensure_dirs()

    logger.info(f"extpolicy v{__version__} starting...")
    asyncio.run(_run_server())


if __name__ == "__main__":
    main()
