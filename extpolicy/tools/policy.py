"""
extpolicy Policy Tools

Async entry points used by the MCP server. Every function returns a
dictionary; errors come back as {"error": ...} instead of raising.
"""

import logging
from typing import Optional

from extpolicy.core.config import PolicyConfig
from extpolicy.core.runner import PolicyRequest, PolicyRunner
from extpolicy.stores import PolicyContext

logger = logging.getLogger("extpolicy.tools.policy")

_runner: Optional[PolicyRunner] = None


def get_runner() -> PolicyRunner:
    """Runner built from the saved config on first use."""
    global _runner
    if _runner is None:
        _runner = PolicyRunner.from_config(PolicyConfig.load())
    return _runner


def _context(value: Optional[str]) -> PolicyContext:
    try:
        return PolicyContext((value or "user").lower())
    except ValueError:
        raise ValueError(f"Invalid context '{value}'. Use 'user' or 'system'.") from None


async def get_extension_policy(
    context: str = "user",
    force_system: bool = False,
) -> dict:
    """
    Read the current allow-map without modifying it.

    Args:
        context: "user" or "system".
        force_system: Use the system store even without a machine-wide install.

    Returns:
        Dictionary with the resolved context and allow-map.
    """
    try:
        result = get_runner().show(_context(context), force_system)
    except ValueError as e:
        return {"error": str(e)}
    return result.to_dict()


async def apply_extension_policy(
    add: Optional[list[str]] = None,
    deny: Optional[list[str]] = None,
    remove: Optional[list[str]] = None,
    context: str = "user",
    force_system: bool = False,
    remove_unapproved: bool = False,
    dry_run: bool = False,
    auto_update: Optional[bool] = None,
    auto_check_updates: Optional[bool] = None,
    gallery_enabled: Optional[bool] = None,
) -> dict:
    """
    Add, deny or remove allow rules, then optionally uninstall unapproved
    extensions using the updated rules.

    Returns:
        PolicyResult as a dictionary.
    """
    try:
        request = PolicyRequest(
            context=_context(context),
            add=list(add or []),
            deny=list(deny or []),
            remove=list(remove or []),
            force_system=force_system,
            remove_unapproved=remove_unapproved,
            dry_run=dry_run,
            auto_update=auto_update,
            auto_check_updates=auto_check_updates,
            gallery_enabled=gallery_enabled,
        )
    except ValueError as e:
        return {"error": str(e)}

    return get_runner().run(request).to_dict()


async def check_extension_compliance(
    context: str = "user",
    force_system: bool = False,
) -> dict:
    """
    Report which installed extensions the stored allow-map permits.
    Nothing is uninstalled.
    """
    try:
        policy, report = get_runner().check(_context(context), force_system)
    except ValueError as e:
        return {"error": str(e)}

    result = policy.to_dict()
    if report is None:
        result["compliance"] = None
        if policy.success:
            result["warnings"].append("code CLI not found, installed extensions unknown")
    else:
        result["compliance"] = report.to_dict()
    return result


async def list_installed_extensions() -> dict:
    """List installed extension identifiers via the `code` CLI."""
    manager = get_runner().manager
    if manager is None or not manager.available():
        return {"error": "code CLI not found"}

    installed = manager.list_installed()
    return {
        "success": True,
        "extensions": installed,
        "count": len(installed),
    }
