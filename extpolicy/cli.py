"""Command line interface for managing the VS Code extension allow-list."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable

from . import __version__
from .core.config import CONFIG_FILE, LOG_FILE, PolicyConfig, ensure_dirs
from .core.runner import PolicyRequest, PolicyRunner
from .stores import PolicyContext

logger = logging.getLogger("extpolicy.cli")


def _split(values: Iterable[str] | None) -> list[str]:
    """Flatten repeated and comma-separated identifier arguments."""
    result: list[str] = []
    for value in values or []:
        result.extend(value.split(","))
    return result


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    try:
        ensure_dirs()
        handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    except OSError as e:
        logger.warning(f"Audit log disabled: {e}")
        return
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logging.getLogger("extpolicy").addHandler(handler)


def _context(args: argparse.Namespace) -> PolicyContext:
    return PolicyContext.SYSTEM if args.system else PolicyContext.USER


def _print(data: dict) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _apply(runner: PolicyRunner, args: argparse.Namespace) -> int:
    request = PolicyRequest(
        context=_context(args),
        add=_split(args.add) + _split(args.publisher),
        deny=_split(args.deny),
        remove=_split(args.remove),
        force_system=args.force_system,
        remove_unapproved=args.remove_unapproved,
        dry_run=args.dry_run,
        auto_update=args.auto_update,
        auto_check_updates=args.auto_check_updates,
        gallery_enabled=args.gallery,
    )
    result = runner.run(request)
    _print(result.to_dict())
    return 0 if result.success else 1


def _show(runner: PolicyRunner, args: argparse.Namespace) -> int:
    result = runner.show(_context(args), args.force_system)
    _print(result.to_dict())
    return 0 if result.success else 1


def _check(runner: PolicyRunner, args: argparse.Namespace) -> int:
    policy, report = runner.check(_context(args), args.force_system)
    data = policy.to_dict()
    data["compliance"] = report.to_dict() if report else None
    _print(data)
    return 0 if policy.success else 1


def _add_context_arguments(parser: argparse.ArgumentParser) -> None:
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--user", action="store_true", help="Use the per-user settings.json (default)")
    scope.add_argument("--system", action="store_true", help="Use the machine-wide policy store")
    parser.add_argument(
        "--force-system",
        action="store_true",
        help="Use the machine-wide store even if VS Code is not installed machine-wide",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extpolicy",
        description="Manage and enforce the VS Code extension allow-list",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, default=None, help=f"Config file (default: {CONFIG_FILE})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    apply_parser = subparsers.add_parser("apply", help="Update the allow-list and optionally enforce it")
    apply_parser.add_argument("--add", "--allow", action="append", metavar="ID", help="Allow an extension or publisher")
    apply_parser.add_argument("--publisher", action="append", metavar="NAME", help="Allow every extension of a publisher")
    apply_parser.add_argument("--deny", action="append", metavar="ID", help="Mark an identifier as denied")
    apply_parser.add_argument("--remove", action="append", metavar="ID", help="Drop an identifier from the list")
    _add_context_arguments(apply_parser)
    apply_parser.add_argument(
        "--remove-unapproved",
        action="store_true",
        help="Uninstall installed extensions the updated list does not allow",
    )
    apply_parser.add_argument("--dry-run", action="store_true", help="Report only; write and uninstall nothing")
    apply_parser.add_argument("--auto-update", action=argparse.BooleanOptionalAction, default=None)
    apply_parser.add_argument("--auto-check-updates", action=argparse.BooleanOptionalAction, default=None)
    apply_parser.add_argument(
        "--gallery",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable or disable the extension gallery (system store only)",
    )
    apply_parser.set_defaults(func=_apply)

    show_parser = subparsers.add_parser("show", help="Print the current allow-list")
    _add_context_arguments(show_parser)
    show_parser.set_defaults(func=_show)

    check_parser = subparsers.add_parser("check", help="Report installed extensions against the allow-list")
    _add_context_arguments(check_parser)
    check_parser.set_defaults(func=_check)

    return parser


def main(argv: list[str] | None = None, runner: PolicyRunner | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if runner is None:
        _setup_logging(args.verbose)
        runner = PolicyRunner.from_config(PolicyConfig.load(args.config))

    return args.func(runner, args)


if __name__ == "__main__":
    sys.exit(main())
