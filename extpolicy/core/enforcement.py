"""
extpolicy Enforcement Engine

Uninstalls every installed extension the allow-map does not permit.

- No `code` CLI found -> nothing happens (reported as skipped).
- Each uninstall is independent: one failure never stops the rest.
- An empty allow-map removes everything. That is a full lockdown, not a no-op.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from extpolicy.core.compliance import evaluate
from extpolicy.extensions.manager import ExtensionManager, UninstallResult, editor_processes

logger = logging.getLogger("extpolicy.enforcement")


@dataclass
class EnforcementReport:
    """Per-item outcome of one enforcement pass."""

    skipped: bool = False
    dry_run: bool = False
    checked: list[str] = field(default_factory=list)
    kept: list[str] = field(default_factory=list)
    # Dry run: identifiers that would be removed
    pending: list[str] = field(default_factory=list)
    results: list[UninstallResult] = field(default_factory=list)

    @property
    def removed(self) -> list[str]:
        return [r.extension_id for r in self.results if r.success]

    @property
    def failed(self) -> list[str]:
        return [r.extension_id for r in self.results if not r.success]

    def to_dict(self) -> dict:
        return {
            "skipped": self.skipped,
            "dry_run": self.dry_run,
            "checked": list(self.checked),
            "kept": list(self.kept),
            "pending": list(self.pending),
            "removed": self.removed,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


class EnforcementEngine:
    """
    Applies an allow-map to the installed extension set.

    The installed set is read from the manager at the moment enforce() runs.
    """

    def __init__(
        self,
        manager: Optional[ExtensionManager],
        explicit_deny_overrides: bool = False,
        editor_check: Optional[Callable[[], list]] = editor_processes,
    ):
        self.manager = manager
        self.explicit_deny_overrides = explicit_deny_overrides
        self.editor_check = editor_check

    def enforce(self, allow_map: dict[str, bool], dry_run: bool = False) -> EnforcementReport:
        report = EnforcementReport(dry_run=dry_run)

        if self.manager is None or not self.manager.available():
            logger.info("Extension manager not found, skipping enforcement")
            report.skipped = True
            return report

        installed = self.manager.list_installed()
        report.checked = list(installed)

        compliance = evaluate(installed, allow_map, self.explicit_deny_overrides)
        report.kept = compliance.allowed

        if not allow_map and installed:
            logger.warning("Allow-map is empty: every installed extension is unapproved")

        if dry_run:
            report.pending = compliance.denied
            for extension_id in compliance.denied:
                logger.info(f"Would uninstall {extension_id}: {compliance.reasons[extension_id]}")
            return report

        if compliance.denied:
            self._warn_if_editor_running()

        for extension_id in compliance.denied:
            result = self._uninstall(extension_id)
            report.results.append(result)

        logger.info(
            f"Enforcement done: {len(report.kept)} kept, "
            f"{len(report.removed)} removed, {len(report.failed)} failed"
        )
        return report

    def _uninstall(self, extension_id: str) -> UninstallResult:
        try:
            result = self.manager.uninstall(extension_id, force=True)
        except Exception as e:
            result = UninstallResult(extension_id, False, f"{type(e).__name__}: {e}")

        if result.success:
            logger.info(f"Uninstalled unapproved extension {extension_id}")
        else:
            logger.error(f"Failed to uninstall {extension_id}: {result.detail}")
        return result

    def _warn_if_editor_running(self):
        if self.editor_check is None:
            return
        try:
            running = self.editor_check()
        except Exception as e:
            logger.debug(f"Editor process check failed: {e}")
            return
        if running:
            logger.warning(
                f"VS Code is running ({len(running)} process(es)); "
                "removed extensions stay loaded until the editor restarts"
            )
