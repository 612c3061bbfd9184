"""
extpolicy Policy Runner

One invocation = one pass of:
  resolve context -> normalize inputs -> load -> reconcile
  -> (optional) enforce with the reconciled map -> persist

The run never aborts part-way. Corrupt stores load as empty maps, failed
uninstalls are reported per item, and a failed persist is reported in
PolicyResult.errors.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from extpolicy.core.compliance import ComplianceReport, evaluate
from extpolicy.core.config import PolicyConfig
from extpolicy.core.enforcement import EnforcementEngine, EnforcementReport
from extpolicy.core.normalizer import normalize_all
from extpolicy.core.reconciler import reconcile
from extpolicy.extensions.manager import CodeCli, ExtensionManager, editor_processes
from extpolicy.stores import AllowMapStore, PolicyContext, UpdateSettings
from extpolicy.stores.system_policy import SystemPolicyStore
from extpolicy.stores.user_settings import UserSettingsStore

logger = logging.getLogger("extpolicy.runner")


@dataclass
class PolicyRequest:
    """Everything one invocation asks for."""

    context: PolicyContext = PolicyContext.USER
    add: list[str] = field(default_factory=list)
    deny: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)
    force_system: bool = False
    remove_unapproved: bool = False
    dry_run: bool = False
    auto_update: Optional[bool] = None
    auto_check_updates: Optional[bool] = None
    gallery_enabled: Optional[bool] = None

    def update_settings(self) -> UpdateSettings:
        return UpdateSettings(
            auto_update=self.auto_update,
            auto_check_updates=self.auto_check_updates,
            gallery_enabled=self.gallery_enabled,
        )


@dataclass
class PolicyResult:
    """What a run did."""

    requested_context: PolicyContext
    context: PolicyContext
    allow_map: dict[str, bool] = field(default_factory=dict)
    enforcement: Optional[EnforcementReport] = None
    persisted: bool = False
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "requested_context": self.requested_context.value,
            "context": self.context.value,
            "allow_map": dict(self.allow_map),
            "persisted": self.persisted,
            "enforcement": self.enforcement.to_dict() if self.enforcement else None,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


class PolicyRunner:
    """
    Drives the stores, the reconciler and the enforcement engine.

    Stores and the extension manager are injected so tests can swap in
    in-memory fakes.
    """

    def __init__(
        self,
        user_store: AllowMapStore,
        system_store: AllowMapStore,
        manager: Optional[ExtensionManager] = None,
        system_installed: Optional[Callable[[], bool]] = None,
        explicit_deny_overrides: bool = False,
        editor_check: Optional[Callable[[], list]] = None,
    ):
        self.user_store = user_store
        self.system_store = system_store
        self.manager = manager
        self.system_installed = system_installed or (lambda: True)
        self.engine = EnforcementEngine(
            manager,
            explicit_deny_overrides=explicit_deny_overrides,
            editor_check=editor_check,
        )

    @classmethod
    def from_config(cls, config: PolicyConfig) -> "PolicyRunner":
        """Build a runner wired to the real settings file, registry and CLI."""
        install_dirs = [Path(p) for p in config.paths.system_install_dirs]
        return cls(
            user_store=UserSettingsStore(Path(config.paths.user_settings_path)),
            system_store=SystemPolicyStore.from_config(config.system_policy),
            manager=CodeCli(
                config.paths.code_cli_candidates,
                timeout=config.enforcement.cli_timeout,
            ),
            system_installed=lambda: any(p.exists() for p in install_dirs),
            explicit_deny_overrides=config.enforcement.explicit_deny_overrides,
            editor_check=editor_processes if config.enforcement.warn_if_editor_running else None,
        )

    # =========================================================================
    # CONTEXT
    # =========================================================================

    def resolve_context(self, requested: PolicyContext, force_system: bool = False) -> PolicyContext:
        """
        Pick the store for this run.

        force_system always wins. A system request on a machine without a
        machine-wide install falls back to the user store.
        """
        if force_system:
            return PolicyContext.SYSTEM
        if requested == PolicyContext.SYSTEM and not self.system_installed():
            logger.warning("No machine-wide VS Code install found, using user settings instead")
            return PolicyContext.USER
        return requested

    def _store(self, context: PolicyContext) -> AllowMapStore:
        return self.system_store if context == PolicyContext.SYSTEM else self.user_store

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def run(self, request: PolicyRequest) -> PolicyResult:
        """Apply a request: reconcile, optionally enforce, then persist."""
        context = self.resolve_context(request.context, request.force_system)
        result = PolicyResult(requested_context=request.context, context=context)

        add = normalize_all(request.add)
        deny = normalize_all(request.deny)
        remove = normalize_all(request.remove)

        store = self._store(context)
        try:
            loaded = store.load()
        except OSError as e:
            message = f"Failed to read {context.value} policy: {e}"
            logger.error(message)
            result.errors.append(message)
            return result
        result.warnings.extend(loaded.warnings)

        allow_map = reconcile(loaded.allow_map, add=add, deny=deny, remove=remove)
        result.allow_map = allow_map
        logger.info(
            f"[{context.value}] {len(add)} add, {len(deny)} deny, {len(remove)} remove "
            f"-> {len(allow_map)} rule(s)"
        )

        if request.remove_unapproved:
            result.enforcement = self.engine.enforce(allow_map, dry_run=request.dry_run)

        if request.dry_run:
            logger.info("Dry run: policy not written")
            return result

        try:
            store.persist(allow_map, loaded, request.update_settings())
            result.persisted = True
        except OSError as e:
            message = f"Failed to write {context.value} policy: {e}"
            logger.error(message)
            result.errors.append(message)

        return result

    def show(self, context: PolicyContext = PolicyContext.USER, force_system: bool = False) -> PolicyResult:
        """Load the current allow-map without changing anything."""
        resolved = self.resolve_context(context, force_system)
        result = PolicyResult(requested_context=context, context=resolved)
        try:
            loaded = self._store(resolved).load()
        except OSError as e:
            message = f"Failed to read {resolved.value} policy: {e}"
            logger.error(message)
            result.errors.append(message)
            return result
        result.allow_map = loaded.allow_map
        result.warnings.extend(loaded.warnings)
        return result

    def check(
        self,
        context: PolicyContext = PolicyContext.USER,
        force_system: bool = False,
    ) -> tuple[PolicyResult, Optional[ComplianceReport]]:
        """
        Evaluate installed extensions against the stored allow-map.

        Returns:
            Tuple of (policy, report). report is None when the policy could
            not be read or the `code` CLI cannot be found.
        """
        policy = self.show(context, force_system)
        if not policy.success:
            return policy, None
        if self.manager is None or not self.manager.available():
            return policy, None
        installed = self.manager.list_installed()
        report = evaluate(installed, policy.allow_map, self.engine.explicit_deny_overrides)
        return policy, report
