"""
Compliance evaluation: is an installed extension permitted by an allow-map?

Rules, case-insensitive:
  1. An entry for the exact identifier with value true allows it.
  2. An entry "publisher" with value true allows "publisher.anything".
  3. Anything else is denied, including everything when the map is empty.

Explicit false entries only matter when no true rule matches, unless
explicit_deny_overrides is set, in which case an exact false entry denies
even when the publisher is allowed.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

logger = logging.getLogger("extpolicy.compliance")


def match_rule(installed_id: str, allow_map: dict[str, bool]) -> Optional[str]:
    """Return the allow-map key that permits installed_id, or None."""
    folded = installed_id.casefold()

    for key, allowed in allow_map.items():
        if allowed is True and key.casefold() == folded:
            return key

    for key, allowed in allow_map.items():
        if allowed is True and folded.startswith(key.casefold() + "."):
            return key

    return None


def is_explicitly_denied(installed_id: str, allow_map: dict[str, bool]) -> bool:
    folded = installed_id.casefold()
    return any(
        allowed is False and key.casefold() == folded
        for key, allowed in allow_map.items()
    )


def check(
    installed_id: str,
    allow_map: dict[str, bool],
    explicit_deny_overrides: bool = False,
) -> tuple[bool, str]:
    """
    Evaluate one installed identifier.

    Returns:
        Tuple of (allowed: bool, reason: str).
    """
    if explicit_deny_overrides and is_explicitly_denied(installed_id, allow_map):
        return False, f"'{installed_id}' is explicitly denied"

    rule = match_rule(installed_id, allow_map)
    if rule is None:
        if is_explicitly_denied(installed_id, allow_map):
            return False, f"'{installed_id}' is explicitly denied"
        return False, f"no allow rule matches '{installed_id}'"

    if rule.casefold() == installed_id.casefold():
        return True, f"allowed by exact rule '{rule}'"
    return True, f"allowed by publisher rule '{rule}'"


def is_allowed(
    installed_id: str,
    allow_map: dict[str, bool],
    explicit_deny_overrides: bool = False,
) -> bool:
    """True if installed_id is permitted under allow_map."""
    allowed, _ = check(installed_id, allow_map, explicit_deny_overrides)
    return allowed


@dataclass
class ComplianceReport:
    """Installed identifiers split by whether the allow-map permits them."""

    allowed: list[str] = field(default_factory=list)
    denied: list[str] = field(default_factory=list)
    reasons: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "allowed": list(self.allowed),
            "denied": list(self.denied),
            "reasons": dict(self.reasons),
        }


def evaluate(
    installed: Iterable[str],
    allow_map: dict[str, bool],
    explicit_deny_overrides: bool = False,
) -> ComplianceReport:
    """Evaluate a set of installed identifiers without side effects."""
    report = ComplianceReport()
    for installed_id in installed:
        allowed, reason = check(installed_id, allow_map, explicit_deny_overrides)
        logger.debug(f"{installed_id}: {reason}")
        report.reasons[installed_id] = reason
        if allowed:
            report.allowed.append(installed_id)
        else:
            report.denied.append(installed_id)
    return report
