"""
Identifier normalization.

Users pass extension identifiers the way they see them advertised:
"ms-python.python", "microsoft.*", "  GitHub. ". Trailing "*" and "." are
decoration, so "microsoft.*" and "microsoft" name the same publisher rule.
Case is left alone; comparisons are case-insensitive at evaluation time.
"""

import logging
from typing import Iterable, Optional

logger = logging.getLogger("extpolicy.normalizer")


def normalize(raw: Optional[str]) -> Optional[str]:
    """
    Clean one raw identifier.

    Trims whitespace, strips all trailing "*", then a trailing ".".
    Repeats until stable so the result is idempotent ("foo.*." -> "foo").

    Returns:
        The canonical identifier, or None if nothing is left.
    """
    if raw is None:
        return None

    value = raw.strip()
    while True:
        cleaned = value.rstrip("*")
        if cleaned.endswith("."):
            cleaned = cleaned[:-1]
        cleaned = cleaned.strip()
        if cleaned == value:
            break
        value = cleaned

    return value or None


def normalize_all(values: Optional[Iterable[str]]) -> list[str]:
    """
    Normalize every entry, dropping blanks.

    Case variants of the same identifier collapse to the first one seen.
    """
    result = []
    seen = set()
    for raw in values or ():
        identifier = normalize(raw)
        if identifier is None:
            logger.debug(f"Discarded empty identifier: {raw!r}")
            continue
        folded = identifier.casefold()
        if folded not in seen:
            seen.add(folded)
            result.append(identifier)
    return result
