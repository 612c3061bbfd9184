"""
Allow-map reconciliation.

Operations are applied in a fixed order so that later ones win:
add (-> true), then deny (-> false), then remove (delete). An identifier
named in several lists therefore ends in the state of the last list.
Keys are matched case-insensitively; a rewritten key takes the new spelling.
"""

from typing import Iterable


def _delete(allow_map: dict[str, bool], identifier: str) -> None:
    folded = identifier.casefold()
    for key in [k for k in allow_map if k.casefold() == folded]:
        del allow_map[key]


def _set(allow_map: dict[str, bool], identifier: str, value: bool) -> None:
    _delete(allow_map, identifier)
    allow_map[identifier] = value


def reconcile(
    allow_map: dict[str, bool],
    add: Iterable[str] = (),
    deny: Iterable[str] = (),
    remove: Iterable[str] = (),
) -> dict[str, bool]:
    """
    Apply add/deny/remove operations to an allow-map.

    The input map is not modified.

    Args:
        allow_map: Existing identifier -> allowed mapping.
        add: Identifiers to set to True.
        deny: Identifiers to set to False.
        remove: Identifiers to delete.

    Returns:
        The reconciled allow-map.
    """
    result = dict(allow_map)
    for identifier in add:
        _set(result, identifier, True)
    for identifier in deny:
        _set(result, identifier, False)
    for identifier in remove:
        _delete(result, identifier)
    return result
