"""Change-path scopes for subscriptions.

This module intentionally contains *no* state: it only decides whether a
reported change path is visible to a subscription scope.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

ChangePath = tuple[str, ...]

SELECTION: ChangePath = ("selection",)
MODE: ChangePath = ("mode",)
DATASET: ChangePath = ("dataset",)
CAMPAIGN: ChangePath = ("campaign",)
ACCESS: ChangePath = ("access",)
EDITOR: ChangePath = ("editor",)
EDITOR_JOBS: ChangePath = ("editor", "jobs")


def as_path(scope: str | Sequence[str] | None) -> ChangePath:
    """Coerce a scope argument into a path tuple.

    ``None`` and empty sequences mean "everything"; a bare string is a
    single-segment path.
    """
    if scope is None:
        return ()
    if isinstance(scope, str):
        return (scope,) if scope else ()
    return tuple(str(segment) for segment in scope)


def scope_matches(scope: ChangePath, changed: ChangePath) -> bool:
    """Return True if *changed* equals *scope* or lies below it."""
    return changed[: len(scope)] == scope


def batch_matches(scope: ChangePath, batch: Iterable[ChangePath]) -> bool:
    if not scope:
        return True
    return any(scope_matches(scope, changed) for changed in batch)
