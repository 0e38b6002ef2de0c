"""
Permission checks for MineBot.

Permissions are strings of the form "domain.action". A held permission
satisfies a requirement when:
1. It is identical to the requirement, or
2. It is "domain.*" and the requirement is in the same domain.

A requirement may list alternatives separated by commas. Any one of them
is enough. An empty requirement is satisfied by everyone.
"""

from typing import Iterable

WILDCARD = "*"


def split_permissions(required: str | Iterable[str]) -> list[str]:
    """Split a comma-joined requirement into its non-empty parts."""
    if isinstance(required, str):
        parts = required.split(",")
    else:
        parts = list(required)
    return [p.strip() for p in parts if p and p.strip()]


def _split(permission: str) -> tuple[str, str]:
    domain, _, action = permission.partition(".")
    return domain, action


def _satisfies(held: str, required: str) -> bool:
    if held == required:
        return True
    held_domain, held_action = _split(held)
    required_domain, _ = _split(required)
    return held_action == WILDCARD and held_domain == required_domain


def has_permission(held: Iterable[str], required: str | Iterable[str]) -> bool:
    """
    Check whether held permissions satisfy a requirement.

    Examples:
        has_permission({"build.*"}, "build.place") -> True
        has_permission({"build.place"}, "build.remove") -> False
        has_permission(set(), "") -> True
        has_permission({"chat.mute"}, "admin.ban, chat.mute") -> True
    """
    alternatives = split_permissions(required)
    if not alternatives:
        return True

    held = [p.strip() for p in held if p]
    return any(
        _satisfies(h, r)
        for r in alternatives
        for h in held
    )


class PermissionResolver:
    """
    Object form of `has_permission`, injected into the command pipeline.

    Keeps a small cache of split requirement strings since command specs
    reuse the same few strings on every invocation.
    """

    def __init__(self):
        self._split_cache: dict[str, list[str]] = {}

    def has(self, held: Iterable[str], required: str | Iterable[str]) -> bool:
        if isinstance(required, str):
            alternatives = self._split_cache.get(required)
            if alternatives is None:
                alternatives = split_permissions(required)
                self._split_cache[required] = alternatives
            required = alternatives
        return has_permission(held, required)
