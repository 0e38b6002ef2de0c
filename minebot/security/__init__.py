"""
Security module for MineBot.

Provides permission checks for commands:
- "domain.action" permissions
- "domain.*" wildcards
- Alternative requirements ("a.b,c.d")
"""

from minebot.security.permissions import (
    PermissionResolver,
    has_permission,
    split_permissions,
    WILDCARD,
)

__all__ = [
    "PermissionResolver",
    "has_permission",
    "split_permissions",
    "WILDCARD",
]
