"""User and permission storage for MineBot."""

from minebot.users.store import (
    UserRecord,
    UserContext,
    UserStore,
    InMemoryUserStore,
    JsonUserStore,
)

__all__ = [
    "UserRecord",
    "UserContext",
    "UserStore",
    "InMemoryUserStore",
    "JsonUserStore",
]
