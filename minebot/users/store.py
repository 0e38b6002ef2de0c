"""
User store for MineBot.

Users belong to groups; groups hold permission strings. A user's effective
permissions are the union of their groups' permissions plus any granted to
the user directly.

Looking up an unknown user creates a record for them. Absence is never an
error.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Iterable

from loguru import logger
from pydantic import BaseModel, Field, ValidationError


# Seeded into every new store
DEFAULT_GROUPS: dict[str, list[str]] = {
    "User": ["user.say"],
}


@dataclass
class UserRecord:
    """Stored user data."""
    username: str
    blacklist: bool = False
    groups: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)  # Granted directly


@dataclass(frozen=True)
class UserContext:
    """
    Read-only snapshot of a user, taken once per command invocation.

    Changing the blacklist flag goes through the store, never through this.
    """
    username: str
    is_blacklisted: bool = False
    permissions: frozenset[str] = frozenset()
    groups: tuple[str, ...] = ()


class StoredUser(BaseModel):
    """One user record in the JSON file. Unknown keys are ignored."""
    username: str
    blacklist: bool = False
    groups: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)


class StoredUsers(BaseModel):
    """Layout of the JSON user store file."""
    groups: dict[str, list[str]] = Field(default_factory=dict)
    users: list[StoredUser] = Field(default_factory=list)


class UserStore(ABC):
    """Abstract user/permission lookup."""

    @abstractmethod
    async def get_user(self, username: str) -> UserContext:
        """Get a snapshot of a user, creating the user if needed."""
        pass

    @abstractmethod
    async def set_blacklist(self, username: str, value: bool) -> None:
        """Set or clear a user's blacklist flag."""
        pass


class InMemoryUserStore(UserStore):
    """User store held in process memory."""

    def __init__(
        self,
        groups: dict[str, Iterable[str]] | None = None,
        default_groups: Iterable[str] = (),
    ):
        self._users: dict[str, UserRecord] = {}
        self._groups: dict[str, set[str]] = {}
        self.default_groups = list(default_groups)

        for name, perms in (DEFAULT_GROUPS if groups is None else groups).items():
            self._groups[name] = set(perms)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def _record(self, username: str) -> UserRecord:
        record = self._users.get(username)
        if record is None:
            logger.debug(f"User {username} not found, creating")
            record = UserRecord(
                username=username,
                groups=[g for g in self.default_groups if g in self._groups],
            )
            self._users[username] = record
            self._changed()
        return record

    def _snapshot(self, record: UserRecord) -> UserContext:
        permissions = set(record.permissions)
        for group in record.groups:
            permissions.update(self._groups.get(group, ()))
        return UserContext(
            username=record.username,
            is_blacklisted=record.blacklist,
            permissions=frozenset(permissions),
            groups=tuple(record.groups),
        )

    async def get_user(self, username: str) -> UserContext:
        return self._snapshot(self._record(username))

    async def set_blacklist(self, username: str, value: bool) -> None:
        record = self._record(username)
        if record.blacklist != value:
            record.blacklist = value
            logger.info(f"User {username} blacklist set to {value}")
            self._changed()

    def has_user(self, username: str) -> bool:
        return username in self._users

    def list_users(self) -> list[str]:
        return sorted(self._users)

    async def delete_user(self, username: str) -> bool:
        if self._users.pop(username, None) is None:
            return False
        self._changed()
        return True

    async def grant_user(self, username: str, permission: str) -> None:
        """Give a permission to one user directly."""
        record = self._record(username)
        if permission not in record.permissions:
            record.permissions.append(permission)
            self._changed()

    async def revoke_user(self, username: str, permission: str) -> None:
        record = self._record(username)
        if permission in record.permissions:
            record.permissions.remove(permission)
            self._changed()

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def add_group(self, username: str, group: str) -> bool:
        """Add a user to a group. Returns False if the group does not exist."""
        if group not in self._groups:
            logger.warning(f"Group {group} not found")
            return False
        record = self._record(username)
        if group not in record.groups:
            record.groups.append(group)
            logger.info(f"User {username} added to group {group}")
            self._changed()
        return True

    async def remove_group(self, username: str, group: str) -> bool:
        record = self._record(username)
        if group not in record.groups:
            return False
        record.groups.remove(group)
        logger.info(f"User {username} removed from group {group}")
        self._changed()
        return True

    def create_group(self, name: str, permissions: Iterable[str] = ()) -> None:
        self._groups.setdefault(name, set()).update(permissions)
        self._changed()

    def delete_group(self, name: str) -> bool:
        if self._groups.pop(name, None) is None:
            return False
        for record in self._users.values():
            if name in record.groups:
                record.groups.remove(name)
        self._changed()
        return True

    def grant(self, group: str, permission: str) -> None:
        """Add a permission to a group, creating the group if needed."""
        self._groups.setdefault(group, set()).add(permission)
        self._changed()

    def revoke(self, group: str, permission: str) -> None:
        perms = self._groups.get(group)
        if perms is not None and permission in perms:
            perms.discard(permission)
            self._changed()

    def group_permissions(self, group: str) -> set[str]:
        return set(self._groups.get(group, ()))

    def list_groups(self) -> list[str]:
        return sorted(self._groups)

    def _changed(self) -> None:
        """Hook for persistent subclasses."""
        pass


class JsonUserStore(InMemoryUserStore):
    """
    User store persisted to a JSON file.

    The whole file is rewritten after each change; user counts on a single
    game server are small.
    """

    def __init__(
        self,
        path: Path | str,
        default_groups: Iterable[str] = (),
    ):
        self.path = Path(path).expanduser()
        self._loading = True
        super().__init__(default_groups=default_groups)
        self._load()
        self._loading = False

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = StoredUsers.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.error(f"Failed to load user store {self.path}: {e}")
            return

        for name, perms in data.groups.items():
            self._groups[name] = set(perms)
        for item in data.users:
            record = UserRecord(**item.model_dump())
            self._users[record.username] = record
        logger.debug(f"Loaded {len(self._users)} users from {self.path}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "groups": {name: sorted(perms) for name, perms in self._groups.items()},
            "users": [asdict(r) for r in self._users.values()],
        }

    def _changed(self) -> None:
        if self._loading:
            return
        # In-memory state stays authoritative when the disk is not writable
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(self.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.error(f"Failed to save user store {self.path}: {e}")
