"""
Tests for permission checks.

Tests:
- Exact and wildcard matches
- Alternatives (comma-separated requirements)
- Empty requirements
"""

import pytest

from minebot.security.permissions import PermissionResolver, has_permission, split_permissions


class TestHasPermission:
    """Tests for has_permission."""

    def test_wildcard_covers_domain(self):
        assert has_permission({"build.*"}, "build.place") is True

    def test_different_action_denied(self):
        assert has_permission({"build.place"}, "build.remove") is False

    def test_empty_requirement_always_satisfied(self):
        assert has_permission(set(), "") is True
        assert has_permission({"x.y"}, "  ") is True

    def test_exact_match(self):
        assert has_permission({"chat.mute"}, "chat.mute") is True

    def test_wildcard_does_not_cross_domains(self):
        assert has_permission({"build.*"}, "admin.ban") is False

    def test_no_permissions_denied(self):
        assert has_permission(set(), "user.say") is False

    def test_alternatives_are_ored(self):
        """Any one of the comma-separated requirements is enough."""
        assert has_permission({"chat.mute"}, "admin.ban,chat.mute") is True
        assert has_permission({"chat.mute"}, "admin.ban, chat.mute") is True
        assert has_permission({"chat.kick"}, "admin.ban,chat.mute") is False

    def test_wildcard_satisfies_one_alternative(self):
        assert has_permission({"admin.*"}, "mod.kick,admin.kick") is True

    def test_requirement_list(self):
        assert has_permission({"a.b"}, ["c.d", "a.b"]) is True


class TestSplitPermissions:
    """Tests for split_permissions."""

    def test_strips_and_drops_empty(self):
        assert split_permissions(" a.b ,, c.d ,") == ["a.b", "c.d"]

    def test_empty(self):
        assert split_permissions("") == []


class TestPermissionResolver:
    """Tests for the resolver object."""

    @pytest.fixture
    def resolver(self):
        return PermissionResolver()

    def test_has(self, resolver):
        assert resolver.has({"build.*"}, "build.place") is True
        assert resolver.has({"build.place"}, "build.remove") is False
        assert resolver.has(set(), "") is True

    def test_repeated_checks_consistent(self, resolver):
        for _ in range(3):
            assert resolver.has({"chat.mute"}, "admin.ban,chat.mute") is True
            assert resolver.has(frozenset(), "admin.ban,chat.mute") is False
