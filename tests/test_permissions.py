"""Tests for the permission gate."""

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from paddock.core.notifications import NotificationDispatcher
from paddock.core.permissions import Actor, PermissionGate, authorize, can_set_manager_role

OPERATOR = "201215609189564416"


def member(user_id: str = "u1", *roles: str, owner: bool = False, admin: bool = False) -> Actor:
    return Actor(
        user_id=user_id,
        is_guild_owner=owner,
        is_administrator=admin,
        role_ids=frozenset(roles),
    )


class TestAuthorize:
    def test_fail_open_without_manager_role(self):
        assert authorize(member(), operator_id=OPERATOR, manager_role_id=None) is True

    def test_manager_role_required_when_set(self):
        assert authorize(member("u1", "r2"), operator_id=OPERATOR, manager_role_id="r1") is False
        assert authorize(member("u1", "r1"), operator_id=OPERATOR, manager_role_id="r1") is True

    @pytest.mark.parametrize(
        "actor",
        [
            member(OPERATOR),
            member("u1", owner=True),
            member("u1", admin=True),
        ],
    )
    def test_privileged_actors_always_pass(self, actor: Actor):
        assert authorize(actor, operator_id=OPERATOR, manager_role_id="r1") is True

    def test_operator_bypass_can_be_disabled(self):
        assert authorize(member(OPERATOR), operator_id=None, manager_role_id="r1") is False


class TestCanSetManagerRole:
    def test_manager_role_holder_cannot(self):
        assert can_set_manager_role(member("u1", "r1"), operator_id=OPERATOR) is False

    def test_owner_admin_operator_can(self):
        assert can_set_manager_role(member("u1", owner=True), operator_id=OPERATOR)
        assert can_set_manager_role(member("u1", admin=True), operator_id=OPERATOR)
        assert can_set_manager_role(member(OPERATOR), operator_id=OPERATOR)


class TestPermissionGate:
    async def test_reads_stored_manager_role(self, engine: AsyncEngine):
        gate = PermissionGate(engine, OPERATOR)
        assert await gate.authorize(member("u1"), "g1") is True

        await gate.set_manager_role("g1", "r1")
        assert await gate.get_manager_role("g1") == "r1"
        assert await gate.authorize(member("u1"), "g1") is False
        assert await gate.authorize(member("u1", "r1"), "g1") is True
        assert await gate.authorize(member("u1", owner=True), "g1") is True
        # Other guilds are unaffected
        assert await gate.authorize(member("u1"), "g2") is True

    async def test_clearing_role_keeps_notification_channel(self, engine: AsyncEngine):
        gate = PermissionGate(engine, OPERATOR)
        notifications = NotificationDispatcher(engine, sender=None)  # type: ignore[arg-type]
        await notifications.set_channel("g1", "c1")
        await gate.set_manager_role("g1", "r1")

        await gate.set_manager_role("g1", None)

        assert await gate.get_manager_role("g1") is None
        assert await notifications.get_channel("g1") == "c1"
        assert await gate.authorize(member("u1"), "g1") is True
