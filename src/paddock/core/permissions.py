"""Permission gate for privileged commands.

Rule order, first match wins: the operator account, the guild owner,
members with Administrator, then the guild's manager role. A guild with
no manager role configured lets everyone through, which keeps servers
set up before manager roles existed working.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from paddock.db.engine import get_session
from paddock.db.repository import Repository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """The member invoking a command, as seen by the permission gate."""

    user_id: str
    is_guild_owner: bool = False
    is_administrator: bool = False
    role_ids: frozenset[str] = field(default_factory=frozenset)


def authorize(actor: Actor, *, operator_id: str | None, manager_role_id: str | None) -> bool:
    if operator_id and actor.user_id == operator_id:
        return True
    if actor.is_guild_owner or actor.is_administrator:
        return True
    if not manager_role_id:
        return True
    return manager_role_id in actor.role_ids


def can_set_manager_role(actor: Actor, *, operator_id: str | None) -> bool:
    """Only the operator, the owner, or an administrator may change the manager role."""
    if operator_id and actor.user_id == operator_id:
        return True
    return actor.is_guild_owner or actor.is_administrator


class PermissionGate:
    def __init__(self, engine: AsyncEngine, operator_id: str | None = None) -> None:
        self.engine = engine
        self.operator_id = operator_id

    async def get_manager_role(self, guild_id: str) -> str | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_guild_settings(guild_id)
            return row.manager_role_id if row else None

    async def set_manager_role(self, guild_id: str, role_id: str | None) -> None:
        """Set the manager role, or clear it with None. Other settings are kept."""
        async with get_session(self.engine) as session:
            await Repository(session).set_manager_role(guild_id, role_id)
        logger.info("manager_role_set guild_id=%s role_id=%s", guild_id, role_id)

    async def authorize(self, actor: Actor, guild_id: str) -> bool:
        # Operator, owner and administrators pass without a settings lookup.
        if self.can_set_manager_role(actor):
            return True
        manager_role_id = await self.get_manager_role(guild_id)
        allowed = authorize(actor, operator_id=self.operator_id, manager_role_id=manager_role_id)
        if not allowed:
            logger.info(
                "permission_denied guild_id=%s user_id=%s manager_role_id=%s",
                guild_id,
                actor.user_id,
                manager_role_id,
            )
        return allowed

    def can_set_manager_role(self, actor: Actor) -> bool:
        return can_set_manager_role(actor, operator_id=self.operator_id)
