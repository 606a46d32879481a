"""Roster aggregate: persistent per-team messages mirroring role membership.

A roster set is a named group of teams posted into one channel. Each team
is backed by a guild role and owns at most one live message. Membership is
never stored: every render fetches the role's current members.

A team is either Unposted (``message_id`` is None) or Posted. When the
stored message has been deleted out from under us, the next update
notices, clears the id, and posts a fresh message once.

``reorder`` deletes every message in a set and reposts in display order.
It is not atomic: an interruption leaves some teams Unposted until the
next refresh or role change posts them again.
"""

from __future__ import annotations

import asyncio
import logging
import unicodedata
import weakref
from typing import TYPE_CHECKING, Protocol

from paddock.core.errors import (
    MessageNotFound,
    RosterGatewayError,
    RosterSetNotFound,
    RosterTeamNotFound,
)
from paddock.db.engine import get_session
from paddock.db.repository import Repository
from paddock.models.roster import (
    EMPTY_SPECIAL_TEXT,
    EMPTY_TEAM_TEXT,
    RoleSnapshot,
    RosterPayload,
    RosterSet,
    RosterTeam,
    RosterTeamUpdate,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


class RosterGateway(Protocol):
    """The Discord operations a roster needs.

    Implementations raise MessageNotFound when a message id no longer
    exists and RosterGatewayError for any other Discord failure.
    """

    async def fetch_role(self, guild_id: str, role_id: str) -> RoleSnapshot | None: ...

    async def send_roster(self, guild_id: str, channel_id: str, payload: RosterPayload) -> str: ...

    async def edit_roster(
        self, guild_id: str, channel_id: str, message_id: str, payload: RosterPayload
    ) -> None: ...

    async def delete_message(self, guild_id: str, channel_id: str, message_id: str) -> None: ...


def _sort_key(name: str) -> tuple[str, str]:
    # Accents and case are ignored first, so "Émile" sorts between "adam" and "zed".
    stripped = "".join(
        ch for ch in unicodedata.normalize("NFKD", name) if not unicodedata.combining(ch)
    )
    return stripped.casefold(), name


def build_roster_payload(team: RosterTeam, role: RoleSnapshot) -> RosterPayload:
    """Render a team from a role snapshot: sorted mentions or a placeholder.

    Members are ordered by display name ignoring case and accents. This is
    locale-independent; it does not apply per-language collation rules.
    """
    members = sorted(role.members, key=lambda m: _sort_key(m.display_name))
    mentions = [f"<@{member.user_id}>" for member in members]
    placeholder = None
    if not mentions:
        placeholder = EMPTY_SPECIAL_TEXT if team.is_special else EMPTY_TEAM_TEXT
    return RosterPayload(
        team_name=team.team_name,
        role_name=role.name,
        color=role.color,
        member_mentions=mentions,
        placeholder=placeholder,
        image_url=team.image_url,
    )


class RosterService:
    """Create, edit, render and delete roster sets and their teams."""

    def __init__(
        self,
        engine: AsyncEngine,
        gateway: RosterGateway,
        reorder_delay: float = 0.5,
    ) -> None:
        self.engine = engine
        self.gateway = gateway
        self.reorder_delay = reorder_delay
        # One lock per roster set: posting, reordering and deleting in a set
        # never interleave, so a team can't end up with two live messages.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, roster_set_id: str) -> asyncio.Lock:
        lock = self._locks.get(roster_set_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[roster_set_id] = lock
        return lock

    # --- Reads ---

    async def get_roster_set(self, roster_set_id: str) -> RosterSet | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_roster_set(roster_set_id)
            return RosterSet.model_validate(row) if row else None

    async def require_roster_set(self, roster_set_id: str) -> RosterSet:
        roster_set = await self.get_roster_set(roster_set_id)
        if roster_set is None:
            raise RosterSetNotFound(roster_set_id)
        return roster_set

    async def get_roster_sets(self, guild_id: str) -> list[RosterSet]:
        async with get_session(self.engine) as session:
            rows = await Repository(session).get_roster_sets_for_guild(guild_id)
            return [RosterSet.model_validate(row) for row in rows]

    async def find_roster_set(self, guild_id: str, name: str) -> RosterSet:
        """Look up a roster set by name within a guild."""
        async with get_session(self.engine) as session:
            row = await Repository(session).get_roster_set_by_name(guild_id, name)
            if row is None:
                raise RosterSetNotFound(name)
            return RosterSet.model_validate(row)

    async def get_team(self, team_id: str) -> RosterTeam | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_roster_team(team_id)
            return RosterTeam.model_validate(row) if row else None

    async def require_team(self, team_id: str) -> RosterTeam:
        team = await self.get_team(team_id)
        if team is None:
            raise RosterTeamNotFound(team_id)
        return team

    async def get_teams(self, roster_set_id: str) -> list[RosterTeam]:
        """Return a set's teams in ascending display order."""
        async with get_session(self.engine) as session:
            rows = await Repository(session).get_teams_for_roster_set(roster_set_id)
            return [RosterTeam.model_validate(row) for row in rows]

    async def find_team(self, roster_set: RosterSet, team_name: str) -> RosterTeam:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_roster_team_by_name(roster_set.id, team_name)
            if row is None:
                raise RosterTeamNotFound(team_name, roster_set.name)
            return RosterTeam.model_validate(row)

    # --- Mutations ---

    async def create_roster_set(self, guild_id: str, channel_id: str, name: str) -> str:
        async with get_session(self.engine) as session:
            row = await Repository(session).create_roster_set(guild_id, channel_id, name)
            roster_set_id = row.id
        logger.info(
            "roster_set_created id=%s guild_id=%s channel_id=%s",
            roster_set_id,
            guild_id,
            channel_id,
        )
        return roster_set_id

    async def add_team(
        self,
        roster_set_id: str,
        team_name: str,
        role_id: str,
        image_url: str | None = None,
        display_order: int = 0,
        is_special: bool = False,
    ) -> str:
        """Store a new team and post its first message.

        A failed post leaves the team Unposted; the next render trigger
        retries it.
        """
        async with get_session(self.engine) as session:
            repo = Repository(session)
            if await repo.get_roster_set(roster_set_id) is None:
                raise RosterSetNotFound(roster_set_id)
            row = await repo.create_roster_team(
                roster_set_id,
                team_name,
                role_id,
                image_url=image_url,
                display_order=display_order,
                is_special=is_special,
            )
            team = RosterTeam.model_validate(row)
        logger.info("roster_team_added id=%s roster_set_id=%s", team.id, roster_set_id)
        await self.post_or_update(team)
        return team.id

    async def update_team(self, team_id: str, update: RosterTeamUpdate) -> RosterTeam:
        """Patch the given fields, then re-render the team's message."""
        async with get_session(self.engine) as session:
            repo = Repository(session)
            if await repo.get_roster_team(team_id) is None:
                raise RosterTeamNotFound(team_id)
            await repo.update_roster_team(team_id, update.changes())
        team = await self.require_team(team_id)
        await self.post_or_update(team)
        return await self.require_team(team_id)

    async def delete_team(self, team_id: str) -> None:
        """Delete a team's message (best effort), then its row."""
        team = await self.require_team(team_id)
        async with self._lock_for(team.roster_set_id):
            # Re-read under the lock; a repost may have replaced the message.
            current = await self.get_team(team_id)
            if current is None:
                return
            roster_set = await self.get_roster_set(current.roster_set_id)
            if roster_set is not None and current.message_id:
                await self._delete_quietly(roster_set, current)
            async with get_session(self.engine) as session:
                await Repository(session).delete_roster_team(team_id)
        logger.info("roster_team_deleted id=%s", team_id)

    async def delete_roster_set(self, roster_set_id: str) -> None:
        """Delete every team message (best effort), then the set and its teams."""
        roster_set = await self.require_roster_set(roster_set_id)
        async with self._lock_for(roster_set_id):
            for team in await self.get_teams(roster_set_id):
                if team.message_id:
                    await self._delete_quietly(roster_set, team)
            async with get_session(self.engine) as session:
                await Repository(session).delete_roster_set(roster_set_id)
        logger.info("roster_set_deleted id=%s", roster_set_id)

    # --- Rendering ---

    async def render_team(self, team: RosterTeam, roster_set: RosterSet) -> RosterPayload | None:
        """Build a team's payload from the role's members right now.

        Returns None when the role no longer exists in the guild.
        """
        role = await self.gateway.fetch_role(roster_set.guild_id, team.role_id)
        if role is None:
            logger.warning(
                "roster_role_missing team_id=%s role_id=%s guild_id=%s",
                team.id,
                team.role_id,
                roster_set.guild_id,
            )
            return None
        return build_roster_payload(team, role)

    async def post_or_update(self, team: RosterTeam) -> str | None:
        """Bring a team's message in line with its role.

        Posts when Unposted, edits when Posted, and reposts once if the
        stored message has vanished. Returns the team's message id
        afterwards (None if it is still Unposted).
        """
        async with self._lock_for(team.roster_set_id):
            return await self._post_or_update_locked(team.id)

    async def _post_or_update_locked(self, team_id: str) -> str | None:
        # Re-read under the lock; the caller's copy may be stale.
        team = await self.get_team(team_id)
        if team is None:
            return None
        roster_set = await self.get_roster_set(team.roster_set_id)
        if roster_set is None:
            return None

        try:
            payload = await self.render_team(team, roster_set)
        except RosterGatewayError:
            logger.warning("roster_render_failed team_id=%s", team.id, exc_info=True)
            return team.message_id
        if payload is None:
            return team.message_id

        if team.message_id is None:
            return await self._post(roster_set, team, payload)

        try:
            await self.gateway.edit_roster(
                roster_set.guild_id, roster_set.channel_id, team.message_id, payload
            )
        except MessageNotFound:
            logger.info(
                "roster_message_missing team_id=%s message_id=%s reposting=true",
                team.id,
                team.message_id,
            )
            await self._store_message_id(team.id, None)
            return await self._post(roster_set, team, payload)
        except RosterGatewayError:
            logger.warning("roster_edit_failed team_id=%s", team.id, exc_info=True)
        return team.message_id

    async def _post(
        self, roster_set: RosterSet, team: RosterTeam, payload: RosterPayload
    ) -> str | None:
        try:
            message_id = await self.gateway.send_roster(
                roster_set.guild_id, roster_set.channel_id, payload
            )
        except RosterGatewayError:
            logger.warning("roster_post_failed team_id=%s", team.id, exc_info=True)
            return None
        await self._store_message_id(team.id, message_id)
        logger.info("roster_posted team_id=%s message_id=%s", team.id, message_id)
        return message_id

    async def _store_message_id(self, team_id: str, message_id: str | None) -> None:
        async with get_session(self.engine) as session:
            await Repository(session).set_team_message_id(team_id, message_id)

    async def _delete_quietly(self, roster_set: RosterSet, team: RosterTeam) -> None:
        try:
            await self.gateway.delete_message(
                roster_set.guild_id, roster_set.channel_id, team.message_id or ""
            )
        except RosterGatewayError:
            logger.warning(
                "roster_message_delete_failed team_id=%s message_id=%s",
                team.id,
                team.message_id,
                exc_info=True,
            )

    # --- Refresh triggers ---

    async def update_for_role(self, role_id: str) -> int:
        """Re-render every team, in any roster set, backed by this role.

        Called when a member's roles change. Returns how many teams were
        refreshed.
        """
        async with get_session(self.engine) as session:
            rows = await Repository(session).get_teams_for_role(role_id)
            teams = [RosterTeam.model_validate(row) for row in rows]
        for team in teams:
            await self.post_or_update(team)
        if teams:
            logger.info("roster_role_refreshed role_id=%s teams=%d", role_id, len(teams))
        return len(teams)

    async def refresh_roster_set(self, roster_set_id: str) -> int:
        await self.require_roster_set(roster_set_id)
        teams = await self.get_teams(roster_set_id)
        for team in teams:
            await self.post_or_update(team)
        return len(teams)

    async def refresh_guild(self, guild_id: str) -> int:
        """Refresh every roster set in a guild. Returns the number of teams touched."""
        total = 0
        for roster_set in await self.get_roster_sets(guild_id):
            total += await self.refresh_roster_set(roster_set.id)
        return total

    async def reorder(self, roster_set_id: str) -> None:
        """Delete and repost every team message in ascending display order."""
        roster_set = await self.require_roster_set(roster_set_id)
        async with self._lock_for(roster_set_id):
            teams = await self.get_teams(roster_set_id)
            for team in teams:
                if team.message_id:
                    await self._delete_quietly(roster_set, team)

            async with get_session(self.engine) as session:
                await Repository(session).clear_message_ids(roster_set_id)

            for index, team in enumerate(teams):
                if index and self.reorder_delay:
                    # Channel order is insertion order; space posts out.
                    await asyncio.sleep(self.reorder_delay)
                await self._post_or_update_locked(team.id)
        logger.info("roster_reordered id=%s teams=%d", roster_set_id, len(teams))
