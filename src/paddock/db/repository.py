"""Repository pattern for database access.

Wraps SQLAlchemy async sessions. Every write targets one logical record;
the caller's ``get_session`` block decides the transaction boundary.
"""

from __future__ import annotations

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from paddock.db.models import (
    CheckInStatusRow,
    EventRow,
    GuildSettingsRow,
    RosterSetRow,
    RosterTeamRow,
)


class Repository:
    """Async repository for all database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # --- Events ---

    async def upsert_event(
        self,
        unique_id: str,
        *,
        server_name: str,
        season: int,
        round: int,
        channel_ids: list[str],
        date_time: str,
        timezone: str,
        roles: list[str],
        track_name: str,
        track_image: str = "",
        description: str | None = None,
    ) -> EventRow:
        """Insert or wholesale replace an event keyed by its unique id."""
        row = EventRow(
            unique_id=unique_id,
            server_name=server_name,
            season=season,
            round=round,
            channel_ids=list(channel_ids),
            date_time=date_time,
            timezone=timezone,
            roles=list(roles),
            track_name=track_name,
            track_image=track_image,
            description=description,
        )
        row = await self.session.merge(row)
        await self.session.flush()
        return row

    async def get_event(self, unique_id: str) -> EventRow | None:
        return await self.session.get(EventRow, unique_id)

    async def set_event_message(self, unique_id: str, channel_id: str, message_id: str) -> None:
        """Remember where the check-in message for an event was posted."""
        await self.session.execute(
            update(EventRow)
            .where(EventRow.unique_id == unique_id)
            .values(message_channel_id=channel_id, message_id=message_id)
        )

    # --- Check-in statuses ---

    async def get_check_in_members(self, unique_id: str, team: str) -> list[dict] | None:
        """Return the raw member list for one (event, team), or None if never written."""
        row = await self.session.get(CheckInStatusRow, (unique_id, team))
        return None if row is None else list(row.members or [])

    async def save_check_in_members(self, unique_id: str, team: str, members: list[dict]) -> None:
        """Replace the whole member list for one (event, team)."""
        await self.session.merge(
            CheckInStatusRow(unique_id=unique_id, team=team, members=list(members))
        )
        await self.session.flush()

    async def get_check_in_statuses(self, unique_id: str) -> dict[str, list[dict]]:
        """Return team → raw member list for every team with a stored row."""
        stmt = select(CheckInStatusRow).where(CheckInStatusRow.unique_id == unique_id)
        result = await self.session.execute(stmt)
        return {row.team: list(row.members or []) for row in result.scalars().all()}

    # --- Guild settings ---

    async def get_guild_settings(self, guild_id: str) -> GuildSettingsRow | None:
        return await self.session.get(GuildSettingsRow, guild_id)

    async def _get_or_create_guild_settings(self, guild_id: str) -> GuildSettingsRow:
        row = await self.session.get(GuildSettingsRow, guild_id)
        if row is None:
            row = GuildSettingsRow(guild_id=guild_id)
            self.session.add(row)
        return row

    async def set_notification_channel(self, guild_id: str, channel_id: str | None) -> None:
        row = await self._get_or_create_guild_settings(guild_id)
        row.notification_channel_id = channel_id
        await self.session.flush()

    async def set_manager_role(self, guild_id: str, role_id: str | None) -> None:
        row = await self._get_or_create_guild_settings(guild_id)
        row.manager_role_id = role_id
        await self.session.flush()

    # --- Roster sets ---

    async def create_roster_set(self, guild_id: str, channel_id: str, name: str) -> RosterSetRow:
        row = RosterSetRow(guild_id=guild_id, channel_id=channel_id, name=name)
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_roster_set(self, roster_set_id: str) -> RosterSetRow | None:
        return await self.session.get(RosterSetRow, roster_set_id)

    async def get_roster_sets_for_guild(self, guild_id: str) -> list[RosterSetRow]:
        stmt = (
            select(RosterSetRow)
            .where(RosterSetRow.guild_id == guild_id)
            .order_by(RosterSetRow.created_at, RosterSetRow.name)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_roster_set_by_name(self, guild_id: str, name: str) -> RosterSetRow | None:
        """Names are unique per guild by convention only; the oldest match wins."""
        stmt = (
            select(RosterSetRow)
            .where(RosterSetRow.guild_id == guild_id, RosterSetRow.name == name)
            .order_by(RosterSetRow.created_at)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_roster_set(self, roster_set_id: str) -> None:
        """Delete a roster set; its teams go with it via ON DELETE CASCADE."""
        await self.session.execute(delete(RosterSetRow).where(RosterSetRow.id == roster_set_id))

    # --- Roster teams ---

    async def create_roster_team(
        self,
        roster_set_id: str,
        team_name: str,
        role_id: str,
        image_url: str | None = None,
        display_order: int = 0,
        is_special: bool = False,
    ) -> RosterTeamRow:
        row = RosterTeamRow(
            roster_set_id=roster_set_id,
            team_name=team_name,
            role_id=role_id,
            image_url=image_url,
            display_order=display_order,
            is_special=is_special,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_roster_team(self, team_id: str) -> RosterTeamRow | None:
        return await self.session.get(RosterTeamRow, team_id)

    async def get_roster_team_by_name(
        self, roster_set_id: str, team_name: str
    ) -> RosterTeamRow | None:
        stmt = (
            select(RosterTeamRow)
            .where(
                RosterTeamRow.roster_set_id == roster_set_id,
                RosterTeamRow.team_name == team_name,
            )
            .order_by(RosterTeamRow.display_order, RosterTeamRow.created_at)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_teams_for_roster_set(self, roster_set_id: str) -> list[RosterTeamRow]:
        """Return a set's teams in ascending display order."""
        stmt = (
            select(RosterTeamRow)
            .where(RosterTeamRow.roster_set_id == roster_set_id)
            .order_by(RosterTeamRow.display_order, RosterTeamRow.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_teams_for_role(self, role_id: str) -> list[RosterTeamRow]:
        """Return every team, across all roster sets, defined by this role."""
        stmt = (
            select(RosterTeamRow)
            .join(RosterSetRow, RosterTeamRow.roster_set_id == RosterSetRow.id)
            .where(RosterTeamRow.role_id == role_id)
            .order_by(RosterTeamRow.roster_set_id, RosterTeamRow.display_order)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_team_message_id(self, team_id: str, message_id: str | None) -> None:
        await self.session.execute(
            update(RosterTeamRow).where(RosterTeamRow.id == team_id).values(message_id=message_id)
        )

    async def clear_message_ids(self, roster_set_id: str) -> None:
        await self.session.execute(
            update(RosterTeamRow)
            .where(RosterTeamRow.roster_set_id == roster_set_id)
            .values(message_id=None)
        )

    async def update_roster_team(self, team_id: str, changes: dict[str, object]) -> None:
        """Patch only the given columns of a roster team."""
        if not changes:
            return
        await self.session.execute(
            update(RosterTeamRow).where(RosterTeamRow.id == team_id).values(**changes)
        )

    async def delete_roster_team(self, team_id: str) -> None:
        await self.session.execute(delete(RosterTeamRow).where(RosterTeamRow.id == team_id))
