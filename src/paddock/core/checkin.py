"""Check-in aggregate: who has checked into which team for an event.

State lives only in the database. A member is either present once in a
team's list or absent, and the only transition is a toggle: pressing the
same team button again checks the member back out.

Toggles for the same (event, team) are serialized with a per-key lock and
run their read and write in one transaction, so two members pressing the
same button at once can't drop each other's change. The locks are
process-local; the bot runs as a single process.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import TYPE_CHECKING

from paddock.core.errors import EventNotFound
from paddock.db.engine import get_session
from paddock.db.repository import Repository
from paddock.models.checkin import (
    CheckInMember,
    CheckInStatus,
    Event,
    ToggleResult,
    TransitionKind,
)
from paddock.models.teams import CONSTRUCTORS, Constructor, parse_constructor

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def transition_kind(team: Constructor, was_removed: bool) -> TransitionKind:
    """Describe a toggle for notifications.

    Joining ``decline`` reads as checking out; leaving it reads as a status
    update. Every other team is a plain check-in / check-out.
    """
    if team is Constructor.DECLINE:
        return TransitionKind.UPDATED_STATUS if was_removed else TransitionKind.CHECKED_OUT
    return TransitionKind.CHECKED_OUT if was_removed else TransitionKind.CHECKED_IN


def _decode_members(raw: list[dict] | None) -> list[CheckInMember]:
    return [CheckInMember.model_validate(item) for item in raw or []]


def _encode_members(members: list[CheckInMember]) -> list[dict]:
    return [member.model_dump() for member in members]


class CheckInService:
    """Event storage and the toggle state machine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, event_id: str, team: Constructor) -> asyncio.Lock:
        key = (event_id, team.value)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def save_event(self, event: Event) -> Event:
        """Insert or overwrite an event by its unique id."""
        async with get_session(self.engine) as session:
            repo = Repository(session)
            row = await repo.upsert_event(
                event.unique_id,
                server_name=event.server_name,
                season=event.season,
                round=event.round,
                channel_ids=event.channel_ids,
                date_time=event.date_time,
                timezone=event.timezone,
                roles=event.roles,
                track_name=event.track_name,
                track_image=event.track_image,
                description=event.description,
            )
            saved = Event.model_validate(row)
        logger.info("checkin_event_saved event_id=%s", event.unique_id)
        return saved

    async def get_event(self, event_id: str) -> Event | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_event(event_id)
            return Event.model_validate(row) if row else None

    async def require_event(self, event_id: str) -> Event:
        event = await self.get_event(event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event

    async def record_message(self, event_id: str, channel_id: str, message_id: str) -> None:
        """Remember the posted check-in message for an event."""
        async with get_session(self.engine) as session:
            await Repository(session).set_event_message(event_id, channel_id, message_id)

    async def toggle(
        self,
        event_id: str,
        team: Constructor | str,
        member_id: str,
        display_name: str,
    ) -> ToggleResult:
        """Check a member into a team, or out of it if already present.

        Raises ValueError for an unknown team and EventNotFound for an
        unknown event; neither touches the store.
        """
        team = parse_constructor(team) if isinstance(team, str) else team
        async with self._lock_for(event_id, team):
            async with get_session(self.engine) as session:
                repo = Repository(session)
                if await repo.get_event(event_id) is None:
                    raise EventNotFound(event_id)

                current = _decode_members(await repo.get_check_in_members(event_id, team.value))
                was_removed = any(member.user_id == member_id for member in current)
                if was_removed:
                    updated = [member for member in current if member.user_id != member_id]
                else:
                    updated = [*current, CheckInMember(user_id=member_id, nickname=display_name)]

                await repo.save_check_in_members(event_id, team.value, _encode_members(updated))

        logger.info(
            "checkin_toggled event_id=%s team=%s member=%s removed=%s",
            event_id,
            team.value,
            member_id,
            was_removed,
        )
        return ToggleResult(team=team, members=updated, was_removed=was_removed)

    async def get_status(self, event_id: str) -> CheckInStatus:
        """Return every team's member list from a single read.

        Teams with no stored row map to an empty list. Rows for keys that are
        no longer known teams are ignored.
        """
        async with get_session(self.engine) as session:
            raw = await Repository(session).get_check_in_statuses(event_id)

        status: CheckInStatus = {team: [] for team in CONSTRUCTORS}
        for key, members in raw.items():
            try:
                team = Constructor(key)
            except ValueError:
                logger.warning("checkin_unknown_team_row event_id=%s team=%s", event_id, key)
                continue
            status[team] = _decode_members(members)
        return status
