"""Check-in notifications to a guild-configured channel.

One toggle produces at most one notification. A guild without a
configured channel gets none. Send and lookup failures are logged and
never reach the member who pressed the button.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from paddock.db.engine import get_session
from paddock.db.repository import Repository
from paddock.models.checkin import EventSummary, TransitionKind
from paddock.models.teams import CONSTRUCTORS, Constructor

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

# (channel_id, content) -> delivered
TextSender = Callable[[str, str], Awaitable[object]]

_ACTION_EMOJI: dict[TransitionKind, str] = {
    TransitionKind.CHECKED_IN: "✅",
    TransitionKind.CHECKED_OUT: "❌",
    TransitionKind.UPDATED_STATUS: "\U0001f504",
}


def build_notification_text(
    display_name: str,
    team: Constructor,
    kind: TransitionKind,
    summary: EventSummary,
    timestamp: int,
) -> str:
    info = CONSTRUCTORS.get(team)
    team_label = info.emoji if info else team.value
    return (
        f"{_ACTION_EMOJI[kind]} **{display_name}** {kind.value} to {team_label} "
        f"for Season {summary.season}, Round {summary.round} at {summary.track} "
        f"<t:{timestamp}:R>"
    )


class NotificationDispatcher:
    """Looks up a guild's notification channel and posts toggle notices."""

    def __init__(self, engine: AsyncEngine, sender: TextSender) -> None:
        self.engine = engine
        self.sender = sender

    async def set_channel(self, guild_id: str, channel_id: str | None) -> None:
        """Set (or clear) the notification channel. Persistence errors propagate."""
        async with get_session(self.engine) as session:
            await Repository(session).set_notification_channel(guild_id, channel_id)
        logger.info("notification_channel_set guild_id=%s channel_id=%s", guild_id, channel_id)

    async def get_channel(self, guild_id: str) -> str | None:
        async with get_session(self.engine) as session:
            row = await Repository(session).get_guild_settings(guild_id)
            return row.notification_channel_id if row else None

    async def notify(
        self,
        guild_id: str,
        member_id: str,
        display_name: str,
        team: Constructor,
        kind: TransitionKind,
        summary: EventSummary,
        source_channel_id: str | None = None,
        *,
        timestamp: int | None = None,
    ) -> str | None:
        """Send one notification for a toggle. Returns the text sent, or None."""
        try:
            channel_id = await self.get_channel(guild_id)
            if not channel_id:
                return None
            content = build_notification_text(
                display_name,
                team,
                kind,
                summary,
                timestamp if timestamp is not None else int(time.time()),
            )
            await self.sender(channel_id, content)
        except Exception:  # Last-resort handler: notifications must never fail a toggle
            logger.exception(
                "notification_failed guild_id=%s member=%s team=%s source_channel=%s",
                guild_id,
                member_id,
                team.value,
                source_channel_id,
            )
            return None
        logger.info(
            "notification_sent guild_id=%s member=%s action=%s",
            guild_id,
            member_id,
            kind.value,
        )
        return content
