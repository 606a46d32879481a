"""Discord embed builders for check-ins and roster teams.

Each builder takes domain data and returns a styled embed ready to send.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import discord

from paddock.models.roster import MEMBER_SEPARATOR
from paddock.models.teams import CONSTRUCTORS

if TYPE_CHECKING:
    from paddock.models.checkin import CheckInStatus, Event
    from paddock.models.roster import RosterPayload

CHECKIN_COLOR = 0x202020
ROSTER_DEFAULT_COLOR = 0x7289DA
COUNTDOWN_EMOJI = "<:countdown:1299484915137511444>"
FIELD_LIMIT = 1024

# "2025-03-16 7:30 PM" first; the 24-hour form is what the command hint shows.
_DATE_FORMATS = ("%Y-%m-%d %I:%M %p", "%Y-%m-%d %H:%M")


def event_timestamp(date_time: str, timezone: str) -> int | None:
    """Parse an event's local date/time into a UNIX timestamp, or None."""
    try:
        zone = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        return None
    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(date_time.strip(), fmt)
        except ValueError:
            continue
        return int(parsed.replace(tzinfo=zone).timestamp())
    return None


def build_event_time_value(event: Event) -> str:
    timestamp = event_timestamp(event.date_time, event.timezone)
    if timestamp is None:
        return "Invalid Date"
    return f"<t:{timestamp}:F>\n{COUNTDOWN_EMOJI} <t:{timestamp}:R>"


def fit_field(items: list[str], separator: str, limit: int = FIELD_LIMIT) -> str:
    """Join items into one field value no longer than ``limit``.

    Items that don't fit are dropped from the end and counted in a
    trailing ``+N more`` marker.
    """
    text = separator.join(items)
    if len(text) <= limit:
        return text
    kept: list[str] = []
    length = 0
    for item in items:
        extra = len(item) + (len(separator) if kept else 0)
        marker = f"{separator}+{len(items) - len(kept) - 1} more"
        if length + extra + len(marker) > limit:
            break
        kept.append(item)
        length += extra
    hidden = len(items) - len(kept)
    if not kept:
        return f"+{hidden} more"
    return f"{separator.join(kept)}{separator}+{hidden} more"


def build_team_fields(status: CheckInStatus) -> list[tuple[str, str]]:
    """One (name, value) field per team, in catalogue order, with a member count."""
    fields: list[tuple[str, str]] = []
    for team, info in CONSTRUCTORS.items():
        members = status.get(team, [])
        value = fit_field([f"> {m.nickname}" for m in members], "\n") if members else "-"
        fields.append((f"{info.emoji} {info.display_name} ({len(members)})", value))
    return fields


def _set_checkin_fields(embed: discord.Embed, event: Event, status: CheckInStatus) -> None:
    embed.clear_fields()
    embed.add_field(name="Event Time", value=build_event_time_value(event), inline=False)
    for name, value in build_team_fields(status):
        embed.add_field(name=name, value=value, inline=True)


def build_checkin_embed(
    event: Event,
    status: CheckInStatus,
    image_url: str | None = None,
) -> discord.Embed:
    """Build the check-in message embed for an event."""
    embed = discord.Embed(
        title=(
            f"{event.server_name} Season {event.season} - Round {event.round}: "
            f"{event.track_name}"
        ),
        description=event.description or "Check in for your team!",
        color=CHECKIN_COLOR,
    )
    _set_checkin_fields(embed, event, status)
    if image_url:
        embed.set_image(url=image_url)
    return embed


def apply_checkin_status(
    embed: discord.Embed | None,
    event: Event,
    status: CheckInStatus,
) -> discord.Embed:
    """Return a copy of a posted check-in embed with its fields redrawn.

    Title, description and image are kept. Without an existing embed a
    fresh one is built.
    """
    if embed is None:
        return build_checkin_embed(event, status)
    updated = embed.copy()
    _set_checkin_fields(updated, event, status)
    return updated


def build_role_mentions(role_ids: list[str]) -> str:
    return " ".join(f"<@&{role_id}>" for role_id in role_ids)


def build_roster_team_embed(
    payload: RosterPayload,
    guild_icon_url: str | None = None,
) -> discord.Embed:
    """Build the persistent embed for one roster team."""
    embed = discord.Embed(title=payload.team_name, color=payload.color or ROSTER_DEFAULT_COLOR)
    if payload.member_mentions:
        # A field rather than the description renders better on mobile.
        embed.add_field(
            name="Drivers",
            value=fit_field(payload.member_mentions, MEMBER_SEPARATOR),
            inline=False,
        )
    else:
        embed.description = payload.placeholder
    if payload.image_url:
        embed.set_image(url=payload.image_url)
    embed.set_footer(
        text=f"Role: @{payload.role_name} • Last Updated",
        icon_url=guild_icon_url,
    )
    embed.timestamp = discord.utils.utcnow()
    return embed
