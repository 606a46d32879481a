"""discord.py implementation of the roster gateway, plus plain text sends.

Translates discord.py exceptions into the core's RosterGatewayError /
MessageNotFound so the roster service never imports discord.
"""

from __future__ import annotations

import logging

import discord

from paddock.core.errors import MessageNotFound, RosterGatewayError
from paddock.discord.embeds import build_roster_team_embed
from paddock.models.roster import RoleSnapshot, RosterMember, RosterPayload

logger = logging.getLogger(__name__)

UNKNOWN_MESSAGE = 10008


class DiscordGateway:
    """Discord calls on behalf of the roster service and notifications."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def _guild(self, guild_id: str) -> discord.Guild:
        guild = self.client.get_guild(int(guild_id))
        if guild is not None:
            return guild
        try:
            return await self.client.fetch_guild(int(guild_id))
        except discord.HTTPException as exc:
            raise RosterGatewayError(f"guild {guild_id} unavailable") from exc

    async def _channel(self, channel_id: str) -> discord.abc.Messageable:
        channel = self.client.get_channel(int(channel_id))
        if channel is None:
            try:
                channel = await self.client.fetch_channel(int(channel_id))
            except discord.HTTPException as exc:
                raise RosterGatewayError(f"channel {channel_id} unavailable") from exc
        if not isinstance(channel, discord.abc.Messageable):
            raise RosterGatewayError(f"channel {channel_id} cannot hold messages")
        return channel

    async def _partial_message(self, channel_id: str, message_id: str) -> discord.PartialMessage:
        channel = await self._channel(channel_id)
        return channel.get_partial_message(int(message_id))  # type: ignore[attr-defined]

    async def fetch_role(self, guild_id: str, role_id: str) -> RoleSnapshot | None:
        """Fetch a role and every member holding it right now.

        Requests the full member list from Discord on every call, so the
        result reflects the current moment rather than a stale cache.
        """
        guild = await self._guild(guild_id)
        role = guild.get_role(int(role_id))
        try:
            if role is None:
                roles = await guild.fetch_roles()
                role = discord.utils.get(roles, id=int(role_id))
            if role is None:
                return None
            members = await guild.chunk(cache=True)
        except (discord.HTTPException, discord.ClientException) as exc:
            raise RosterGatewayError(f"members of role {role_id} unavailable") from exc

        holders = [m for m in members if m.get_role(role.id) is not None]
        return RoleSnapshot(
            role_id=str(role.id),
            name=role.name,
            color=role.color.value,
            members=[RosterMember(user_id=str(m.id), display_name=m.display_name) for m in holders],
        )

    async def send_roster(self, guild_id: str, channel_id: str, payload: RosterPayload) -> str:
        guild = await self._guild(guild_id)
        channel = await self._channel(channel_id)
        embed = build_roster_team_embed(payload, guild.icon.url if guild.icon else None)
        try:
            message = await channel.send(embed=embed)
        except discord.HTTPException as exc:
            raise RosterGatewayError(f"could not post roster to {channel_id}") from exc
        return str(message.id)

    async def edit_roster(
        self, guild_id: str, channel_id: str, message_id: str, payload: RosterPayload
    ) -> None:
        guild = await self._guild(guild_id)
        message = await self._partial_message(channel_id, message_id)
        embed = build_roster_team_embed(payload, guild.icon.url if guild.icon else None)
        try:
            await message.edit(embed=embed)
        except discord.NotFound as exc:
            if exc.code == UNKNOWN_MESSAGE:
                raise MessageNotFound(message_id) from exc
            raise RosterGatewayError(f"could not edit {message_id}") from exc
        except discord.HTTPException as exc:
            raise RosterGatewayError(f"could not edit {message_id}") from exc

    async def delete_message(self, guild_id: str, channel_id: str, message_id: str) -> None:
        message = await self._partial_message(channel_id, message_id)
        try:
            await message.delete()
        except discord.NotFound:
            logger.info("roster_message_already_gone message_id=%s", message_id)
        except discord.HTTPException as exc:
            raise RosterGatewayError(f"could not delete {message_id}") from exc

    async def send_text(self, channel_id: str, content: str) -> str:
        """Send a plain text message; used for check-in notifications."""
        channel = await self._channel(channel_id)
        message = await channel.send(content)
        return str(message.id)
