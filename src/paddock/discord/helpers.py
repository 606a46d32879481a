"""Discord bot helpers: actor resolution and role-mention parsing."""

from __future__ import annotations

import re

import discord

from paddock.core.permissions import Actor

_ROLE_MENTION = re.compile(r"<@&(\d+)>")


def actor_from_member(member: discord.Member) -> Actor:
    """Describe a guild member for the permission gate."""
    guild = member.guild
    return Actor(
        user_id=str(member.id),
        is_guild_owner=guild is not None and guild.owner_id == member.id,
        is_administrator=member.guild_permissions.administrator,
        role_ids=frozenset(str(role.id) for role in member.roles),
    )


def parse_role_mentions(text: str, guild: discord.Guild) -> list[str]:
    """Return the ids of mentionable roles in ``<@&id>`` mentions, in order.

    Unknown roles, integration-managed roles and @everyone are dropped, as
    are repeats.
    """
    role_ids: list[str] = []
    for match in _ROLE_MENTION.finditer(text or ""):
        role = guild.get_role(int(match.group(1)))
        if role is None or role.managed or role.id == guild.id:
            continue
        if str(role.id) not in role_ids:
            role_ids.append(str(role.id))
    return role_ids


def member_display_name(user: discord.abc.User) -> str:
    """Server nickname when set, otherwise the account username."""
    nick = getattr(user, "nick", None)
    return nick or user.name
