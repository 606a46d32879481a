"""Discord bot for Paddock.

Posts check-in messages with team buttons, records toggles, and keeps
roster messages in sync with role membership. Slash command handlers
validate input and call into the core services; the services own all
state.

The bot is optional: if DISCORD_BOT_TOKEN is not set, nothing starts.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable
from typing import TYPE_CHECKING

import discord
from discord import Intents, app_commands
from discord.ext import commands
from sqlalchemy.exc import SQLAlchemyError

from paddock.core.checkin import CheckInService, transition_kind
from paddock.core.errors import NotFoundError, RosterGatewayError
from paddock.core.notifications import NotificationDispatcher
from paddock.core.permissions import PermissionGate
from paddock.core.roster import RosterService
from paddock.discord.embeds import apply_checkin_status, build_checkin_embed, build_role_mentions
from paddock.discord.gateway import DiscordGateway
from paddock.discord.helpers import actor_from_member, member_display_name, parse_role_mentions
from paddock.discord.views import CheckInButton, build_checkin_view
from paddock.models.checkin import Event
from paddock.models.roster import RosterTeamUpdate
from paddock.models.teams import Constructor
from paddock.models.tracks import TRACKS

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from paddock.config import Settings

logger = logging.getLogger(__name__)

TIMEZONE_CHOICES = [
    app_commands.Choice(name="Eastern", value="America/Kentucky/Louisville"),
    app_commands.Choice(name="Central", value="America/Chicago"),
    app_commands.Choice(name="Mountain", value="America/Denver"),
    app_commands.Choice(name="Pacific", value="America/Los_Angeles"),
]

TRACK_CHOICES = [
    app_commands.Choice(name=track.display_name, value=track.key) for track in TRACKS.values()
]

NO_PERMISSION_MESSAGE = (
    "❌ You don't have permission to use this command. "
    "Ask a server administrator to give you the manager role."
)
GUILD_ONLY_MESSAGE = "This command can only be used in a server."

AUTOCOMPLETE_LIMIT = 25


class PaddockBot(commands.Bot):
    """The Paddock Discord bot.

    Holds one instance of each core service. Every handler reads fresh
    state from the database; nothing authoritative lives on the bot.
    """

    def __init__(self, settings: Settings, engine: AsyncEngine) -> None:
        intents = Intents.default()
        intents.members = True  # Role membership for rosters and on_member_update

        super().__init__(
            command_prefix="!",
            intents=intents,
            description="Race check-ins and live team rosters.",
        )
        self.settings = settings
        self.engine = engine
        self.gateway = DiscordGateway(self)
        self.checkins = CheckInService(engine)
        self.notifications = NotificationDispatcher(engine, self.gateway.send_text)
        self.permissions = PermissionGate(engine, settings.paddock_operator_discord_id or None)
        self.rosters = RosterService(
            engine,
            self.gateway,
            reorder_delay=settings.paddock_reorder_delay_seconds,
        )
        self._setup_commands()

    def _setup_commands(self) -> None:
        """Register slash commands on the bot's command tree."""

        @self.tree.command(name="postcheckin", description="Posts a check-in for an event")
        @app_commands.describe(
            season="What Season are we in?",
            round="What Round are we in?",
            date_time="Date and time of the event (e.g., 2025-03-16 7:30 PM)",
            timezone="Timezone of the event",
            track="The track for the event",
            channel="Primary channel for the check-in",
            roles="Roles to notify (mention them: @role1 @role2)",
            track_map="Upload an image for the track map",
            description="Custom description for the check-in message",
        )
        @app_commands.choices(timezone=TIMEZONE_CHOICES, track=TRACK_CHOICES)
        async def postcheckin_command(
            interaction: discord.Interaction,
            season: int,
            round: int,
            date_time: str,
            timezone: app_commands.Choice[str],
            track: app_commands.Choice[str],
            channel: discord.TextChannel,
            roles: str,
            track_map: discord.Attachment | None = None,
            description: str | None = None,
        ) -> None:
            await self._handle_post_checkin(
                interaction,
                season=season,
                round_number=round,
                date_time=date_time,
                timezone=timezone.value,
                track_key=track.value,
                channel=channel,
                roles_text=roles,
                track_map=track_map,
                description=description,
            )

        @self.tree.command(
            name="setcheckinchannel",
            description="Set the channel for check-in/out notifications",
        )
        @app_commands.describe(channel="The channel to send check-in/out notifications to")
        async def setcheckinchannel_command(
            interaction: discord.Interaction,
            channel: discord.TextChannel,
        ) -> None:
            await self._handle_set_checkin_channel(interaction, channel)

        @self.tree.command(
            name="setmanagerole",
            description="Set the role required to manage the bot (Admin only)",
        )
        @app_commands.describe(
            role="The role that can use bot commands (leave empty to allow all)",
        )
        async def setmanagerole_command(
            interaction: discord.Interaction,
            role: discord.Role | None = None,
        ) -> None:
            await self._handle_set_manager_role(interaction, role)

        @self.tree.command(
            name="createroster",
            description="Create a new roster set for managing team displays",
        )
        @app_commands.describe(
            name="Name for this roster set (e.g., 'Division 1', 'Main League')",
            channel="Channel where team rosters will be posted",
        )
        async def createroster_command(
            interaction: discord.Interaction,
            name: str,
            channel: discord.TextChannel,
        ) -> None:
            await self._handle_create_roster(interaction, name, channel)

        @self.tree.command(name="addteam", description="Add a team to a roster set")
        @app_commands.describe(
            roster="Name of the roster set to add the team to",
            teamname="Name of the team",
            role="Role that defines team members",
            image="Team logo/image",
            order="Display order (lower numbers appear first)",
            special="Is this a special role? (e.g., Stewards, Division Host)",
        )
        async def addteam_command(
            interaction: discord.Interaction,
            roster: str,
            teamname: str,
            role: discord.Role,
            image: discord.Attachment | None = None,
            order: app_commands.Range[int, 0] = 0,
            special: bool = False,
        ) -> None:
            await self._handle_add_team(
                interaction, roster, teamname, role, image, order, special
            )

        @self.tree.command(name="updateteam", description="Update a team's information")
        @app_commands.describe(
            roster="Name of the roster set",
            teamname="Current name of the team to update",
            newname="New name for the team",
            image="New team logo/image",
            order="New display order",
        )
        async def updateteam_command(
            interaction: discord.Interaction,
            roster: str,
            teamname: str,
            newname: str | None = None,
            image: discord.Attachment | None = None,
            order: app_commands.Range[int, 0] | None = None,
        ) -> None:
            await self._handle_update_team(interaction, roster, teamname, newname, image, order)

        @self.tree.command(
            name="deleteroster",
            description="Delete an entire roster set and all its teams",
        )
        @app_commands.describe(roster="Name of the roster set to delete")
        async def deleteroster_command(interaction: discord.Interaction, roster: str) -> None:
            await self._handle_delete_roster(interaction, roster)

        @self.tree.command(name="deleteteam", description="Remove a team from a roster set")
        @app_commands.describe(
            roster="Name of the roster set",
            teamname="Name of the team to remove",
        )
        async def deleteteam_command(
            interaction: discord.Interaction,
            roster: str,
            teamname: str,
        ) -> None:
            await self._handle_delete_team(interaction, roster, teamname)

        @self.tree.command(
            name="refreshroster",
            description="Refresh all roster embeds to update their design and member lists",
        )
        @app_commands.describe(
            roster="Name of the roster set to refresh (leave empty to refresh all)",
        )
        async def refreshroster_command(
            interaction: discord.Interaction,
            roster: str | None = None,
        ) -> None:
            await self._handle_refresh_roster(interaction, roster)

        @self.tree.command(
            name="reorderroster",
            description="Repost all teams in a roster to apply display order changes",
        )
        @app_commands.describe(roster="Name of the roster set to reorder")
        async def reorderroster_command(interaction: discord.Interaction, roster: str) -> None:
            await self._handle_reorder_roster(interaction, roster)

        async def _roster_autocomplete(
            interaction: discord.Interaction,
            current: str,
        ) -> list[app_commands.Choice[str]]:
            return await self._autocomplete_rosters(interaction, current)

        async def _team_autocomplete(
            interaction: discord.Interaction,
            current: str,
        ) -> list[app_commands.Choice[str]]:
            return await self._autocomplete_teams(interaction, current)

        for command in (
            addteam_command,
            updateteam_command,
            deleteroster_command,
            deleteteam_command,
            refreshroster_command,
            reorderroster_command,
        ):
            command.autocomplete("roster")(_roster_autocomplete)
        for command in (updateteam_command, deleteteam_command):
            command.autocomplete("teamname")(_team_autocomplete)

    async def setup_hook(self) -> None:
        """Register persistent buttons and sync slash commands."""
        self.add_dynamic_items(CheckInButton)
        if self.settings.discord_guild_id:
            guild = discord.Object(id=int(self.settings.discord_guild_id))
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info("discord_commands_synced guild_id=%s", self.settings.discord_guild_id)
        else:
            await self.tree.sync()
            logger.info("discord_commands_synced globally")

    async def on_ready(self) -> None:
        user = self.user
        logger.info(
            "discord_bot_ready user=%s guilds=%s",
            user.name if user else "unknown",
            ",".join(str(guild.id) for guild in self.guilds),
        )

    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        """Refresh rosters for every role the member gained or lost."""
        changed = {role.id for role in before.roles} ^ {role.id for role in after.roles}
        for role_id in sorted(changed):
            try:
                await self.rosters.update_for_role(str(role_id))
            except Exception:  # Last-resort handler: one role must not block the rest
                logger.exception("roster_role_update_failed role_id=%s", role_id)

    # --- Guards ---

    async def _require_permission(self, interaction: discord.Interaction) -> bool:
        """Reply ephemerally and return False unless the user may run privileged commands."""
        if interaction.guild is None or not isinstance(interaction.user, discord.Member):
            await interaction.response.send_message(GUILD_ONLY_MESSAGE, ephemeral=True)
            return False
        actor = actor_from_member(interaction.user)
        try:
            allowed = await self.permissions.authorize(actor, str(interaction.guild.id))
        except SQLAlchemyError:
            logger.exception("permission_lookup_failed guild_id=%s", interaction.guild.id)
            await interaction.response.send_message(
                "❌ Could not check your permissions right now. Please try again.",
                ephemeral=True,
            )
            return False
        if not allowed:
            await interaction.response.send_message(NO_PERMISSION_MESSAGE, ephemeral=True)
        return allowed

    # --- Check-ins ---

    async def _handle_post_checkin(
        self,
        interaction: discord.Interaction,
        *,
        season: int,
        round_number: int,
        date_time: str,
        timezone: str,
        track_key: str,
        channel: discord.TextChannel,
        roles_text: str,
        track_map: discord.Attachment | None = None,
        description: str | None = None,
    ) -> None:
        """Handle /postcheckin: store the event and post its message with buttons."""
        if not await self._require_permission(interaction):
            return
        await interaction.response.defer(ephemeral=True)

        track = TRACKS.get(track_key)
        if track is None:
            await interaction.followup.send(f"❌ Unknown track `{track_key}`.", ephemeral=True)
            return

        role_ids = parse_role_mentions(roles_text, interaction.guild)  # type: ignore[arg-type]
        if not role_ids:
            await interaction.followup.send(
                "❌ No valid roles found. Please mention roles like: @role1 @role2",
                ephemeral=True,
            )
            return

        event = Event(
            unique_id=str(uuid.uuid4()),
            server_name=interaction.guild.name if interaction.guild else "Unknown Server",
            season=season,
            round=round_number,
            channel_ids=[str(channel.id)],
            date_time=date_time,
            timezone=timezone,
            roles=role_ids,
            track_name=track.display_name,
            track_image=track.image,
            description=description,
        )
        image_url = track_map.url if track_map else self.settings.track_map_url(track.image)

        try:
            event = await self.checkins.save_event(event)
            status = await self.checkins.get_status(event.unique_id)
            message = await channel.send(
                content=build_role_mentions(event.roles),
                embed=build_checkin_embed(event, status, image_url=image_url),
                view=build_checkin_view(event.unique_id),
            )
            await self.checkins.record_message(
                event.unique_id, str(message.channel.id), str(message.id)
            )
        except (SQLAlchemyError, discord.HTTPException):
            logger.exception("checkin_post_failed event_id=%s", event.unique_id)
            await interaction.followup.send(
                "❌ Failed to post the check-in. Check that I can send messages in "
                f"{channel.mention} and try again.",
                ephemeral=True,
            )
            return

        logger.info(
            "checkin_posted event_id=%s channel_id=%s season=%s round=%s",
            event.unique_id,
            channel.id,
            season,
            round_number,
        )
        mentions = ", ".join(f"<@&{role_id}>" for role_id in role_ids)
        await interaction.followup.send(
            f"✅ Check-in created!\n\n**Channel:** {channel.mention}\n**Roles:** {mentions}",
            ephemeral=True,
        )

    async def handle_check_in(
        self,
        interaction: discord.Interaction,
        team: Constructor,
        event_id: str,
    ) -> None:
        """Handle a team button press: toggle, redraw the fields, notify."""
        user = interaction.user
        nickname = member_display_name(user)
        try:
            result = await self.checkins.toggle(event_id, team, str(user.id), nickname)
            event = await self.checkins.require_event(event_id)
            status = await self.checkins.get_status(event_id)
        except NotFoundError as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        except SQLAlchemyError:
            logger.exception("checkin_toggle_failed event_id=%s team=%s", event_id, team.value)
            await interaction.response.send_message(
                "❌ Your check-in could not be saved right now. Please press the button again.",
                ephemeral=True,
            )
            return

        # Respond within Discord's interaction window before any extra sends.
        current = None
        if interaction.message is not None and interaction.message.embeds:
            current = interaction.message.embeds[0]
        try:
            await interaction.response.edit_message(
                embed=apply_checkin_status(current, event, status)
            )
        except discord.HTTPException:
            logger.warning("checkin_message_edit_failed event_id=%s", event_id, exc_info=True)

        if interaction.guild is not None:
            await self.notifications.notify(
                str(interaction.guild.id),
                str(user.id),
                nickname,
                team,
                transition_kind(team, result.was_removed),
                event.summary(),
                str(interaction.channel_id) if interaction.channel_id else None,
            )

    async def _handle_set_checkin_channel(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel,
    ) -> None:
        if not await self._require_permission(interaction):
            return
        guild_id = str(interaction.guild_id)
        try:
            await self.notifications.set_channel(guild_id, str(channel.id))
        except SQLAlchemyError:
            logger.exception("notification_channel_set_failed")
            await interaction.response.send_message(
                "Failed to set notification channel. Please try again.",
                ephemeral=True,
            )
            return
        await interaction.response.send_message(
            f"Check-in notifications will now be sent to {channel.mention}",
            ephemeral=True,
        )

    async def _handle_set_manager_role(
        self,
        interaction: discord.Interaction,
        role: discord.Role | None,
    ) -> None:
        """Handle /setmanagerole. Only operator, owner or administrators may run it."""
        if interaction.guild is None or not isinstance(interaction.user, discord.Member):
            await interaction.response.send_message(GUILD_ONLY_MESSAGE, ephemeral=True)
            return
        if not self.permissions.can_set_manager_role(actor_from_member(interaction.user)):
            await interaction.response.send_message(
                "❌ Only administrators can set the manager role.",
                ephemeral=True,
            )
            return

        try:
            await self.permissions.set_manager_role(
                str(interaction.guild.id), str(role.id) if role else None
            )
        except SQLAlchemyError:
            logger.exception("manager_role_set_failed guild_id=%s", interaction.guild.id)
            await interaction.response.send_message(
                "❌ Failed to set manager role. Please try again.",
                ephemeral=True,
            )
            return

        if role is not None:
            content = (
                f"✅ Manager role set to {role.mention}. "
                "Only users with this role can use bot commands."
            )
        else:
            content = "✅ Manager role requirement removed. All users can now use bot commands."
        await interaction.response.send_message(content, ephemeral=True)

    # --- Rosters ---

    async def _run_roster_command(
        self,
        interaction: discord.Interaction,
        action: str,
        operation: Awaitable[str],
    ) -> None:
        """Await a roster operation and turn its outcome into an ephemeral reply."""
        try:
            content = await operation
        except NotFoundError as exc:
            content = f"❌ {exc}"
        except (SQLAlchemyError, RosterGatewayError, discord.HTTPException):
            logger.exception("roster_command_failed action=%s", action)
            content = f"❌ Failed to {action}. Please try again."
        await interaction.followup.send(content, ephemeral=True)

    async def _handle_create_roster(
        self,
        interaction: discord.Interaction,
        name: str,
        channel: discord.TextChannel,
    ) -> None:
        if not await self._require_permission(interaction):
            return
        await interaction.response.defer(ephemeral=True)

        async def _create() -> str:
            await self.rosters.create_roster_set(str(interaction.guild_id), str(channel.id), name)
            return (
                f"✅ Created roster set **{name}** in {channel.mention}. "
                "Use `/addteam` to add teams to this roster."
            )

        await self._run_roster_command(interaction, "create roster set", _create())

    async def _handle_add_team(
        self,
        interaction: discord.Interaction,
        roster_name: str,
        team_name: str,
        role: discord.Role,
        image: discord.Attachment | None = None,
        order: int = 0,
        special: bool = False,
    ) -> None:
        if not await self._require_permission(interaction):
            return
        await interaction.response.defer(ephemeral=True)

        async def _add() -> str:
            roster_set = await self.rosters.find_roster_set(str(interaction.guild_id), roster_name)
            await self.rosters.add_team(
                roster_set.id,
                team_name,
                str(role.id),
                image_url=image.url if image else None,
                display_order=order,
                is_special=special,
            )
            return (
                f"✅ Added team **{team_name}** with role {role.mention} "
                f"to roster **{roster_name}**."
            )

        await self._run_roster_command(interaction, "add team", _add())

    async def _handle_update_team(
        self,
        interaction: discord.Interaction,
        roster_name: str,
        team_name: str,
        new_name: str | None = None,
        image: discord.Attachment | None = None,
        order: int | None = None,
    ) -> None:
        if not await self._require_permission(interaction):
            return
        await interaction.response.defer(ephemeral=True)

        async def _update() -> str:
            roster_set = await self.rosters.find_roster_set(str(interaction.guild_id), roster_name)
            team = await self.rosters.find_team(roster_set, team_name)
            await self.rosters.update_team(
                team.id,
                RosterTeamUpdate(
                    team_name=new_name or None,
                    image_url=image.url if image else None,
                    display_order=order,
                ),
            )
            return f"✅ Updated team **{team_name}** in roster **{roster_name}**."

        await self._run_roster_command(interaction, "update team", _update())

    async def _handle_delete_roster(
        self,
        interaction: discord.Interaction,
        roster_name: str,
    ) -> None:
        if not await self._require_permission(interaction):
            return
        await interaction.response.defer(ephemeral=True)

        async def _delete() -> str:
            roster_set = await self.rosters.find_roster_set(str(interaction.guild_id), roster_name)
            await self.rosters.delete_roster_set(roster_set.id)
            return f"✅ Deleted roster set **{roster_name}** and all its teams."

        await self._run_roster_command(interaction, "delete roster set", _delete())

    async def _handle_delete_team(
        self,
        interaction: discord.Interaction,
        roster_name: str,
        team_name: str,
    ) -> None:
        if not await self._require_permission(interaction):
            return
        await interaction.response.defer(ephemeral=True)

        async def _delete() -> str:
            roster_set = await self.rosters.find_roster_set(str(interaction.guild_id), roster_name)
            team = await self.rosters.find_team(roster_set, team_name)
            await self.rosters.delete_team(team.id)
            return f"✅ Removed team **{team_name}** from roster **{roster_name}**."

        await self._run_roster_command(interaction, "delete team", _delete())

    async def _handle_refresh_roster(
        self,
        interaction: discord.Interaction,
        roster_name: str | None = None,
    ) -> None:
        if not await self._require_permission(interaction):
            return
        await interaction.response.defer(ephemeral=True)

        async def _refresh() -> str:
            if roster_name:
                roster_set = await self.rosters.find_roster_set(
                    str(interaction.guild_id), roster_name
                )
                await self.rosters.refresh_roster_set(roster_set.id)
                return f"✅ Refreshed all team embeds in roster **{roster_name}**."
            await self.rosters.refresh_guild(str(interaction.guild_id))
            return "✅ Refreshed all roster embeds in this server."

        await self._run_roster_command(interaction, "refresh roster(s)", _refresh())

    async def _handle_reorder_roster(
        self,
        interaction: discord.Interaction,
        roster_name: str,
    ) -> None:
        if not await self._require_permission(interaction):
            return
        await interaction.response.defer(ephemeral=True)

        async def _reorder() -> str:
            roster_set = await self.rosters.find_roster_set(str(interaction.guild_id), roster_name)
            await self.rosters.reorder(roster_set.id)
            return (
                f"✅ Reordered all teams in roster **{roster_name}** "
                "according to their display order."
            )

        await self._run_roster_command(interaction, "reorder roster", _reorder())

    async def _autocomplete_rosters(
        self,
        interaction: discord.Interaction,
        current: str,
    ) -> list[app_commands.Choice[str]]:
        if interaction.guild_id is None:
            return []
        try:
            roster_sets = await self.rosters.get_roster_sets(str(interaction.guild_id))
        except SQLAlchemyError:
            logger.exception("roster_autocomplete_failed")
            return []
        needle = current.casefold()
        return [
            app_commands.Choice(name=rs.name, value=rs.name)
            for rs in roster_sets
            if needle in rs.name.casefold()
        ][:AUTOCOMPLETE_LIMIT]

    async def _autocomplete_teams(
        self,
        interaction: discord.Interaction,
        current: str,
    ) -> list[app_commands.Choice[str]]:
        roster_name = getattr(interaction.namespace, "roster", None)
        if interaction.guild_id is None or not roster_name:
            return []
        try:
            roster_set = await self.rosters.find_roster_set(str(interaction.guild_id), roster_name)
            teams = await self.rosters.get_teams(roster_set.id)
        except NotFoundError:
            return []
        except SQLAlchemyError:
            logger.exception("team_autocomplete_failed")
            return []
        needle = current.casefold()
        return [
            app_commands.Choice(name=t.team_name, value=t.team_name)
            for t in teams
            if needle in t.team_name.casefold()
        ][:AUTOCOMPLETE_LIMIT]


def is_discord_enabled(settings: Settings) -> bool:
    """Check whether the Discord bot should be started.

    Returns True only when discord_enabled is True, a token is set, AND the
    environment is not development.
    """
    if settings.paddock_env == "development":
        logger.info("discord_bot_skipped_in_development")
        return False
    return bool(settings.discord_enabled and settings.discord_bot_token)


async def start_discord_bot(settings: Settings, engine: AsyncEngine) -> PaddockBot:
    """Create and start the Discord bot in the current event loop.

    The bot runs as a background task; this function returns immediately
    after starting it.
    """
    bot = PaddockBot(settings=settings, engine=engine)

    async def _run_bot() -> None:
        try:
            await bot.start(settings.discord_bot_token)
        except asyncio.CancelledError:
            logger.info("discord_bot_cancelled")
        except Exception:  # Last-resort handler: bot.start can raise connection and auth errors
            logger.exception("discord_bot_error")
        finally:
            if not bot.is_closed():
                await bot.close()

    asyncio.create_task(_run_bot(), name="discord-bot")
    logger.info("discord_bot_started")
    return bot
