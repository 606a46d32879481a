"""Tests for the Discord bot integration.

All Discord objects are mocked; no real Discord connection required.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from paddock.config import Settings
from paddock.discord.bot import NO_PERMISSION_MESSAGE, PaddockBot, is_discord_enabled
from paddock.discord.helpers import actor_from_member, member_display_name, parse_role_mentions
from paddock.discord.views import CheckInButton, build_checkin_view, checkin_custom_id
from paddock.models.roster import RoleSnapshot, RosterMember
from paddock.models.teams import CONSTRUCTORS, Constructor

GUILD_ID = 999


def make_member(
    user_id: int = 12345,
    *,
    nick: str | None = "Lewis",
    admin: bool = False,
    owner: bool = False,
    role_ids: tuple[int, ...] = (),
) -> MagicMock:
    member = MagicMock(spec=discord.Member)
    member.id = user_id
    member.nick = nick
    member.name = "lewis44"
    member.guild = MagicMock()
    member.guild.owner_id = user_id if owner else 1
    member.guild_permissions = MagicMock()
    member.guild_permissions.administrator = admin
    member.roles = [MagicMock(id=role_id) for role_id in role_ids]
    return member


def make_interaction(member: MagicMock | None = None) -> AsyncMock:
    """Build a fully-configured Discord interaction mock."""
    interaction = AsyncMock(spec=discord.Interaction)
    interaction.response = AsyncMock()
    interaction.followup = AsyncMock()
    interaction.user = member or make_member()
    interaction.guild = MagicMock()
    interaction.guild.id = GUILD_ID
    interaction.guild.name = "Apex League"
    interaction.guild.get_role = MagicMock(return_value=None)
    interaction.guild_id = GUILD_ID
    interaction.channel_id = 1001
    interaction.message = MagicMock()
    interaction.message.embeds = []
    return interaction


def sent_text(mock: AsyncMock) -> str:
    call = mock.call_args
    return str(call.args[0] if call.args else call.kwargs.get("content", ""))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings_discord_enabled() -> Settings:
    """Settings with Discord enabled."""
    return Settings(
        paddock_env="production",
        database_url="sqlite+aiosqlite:///:memory:",
        discord_bot_token="test-token-not-real",
        discord_guild_id=str(GUILD_ID),
        discord_enabled=True,
        paddock_reorder_delay_seconds=0,
    )


@pytest.fixture
def bot(settings_discord_enabled: Settings, engine: AsyncEngine) -> PaddockBot:
    return PaddockBot(settings=settings_discord_enabled, engine=engine)


# ---------------------------------------------------------------------------
# is_discord_enabled
# ---------------------------------------------------------------------------


class TestIsDiscordEnabled:
    def test_enabled_with_token(self, settings_discord_enabled: Settings) -> None:
        assert is_discord_enabled(settings_discord_enabled) is True

    def test_disabled_without_token(self) -> None:
        settings = Settings(paddock_env="production", discord_bot_token="", discord_enabled=True)
        assert is_discord_enabled(settings) is False

    def test_disabled_when_flag_false(self) -> None:
        settings = Settings(
            paddock_env="production", discord_bot_token="tok", discord_enabled=False
        )
        assert is_discord_enabled(settings) is False

    def test_never_in_development(self) -> None:
        settings = Settings(
            paddock_env="development", discord_bot_token="tok", discord_enabled=True
        )
        assert is_discord_enabled(settings) is False


# ---------------------------------------------------------------------------
# PaddockBot construction
# ---------------------------------------------------------------------------


class TestPaddockBotInit:
    def test_bot_has_slash_commands(self, bot: PaddockBot) -> None:
        command_names = {cmd.name for cmd in bot.tree.get_commands()}
        assert command_names == {
            "postcheckin",
            "setcheckinchannel",
            "setmanagerole",
            "createroster",
            "addteam",
            "updateteam",
            "deleteroster",
            "deleteteam",
            "refreshroster",
            "reorderroster",
        }

    def test_services_share_engine(self, bot: PaddockBot, engine: AsyncEngine) -> None:
        assert bot.checkins.engine is engine
        assert bot.rosters.engine is engine
        assert bot.rosters.gateway is bot.gateway
        assert bot.rosters.reorder_delay == 0

    async def test_setup_hook_syncs_to_guild(self, bot: PaddockBot) -> None:
        bot.add_dynamic_items = MagicMock()
        bot.tree.copy_global_to = MagicMock()
        bot.tree.sync = AsyncMock(return_value=[])

        await bot.setup_hook()

        bot.add_dynamic_items.assert_called_once_with(CheckInButton)
        bot.tree.sync.assert_awaited_once()
        assert bot.tree.sync.call_args.kwargs["guild"].id == GUILD_ID


# ---------------------------------------------------------------------------
# Check-ins
# ---------------------------------------------------------------------------


class TestCheckInButtons:
    async def test_view_has_every_team(self) -> None:
        view = build_checkin_view("0f9e7d39-2a3c-4e59-8e0e-5b4f7c2f1a11")
        assert len(view.children) == len(CONSTRUCTORS)
        assert view.timeout is None
        assert [child.team for child in view.children] == list(CONSTRUCTORS)
        assert view.children[-1].item.row == 2

    def test_custom_id(self) -> None:
        assert checkin_custom_id(Constructor.REDBULL, "abc") == "redbull_abc"

    async def test_callback_routes_to_bot(self) -> None:
        button = CheckInButton(Constructor.FERRARI, "0f9e7d39-2a3c-4e59-8e0e-5b4f7c2f1a11")
        interaction = make_interaction()
        interaction.client = MagicMock()
        interaction.client.handle_check_in = AsyncMock()

        await button.callback(interaction)

        interaction.client.handle_check_in.assert_awaited_once_with(
            interaction, Constructor.FERRARI, "0f9e7d39-2a3c-4e59-8e0e-5b4f7c2f1a11"
        )


class TestHandleCheckIn:
    async def test_toggle_redraws_and_notifies(self, bot: PaddockBot, make_event) -> None:
        event = await bot.checkins.save_event(make_event())
        bot.notifications.sender = AsyncMock()
        await bot.notifications.set_channel(str(GUILD_ID), "4242")
        interaction = make_interaction()

        await bot.handle_check_in(interaction, Constructor.MERCEDES, event.unique_id)

        interaction.response.edit_message.assert_awaited_once()
        embed = interaction.response.edit_message.call_args.kwargs["embed"]
        mercedes = next(f for f in embed.fields if "Mercedes" in f.name)
        assert mercedes.value == "> Lewis"

        bot.notifications.sender.assert_awaited_once()
        channel_id, content = bot.notifications.sender.await_args.args
        assert channel_id == "4242"
        assert "**Lewis** checked-in" in content

    async def test_message_is_edited_before_notifying(self, bot: PaddockBot, make_event) -> None:
        event = await bot.checkins.save_event(make_event())
        calls: list[str] = []
        bot.notifications.sender = AsyncMock(side_effect=lambda *args: calls.append("notify"))
        await bot.notifications.set_channel(str(GUILD_ID), "4242")
        interaction = make_interaction()
        interaction.response.edit_message.side_effect = lambda **kwargs: calls.append("edit")

        await bot.handle_check_in(interaction, Constructor.MERCEDES, event.unique_id)

        assert calls == ["edit", "notify"]

    async def test_second_press_checks_out(self, bot: PaddockBot, make_event) -> None:
        event = await bot.checkins.save_event(make_event())
        for _ in range(2):
            await bot.handle_check_in(make_interaction(), Constructor.HAAS, event.unique_id)
        status = await bot.checkins.get_status(event.unique_id)
        assert status[Constructor.HAAS] == []

    async def test_unknown_event(self, bot: PaddockBot) -> None:
        interaction = make_interaction()
        await bot.handle_check_in(interaction, Constructor.HAAS, "missing")
        interaction.response.send_message.assert_called_once()
        assert interaction.response.send_message.call_args.kwargs.get("ephemeral") is True
        assert "no longer exists" in sent_text(interaction.response.send_message)


class TestPostCheckIn:
    async def _post(self, bot: PaddockBot, interaction: AsyncMock, channel: AsyncMock, roles: str):
        await bot._handle_post_checkin(
            interaction,
            season=3,
            round_number=7,
            date_time="2025-03-16 7:30 PM",
            timezone="America/Chicago",
            track_key="monza",
            channel=channel,
            roles_text=roles,
        )

    async def test_rejects_without_valid_roles(self, bot: PaddockBot) -> None:
        interaction = make_interaction()
        channel = AsyncMock(spec=discord.TextChannel)

        await self._post(bot, interaction, channel, "@everyone please")

        channel.send.assert_not_called()
        assert "No valid roles" in sent_text(interaction.followup.send)

    async def test_posts_message_and_records_it(self, bot: PaddockBot) -> None:
        role = MagicMock(id=555, managed=False)
        interaction = make_interaction()
        interaction.guild.get_role = MagicMock(side_effect=lambda rid: role if rid == 555 else None)
        message = MagicMock(id=888)
        message.channel = MagicMock(id=1001)
        channel = AsyncMock(spec=discord.TextChannel)
        channel.id = 1001
        channel.mention = "<#1001>"
        channel.send = AsyncMock(return_value=message)

        await self._post(bot, interaction, channel, "<@&555> <@&555> <@&777>")

        kwargs = channel.send.call_args.kwargs
        assert kwargs["content"] == "<@&555>"
        assert "Monza" in kwargs["embed"].title
        assert kwargs["embed"].image.url.endswith("Italy_Circuit.png")
        event_id = kwargs["view"].children[0].event_id

        event = await bot.checkins.require_event(event_id)
        assert event.roles == ["555"]
        assert event.channel_ids == ["1001"]
        assert event.message_id == "888"
        assert "Check-in created" in sent_text(interaction.followup.send)


# ---------------------------------------------------------------------------
# Settings commands and permissions
# ---------------------------------------------------------------------------


class TestManagerRole:
    async def test_requires_admin(self, bot: PaddockBot) -> None:
        interaction = make_interaction(make_member(role_ids=(77,)))
        role = MagicMock(id=77)
        await bot._handle_set_manager_role(interaction, role)
        assert "Only administrators" in sent_text(interaction.response.send_message)
        assert await bot.permissions.get_manager_role(str(GUILD_ID)) is None

    async def test_admin_sets_and_clears(self, bot: PaddockBot) -> None:
        role = MagicMock(id=77)
        role.mention = "<@&77>"
        await bot._handle_set_manager_role(make_interaction(make_member(admin=True)), role)
        assert await bot.permissions.get_manager_role(str(GUILD_ID)) == "77"

        await bot._handle_set_manager_role(make_interaction(make_member(owner=True)), None)
        assert await bot.permissions.get_manager_role(str(GUILD_ID)) is None

    async def test_manager_role_gates_commands(self, bot: PaddockBot) -> None:
        await bot.permissions.set_manager_role(str(GUILD_ID), "77")
        interaction = make_interaction(make_member(role_ids=(12,)))
        channel = MagicMock(id=5, mention="<#5>")

        await bot._handle_create_roster(interaction, "Main", channel)

        assert sent_text(interaction.response.send_message) == NO_PERMISSION_MESSAGE
        assert await bot.rosters.get_roster_sets(str(GUILD_ID)) == []

    async def test_set_checkin_channel(self, bot: PaddockBot) -> None:
        interaction = make_interaction()
        channel = MagicMock(id=4242, mention="<#4242>")
        await bot._handle_set_checkin_channel(interaction, channel)
        assert await bot.notifications.get_channel(str(GUILD_ID)) == "4242"
        assert "<#4242>" in sent_text(interaction.response.send_message)


# ---------------------------------------------------------------------------
# Roster commands
# ---------------------------------------------------------------------------


class TestRosterCommands:
    @pytest.fixture
    def gateway(self, bot: PaddockBot) -> AsyncMock:
        gateway = AsyncMock()
        gateway.fetch_role.return_value = RoleSnapshot(
            role_id="42",
            name="Ferrari",
            members=[RosterMember(user_id="1", display_name="Charles")],
        )
        gateway.send_roster.return_value = "M1"
        bot.rosters.gateway = gateway
        return gateway

    async def test_create_then_add_team(self, bot: PaddockBot, gateway: AsyncMock) -> None:
        channel = MagicMock(id=5, mention="<#5>")
        await bot._handle_create_roster(make_interaction(), "Main", channel)

        interaction = make_interaction()
        role = MagicMock(id=42, mention="<@&42>")
        await bot._handle_add_team(interaction, "Main", "Ferrari", role, order=1)

        assert "Added team **Ferrari**" in sent_text(interaction.followup.send)
        roster_set = await bot.rosters.find_roster_set(str(GUILD_ID), "Main")
        team = await bot.rosters.find_team(roster_set, "Ferrari")
        assert team.message_id == "M1"
        assert team.display_order == 1
        gateway.send_roster.assert_awaited_once()

    async def test_unknown_roster_reports_not_found(
        self, bot: PaddockBot, gateway: AsyncMock
    ) -> None:
        interaction = make_interaction()
        await bot._handle_reorder_roster(interaction, "Nope")
        assert "not found" in sent_text(interaction.followup.send)
        gateway.delete_message.assert_not_called()

    async def test_update_and_delete_team(self, bot: PaddockBot, gateway: AsyncMock) -> None:
        roster_set_id = await bot.rosters.create_roster_set(str(GUILD_ID), "5", "Main")
        await bot.rosters.add_team(roster_set_id, "Ferrari", "42")

        interaction = make_interaction()
        await bot._handle_update_team(interaction, "Main", "Ferrari", new_name="Scuderia")
        assert "Updated team" in sent_text(interaction.followup.send)
        assert gateway.edit_roster.await_args.args[3].team_name == "Scuderia"

        interaction = make_interaction()
        await bot._handle_delete_team(interaction, "Main", "Scuderia")
        assert "Removed team" in sent_text(interaction.followup.send)
        assert await bot.rosters.get_teams(roster_set_id) == []

    async def test_refresh_all(self, bot: PaddockBot, gateway: AsyncMock) -> None:
        roster_set_id = await bot.rosters.create_roster_set(str(GUILD_ID), "5", "Main")
        await bot.rosters.add_team(roster_set_id, "Ferrari", "42")

        interaction = make_interaction()
        await bot._handle_refresh_roster(interaction)

        assert "Refreshed all roster embeds" in sent_text(interaction.followup.send)
        gateway.edit_roster.assert_awaited_once()

    async def test_roster_autocomplete(self, bot: PaddockBot) -> None:
        await bot.rosters.create_roster_set(str(GUILD_ID), "5", "Division 1")
        await bot.rosters.create_roster_set(str(GUILD_ID), "6", "Main League")
        choices = await bot._autocomplete_rosters(make_interaction(), "div")
        assert [c.value for c in choices] == ["Division 1"]


# ---------------------------------------------------------------------------
# Role changes
# ---------------------------------------------------------------------------


class TestMemberUpdate:
    async def test_refreshes_changed_roles_only(self, bot: PaddockBot) -> None:
        bot.rosters.update_for_role = AsyncMock(return_value=1)
        before = MagicMock(roles=[MagicMock(id=1), MagicMock(id=2)])
        after = MagicMock(roles=[MagicMock(id=2), MagicMock(id=3)])

        await bot.on_member_update(before, after)

        called = [call.args[0] for call in bot.rosters.update_for_role.await_args_list]
        assert called == ["1", "3"]

    async def test_one_failure_does_not_stop_others(self, bot: PaddockBot) -> None:
        bot.rosters.update_for_role = AsyncMock(side_effect=[RuntimeError("boom"), 1])
        before = MagicMock(roles=[])
        after = MagicMock(roles=[MagicMock(id=1), MagicMock(id=3)])

        await bot.on_member_update(before, after)

        assert bot.rosters.update_for_role.await_count == 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_parse_role_mentions(self) -> None:
        guild = MagicMock(id=GUILD_ID)
        roles = {
            10: MagicMock(id=10, managed=False),
            11: MagicMock(id=11, managed=True),
            GUILD_ID: MagicMock(id=GUILD_ID, managed=False),
        }
        guild.get_role = MagicMock(side_effect=roles.get)

        text = f"<@&10> <@&11> <@&{GUILD_ID}> <@&10> <@&404> <@10>"
        assert parse_role_mentions(text, guild) == ["10"]

    def test_member_display_name(self) -> None:
        assert member_display_name(make_member(nick="Checo")) == "Checo"
        assert member_display_name(make_member(nick=None)) == "lewis44"

    def test_actor_from_member(self) -> None:
        actor = actor_from_member(make_member(user_id=7, owner=True, role_ids=(1, 2)))
        assert actor.user_id == "7"
        assert actor.is_guild_owner is True
        assert actor.is_administrator is False
        assert actor.role_ids == frozenset({"1", "2"})
