"""Discord UI components: the team buttons under a check-in message.

Buttons are dynamic items: their custom id (``{team}_{event_id}``) carries
everything needed to handle a press, so they keep working after restarts
without re-registering per-message views.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import discord

from paddock.models.teams import CONSTRUCTORS, Constructor

if TYPE_CHECKING:
    from paddock.discord.bot import PaddockBot

logger = logging.getLogger(__name__)

_TEAM_PATTERN = "|".join(re.escape(team.value) for team in Constructor)


def checkin_custom_id(team: Constructor, event_id: str) -> str:
    return f"{team.value}_{event_id}"


class CheckInButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=rf"(?P<team>{_TEAM_PATTERN})_(?P<event_id>[0-9a-fA-F-]{{36}})",
):
    """One team's toggle button on a check-in message."""

    def __init__(self, team: Constructor, event_id: str) -> None:
        super().__init__(
            discord.ui.Button(
                style=discord.ButtonStyle.secondary,
                emoji=CONSTRUCTORS[team].emoji,
                custom_id=checkin_custom_id(team, event_id),
            )
        )
        self.team = team
        self.event_id = event_id

    @classmethod
    async def from_custom_id(
        cls,
        interaction: discord.Interaction,  # noqa: ARG003
        item: discord.ui.Button,  # noqa: ARG003
        match: re.Match[str],
    ) -> CheckInButton:
        return cls(Constructor(match["team"]), match["event_id"])

    async def callback(self, interaction: discord.Interaction) -> None:
        bot: PaddockBot = interaction.client  # type: ignore[assignment]
        await bot.handle_check_in(interaction, self.team, self.event_id)


def build_checkin_view(event_id: str) -> discord.ui.View:
    """All team buttons for an event, five per row in catalogue order."""
    view = discord.ui.View(timeout=None)
    for index, team in enumerate(CONSTRUCTORS):
        button = CheckInButton(team, event_id)
        button.item.row = index // 5
        view.add_item(button)
    return view
