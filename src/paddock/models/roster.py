"""Roster set and roster team models.

See the roster service for how a team's rendered message is kept in sync
with the members of its role.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

EMPTY_TEAM_TEXT = "*No drivers currently assigned to this team*"
EMPTY_SPECIAL_TEXT = "*Not assigned*"
MEMBER_SEPARATOR = " & "


class RosterSet(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    guild_id: str
    channel_id: str
    name: str


class RosterTeam(BaseModel):
    """A team inside a roster set, backed by one guild role.

    ``message_id`` is None exactly while no message is posted for the team.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    roster_set_id: str
    team_name: str
    role_id: str
    image_url: str | None = None
    message_id: str | None = None
    display_order: int = 0
    is_special: bool = False


class RosterTeamUpdate(BaseModel):
    """Partial edit of a roster team. Unset fields are left alone."""

    team_name: str | None = Field(default=None, min_length=1)
    image_url: str | None = None
    display_order: int | None = Field(default=None, ge=0)

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_none=True)


class RosterMember(BaseModel):
    """A guild member currently holding a team's role."""

    user_id: str
    display_name: str


class RoleSnapshot(BaseModel):
    """A role and the members holding it at the moment of the fetch."""

    role_id: str
    name: str
    color: int = 0
    members: list[RosterMember] = Field(default_factory=list)


class RosterPayload(BaseModel):
    """Everything needed to draw one roster team message."""

    team_name: str
    role_name: str
    color: int = 0
    member_mentions: list[str] = Field(default_factory=list)
    placeholder: str | None = None
    image_url: str | None = None

    @property
    def member_text(self) -> str:
        return MEMBER_SEPARATOR.join(self.member_mentions)
