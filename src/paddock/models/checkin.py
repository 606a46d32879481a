"""Check-in event and status models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from paddock.models.teams import Constructor


class TransitionKind(StrEnum):
    """How a toggle is described to the guild's notification channel."""

    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    UPDATED_STATUS = "updated-status"


class CheckInMember(BaseModel):
    """One member present in a team's check-in list."""

    model_config = ConfigDict(frozen=True)

    # Statuses written by older deployments use camelCase keys.
    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"))
    nickname: str


class EventSummary(BaseModel):
    season: int
    round: int
    track: str


class Event(BaseModel):
    """A posted check-in for one race round.

    Only the first of ``channel_ids`` receives the check-in message; the
    full list is kept as entered.
    """

    model_config = ConfigDict(from_attributes=True)

    unique_id: str
    server_name: str
    season: int
    round: int
    channel_ids: list[str] = Field(min_length=1)
    date_time: str
    timezone: str
    roles: list[str] = Field(default_factory=list)
    track_name: str
    track_image: str = ""
    description: str | None = None
    message_channel_id: str | None = None
    message_id: str | None = None

    @property
    def primary_channel_id(self) -> str:
        return self.channel_ids[0]

    def summary(self) -> EventSummary:
        return EventSummary(season=self.season, round=self.round, track=self.track_name)


class ToggleResult(BaseModel):
    """Outcome of a single toggle: the team's new list and which way it went."""

    team: Constructor
    members: list[CheckInMember]
    was_removed: bool


CheckInStatus = dict[Constructor, list[CheckInMember]]
