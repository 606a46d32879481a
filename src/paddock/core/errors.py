"""Errors raised by the core services.

``NotFoundError`` messages are written for end users and can be shown
as-is in an ephemeral reply.
"""

from __future__ import annotations


class PaddockError(Exception):
    """Base class for Paddock domain errors."""


class NotFoundError(PaddockError):
    """A referenced record does not exist."""


class EventNotFound(NotFoundError):
    def __init__(self, event_id: str) -> None:
        super().__init__("This check-in no longer exists. Ask a manager to post a new one.")
        self.event_id = event_id


class RosterSetNotFound(NotFoundError):
    def __init__(self, name_or_id: str) -> None:
        super().__init__(
            f"Roster set **{name_or_id}** not found. Use `/createroster` to create it first."
        )
        self.name_or_id = name_or_id


class RosterTeamNotFound(NotFoundError):
    def __init__(self, name_or_id: str, roster_name: str | None = None) -> None:
        where = f" in roster **{roster_name}**" if roster_name else ""
        super().__init__(f"Team **{name_or_id}** not found{where}.")
        self.name_or_id = name_or_id


class RosterGatewayError(PaddockError):
    """A Discord call made on behalf of a roster failed."""


class MessageNotFound(RosterGatewayError):
    """The stored message id no longer resolves to a message in the channel."""
