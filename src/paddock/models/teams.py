"""The fixed set of teams a member can check into.

Ten constructors plus three pseudo-teams (reserve, decline, tentative).
All thirteen share the same toggle mechanics; only ``decline`` changes how
a toggle is described in notifications.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Constructor(StrEnum):
    ALPINE = "alpine"
    ASTON = "aston"
    FERRARI = "ferrari"
    HAAS = "haas"
    KICK = "kick"
    MCLAREN = "mclaren"
    MERCEDES = "mercedes"
    REDBULL = "redbull"
    WILLIAMS = "williams"
    VCARB = "vcarb"
    RESERVE = "reserve"
    DECLINE = "decline"
    TENTATIVE = "tentative"


@dataclass(frozen=True)
class ConstructorInfo:
    key: Constructor
    emoji: str
    display_name: str


# Insertion order is display order: buttons and embed fields follow it.
CONSTRUCTORS: dict[Constructor, ConstructorInfo] = {
    info.key: info
    for info in (
        ConstructorInfo(Constructor.ALPINE, "<:alpine:1299419733895942255>", "Alpine"),
        ConstructorInfo(Constructor.ASTON, "<:aston:1299419776233373828>", "Aston Martin"),
        ConstructorInfo(Constructor.FERRARI, "<:ferrari:1299419871922098299>", "Ferrari"),
        ConstructorInfo(Constructor.HAAS, "<:haas:1299419901361918126>", "HAAS"),
        ConstructorInfo(Constructor.KICK, "<:kick:1299419919246561300>", "Kick Sauber"),
        ConstructorInfo(Constructor.MCLAREN, "<:mclaren:1299419975831916667>", "McLaren"),
        ConstructorInfo(Constructor.MERCEDES, "<:mercedes:1299420016323596339>", "Mercedes"),
        ConstructorInfo(Constructor.REDBULL, "<:redbull:1299420037312024689>", "Red Bull"),
        ConstructorInfo(Constructor.WILLIAMS, "<:williams:1299420064214286386>", "Williams"),
        ConstructorInfo(Constructor.VCARB, "<:vcarb:1299420082748784680>", "VCARB"),
        ConstructorInfo(Constructor.RESERVE, "\U0001f193", "Reserve"),
        ConstructorInfo(Constructor.DECLINE, "❌", "Decline"),
        ConstructorInfo(Constructor.TENTATIVE, "<:tentative:1299432097194315807>", "Tentative"),
    )
}


def parse_constructor(value: str) -> Constructor:
    """Resolve a team key (case-insensitive) or raise ValueError."""
    try:
        return Constructor(value.strip().lower())
    except ValueError:
        msg = f"Unknown team: {value!r}"
        raise ValueError(msg) from None
