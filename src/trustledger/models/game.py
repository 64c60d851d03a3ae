"""Game-facing value types consumed by the memory subsystem.

The rules adjudicator and diplomacy channels live elsewhere; this module
only models the narrow slices of their output that memory needs: the
party roster, turn coordinates and per-order results.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel
from pydantic import Field

# Parties are opaque identifiers; the roster is passed explicitly.
Party = str

DEFAULT_ROSTER: tuple[Party, ...] = (
    "ENGLAND",
    "FRANCE",
    "GERMANY",
    "ITALY",
    "AUSTRIA",
    "RUSSIA",
    "TURKEY",
)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Season(str, Enum):
    """Season of a game year, ordered spring < fall < winter."""

    spring = "spring"
    fall = "fall"
    winter = "winter"

    @property
    def order(self) -> int:
        return _SEASON_ORDER[self]

    @property
    def code(self) -> str:
        return self.value[0].upper()


_SEASON_ORDER = {Season.spring: 0, Season.fall: 1, Season.winter: 2}


class Phase(str, Enum):
    """Phase within a season."""

    diplomacy = "diplomacy"
    movement = "movement"
    retreat = "retreat"
    build = "build"

    @property
    def code(self) -> str:
        return self.value[0].upper()


def turn_ordinal(year: int, season: Season) -> int:
    """Map ``(year, season)`` onto a single comparable integer."""
    return year * 3 + Season(season).order


# ---------------------------------------------------------------------------
# Turn coordinates
# ---------------------------------------------------------------------------


class TurnRef(BaseModel):
    """A (year, season) coordinate."""

    model_config = {"frozen": True}

    year: int = Field(description="Game year, e.g. 1901.")
    season: Season = Field(description="Season within the year.")

    @property
    def ordinal(self) -> int:
        return turn_ordinal(self.year, self.season)

    def __str__(self) -> str:
        return f"{self.year} {self.season.value.upper()}"


class PhaseRef(BaseModel):
    """A (year, season, phase) coordinate."""

    year: int = 1901
    season: Season = Season.spring
    phase: Phase = Phase.diplomacy


class OrderResult(BaseModel):
    """Adjudicated outcome of one submitted order."""

    model_config = {"frozen": True}

    order: str = Field(description="Order text as submitted, e.g. 'A PAR -> BUR'.")
    success: bool = Field(description="Whether the adjudicator executed the order.")
    reason: str | None = Field(
        default=None,
        description="Adjudicator explanation for a failed order.",
    )
