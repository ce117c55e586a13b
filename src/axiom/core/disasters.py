"""
Disaster scheduler: meteors, alien invasions and solar flares.

At most one disaster is active at a time. Each one walks a fixed stage
schedule measured in wall-clock seconds; entering a stage may produce an
effect (a meteor impact, an abduction). The scheduler only reports
effects; ``apply_effects`` turns them into a new grid and stats so the
engine can publish both inside its tick transaction.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np

from axiom.core.buildings import BuildingType
from axiom.core.grid import Grid
from axiom.core.stats import CityStats, Demographics, NewsType

if TYPE_CHECKING:
    from axiom.core.config import SimulationConfig

logger = logging.getLogger(__name__)


class DisasterType(str, Enum):
    METEOR = "Meteor"
    ALIEN_INVASION = "AlienInvasion"
    SOLAR_FLARE = "SolarFlare"


class DisasterStage(str, Enum):
    WARNING = "WARNING"
    ACTIVE = "ACTIVE"
    AFTERMATH = "AFTERMATH"


class EffectKind(str, Enum):
    ANNOUNCE = "announce"
    IMPACT = "impact"
    ABDUCTION = "abduction"
    CLEARED = "cleared"


# Stage schedules in seconds. A zero-length stage is entered and left in
# the same advance call.
STAGE_SCHEDULES: dict[DisasterType, list[tuple[DisasterStage, float]]] = {
    DisasterType.METEOR: [
        (DisasterStage.WARNING, 3.0),
        (DisasterStage.ACTIVE, 0.0),
        (DisasterStage.AFTERMATH, 3.0),
    ],
    DisasterType.ALIEN_INVASION: [(DisasterStage.ACTIVE, 10.0)],
    DisasterType.SOLAR_FLARE: [(DisasterStage.ACTIVE, 8.0)],
}

METEOR_THRESHOLD = 0.4
ALIEN_THRESHOLD = 0.7
IMPACT_RADIUS = 1


@dataclass
class ActiveDisaster:
    type: DisasterType
    position: tuple[int, int] | None
    start_time: float
    duration: float
    stage: DisasterStage
    stage_index: int = 0
    stage_started: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "position": list(self.position) if self.position else None,
            "start_time": self.start_time,
            "duration": self.duration,
            "stage": self.stage.value,
        }


@dataclass(frozen=True)
class DisasterEffect:
    kind: EffectKind
    disaster_type: DisasterType
    position: tuple[int, int] | None = None
    message: str = ""
    news_type: NewsType = NewsType.NEGATIVE


class DisasterScheduler:
    """Owns the single optional ``ActiveDisaster``.

    Not thread-safe on its own; the engine calls it under its lock.
    """

    def __init__(self, config: SimulationConfig) -> None:
        self.config = config
        self.active: ActiveDisaster | None = None

    def maybe_trigger(
        self,
        grid: Grid,
        stats: CityStats,
        rng: np.random.Generator,
        now: float,
        forced_type: DisasterType | None = None,
    ) -> list[DisasterEffect]:
        """Roll for a new disaster.

        A roll fires with ``disaster_probability`` while the treasury is
        negative and the grid holds occupied tiles. A forced type skips
        both conditions and the probability. Ignored while one is active.
        """
        if self.active is not None:
            return []
        if forced_type is None:
            if stats.money >= 0 or not grid.occupied_tiles():
                return []
            if rng.random() >= self.config.disaster_probability:
                return []
        return self.trigger(grid, rng, now, forced_type)

    def trigger(
        self,
        grid: Grid,
        rng: np.random.Generator,
        now: float,
        forced_type: DisasterType | None = None,
    ) -> list[DisasterEffect]:
        """Start a disaster unconditionally (unless one is active)."""
        if self.active is not None:
            return []

        dtype = forced_type
        if dtype is None:
            roll = rng.random()
            if roll < METEOR_THRESHOLD:
                dtype = DisasterType.METEOR
            elif roll < ALIEN_THRESHOLD:
                dtype = DisasterType.ALIEN_INVASION
            else:
                dtype = DisasterType.SOLAR_FLARE

        position = None
        if dtype == DisasterType.METEOR:
            position = (int(rng.integers(grid.width)), int(rng.integers(grid.height)))

        schedule = STAGE_SCHEDULES[dtype]
        self.active = ActiveDisaster(
            type=dtype,
            position=position,
            start_time=now,
            duration=sum(d for _, d in schedule),
            stage=schedule[0][0],
            stage_index=0,
            stage_started=now,
        )
        logger.info("Disaster triggered: %s at %s", dtype.value, position)

        effects = [self._announcement(self.active)]
        effects.extend(self._enter_stage(self.active))
        effects.extend(self.advance(now))
        return effects

    def advance(self, now: float) -> list[DisasterEffect]:
        """Move through every stage whose time has elapsed by ``now``."""
        effects: list[DisasterEffect] = []
        while self.active is not None:
            disaster = self.active
            schedule = STAGE_SCHEDULES[disaster.type]
            _, stage_length = schedule[disaster.stage_index]
            if now < disaster.stage_started + stage_length:
                break

            next_index = disaster.stage_index + 1
            if next_index >= len(schedule):
                effects.append(DisasterEffect(
                    EffectKind.CLEARED, disaster.type, disaster.position,
                    message=f"{disaster.type.value} has passed.",
                    news_type=NewsType.NEUTRAL,
                ))
                self.active = None
                break

            disaster.stage_index = next_index
            disaster.stage = schedule[next_index][0]
            disaster.stage_started += stage_length
            effects.extend(self._enter_stage(disaster))
        return effects

    def _enter_stage(self, disaster: ActiveDisaster) -> list[DisasterEffect]:
        if disaster.stage != DisasterStage.ACTIVE:
            return []
        if disaster.type == DisasterType.METEOR:
            return [DisasterEffect(
                EffectKind.IMPACT, disaster.type, disaster.position,
                message=f"METEOR IMPACT at sector {disaster.position[0]},{disaster.position[1]}!",
            )]
        if disaster.type == DisasterType.ALIEN_INVASION:
            return [DisasterEffect(
                EffectKind.ABDUCTION, disaster.type,
                message="Citizens abducted by the visitors.",
            )]
        return []

    @staticmethod
    def _announcement(disaster: ActiveDisaster) -> DisasterEffect:
        if disaster.type == DisasterType.METEOR:
            x, y = disaster.position
            text = f"METEOR DETECTED! Impact imminent at sector {x},{y}"
        elif disaster.type == DisasterType.ALIEN_INVASION:
            text = "UFO SIGHTING! They are abducting citizens!"
        else:
            text = "SOLAR FLARE! Electronics malfunctioning."
        news_type = NewsType.NEUTRAL if disaster.type == DisasterType.SOLAR_FLARE else NewsType.NEGATIVE
        return DisasterEffect(
            EffectKind.ANNOUNCE, disaster.type, disaster.position,
            message=text, news_type=news_type,
        )


# ---------------------------------------------------------------------------
# Effect application
# ---------------------------------------------------------------------------

def meteor_impact(grid: Grid, position: tuple[int, int], radius: int = IMPACT_RADIUS) -> Grid:
    """Clear the square around ``position``.

    Bridges fall back into the water and water stays water; everything else
    becomes bare land. Returns a new grid.
    """
    cx, cy = position
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            x, y = cx + dx, cy + dy
            if not grid.in_bounds(x, y):
                continue
            tile = grid.get(x, y)
            if tile.building_type in (BuildingType.BRIDGE, BuildingType.WATER):
                cleared = BuildingType.WATER
            else:
                cleared = BuildingType.NONE
            if cleared != tile.building_type:
                grid = grid.with_tile(replace(tile, building_type=cleared, placed_by="SYSTEM"))
    return grid


def abduct(stats: CityStats, fraction: float) -> CityStats:
    """Remove ``fraction`` of every cohort. Returns a new stats record."""
    new = stats.copy()
    d = new.demographics
    new.demographics = Demographics(
        children=d.children - math.floor(d.children * fraction),
        adults=d.adults - math.floor(d.adults * fraction),
        seniors=d.seniors - math.floor(d.seniors * fraction),
    )
    new.population = new.demographics.total
    return new


def apply_effects(
    effects: list[DisasterEffect],
    grid: Grid,
    stats: CityStats,
    config: SimulationConfig,
) -> tuple[Grid, CityStats]:
    """Fold disaster effects into a (grid, stats) pair.

    An impact that flattens the last Research Centre clears the research flag.
    """
    for effect in effects:
        if effect.kind == EffectKind.IMPACT and effect.position is not None:
            grid = meteor_impact(grid, effect.position)
            if stats.research_centre_built and grid.count(BuildingType.RESEARCH_CENTRE) == 0:
                stats = stats.copy()
                stats.research_centre_built = False
        elif effect.kind == EffectKind.ABDUCTION:
            stats = abduct(stats, config.alien_abduction_fraction)
    return grid, stats
