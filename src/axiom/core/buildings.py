"""
Building catalog for Axiom City.

Static lookup from building type to cost, income, housing capacity and the
crime/pollution coefficients consulted by the simulation. Pure data; every
other module reads it, nothing writes it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class BuildingType(str, Enum):
    """Occupancy of a grid tile."""

    NONE = "None"
    ROAD = "Road"
    RESIDENTIAL = "Residential"
    COMMERCIAL = "Commercial"
    INDUSTRIAL = "Industrial"
    PARK = "Park"
    SCHOOL = "School"
    HOSPITAL = "Hospital"
    POLICE = "Police"
    FIRE_STATION = "FireStation"
    GOLD_MINE = "GoldMine"
    APARTMENT = "Apartment"
    MANSION = "Mansion"
    WATER = "Water"
    BRIDGE = "Bridge"
    # Specialty buildings, one per city
    MEGA_MALL = "MegaMall"
    SPACE_PORT = "SpacePort"
    UNIVERSITY = "University"
    STADIUM = "Stadium"
    CASINO = "Casino"
    RESEARCH_CENTRE = "ResearchCentre"


@dataclass(frozen=True)
class BuildingConfig:
    """One catalog row.

    Attributes:
        type: The building type this row describes.
        cost: Construction cost deducted by the validator.
        name: Display name.
        income_gen: Money per tick; negative values are running costs.
        pop_gen: Housing capacity contributed.
        crime: Crime coefficient (negative values provide security).
        pollution: Pollution coefficient (negative values scrub).
        max_allowed: Optional cap on how many may exist in one city.
    """

    type: BuildingType
    cost: int
    name: str
    income_gen: int = 0
    pop_gen: int = 0
    crime: int = 0
    pollution: int = 0
    max_allowed: int | None = None


BUILDINGS: dict[BuildingType, BuildingConfig] = {
    BuildingType.NONE: BuildingConfig(BuildingType.NONE, 0, "Bulldoze"),
    BuildingType.ROAD: BuildingConfig(BuildingType.ROAD, 10, "Road"),
    BuildingType.RESIDENTIAL: BuildingConfig(
        BuildingType.RESIDENTIAL, 200, "House", pop_gen=10,
    ),
    BuildingType.COMMERCIAL: BuildingConfig(
        BuildingType.COMMERCIAL, 200, "Shop", income_gen=15,
    ),
    BuildingType.INDUSTRIAL: BuildingConfig(
        BuildingType.INDUSTRIAL, 400, "Factory", income_gen=40, crime=5, pollution=15,
    ),
    BuildingType.PARK: BuildingConfig(
        BuildingType.PARK, 50, "Park", pop_gen=1, pollution=-10,
    ),
    BuildingType.SCHOOL: BuildingConfig(
        BuildingType.SCHOOL, 500, "School", income_gen=-10, crime=-2,
    ),
    BuildingType.HOSPITAL: BuildingConfig(
        BuildingType.HOSPITAL, 1000, "Hospital", income_gen=-20,
    ),
    BuildingType.POLICE: BuildingConfig(
        BuildingType.POLICE, 400, "Police", income_gen=-10, crime=-25,
    ),
    BuildingType.FIRE_STATION: BuildingConfig(
        BuildingType.FIRE_STATION, 450, "Fire Stn", income_gen=-15, crime=-5,
    ),
    BuildingType.GOLD_MINE: BuildingConfig(
        BuildingType.GOLD_MINE, 1500, "Gold Mine", income_gen=600, pollution=10,
    ),
    BuildingType.APARTMENT: BuildingConfig(
        BuildingType.APARTMENT, 100, "Flat", pop_gen=2, crime=2,
    ),
    BuildingType.MANSION: BuildingConfig(
        BuildingType.MANSION, 1000, "Mansion", pop_gen=25, crime=-5,
    ),
    BuildingType.WATER: BuildingConfig(BuildingType.WATER, 0, "Water"),
    BuildingType.BRIDGE: BuildingConfig(BuildingType.BRIDGE, 150, "Bridge"),
    BuildingType.CASINO: BuildingConfig(
        BuildingType.CASINO, 3000, "Neon Casino", income_gen=300, crime=30,
    ),
    BuildingType.MEGA_MALL: BuildingConfig(
        BuildingType.MEGA_MALL, 12000, "Mega Mall",
        income_gen=400, crime=10, pollution=5, max_allowed=1,
    ),
    BuildingType.SPACE_PORT: BuildingConfig(
        BuildingType.SPACE_PORT, 250000, "Space Port",
        income_gen=5000, crime=5, max_allowed=1,
    ),
    BuildingType.UNIVERSITY: BuildingConfig(
        BuildingType.UNIVERSITY, 8000, "University",
        income_gen=-100, crime=-10, max_allowed=1,
    ),
    BuildingType.STADIUM: BuildingConfig(
        BuildingType.STADIUM, 14000, "Stadium",
        income_gen=100, crime=15, max_allowed=1,
    ),
    BuildingType.RESEARCH_CENTRE: BuildingConfig(
        BuildingType.RESEARCH_CENTRE, 10000, "Research Lab",
        income_gen=-5, max_allowed=1,
    ),
}

# Fixed running costs charged on top of negative income_gen.
SERVICE_UPKEEP: dict[BuildingType, int] = {
    BuildingType.SCHOOL: 10,
    BuildingType.HOSPITAL: 20,
    BuildingType.POLICE: 15,
    BuildingType.FIRE_STATION: 15,
}

# Job slots contributed per building.
JOB_YIELD: dict[BuildingType, int] = {
    BuildingType.COMMERCIAL: 5,
    BuildingType.INDUSTRIAL: 8,
}

RESIDENTIAL_TYPES: frozenset[BuildingType] = frozenset({
    BuildingType.RESIDENTIAL,
    BuildingType.APARTMENT,
    BuildingType.MANSION,
})

# Tiles that count as connected without a neighbouring road.
SELF_CONNECTED_TYPES: frozenset[BuildingType] = frozenset({
    BuildingType.ROAD,
    BuildingType.BRIDGE,
    BuildingType.WATER,
})

ROAD_TYPES: frozenset[BuildingType] = frozenset({
    BuildingType.ROAD,
    BuildingType.BRIDGE,
})

# Types a player or agent may ever place.
BUILDABLE_TYPES: tuple[BuildingType, ...] = tuple(
    t for t in BuildingType if t not in (BuildingType.NONE, BuildingType.WATER)
)


def get_config(building_type: BuildingType) -> BuildingConfig:
    """Return the catalog row for a building type."""
    return BUILDINGS[building_type]


def is_building(building_type: BuildingType) -> bool:
    """True for tiles holding a structure other than road infrastructure."""
    return building_type not in (BuildingType.NONE, BuildingType.WATER) and (
        building_type not in ROAD_TYPES
    )


def parse_building_type(value: str) -> BuildingType:
    """Resolve a building type from its value or member name.

    Accepts ``"FireStation"`` as well as ``"FIRE_STATION"``.

    Raises:
        ValueError: If ``value`` names no building type.
    """
    try:
        return BuildingType(value)
    except ValueError:
        pass
    try:
        return BuildingType[value.upper()]
    except KeyError:
        raise ValueError(f"Unknown building type: {value!r}")
