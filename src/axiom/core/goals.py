"""Goal completion and reward claims."""

from __future__ import annotations

from dataclasses import replace

from axiom.core.buildings import parse_building_type
from axiom.core.grid import Grid
from axiom.core.stats import AIGoal, CityStats, GoalTargetType
from axiom.core.treasury import TreasuryError


def is_goal_met(goal: AIGoal, stats: CityStats, grid: Grid) -> bool:
    if goal.target_type == GoalTargetType.MONEY:
        return stats.money >= goal.target_value
    if goal.target_type == GoalTargetType.POPULATION:
        return stats.population >= goal.target_value
    if goal.target_type == GoalTargetType.BUILDING_COUNT and goal.building_type:
        try:
            btype = parse_building_type(goal.building_type)
        except ValueError:
            return False
        return grid.count(btype) >= goal.target_value
    return False


def check_goal(goal: AIGoal | None, stats: CityStats, grid: Grid) -> AIGoal | None:
    """Return the goal with ``completed`` flipped if its target is reached.

    Returns the same object when nothing changes.
    """
    if goal is None or goal.completed:
        return goal
    if is_goal_met(goal, stats, grid):
        return replace(goal, completed=True)
    return goal


def claim_reward(stats: CityStats) -> CityStats:
    """Pay out a completed goal and clear it.

    Raises:
        TreasuryError: If there is no goal or it is not yet completed.
    """
    goal = stats.current_goal
    if goal is None:
        raise TreasuryError("No goal to claim")
    if not goal.completed:
        raise TreasuryError("Goal not yet completed")
    new = stats.copy()
    new.money += goal.reward
    new.current_goal = None
    return new
