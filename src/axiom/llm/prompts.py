"""
System prompts and context builders for the proposer.

Five modes:
  - Agent move: pick one BUILD/DEMOLISH/WAIT from a list of legal moves
  - Goal: set a short-term target for the city
  - News: a single headline
  - Weird event: a bizarre yes/no dilemma for the mayor
  - Mayor decision: rule on a weird event
"""

from __future__ import annotations

import json
from typing import Any

from axiom.core.buildings import BUILDINGS, BuildingType
from axiom.core.grid import Grid
from axiom.core.stats import CityStats


# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

JSON_ONLY_SYSTEM_PROMPT = "You are a JSON-only API. Output pure JSON with no markdown."

AGENT_SYSTEM_PROMPT = (
    "You are a JSON-only API for a city-builder game AI. Output pure JSON. "
    "If you previously failed a move, express frustration in the 'reasoning' field."
)

MAYOR_SYSTEM_PROMPT = (
    "You are the responsible, level-headed mayor of a small city. "
    "You answer with JSON only."
)

AGENT_INSTRUCTIONS = """You are playing a city builder game. You must make a MOVE.

Rules:
- Choose a move from 'Available Moves'. Any other move is checked against the same building rules and may be refused.
- Do not demolish buildings unless the city is collapsing.
- Tiles in 'forbiddenTiles' recently failed; do not use them.
- STRATEGY:
  1. If 'currentGoal' is active, prioritize it.
  2. If crimeRate > security, build Police.
  3. If pollution > 15, build a Park.
  4. If money is low, build Commercial or a GoldMine for income.
  5. Children need Schools; seniors need Hospitals.
  6. Connect buildings with Roads; unconnected buildings earn half.

Respond with valid JSON ONLY. Format:
{
  "action": "BUILD" | "DEMOLISH" | "WAIT",
  "buildingType": "<type from Available Moves>" | null,
  "x": number,
  "y": number,
  "reasoning": "A short news headline explaining this move (max 10 words)"
}"""

GOAL_INSTRUCTIONS = """You are the AI City Advisor. Based on the current city stats, generate a challenging but achievable short-term goal for the player.

Respond with VALID JSON ONLY. Format:
{
  "description": "Short creative description",
  "targetType": "population" | "money" | "building_count",
  "targetValue": number,
  "buildingType": "Residential" | "Commercial" | "Industrial" | "Park" | "Road" | "School" | "Hospital" | "Police" (required if targetType is building_count),
  "reward": number
}"""

NEWS_INSTRUCTIONS = """Write one short, funny local-news headline about the city.

Respond with VALID JSON ONLY. Format:
{
  "text": "Headline here",
  "type": "positive" | "negative" | "neutral"
}"""

WEIRD_EVENT_INSTRUCTIONS = """Generate a BIZARRE, SCI-FI or FUNNY decision event for the city mayor. It must be strange: a portal opens, cats start speaking, a time traveller demands a tax refund.

Respond with VALID JSON ONLY. Format:
{
  "title": "Short title",
  "description": "Two sentences describing the situation",
  "choices": {
    "yesLabel": "Label for accepting",
    "noLabel": "Label for refusing",
    "yesEffect": "What happens if accepted",
    "noEffect": "What happens if refused"
  }
}"""

DECISION_INSTRUCTIONS = """As the responsible mayor, decide whether to accept this proposal.

Respond with VALID JSON ONLY. Format:
{"decision": "YES" | "NO"}"""


# ---------------------------------------------------------------------------
# Context builders
# ---------------------------------------------------------------------------

def building_counts(grid: Grid) -> dict[str, int]:
    """Counts of everything on the grid except bare land."""
    counts = grid.building_counts()
    counts.pop(BuildingType.NONE.value, None)
    return counts


def build_city_summary(stats: CityStats, grid: Grid) -> dict[str, Any]:
    """Bounded, JSON-serializable view of the city for any prompt."""
    return {
        "day": stats.day,
        "money": stats.money,
        "population": stats.population,
        "happiness": stats.happiness,
        "demographics": {
            "children": stats.demographics.children,
            "adults": stats.demographics.adults,
            "seniors": stats.demographics.seniors,
        },
        "currentGoal": stats.current_goal.to_dict() if stats.current_goal else None,
        "crimeRate": stats.crime_rate,
        "security": stats.security,
        "pollution": round(stats.pollution_level, 2),
        "buildingCounts": building_counts(grid),
    }


def cost_table() -> list[dict[str, Any]]:
    return [
        {"type": b.type.value, "cost": b.cost, "income": b.income_gen, "pop": b.pop_gen}
        for b in BUILDINGS.values()
        if b.type not in (BuildingType.NONE, BuildingType.WATER)
    ]


def build_agent_prompt(
    summary: dict[str, Any],
    moves: list[dict[str, Any]],
    forbidden: list[tuple[int, int]],
) -> str:
    """User message for a move proposal.

    Parameters
    ----------
    summary : dict
        Output of ``build_city_summary``.
    moves : list[dict]
        Legal candidate moves, ``{"buildingType", "x", "y"}`` each.
    forbidden : list[tuple[int, int]]
        Coordinates that recently failed.
    """
    context = dict(summary)
    context["forbiddenTiles"] = [f"[{x},{y}]" for x, y in forbidden] or "None"

    lines = [f"Current Stats: {json.dumps(context)}", "", "Available Moves:"]
    if moves:
        for m in moves:
            lines.append(f"- BUILD {m['buildingType']} {m['x']} {m['y']}")
    else:
        lines.append("- NONE (Insufficient Funds)")
    lines.append("- WAIT (Save money)")
    if summary.get("money", 0) < 2000:
        lines.append("")
        lines.append("CRITICAL: MONEY LOW. Prefer income buildings or WAIT.")
    lines.append("")
    lines.append(AGENT_INSTRUCTIONS)
    return "\n".join(lines)


def build_goal_prompt(summary: dict[str, Any]) -> str:
    context = {
        "day": summary["day"],
        "money": summary["money"],
        "population": summary["population"],
        "buildings": summary["buildingCounts"],
        "costs": cost_table(),
    }
    return f"Current City Stats: {json.dumps(context)}\n\n{GOAL_INSTRUCTIONS}"


def build_news_prompt(summary: dict[str, Any], recent_action: str | None = None) -> str:
    context = (
        f"City Stats - Pop: {summary['population']}, Money: {summary['money']}, "
        f"Day: {summary['day']}."
    )
    if recent_action:
        context += f" Recent Action: {recent_action}"
    return f"{context}\n\n{NEWS_INSTRUCTIONS}"


def build_weird_event_prompt(summary: dict[str, Any]) -> str:
    context = (
        f"City Stats - Pop: {summary['population']}, Money: {summary['money']}, "
        f"Day: {summary['day']}."
    )
    return f"{context}\n\n{WEIRD_EVENT_INSTRUCTIONS}"


def build_decision_prompt(event: dict[str, Any]) -> str:
    return f"Proposal:\n{json.dumps(event, indent=2)}\n\n{DECISION_INSTRUCTIONS}"
