"""
Strict decoders for proposer output.

Model replies are untrusted prose that may wrap a JSON object in code
fences or commentary. ``extract_json_object`` pulls out the first balanced
``{...}`` object; the ``parse_*`` functions then check it against the shape
each caller consumes and raise ``ValueError`` on anything missing or
mistyped. Missing fields are never guessed.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from axiom.core.buildings import BuildingType, parse_building_type
from axiom.core.stats import AIGoal, GoalTargetType, NewsType

# Pattern to match ```json ... ``` or ``` ... ``` code fences.
_CODE_FENCE_RE = re.compile(
    r"^\s*```(?:json)?\s*\n?(.*?)\n?\s*```\s*$",
    re.DOTALL,
)


class ActionKind(str, Enum):
    BUILD = "BUILD"
    DEMOLISH = "DEMOLISH"
    WAIT = "WAIT"


@dataclass(frozen=True)
class AgentAction:
    """A decoded proposer move. Coordinates are unset for WAIT."""
    kind: ActionKind
    building_type: BuildingType | None = None
    x: int | None = None
    y: int | None = None
    reasoning: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.kind.value,
            "buildingType": self.building_type.value if self.building_type else None,
            "x": self.x,
            "y": self.y,
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class WeirdEvent:
    title: str
    description: str
    yes_label: str
    no_label: str
    yes_effect: str
    no_effect: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "choices": {
                "yesLabel": self.yes_label,
                "noLabel": self.no_label,
                "yesEffect": self.yes_effect,
                "noEffect": self.no_effect,
            },
        }


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapping the text.

    Returns the inner content if fences are found, otherwise returns the
    original text unchanged.
    """
    match = _CODE_FENCE_RE.match(text)
    if match:
        return match.group(1)
    return text


def extract_json_object(text: str) -> str:
    """Return the first balanced ``{...}`` substring of ``text``.

    Braces inside JSON string literals are ignored.

    Raises:
        ValueError: If no complete object is present.
    """
    text = strip_code_fences(text)
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    raise ValueError("No JSON object found in response")


def parse_json_object(text: str) -> dict[str, Any]:
    """Extract and decode the first JSON object in ``text``.

    Raises:
        ValueError: If nothing decodes to a dict.
    """
    parsed: Any = json.loads(extract_json_object(text))
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected JSON object, got {type(parsed).__name__}")
    return parsed


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Field {key!r} must be a non-empty string")
    return value.strip()


def _require_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        raise ValueError(f"Field {key!r} must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ValueError(f"Field {key!r} must be an integer")


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

def parse_agent_action(text: str) -> AgentAction:
    """Decode ``{action, buildingType?, x?, y?, reasoning?}``.

    BUILD needs a known building type and integer coordinates; DEMOLISH
    needs coordinates; WAIT needs nothing.

    Raises:
        ValueError: On any schema violation.
    """
    data = parse_json_object(text)
    raw_action = data.get("action")
    if not isinstance(raw_action, str):
        raise ValueError("Field 'action' must be a string")
    try:
        kind = ActionKind(raw_action.strip().upper())
    except ValueError:
        raise ValueError(f"Unknown action {raw_action!r}")

    reasoning = data.get("reasoning")
    reasoning = reasoning.strip() if isinstance(reasoning, str) else ""

    if kind == ActionKind.WAIT:
        return AgentAction(kind=kind, reasoning=reasoning)

    x = _require_int(data, "x")
    y = _require_int(data, "y")
    if kind == ActionKind.DEMOLISH:
        return AgentAction(kind=kind, x=x, y=y, reasoning=reasoning)

    raw_type = data.get("buildingType")
    if not isinstance(raw_type, str):
        raise ValueError("BUILD requires a 'buildingType' string")
    return AgentAction(
        kind=kind,
        building_type=parse_building_type(raw_type.strip()),
        x=x,
        y=y,
        reasoning=reasoning,
    )


def parse_goal(text: str) -> AIGoal:
    """Decode ``{description, targetType, targetValue, buildingType?, reward}``."""
    data = parse_json_object(text)
    description = _require_str(data, "description")
    try:
        target_type = GoalTargetType(_require_str(data, "targetType"))
    except ValueError:
        raise ValueError(f"Unknown targetType {data.get('targetType')!r}")
    target_value = _require_int(data, "targetValue")
    reward = _require_int(data, "reward")
    if target_value <= 0 or reward < 0:
        raise ValueError("targetValue must be positive and reward non-negative")

    building_type = None
    if target_type == GoalTargetType.BUILDING_COUNT:
        building_type = parse_building_type(_require_str(data, "buildingType")).value

    return AIGoal(
        description=description,
        target_type=target_type,
        target_value=target_value,
        reward=reward,
        building_type=building_type,
    )


def parse_news(text: str) -> tuple[str, NewsType]:
    """Decode ``{text, type}``."""
    data = parse_json_object(text)
    headline = _require_str(data, "text")
    try:
        news_type = NewsType(_require_str(data, "type").lower())
    except ValueError:
        raise ValueError(f"Unknown news type {data.get('type')!r}")
    return headline, news_type


def parse_weird_event(text: str) -> WeirdEvent:
    """Decode ``{title, description, choices: {yesLabel, noLabel, yesEffect, noEffect}}``."""
    data = parse_json_object(text)
    choices = data.get("choices")
    if not isinstance(choices, dict):
        raise ValueError("Field 'choices' must be an object")
    return WeirdEvent(
        title=_require_str(data, "title"),
        description=_require_str(data, "description"),
        yes_label=_require_str(choices, "yesLabel"),
        no_label=_require_str(choices, "noLabel"),
        yes_effect=_require_str(choices, "yesEffect"),
        no_effect=_require_str(choices, "noEffect"),
    )


def parse_decision(text: str) -> bool:
    """Decode ``{decision: "YES"|"NO"}``; True means YES."""
    data = parse_json_object(text)
    decision = _require_str(data, "decision").upper()
    if decision not in ("YES", "NO"):
        raise ValueError(f"Decision must be YES or NO, got {decision!r}")
    return decision == "YES"
