"""LLM integration for the agent mayor, goals and news."""

from axiom.llm.advisor import CityAdvisor
from axiom.llm.arbiter import (
    OFFLINE_REASONING,
    AgentArbiter,
    AgentLoop,
    FailureMemory,
)
from axiom.llm.client import (
    ClaudeClient,
    LLMClient,
    LLMResponse,
    LLMUnavailableError,
    OllamaClient,
    OpenAICompatibleClient,
    create_client,
)
from axiom.llm.parsers import ActionKind, AgentAction

__all__ = [
    "ClaudeClient",
    "OllamaClient",
    "OpenAICompatibleClient",
    "LLMClient",
    "LLMResponse",
    "LLMUnavailableError",
    "create_client",
    "CityAdvisor",
    "AgentArbiter",
    "AgentLoop",
    "FailureMemory",
    "OFFLINE_REASONING",
    "ActionKind",
    "AgentAction",
]
