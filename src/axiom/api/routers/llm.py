"""LLM endpoints: provider status."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from axiom.llm.client import ClaudeClient, OllamaClient

router = APIRouter()


@router.get("/status")
def llm_status(request: Request) -> dict[str, Any]:
    """Check availability of the LLM providers and the configured proposer."""
    anthropic_ok = ClaudeClient.is_available()
    ollama_ok = OllamaClient.is_available()
    ollama_models: list[str] = []
    if ollama_ok:
        ollama_models = OllamaClient.list_models()

    client = request.app.state.session_manager.client
    if client is not None:
        message = f"Proposer configured: {client.provider} ({client.model})"
    elif anthropic_ok or ollama_ok:
        message = "A provider is reachable; set AXIOM_LLM_PROVIDER to enable the agent"
    else:
        message = "AI is offline. Set AXIOM_LLM_PROVIDER and start a provider to enable the agent."

    return {
        "available": client is not None,
        "message": message,
        "proposer": {"provider": client.provider, "model": client.model} if client else None,
        "providers": {
            "anthropic": {"available": anthropic_ok},
            "ollama": {
                "available": ollama_ok,
                "models": ollama_models,
            },
        },
    }
