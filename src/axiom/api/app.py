"""
FastAPI application factory for the Axiom City API.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from axiom.api.sessions import SessionManager
from axiom.api.routers import actions, agent, game, llm

# Load .env: try project root first, then CWD (handles Docker volume mount)
_project_root = Path(__file__).resolve().parents[3]  # src/axiom/api/app.py -> project root
load_dotenv(_project_root / ".env")
load_dotenv(Path.cwd() / ".env")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Axiom City API",
        description="REST API for the Axiom City simulation engine",
        version="0.1.0",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    db_path = os.environ.get("AXIOM_DB_PATH", "data/axiom.db")
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    application.state.session_manager = SessionManager(db_path=db_path)

    application.include_router(game.router, prefix="/api/game", tags=["game"])
    application.include_router(actions.router, prefix="/api/actions", tags=["actions"])
    application.include_router(agent.router, prefix="/api/agent", tags=["agent"])
    application.include_router(llm.router, prefix="/api/llm", tags=["llm"])

    @application.get("/api/health")
    def health_check():
        return {"status": "ok"}

    return application


app = create_app()
