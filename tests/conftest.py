"""
Shared test configuration.

Sets AXIOM_DB_PATH to a temporary file for each test session to
prevent SQLite database accumulation and cross-test contamination, and
clears the LLM provider so sessions start offline.
"""

import os

import pytest


@pytest.fixture(autouse=True, scope="session")
def _isolate_db(tmp_path_factory):
    """Use a temp DB path for all tests to avoid polluting the project dir."""
    tmp_dir = tmp_path_factory.mktemp("axiom_test_data")
    db_path = str(tmp_dir / "test_axiom.db")
    os.environ["AXIOM_DB_PATH"] = db_path
    saved_provider = os.environ.pop("AXIOM_LLM_PROVIDER", None)
    yield
    os.environ.pop("AXIOM_DB_PATH", None)
    if saved_provider is not None:
        os.environ["AXIOM_LLM_PROVIDER"] = saved_provider
