# backend/tests/test_entrypoint.py
"""
Tests for the uvicorn entry point in app.main.
"""

import uvicorn

from app.config import settings
from app.main import run


class TestRun:
    """Tests for run()."""

    def test_serves_app_with_configured_address(self, monkeypatch):
        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

        run()

        [(app, kwargs)] = calls
        assert app == "app.main:app"
        assert kwargs["host"] == settings.host
        assert kwargs["port"] == settings.port
        assert kwargs["log_config"] is None
