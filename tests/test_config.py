"""Tests for Settings configuration model."""

from pathlib import Path

from modern.config import Settings


class TestDefaults:
    def test_claude_model(self):
        s = Settings()
        assert s.claude_model.startswith("claude-")

    def test_enrichment_limits(self):
        s = Settings()
        assert s.enrichment_email_limit == 5
        assert s.enrichment_calendar_days == 7

    def test_database_path(self):
        s = Settings()
        assert s.database_path == Path("data/modern.db")

    def test_google_token_path(self):
        s = Settings()
        assert s.google_token_path == Path("auth_tokens/google_auth_token.json")


class TestOverrides:
    def test_init_values_win(self):
        s = Settings(server_port=8080, log_level="DEBUG")
        assert s.server_port == 8080
        assert s.log_level == "DEBUG"

    def test_env_ignored_under_pytest(self, monkeypatch):
        monkeypatch.setenv("SERVER_PORT", "9999")
        s = Settings()
        assert s.server_port == 5000
