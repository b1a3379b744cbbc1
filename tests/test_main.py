"""Tests for wiring the application from settings."""

from unittest.mock import patch

import pytest

from app.config import Settings
from app.main import build_app, build_providers
from app.web.handlers import CHAT, LEDGER


class TestBuildProviders:
    def test_only_configured_backends_are_registered(self):
        s = Settings(openai_api_key="sk-test", claude_api_key="", gemini_api_key="g-key")
        with patch("app.main.OpenAIClient"), patch("app.main.ClaudeClient") as claude, \
             patch("app.main.GeminiClient") as gemini:
            providers = build_providers(s)

        assert providers.default == "gpt-4o-mini"
        assert set(providers.models()) == {"gpt-4o-mini", "gpt-4o", "gemini"}
        claude.assert_not_called()
        gemini.assert_called_once_with(api_key="g-key", model=s.gemini_model)

    def test_params_come_from_settings(self):
        s = Settings(max_tokens=256, temperature=0.2, claude_api_key="c-key")
        with patch("app.main.OpenAIClient"), patch("app.main.ClaudeClient"), patch("app.main.GeminiClient"):
            providers = build_providers(s)

        assert providers.params.max_tokens == 256
        assert providers.params.temperature == 0.2
        assert "claude-3" in providers.models()


class TestBuildApp:
    @pytest.mark.asyncio
    async def test_fake_db_wiring(self):
        s = Settings(use_fake_db=True, free_credits=3, cache_max_entries=10)
        with patch("app.main.OpenAIClient"), patch("app.main.ClaudeClient"), patch("app.main.GeminiClient"):
            app = await build_app(s)

        account = await app[LEDGER].balance("a@example.com")
        assert account.credits == 3
        assert app[CHAT].cache.max_entries == 10
