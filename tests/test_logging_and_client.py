from __future__ import annotations

from pathlib import Path

import pytest
from loguru import logger

from fitgen.config import Settings
from fitgen.llm import CompletionClient, GroqCompletionClient, LLMError, params_from_settings
from fitgen.logger import setup_logger


def test_setup_logger_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "fitgen.log"
    setup_logger(Settings(_env_file=None, LOG_LEVEL="debug", LOG_FILE=str(log_file), APP_ENV="prod"))
    try:
        logger.info("Generation finished", request_id="abc123")
        assert log_file.exists()
        text = log_file.read_text(encoding="utf-8")
        assert "Generation finished" in text
        assert "abc123" in text
    finally:
        setup_logger(Settings(_env_file=None))


def test_groq_client_requires_key_and_model() -> None:
    with pytest.raises(LLMError):
        GroqCompletionClient("", "llama-3.1-70b-versatile")
    with pytest.raises(LLMError):
        GroqCompletionClient("key", "")


def test_groq_client_from_settings() -> None:
    s = Settings(_env_file=None, GROQ_API_KEY="test-key", GROQ_MODEL=" llama-3.1-8b-instant ",
                 GROQ_TEMPERATURE=0.3, GENERATION_ATTEMPT_TIMEOUT_S=5.0)
    assert s.remote_enabled
    client = GroqCompletionClient.from_settings(s)
    assert client.model == "llama-3.1-8b-instant"
    assert isinstance(client, CompletionClient)

    params = params_from_settings(s)
    assert params.temperature == 0.3
    assert params.json_mode is True
    assert params_from_settings(Settings(_env_file=None, GROQ_JSON_MODE=False)).json_mode is False
    assert params.max_tokens == s.GROQ_MAX_TOKENS


def test_settings_without_key_disable_remote() -> None:
    assert Settings(_env_file=None, GROQ_API_KEY=None).remote_enabled is False
