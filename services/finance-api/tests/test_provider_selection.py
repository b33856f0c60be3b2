import json
from pathlib import Path

import pytest

from providers.openai_text import OpenAITextProvider
from shared.provider_settings import ProviderSettingsError, load_provider_settings
from text_provider import (
    MAX_TOKENS_ENV,
    PROVIDER_ENV,
    TEMPERATURE_ENV,
    TIMEOUT_ENV,
    AIConfigurationError,
    MockTextProvider,
    build_text_generator,
    load_text_generator,
)


@pytest.fixture(autouse=True)
def clean_provider_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (PROVIDER_ENV, TIMEOUT_ENV, TEMPERATURE_ENV, MAX_TOKENS_ENV, "OPENAI_API_KEY", "OPENAI_MODEL"):
        monkeypatch.delenv(key, raising=False)


def test_mock_provider_selected_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(PROVIDER_ENV, "mock")

    assert isinstance(load_text_generator(), MockTextProvider)


def test_openai_provider_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(PROVIDER_ENV, "openai")

    with pytest.raises(AIConfigurationError):
        load_text_generator()


def test_openai_is_the_default_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o")

    generator = load_text_generator()

    assert isinstance(generator, OpenAITextProvider)
    assert generator.name == "openai"


def test_unknown_provider_is_a_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(PROVIDER_ENV, "carrier-pigeon")

    with pytest.raises(AIConfigurationError):
        load_text_generator()


def test_build_text_generator_rejects_unknown_names() -> None:
    with pytest.raises(ValueError):
        build_text_generator("unknown")


def test_numeric_overrides_are_validated(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(PROVIDER_ENV, "mock")
    monkeypatch.setenv(TIMEOUT_ENV, "soon")

    with pytest.raises(ProviderSettingsError):
        load_provider_settings(
            provider_env=PROVIDER_ENV,
            timeout_env=TIMEOUT_ENV,
            temperature_env=TEMPERATURE_ENV,
            max_tokens_env=MAX_TOKENS_ENV,
        )


def test_provider_settings_read_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(PROVIDER_ENV, "OpenAI")
    monkeypatch.setenv("OPENAI_API_KEY", " sk-test ")
    monkeypatch.setenv(TIMEOUT_ENV, "5")
    monkeypatch.setenv(MAX_TOKENS_ENV, "256")

    settings = load_provider_settings(
        provider_env=PROVIDER_ENV,
        timeout_env=TIMEOUT_ENV,
        temperature_env=TEMPERATURE_ENV,
        max_tokens_env=MAX_TOKENS_ENV,
    )

    assert settings.provider_name == "openai"
    assert settings.timeout_seconds == 5.0
    assert settings.max_output_tokens == 256
    assert settings.openai is not None
    assert settings.openai.api_key == "sk-test"
    assert settings.openai.model == "gpt-4o-mini"


def test_mock_provider_matches_first_rule(tmp_path: Path) -> None:
    fixture = tmp_path / "fixture.json"
    fixture.write_text(
        json.dumps(
            {
                "rules": [
                    {"match": "receipt", "response": "[]"},
                    {"match": "USER_MESSAGE", "response": "chat"},
                ],
                "default": "fallback",
            }
        ),
        encoding="utf-8",
    )
    provider = MockTextProvider(fixture_path=fixture)

    assert provider.generate("parse this receipt USER_MESSAGE") == "[]"
    assert provider.generate("USER_MESSAGE:\nhi") == "chat"
    assert provider.generate("something else") == "fallback"


def test_mock_provider_requires_fixture(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        MockTextProvider(fixture_path=tmp_path / "missing.json")
