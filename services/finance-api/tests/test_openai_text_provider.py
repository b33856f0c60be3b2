"""
Tests for the OpenAI text provider.

These tests mock the OpenAI API to verify request construction and the mapping
of SDK failures onto the service's AI error types without making real API calls.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from httpx import Request, Response
from openai import APIStatusError, APITimeoutError

from providers.openai_text import OpenAITextProvider
from shared.provider_settings import OpenAIConfig, ProviderSettings
from text_provider import AIConfigurationError, AIOverloadedError, AIRequestError

COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"


@pytest.fixture
def mock_settings() -> ProviderSettings:
    """Create mock provider settings with OpenAI config."""
    return ProviderSettings(
        provider_name="openai",
        timeout_seconds=10.0,
        temperature=0.2,
        max_output_tokens=512,
        openai=OpenAIConfig(
            api_key="test-api-key",
            model="gpt-4o-mini",
            api_base="https://api.openai.com/v1",
        ),
    )


def _completion(content: str | None) -> MagicMock:
    mock_choice = MagicMock()
    mock_choice.message.content = content
    mock_completion = MagicMock()
    mock_completion.choices = [mock_choice]
    return mock_completion


def _status_error(status_code: int) -> APIStatusError:
    response = Response(status_code, request=Request("POST", COMPLETIONS_URL))
    return APIStatusError("upstream error", response=response, body=None)


class TestOpenAITextProvider:
    def test_returns_message_content(self, mock_settings: ProviderSettings):
        provider = OpenAITextProvider(settings=mock_settings)

        with patch.object(
            provider._client.chat.completions,
            "create",
            return_value=_completion('{"reply": "hi"}'),
        ) as create:
            assert provider.generate("hello") == '{"reply": "hi"}'

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [{"role": "user", "content": "hello"}]
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 512

    def test_missing_content_becomes_empty_string(self, mock_settings: ProviderSettings):
        provider = OpenAITextProvider(settings=mock_settings)

        with patch.object(provider._client.chat.completions, "create", return_value=_completion(None)):
            assert provider.generate("hello") == ""

    def test_sdk_retries_are_disabled(self, mock_settings: ProviderSettings):
        provider = OpenAITextProvider(settings=mock_settings)

        assert provider._client.max_retries == 0

    def test_503_maps_to_overloaded(self, mock_settings: ProviderSettings):
        provider = OpenAITextProvider(settings=mock_settings)

        with patch.object(provider._client.chat.completions, "create", side_effect=_status_error(503)):
            with pytest.raises(AIOverloadedError):
                provider.generate("hello")

    def test_other_status_maps_to_request_error(self, mock_settings: ProviderSettings):
        provider = OpenAITextProvider(settings=mock_settings)

        with patch.object(provider._client.chat.completions, "create", side_effect=_status_error(429)):
            with pytest.raises(AIRequestError):
                provider.generate("hello")

    def test_timeout_maps_to_request_error(self, mock_settings: ProviderSettings):
        provider = OpenAITextProvider(settings=mock_settings)
        timeout = APITimeoutError(request=Request("POST", COMPLETIONS_URL))

        with patch.object(provider._client.chat.completions, "create", side_effect=timeout):
            with pytest.raises(AIRequestError):
                provider.generate("hello")

    def test_unconfigured_provider_raises(self):
        provider = OpenAITextProvider(settings=None)

        with pytest.raises(AIConfigurationError):
            provider.generate("hello")
