"""Tests for the text generation client and response parsing.

All tests are deterministic and do not make real network calls.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError
from pydantic import SecretStr

from backend.notekit.config import Settings
from backend.notekit.errors import GenerationFailedError, MalformedGenerationResponseError
from backend.notekit.llm.client import (
    OpenAITextGenerator,
    UnconfiguredTextGenerator,
    build_text_generator,
)
from backend.notekit.llm.parsing import parse_json_response, strip_code_fences


def _mock_client(content: str | None) -> AsyncMock:
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content

    client = AsyncMock()
    client.chat.completions.create = AsyncMock(return_value=mock_response)
    return client


@pytest.mark.asyncio
async def test_openai_generator_sends_system_and_user_messages() -> None:
    """System prompt goes first, user prompt second, budgets are forwarded."""
    client = _mock_client('{"ok": true}')
    generator = OpenAITextGenerator(api_key="test-key", model="test-model", client=client)

    text = await generator.generate(
        "Summarize this", system="Be brief", temperature=0.2, max_tokens=100
    )

    assert text == '{"ok": true}'
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["temperature"] == 0.2
    assert kwargs["max_tokens"] == 100
    assert kwargs["messages"] == [
        {"role": "system", "content": "Be brief"},
        {"role": "user", "content": "Summarize this"},
    ]


@pytest.mark.asyncio
async def test_openai_generator_without_system_prompt() -> None:
    """Only the user message is sent when no system prompt is given."""
    client = _mock_client("hello")
    generator = OpenAITextGenerator(api_key="test-key", client=client)

    await generator.generate("Hi")

    messages = client.chat.completions.create.call_args.kwargs["messages"]
    assert messages == [{"role": "user", "content": "Hi"}]


@pytest.mark.asyncio
async def test_openai_generator_returns_empty_string_for_none_content() -> None:
    """A response without content yields an empty string, not None."""
    generator = OpenAITextGenerator(api_key="test-key", client=_mock_client(None))
    assert await generator.generate("Hi") == ""


@pytest.mark.asyncio
async def test_openai_generator_wraps_api_errors() -> None:
    """OpenAI errors surface as GenerationFailedError."""
    client = AsyncMock()
    client.chat.completions.create = AsyncMock(side_effect=OpenAIError("API error"))
    generator = OpenAITextGenerator(api_key="test-key", client=client)

    with pytest.raises(GenerationFailedError, match="API error"):
        await generator.generate("Hi")


@pytest.mark.asyncio
async def test_openai_generator_times_out() -> None:
    """Calls exceeding the timeout fail with GenerationFailedError."""

    async def slow_create(**kwargs: object) -> None:
        await asyncio.sleep(1)

    client = AsyncMock()
    client.chat.completions.create = slow_create
    generator = OpenAITextGenerator(api_key="test-key", client=client, timeout_seconds=0.01)

    with pytest.raises(GenerationFailedError, match="timed out"):
        await generator.generate("Hi")


@pytest.mark.asyncio
async def test_unconfigured_generator_always_fails() -> None:
    """Without an API key every call fails with a typed error."""
    with pytest.raises(GenerationFailedError, match="operation=compile"):
        await UnconfiguredTextGenerator().generate("Hi", operation="compile")


def test_build_text_generator_without_key() -> None:
    """No API key selects the unconfigured generator."""
    generator = build_text_generator(Settings(openai_api_key=None))
    assert isinstance(generator, UnconfiguredTextGenerator)


def test_build_text_generator_with_key() -> None:
    """An API key selects the OpenAI generator with settings applied."""
    generator = build_text_generator(
        Settings(openai_api_key=SecretStr("sk-test"), openai_model="gpt-test", llm_timeout_seconds=5)
    )
    assert isinstance(generator, OpenAITextGenerator)
    assert generator.model == "gpt-test"
    assert generator.timeout_seconds == 5


def test_strip_code_fences_variants() -> None:
    """Fenced JSON with or without a language tag is unwrapped."""
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n[1, 2]\n```') == "[1, 2]"
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


def test_parse_json_response_accepts_fenced_json() -> None:
    """Fenced JSON decodes like plain JSON."""
    assert parse_json_response('```json\n{"title": "x"}\n```') == {"title": "x"}


@pytest.mark.parametrize("text", [None, "", "   ", "not json", "```json\n{broken\n```"])
def test_parse_json_response_rejects_bad_input(text: str | None) -> None:
    """Empty or invalid text raises MalformedGenerationResponseError."""
    with pytest.raises(MalformedGenerationResponseError):
        parse_json_response(text)
