"""Tests for lifely.core.llm — provider routing and turn handling."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from lifely.core import llm
from lifely.core.llm import ProviderConfig, _merge_turns, complete


class TestMergeTurns:
    def test_joins_consecutive_same_role(self):
        merged = _merge_turns([
            {"role": "user", "content": "a"},
            {"role": "user", "content": "b"},
            {"role": "assistant", "content": "c"},
        ])
        assert merged == [
            {"role": "user", "content": "a\n\nb"},
            {"role": "assistant", "content": "c"},
        ]

    def test_drops_leading_assistant_turns(self):
        merged = _merge_turns([
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "hi"},
        ])
        assert merged == [{"role": "user", "content": "hi"}]

    def test_does_not_mutate_input(self):
        turns = [{"role": "user", "content": "a"}, {"role": "user", "content": "b"}]
        _merge_turns(turns)
        assert turns[0]["content"] == "a"


class TestComplete:
    @pytest.mark.asyncio
    async def test_explicit_config_routes_to_provider(self):
        fake = AsyncMock(return_value="hi there")
        with patch.dict(llm._PROVIDERS, {"openai": (fake, "gpt-4o-mini")}):
            text = await complete("sys", "hello", config=ProviderConfig(name="OpenAI", api_key="k"))

        assert text == "hi there"
        config, system, turns, max_tokens = fake.call_args.args
        assert config.name == "openai"
        assert config.model == "gpt-4o-mini"
        assert system == "sys"
        assert turns == [{"role": "user", "content": "hello"}]
        assert max_tokens == 512

    @pytest.mark.asyncio
    async def test_explicit_model_wins(self):
        fake = AsyncMock(return_value="ok")
        with patch.dict(llm._PROVIDERS, {"anthropic": (fake, "default-model")}):
            await complete("s", "m", config=ProviderConfig(name="anthropic", model="custom"))
        assert fake.call_args.args[0].model == "custom"

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            await complete("s", "m", config=ProviderConfig(name="watson"))

    @pytest.mark.asyncio
    async def test_requires_a_user_turn(self):
        fake = AsyncMock(return_value="ok")
        with patch.dict(llm._PROVIDERS, {"openai": (fake, "m")}):
            with pytest.raises(ValueError):
                await complete("s", [{"role": "assistant", "content": "x"}], config=ProviderConfig(name="openai"))
        fake.assert_not_called()

    @pytest.mark.asyncio
    async def test_default_provider_selected_once_from_settings(self):
        fake = AsyncMock(return_value="ok")
        mock_settings = MagicMock(LLM_PROVIDER="cohere", LLM_MODEL="", LLM_API_KEY="key")
        with patch.dict(llm._PROVIDERS, {"cohere": (fake, "command-default")}), \
                patch.object(llm, "_default", None), \
                patch("lifely.config.settings", mock_settings):
            await complete("s", "one")
            mock_settings.LLM_PROVIDER = "openai"
            await complete("s", "two")

        assert fake.call_count == 2
        assert fake.call_args.args[0].name == "cohere"
        assert fake.call_args.args[0].model == "command-default"
        assert fake.call_args.args[0].api_key == "key"


class TestOllama:
    @pytest.mark.asyncio
    async def test_posts_chat_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "local reply"}})

        real_client = httpx.AsyncClient
        transport = httpx.MockTransport(handler)
        with patch.object(llm.httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport)):
            text = await complete(
                "sys",
                [{"role": "user", "content": "hi"}],
                config=ProviderConfig(name="ollama", model="mistral", base_url="http://box:11434/"),
            )

        assert text == "local reply"
        assert seen["url"] == "http://box:11434/api/chat"
        assert b'"model":"mistral"' in seen["body"].replace(b" ", b"")
        assert b'"stream":false' in seen["body"].replace(b" ", b"")

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        real_client = httpx.AsyncClient
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        with patch.object(llm.httpx, "AsyncClient", lambda **kwargs: real_client(transport=transport)):
            with pytest.raises(httpx.HTTPStatusError):
                await complete("s", "m", config=ProviderConfig(name="ollama"))
