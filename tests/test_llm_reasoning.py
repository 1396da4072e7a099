"""Tests for lifely.adapters.llm_reasoning — prompted function calling."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from lifely.adapters.llm_reasoning import LLMReasoningService, _clean_llm_response, parse_reply
from lifely.core.llm import ProviderConfig
from lifely.core.reasoning import build_request
from lifely.data.models import ChatMessage, Role
from lifely.ports.reasoning_port import ReasoningServiceError


class TestCleanLlmResponse:
    def test_strips_json_fence(self):
        assert _clean_llm_response('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert _clean_llm_response('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain(self):
        assert _clean_llm_response('  {"a": 1} ') == '{"a": 1}'


class TestParseReply:
    def test_full_envelope(self):
        reply = parse_reply(
            '{"response": "Alarm set", "functionCalls": '
            '[{"name": "set_alarm", "arguments": {"time": "07:00", "label": "Run"}}]}'
        )
        assert reply.response == "Alarm set"
        assert reply.function_calls[0].name == "set_alarm"

    def test_plain_text_has_no_calls(self):
        reply = parse_reply("Sure, happy to help!")
        assert reply.response == "Sure, happy to help!"
        assert reply.function_calls == []

    def test_malformed_json(self):
        with pytest.raises(ReasoningServiceError):
            parse_reply('{"response": "oops"')

    def test_missing_response(self):
        with pytest.raises(ReasoningServiceError):
            parse_reply('{"functionCalls": []}')

    def test_empty(self):
        with pytest.raises(ReasoningServiceError):
            parse_reply("```json\n```")


class TestLLMReasoningService:
    @pytest.mark.asyncio
    async def test_builds_conversation_and_parses(self):
        history = [
            ChatMessage(role=Role.USER, content="hi"),
            ChatMessage(role=Role.ASSISTANT, content="hello!"),
            ChatMessage(role=Role.SYSTEM, content="internal"),
        ]
        provider = ProviderConfig(name="ollama", model="llama2")
        mock_complete = AsyncMock(return_value='```json\n{"response": "Done", "functionCalls": []}\n```')

        with patch("lifely.adapters.llm_reasoning.complete", mock_complete):
            service = LLMReasoningService(provider=provider, timeout=5)
            reply = await service.request(build_request("log 2 glasses", history))

        assert reply.response == "Done"
        system, turns = mock_complete.call_args.args
        assert "set_alarm" in system and "track_habit" in system
        assert "habitName" in system
        assert turns == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello!"},
            {"role": "user", "content": "log 2 glasses"},
        ]
        assert mock_complete.call_args.kwargs["config"] is provider

    @pytest.mark.asyncio
    async def test_provider_error_becomes_service_error(self):
        mock_complete = AsyncMock(side_effect=RuntimeError("quota exceeded"))
        with patch("lifely.adapters.llm_reasoning.complete", mock_complete):
            with pytest.raises(ReasoningServiceError):
                await LLMReasoningService().request(build_request("hi", []))

    @pytest.mark.asyncio
    async def test_timeout_becomes_service_error(self):
        async def _hang(*args, **kwargs):
            await asyncio.sleep(10)

        with patch("lifely.adapters.llm_reasoning.complete", _hang):
            with pytest.raises(ReasoningServiceError, match="timed out"):
                await LLMReasoningService(timeout=0.01).request(build_request("hi", []))
