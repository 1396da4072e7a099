"""Tests for lifely.core.reasoning — Reasoning Service wire contract."""

import pytest

from lifely.core.reasoning import (
    FUNCTION_SPECS,
    RawFunctionCall,
    ReasoningResponse,
    SetAlarmCall,
    TrackHabitCall,
    UnresolvedFunctionCall,
    build_request,
    parse_function_call,
)
from lifely.data.models import ChatMessage, Role


class TestRequest:
    def test_wire_format_uses_camel_case(self):
        history = [ChatMessage(role=Role.USER, content="hi")]
        wire = build_request("remind me at 7", history).to_wire()

        assert wire["query"] == "remind me at 7"
        assert wire["context"]["chatHistory"][0]["content"] == "hi"
        assert wire["context"]["chatHistory"][0]["role"] == "user"
        assert [f["name"] for f in wire["functions"]] == ["set_alarm", "track_habit"]

    def test_function_schema(self):
        wire = build_request("x", []).to_wire()
        set_alarm, track_habit = wire["functions"]
        assert set_alarm["parameters"]["time"]["type"] == "string"
        assert set_alarm["parameters"]["recurring"]["type"] == "boolean"
        assert track_habit["parameters"]["habitName"]["type"] == "string"
        assert track_habit["parameters"]["value"]["type"] == "number"

    def test_history_is_copied(self):
        history = [ChatMessage(role=Role.USER, content="hi")]
        request = build_request("x", history)
        history.append(ChatMessage(role=Role.USER, content="later"))
        assert len(request.context.chat_history) == 1

    def test_two_fixed_functions(self):
        assert [spec.name for spec in FUNCTION_SPECS] == ["set_alarm", "track_habit"]


class TestResponse:
    def test_function_calls_optional(self):
        reply = ReasoningResponse.model_validate({"response": "Hello"})
        assert reply.function_calls == []

    def test_null_function_calls(self):
        reply = ReasoningResponse.model_validate({"response": "Hello", "functionCalls": None})
        assert reply.function_calls == []

    def test_parses_calls(self):
        reply = ReasoningResponse.model_validate({
            "response": "Done",
            "functionCalls": [{"name": "set_alarm", "arguments": {"time": "07:00", "label": "Run"}}],
        })
        assert reply.function_calls[0].name == "set_alarm"
        assert reply.function_calls[0].arguments["label"] == "Run"


class TestParseFunctionCall:
    def test_set_alarm(self):
        call = parse_function_call(RawFunctionCall(
            name="set_alarm", arguments={"time": "7:05", "label": "Stretch", "recurring": True},
        ))
        assert isinstance(call, SetAlarmCall)
        assert call.arguments.time == "07:05"
        assert call.arguments.recurring is True

    def test_set_alarm_defaults(self):
        call = parse_function_call(RawFunctionCall(name="set_alarm", arguments={"time": "22:00"}))
        assert call.arguments.label == "Alarm"
        assert call.arguments.recurring is False

    def test_track_habit(self):
        call = parse_function_call(RawFunctionCall(
            name="track_habit", arguments={"habitName": "Water", "value": 2},
        ))
        assert isinstance(call, TrackHabitCall)
        assert call.arguments.habit_name == "Water"
        assert call.arguments.value == 2

    def test_unknown_function(self):
        with pytest.raises(UnresolvedFunctionCall) as exc_info:
            parse_function_call(RawFunctionCall(name="order_pizza", arguments={}))
        assert exc_info.value.name == "order_pizza"

    def test_bad_alarm_time(self):
        with pytest.raises(UnresolvedFunctionCall):
            parse_function_call(RawFunctionCall(name="set_alarm", arguments={"time": "25:99"}))

    def test_missing_habit_value(self):
        with pytest.raises(UnresolvedFunctionCall):
            parse_function_call(RawFunctionCall(name="track_habit", arguments={"habitName": "Water"}))

    def test_null_arguments(self):
        with pytest.raises(UnresolvedFunctionCall):
            parse_function_call(RawFunctionCall(name="set_alarm", arguments=None))

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_habit_value(self, value):
        with pytest.raises(UnresolvedFunctionCall) as exc_info:
            parse_function_call(RawFunctionCall(
                name="track_habit", arguments={"habitName": "Water", "value": value},
            ))
        assert exc_info.value.name == "track_habit"
