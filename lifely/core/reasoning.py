"""
Lifely — Reasoning Service contract.

Shared JSON contract between the chat orchestrator and any Reasoning
Service adapter: the outbound request (query + chat history + function
schema), the reply envelope, and the closed set of function calls the
assistant may request.

Wire keys are camelCase (chatHistory, functionCalls, habitName); Python
attributes are snake_case with aliases.
"""

from __future__ import annotations

import logging
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from lifely.data.models import ChatMessage

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class UnresolvedFunctionCall(Exception):
    """A function call that cannot be applied. Soft failure: logged and
    reported as a warning, the assistant reply is still kept."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Function schema (request side)
# ---------------------------------------------------------------------------


class FunctionParameter(_Wire):
    type: Literal["string", "number", "boolean"]
    description: str


class FunctionSpec(_Wire):
    """Describes one action the Reasoning Service may request.

    JSON example:
    {
        "name": "track_habit",
        "description": "Track progress for a habit",
        "parameters": {
            "habitName": {"type": "string", "description": "..."},
            "value": {"type": "number", "description": "..."}
        }
    }
    """

    name: str
    description: str
    parameters: dict[str, FunctionParameter]


SET_ALARM = FunctionSpec(
    name="set_alarm",
    description="Set an alarm or reminder for a specific time",
    parameters={
        "time": FunctionParameter(type="string", description="The time for the alarm in HH:MM format"),
        "label": FunctionParameter(type="string", description="The label for the alarm"),
        "recurring": FunctionParameter(type="boolean", description="Whether the alarm is recurring"),
    },
)

TRACK_HABIT = FunctionSpec(
    name="track_habit",
    description="Track progress for a habit",
    parameters={
        "habitName": FunctionParameter(type="string", description="The name of the habit to track"),
        "value": FunctionParameter(type="number", description="The value to log for the habit"),
    },
)

FUNCTION_SPECS: tuple[FunctionSpec, ...] = (SET_ALARM, TRACK_HABIT)


# ---------------------------------------------------------------------------
# Request / response envelopes
# ---------------------------------------------------------------------------


class ChatContext(_Wire):
    chat_history: list[ChatMessage] = Field(default_factory=list, alias="chatHistory")


class ReasoningRequest(_Wire):
    """Outbound request.

    JSON example:
    {
        "query": "remind me at 7 to stretch",
        "context": {"chatHistory": [{"id": "...", "role": "user", ...}]},
        "functions": [{"name": "set_alarm", ...}, {"name": "track_habit", ...}]
    }
    """

    query: str
    context: ChatContext = Field(default_factory=ChatContext)
    functions: list[FunctionSpec] = Field(default_factory=lambda: list(FUNCTION_SPECS))

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RawFunctionCall(_Wire):
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def null_arguments(cls, v: Any) -> Any:
        return {} if v is None else v


class ReasoningResponse(_Wire):
    """Reply envelope.

    JSON example:
    {
        "response": "Done, alarm set for 07:00.",
        "functionCalls": [{"name": "set_alarm", "arguments": {"time": "07:00", ...}}]
    }
    """

    response: str
    function_calls: list[RawFunctionCall] = Field(default_factory=list, alias="functionCalls")

    @field_validator("function_calls", mode="before")
    @classmethod
    def null_calls(cls, v: Any) -> Any:
        return [] if v is None else v


# ---------------------------------------------------------------------------
# Typed function calls (closed tagged union)
# ---------------------------------------------------------------------------


class SetAlarmArgs(_Wire):
    time: str
    label: str = "Alarm"
    recurring: bool = False

    @field_validator("time")
    @classmethod
    def hhmm(cls, v: str) -> str:
        match = _TIME_RE.match(v.strip())
        if match is None:
            raise ValueError(f"time must be HH:MM, got {v!r}")
        return f"{int(match.group(1)):02d}:{match.group(2)}"


class TrackHabitArgs(_Wire):
    habit_name: str = Field(alias="habitName", min_length=1)
    value: float = Field(allow_inf_nan=False)


class SetAlarmCall(_Wire):
    name: Literal["set_alarm"] = "set_alarm"
    arguments: SetAlarmArgs


class TrackHabitCall(_Wire):
    name: Literal["track_habit"] = "track_habit"
    arguments: TrackHabitArgs


FunctionCall = Annotated[Union[SetAlarmCall, TrackHabitCall], Field(discriminator="name")]

_CALL_ADAPTER: TypeAdapter[FunctionCall] = TypeAdapter(FunctionCall)


def parse_function_call(raw: RawFunctionCall) -> SetAlarmCall | TrackHabitCall:
    """Turn a raw call into its typed variant.

    Raises UnresolvedFunctionCall for unknown names or invalid arguments.
    """
    known = {spec.name for spec in FUNCTION_SPECS}
    if raw.name not in known:
        raise UnresolvedFunctionCall(raw.name, "unknown function")
    try:
        return _CALL_ADAPTER.validate_python({"name": raw.name, "arguments": raw.arguments})
    except PydanticValidationError as exc:
        reasons = "; ".join(err["msg"] for err in exc.errors())
        raise UnresolvedFunctionCall(raw.name, f"invalid arguments ({reasons})") from exc


def build_request(query: str, history: list[ChatMessage]) -> ReasoningRequest:
    """Request for one user turn: the new text plus the prior history."""
    return ReasoningRequest(query=query, context=ChatContext(chat_history=list(history)))
