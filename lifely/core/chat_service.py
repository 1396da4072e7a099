"""
Lifely — Chat Orchestrator.

Owns the in-memory list of chat sessions and drives one conversational turn:
persist the user message -> ask the Reasoning Service -> apply the function
calls it returns (alarms, habit tracking) -> persist the assistant reply ->
return a structured response object.

Each front end (Telegram today) calls this service and renders the response
objects in its own way. Storage and reasoning failures are turned into
ErrorResponse objects here, never raised to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Callable, assert_never

from lifely.core.reasoning import (
    RawFunctionCall,
    SetAlarmCall,
    TrackHabitCall,
    UnresolvedFunctionCall,
    build_request,
    parse_function_call,
)
from lifely.data.models import ChatMessage, ChatSession, Role, ValidationError, utcnow
from lifely.data.schema import CHATS
from lifely.data.store import StorageError
from lifely.ports.reasoning_port import ReasoningServiceError

if TYPE_CHECKING:
    from lifely.core.alarm_service import AlarmService
    from lifely.core.habit_service import HabitService
    from lifely.data.store import EntityStore
    from lifely.ports.reasoning_port import ReasoningPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


class ResponseKind(Enum):
    SUCCESS = "success"
    ERROR = "error"
    BUSY = "busy"
    REJECTED = "rejected"


class SessionState(Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"


@dataclass
class ActionOutcome:
    action_type: str   # "set_alarm" | "track_habit"
    summary: str


@dataclass
class ChatResponse:
    kind: ResponseKind
    message: str
    session_id: str = ""


@dataclass
class SuccessResponse(ChatResponse):
    assistant_message: ChatMessage | None = None
    outcomes: list[ActionOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ErrorResponse(ChatResponse):
    pass


def _sort_key(session: ChatSession) -> tuple[datetime, datetime]:
    return session.updated_at, session.created_at


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ChatService:
    """Chat sessions plus the per-session send state machine.

    A session is IDLE or AWAITING_REPLY; a send on a session that is
    awaiting a reply is rejected with ResponseKind.BUSY.
    """

    def __init__(
        self,
        store: EntityStore,
        reasoning: ReasoningPort,
        alarms: AlarmService,
        habits: HabitService,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._reasoning = reasoning
        self._alarms = alarms
        self._habits = habits
        self._clock = clock
        self._sessions: list[ChatSession] = []
        self._states: dict[str, SessionState] = {}
        self._active_id: str | None = None

    @property
    def reasoning(self) -> ReasoningPort:
        return self._reasoning

    @reasoning.setter
    def reasoning(self, reasoning: ReasoningPort) -> None:
        self._reasoning = reasoning

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def load_sessions(self) -> list[ChatSession]:
        """Read every session; the most recent becomes active.

        Creates a first session when none exist.
        """
        self._sessions = await self._store.get_all(CHATS)
        self._sort()
        self._states = {s.id: SessionState.IDLE for s in self._sessions}
        if not self._sessions:
            await self.create_session()
        else:
            self._active_id = self._sessions[0].id
        logger.info("Loaded %d chat session(s)", len(self._sessions))
        return self.list_sessions()

    async def create_session(self) -> ChatSession:
        now = self._clock()
        session = ChatSession(created_at=now, updated_at=now)
        await self._store.add(CHATS, session)
        self._sessions.append(session)
        self._states[session.id] = SessionState.IDLE
        self._sort()
        self._active_id = session.id
        logger.info("Chat session created: %s", session.id)
        return session

    def list_sessions(self) -> list[ChatSession]:
        """All sessions, most recently updated first."""
        return list(self._sessions)

    def get_session(self, session_id: str) -> ChatSession | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def select_session(self, session_id: str) -> ChatSession | None:
        session = self.get_session(session_id)
        if session is not None:
            self._active_id = session.id
        return session

    @property
    def active_session(self) -> ChatSession | None:
        if self._active_id is None:
            return None
        return self.get_session(self._active_id)

    def is_busy(self, session_id: str) -> bool:
        return self._states.get(session_id) is SessionState.AWAITING_REPLY

    def _sort(self) -> None:
        self._sessions.sort(key=_sort_key, reverse=True)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_message(self, session_id: str, text: str) -> ChatResponse:
        """Run one conversational turn on a session."""
        text = text.strip()
        if not text:
            return ChatResponse(
                kind=ResponseKind.REJECTED, message="Message is empty.", session_id=session_id,
            )

        session = self.get_session(session_id)
        if session is None:
            logger.warning("send_message on unknown session %s", session_id)
            return ErrorResponse(
                kind=ResponseKind.ERROR,
                message="That chat no longer exists.",
                session_id=session_id,
            )

        if self.is_busy(session_id):
            return ChatResponse(
                kind=ResponseKind.BUSY,
                message="Still working on your previous message.",
                session_id=session_id,
            )

        self._states[session_id] = SessionState.AWAITING_REPLY
        try:
            return await self._exchange(session, text)
        finally:
            self._states[session_id] = SessionState.IDLE

    async def _exchange(self, session: ChatSession, text: str) -> ChatResponse:
        history = list(session.messages)
        user_message = ChatMessage(role=Role.USER, content=text, timestamp=self._clock())
        session.append(user_message)
        try:
            await self._store.put(CHATS, session)
        except StorageError as exc:
            logger.error("Could not persist user message in %s: %s", session.id, exc)
            return ErrorResponse(
                kind=ResponseKind.ERROR,
                message="Could not save your message. Please try again.",
                session_id=session.id,
            )
        self._sort()

        try:
            reply = await self._reasoning.request(build_request(text, history))
            outcomes, warnings = await self._resolve_calls(reply.function_calls)
        except ReasoningServiceError as exc:
            logger.error("Reasoning Service failed for session %s: %s", session.id, exc)
            return ErrorResponse(
                kind=ResponseKind.ERROR,
                message="The assistant is unavailable right now. Please try again.",
                session_id=session.id,
            )
        except StorageError as exc:
            logger.error("Storage failed while applying actions in %s: %s", session.id, exc)
            return ErrorResponse(
                kind=ResponseKind.ERROR,
                message="Something went wrong while saving. Please try again.",
                session_id=session.id,
            )

        # Never earlier than the user message, even if the clock steps back
        assistant_message = ChatMessage(
            role=Role.ASSISTANT,
            content=reply.response,
            timestamp=max(self._clock(), user_message.timestamp),
        )
        session.append(assistant_message)
        try:
            await self._store.put(CHATS, session)
        except StorageError as exc:
            logger.error("Could not persist assistant reply in %s: %s", session.id, exc)
            return ErrorResponse(
                kind=ResponseKind.ERROR,
                message="The reply could not be saved and may be missing after a restart.",
                session_id=session.id,
            )
        self._sort()

        return SuccessResponse(
            kind=ResponseKind.SUCCESS,
            message=reply.response,
            session_id=session.id,
            assistant_message=assistant_message,
            outcomes=outcomes,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Function calls
    # ------------------------------------------------------------------

    async def _resolve_calls(
        self, calls: list[RawFunctionCall],
    ) -> tuple[list[ActionOutcome], list[str]]:
        """Apply calls one at a time, in order."""
        outcomes: list[ActionOutcome] = []
        warnings: list[str] = []
        for raw in calls:
            try:
                call = parse_function_call(raw)
                outcomes.append(await self._apply(call))
            except UnresolvedFunctionCall as exc:
                logger.warning("Unresolved function call %s", exc)
                warnings.append(str(exc))
        return outcomes, warnings

    async def _apply(self, call: SetAlarmCall | TrackHabitCall) -> ActionOutcome:
        if isinstance(call, SetAlarmCall):
            args = call.arguments
            try:
                alarm = await self._alarms.create_alarm(
                    args.time, args.label or "Alarm", is_recurring=args.recurring,
                )
            except ValidationError as exc:
                raise UnresolvedFunctionCall(call.name, str(exc)) from exc
            kind = "recurring alarm" if alarm.is_recurring else "alarm"
            return ActionOutcome(
                action_type=call.name,
                summary=f"Set {kind} '{alarm.label}' for {alarm.time}",
            )
        elif isinstance(call, TrackHabitCall):
            args = call.arguments
            try:
                habit = await self._habits.track_by_name(args.habit_name, args.value)
            except ValidationError as exc:
                raise UnresolvedFunctionCall(call.name, str(exc)) from exc
            if habit is None:
                raise UnresolvedFunctionCall(call.name, f"no habit named '{args.habit_name}'")
            return ActionOutcome(
                action_type=call.name,
                summary=f"Logged {args.value:g} {habit.unit} for '{habit.name}'",
            )
        else:
            assert_never(call)
