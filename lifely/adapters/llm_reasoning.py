"""
Lifely — LLM Reasoning adapter (implements ReasoningPort).

Turns a ReasoningRequest into a prompted LLM conversation: the function
schema and the JSON reply format go into the system prompt, the chat
history becomes prior turns, and the reply is parsed back into a
ReasoningResponse. Every failure (provider error, timeout, malformed JSON)
surfaces as ReasoningServiceError.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError

from lifely.core.llm import ProviderConfig, complete
from lifely.core.reasoning import FunctionSpec, ReasoningRequest, ReasoningResponse
from lifely.data.models import Role
from lifely.ports.reasoning_port import ReasoningServiceError

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """\
You are Lifely, a friendly personal assistant that helps the user with \
habits, alarms and everyday questions. The current date and time is {now}.

You can perform these actions by requesting a function call:
{functions}

Reply with a single JSON object and nothing else, in this exact format:
{{"response": "<what you say to the user>", "functionCalls": [{{"name": "<function>", "arguments": {{...}}}}]}}

Rules:
- "response" is always present and written for the user.
- "functionCalls" is an empty list unless the user clearly asks for one of the actions above.
- Alarm times use 24h "HH:MM" format.
- For track_habit, use the habit name exactly as the user says it.
"""


def _describe_functions(functions: list[FunctionSpec]) -> str:
    lines = []
    for spec in functions:
        params = ", ".join(
            f"{name} ({param.type}): {param.description}"
            for name, param in spec.parameters.items()
        )
        lines.append(f"- {spec.name}: {spec.description}. Arguments: {params}")
    return "\n".join(lines)


def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def parse_reply(raw_text: str) -> ReasoningResponse:
    """Parse the model's text into a ReasoningResponse.

    Plain text that is not JSON at all is taken as a reply with no calls.
    Raises ReasoningServiceError when the JSON does not match the envelope.
    """
    cleaned = _clean_llm_response(raw_text)
    if not cleaned:
        raise ReasoningServiceError("Empty reply from LLM")
    if not cleaned.startswith("{"):
        logger.info("LLM replied with plain text, no function calls")
        return ReasoningResponse(response=cleaned)
    try:
        return ReasoningResponse.model_validate(json.loads(cleaned))
    except json.JSONDecodeError as exc:
        logger.error("Failed to decode LLM reply: %s | raw: %s", exc, cleaned[:200])
        raise ReasoningServiceError(f"Malformed JSON from LLM: {exc}") from exc
    except PydanticValidationError as exc:
        logger.error("LLM reply does not match the response envelope: %s", exc)
        raise ReasoningServiceError("LLM reply is missing 'response'") from exc


class LLMReasoningService:
    """ReasoningPort backed by a chat-completion LLM provider."""

    def __init__(
        self,
        provider: ProviderConfig | None = None,
        timeout: float = 30.0,
        max_tokens: int = 1024,
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._max_tokens = max_tokens

    async def request(self, request: ReasoningRequest) -> ReasoningResponse:
        system = _SYSTEM_PROMPT.format(
            now=datetime.now().astimezone().strftime("%Y-%m-%d %H:%M (%A)"),
            functions=_describe_functions(request.functions),
        )
        turns = [
            {"role": m.role.value, "content": m.content}
            for m in request.context.chat_history
            if m.role in (Role.USER, Role.ASSISTANT)
        ]
        turns.append({"role": "user", "content": request.query})

        try:
            raw_text = await asyncio.wait_for(
                complete(system, turns, max_tokens=self._max_tokens, config=self._provider),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("LLM did not answer within %.0fs", self._timeout)
            raise ReasoningServiceError("Reasoning Service timed out") from exc
        except Exception as exc:
            logger.error("LLM call failed: %s", exc)
            raise ReasoningServiceError(f"LLM call failed: {exc}") from exc

        logger.debug("LLM raw response: %s", raw_text)
        return parse_reply(raw_text or "")
