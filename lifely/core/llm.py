"""
Lifely — LLM Provider Abstraction.

Single public function `complete()` that sends a system prompt plus a
multi-turn conversation to one provider and returns the reply text.
The default provider is selected from LLM_PROVIDER at first use; callers may
pass an explicit ProviderConfig instead (the local Ollama route does).
Supports: gemini (default), anthropic, openai, cohere, ollama.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

# A conversation turn: {"role": "user" | "assistant", "content": str}
Turn = dict[str, str]


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    model: str = ""
    api_key: str = ""
    base_url: str = ""   # only used by ollama


_ProviderFn = Callable[[ProviderConfig, str, list[Turn], int], Awaitable[str]]


def _merge_turns(messages: list[Turn]) -> list[Turn]:
    """Join consecutive same-role turns and drop leading assistant turns.

    Anthropic and Gemini require a conversation that starts with the user
    and alternates roles.
    """
    merged: list[Turn] = []
    for turn in messages:
        role = "assistant" if turn["role"] == "assistant" else "user"
        if not merged and role == "assistant":
            continue
        if merged and merged[-1]["role"] == role:
            merged[-1] = {"role": role, "content": merged[-1]["content"] + "\n\n" + turn["content"]}
        else:
            merged.append({"role": role, "content": turn["content"]})
    return merged


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_gemini(config: ProviderConfig, system: str, messages: list[Turn], max_tokens: int) -> str:
    import google.generativeai as genai

    genai.configure(api_key=config.api_key)
    gm = genai.GenerativeModel(
        model_name=config.model,
        system_instruction=system,
    )
    contents = [
        {"role": "model" if t["role"] == "assistant" else "user", "parts": [t["content"]]}
        for t in messages
    ]
    response = await gm.generate_content_async(
        contents,
        generation_config=genai.types.GenerationConfig(max_output_tokens=max_tokens),
    )
    return response.text


async def _complete_anthropic(config: ProviderConfig, system: str, messages: list[Turn], max_tokens: int) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=config.api_key)
    response = await client.messages.create(
        model=config.model,
        max_tokens=max_tokens,
        system=system,
        messages=messages,
    )
    return response.content[0].text


async def _complete_openai(config: ProviderConfig, system: str, messages: list[Turn], max_tokens: int) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=config.api_key)
    response = await client.chat.completions.create(
        model=config.model,
        max_tokens=max_tokens,
        messages=[{"role": "system", "content": system}, *messages],
    )
    return response.choices[0].message.content or ""


async def _complete_cohere(config: ProviderConfig, system: str, messages: list[Turn], max_tokens: int) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=config.api_key)
    response = await client.chat(
        model=config.model,
        max_tokens=max_tokens,
        messages=[{"role": "system", "content": system}, *messages],
    )
    return response.message.content[0].text


async def _complete_ollama(config: ProviderConfig, system: str, messages: list[Turn], max_tokens: int) -> str:
    url = config.base_url.rstrip("/") + "/api/chat"
    payload = {
        "model": config.model,
        "messages": [{"role": "system", "content": system}, *messages],
        "stream": False,
        "options": {"num_predict": max_tokens},
    }
    async with httpx.AsyncClient() as client:
        response = await client.post(url, json=payload)
        response.raise_for_status()
    return response.json()["message"]["content"]


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "gemini":    (_complete_gemini,    "gemini-2.0-flash"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "cohere":    (_complete_cohere,    "command-a-03-2025"),
    "ollama":    (_complete_ollama,    "llama2"),
}

OLLAMA_DEFAULT_URL = "http://localhost:11434"


def _resolve(config: ProviderConfig) -> tuple[_ProviderFn, ProviderConfig]:
    name = config.name.lower()
    if name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM provider {name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )
    fn, default_model = _PROVIDERS[name]
    base_url = config.base_url or (OLLAMA_DEFAULT_URL if name == "ollama" else "")
    return fn, ProviderConfig(
        name=name,
        model=config.model or default_model,
        api_key=config.api_key,
        base_url=base_url,
    )


def default_config() -> ProviderConfig:
    """Provider configuration from the environment (LLM_PROVIDER etc.)."""
    from lifely.config import settings

    return ProviderConfig(
        name=settings.LLM_PROVIDER,
        model=settings.LLM_MODEL,
        api_key=settings.LLM_API_KEY,
    )


# Lazy singleton, populated on first call to complete() without a config
_default: tuple[_ProviderFn, ProviderConfig] | None = None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(
    system: str,
    messages: list[Turn] | str,
    max_tokens: int = 512,
    config: ProviderConfig | None = None,
) -> str:
    """Send a conversation to an LLM provider and return the response text.

    `messages` may be a single user message string. Raises on API errors;
    callers should handle exceptions.
    """
    global _default

    if config is not None:
        fn, resolved = _resolve(config)
    else:
        if _default is None:
            _default = _resolve(default_config())
            logger.info("LLM provider: %s, model: %s", _default[1].name, _default[1].model)
        fn, resolved = _default

    if isinstance(messages, str):
        messages = [{"role": "user", "content": messages}]
    turns = _merge_turns(messages)
    if not turns:
        raise ValueError("complete() needs at least one user message")

    return await fn(resolved, system, turns, max_tokens)
