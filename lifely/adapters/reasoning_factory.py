"""Reasoning adapter factory — creates the right adapter based on config."""

from __future__ import annotations

from typing import TYPE_CHECKING

from lifely.config import settings
from lifely.core.llm import ProviderConfig
from lifely.ports.reasoning_port import ReasoningPort

if TYPE_CHECKING:
    from lifely.core.settings_service import UserSettings


def create_reasoning_service(user_settings: UserSettings | None = None) -> ReasoningPort:
    """Return the ReasoningPort matching REASONING_PROVIDER.

    Args:
        user_settings: When `use_local_llm` is on, the LLM adapter talks to
            the user's Ollama endpoint instead of the hosted provider.
    """
    provider = settings.REASONING_PROVIDER.lower()
    timeout = settings.REASONING_TIMEOUT_SECONDS

    if provider == "http":
        from lifely.adapters.http_reasoning import HttpReasoningService

        return HttpReasoningService(url=settings.REASONING_URL, timeout=timeout)

    if provider == "llm":
        from lifely.adapters.llm_reasoning import LLMReasoningService

        if user_settings is not None and user_settings.use_local_llm:
            return LLMReasoningService(
                provider=ProviderConfig(
                    name="ollama",
                    model=user_settings.llm_model,
                    base_url=user_settings.llm_endpoint,
                ),
                timeout=timeout,
            )
        return LLMReasoningService(timeout=timeout)

    raise ValueError(f"Unknown REASONING_PROVIDER: {provider!r}")
