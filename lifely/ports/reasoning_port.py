"""Reasoning port — abstract interface to the external Reasoning Service.

The chat orchestrator depends on this protocol, never on a specific
provider. Adapters own their timeout policy and raise ReasoningServiceError
for every failure (network, timeout, malformed reply).
"""

from __future__ import annotations

from typing import Protocol

from lifely.core.reasoning import ReasoningRequest, ReasoningResponse


class ReasoningServiceError(Exception):
    """Raised when the Reasoning Service cannot produce a usable reply."""


class ReasoningPort(Protocol):
    """Turns a chat turn plus function schema into a reply and optional calls."""

    async def request(self, request: ReasoningRequest) -> ReasoningResponse: ...
