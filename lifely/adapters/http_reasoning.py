"""HTTP Reasoning adapter — implements ReasoningPort.

POSTs the request envelope as JSON to a remote Reasoning Service and
parses its reply. Network errors, non-2xx statuses, timeouts and malformed
bodies are all reported as ReasoningServiceError.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from lifely.core.reasoning import ReasoningRequest, ReasoningResponse
from lifely.ports.reasoning_port import ReasoningServiceError

logger = logging.getLogger(__name__)


class HttpReasoningService:
    """ReasoningPort over a JSON HTTP endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._client = client

    async def request(self, request: ReasoningRequest) -> ReasoningResponse:
        payload = request.to_wire()
        try:
            if self._client is not None:
                response = await self._client.post(self._url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            logger.error("Reasoning Service timed out after %.0fs", self._timeout)
            raise ReasoningServiceError("Reasoning Service timed out") from exc
        except httpx.HTTPStatusError as exc:
            logger.error("Reasoning Service returned %s", exc.response.status_code)
            raise ReasoningServiceError(
                f"Reasoning Service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Reasoning Service request failed: %s", exc)
            raise ReasoningServiceError(f"Reasoning Service unreachable: {exc}") from exc
        except ValueError as exc:
            logger.error("Reasoning Service sent a non-JSON body: %s", exc)
            raise ReasoningServiceError("Reasoning Service sent invalid JSON") from exc

        try:
            return ReasoningResponse.model_validate(body)
        except PydanticValidationError as exc:
            logger.error("Reasoning Service reply does not match the contract: %s", exc)
            raise ReasoningServiceError("Malformed Reasoning Service reply") from exc
