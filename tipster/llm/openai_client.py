"""
OpenAI-compatible chat completions client.

One request per call, no retries. Structured output is requested through
`response_format` with a strict JSON schema.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from tipster.config import Settings, get_settings
from tipster.exceptions import LLMCancelledError, LLMError
from tipster.models import TokenUsage

logger = logging.getLogger(__name__)


@dataclass
class ChatCompletionResult:
    """Result from a chat completion call."""

    text: str
    usage: TokenUsage
    model: str
    exec_ms: int
    raw_output: dict = field(default_factory=dict)
    finish_reason: Optional[str] = None  # stop, length, content_filter


class OpenAIClient:
    """Async client for an OpenAI-compatible /chat/completions endpoint."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.api_key = (settings.OPENAI_API_KEY or "").strip()
        self.base_url = settings.OPENAI_BASE_URL.rstrip("/")
        self.timeout = settings.LLM_TIMEOUT_SECONDS
        self.max_output_tokens = settings.LLM_MAX_OUTPUT_TOKENS

        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def complete(
        self,
        model: str,
        instructions: str,
        payload: str,
        response_format: dict,
        max_output_tokens: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ChatCompletionResult:
        """
        Run one chat completion.

        Args:
            model: Model id sent to the endpoint.
            instructions: System message (template plus context section).
            payload: User message (JSON-encoded subject).
            response_format: Structured-output constraint.
            max_output_tokens: Override the configured output budget.
            cancel_event: When set before the response arrives, the request
                is abandoned and LLMCancelledError is raised.

        Returns:
            ChatCompletionResult with the message text and token usage.

        Raises:
            LLMError: HTTP error, timeout or malformed envelope.
            LLMCancelledError: cancel_event was set.
        """
        if not self.api_key:
            raise LLMError("OPENAI_API_KEY not configured")

        body = {
            "model": model,
            "messages": [
                {"role": "system", "content": instructions},
                {"role": "user", "content": payload},
            ],
            "max_completion_tokens": max_output_tokens or self.max_output_tokens,
            "response_format": response_format,
        }

        start_time = time.time()
        if cancel_event is None:
            response = await self._post(body)
        else:
            response = await self._post_cancellable(body, cancel_event)
        elapsed_ms = int((time.time() - start_time) * 1000)

        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error(f"Completion API error {response.status_code}: {error_text}")
            raise LLMError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                body=error_text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"Invalid JSON envelope: {e}", body=response.text[:500]) from e

        if not isinstance(data, dict):
            raise LLMError("Completion envelope is not a JSON object", body=response.text[:500])

        text, finish_reason = self._extract_text_and_reason(data)

        usage_data = data.get("usage")
        if usage_data is not None and not isinstance(usage_data, dict):
            raise LLMError("Completion usage is not a JSON object", body=response.text[:500])
        try:
            usage = TokenUsage.from_api(usage_data)
        except (AttributeError, TypeError, ValueError) as e:
            raise LLMError(f"Malformed usage block: {e}", body=response.text[:500]) from e

        if finish_reason and finish_reason != "stop":
            logger.warning(
                f"Completion finish_reason={finish_reason} (tokens_out={usage.output_tokens}, "
                f"max_tokens={body['max_completion_tokens']}, text_len={len(text)})"
            )

        return ChatCompletionResult(
            text=text,
            usage=usage,
            model=data.get("model", model),
            exec_ms=elapsed_ms,
            raw_output=data,
            finish_reason=finish_reason,
        )

    async def _post(self, body: dict) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.post(f"{self.base_url}/chat/completions", json=body)
        except httpx.TimeoutException as e:
            logger.error(f"Completion API timeout after {self.timeout}s")
            raise LLMError("Request timed out") from e
        except httpx.HTTPError as e:
            raise LLMError(f"Transport error: {e}") from e

    async def _post_cancellable(self, body: dict, cancel_event: asyncio.Event) -> httpx.Response:
        if cancel_event.is_set():
            raise LLMCancelledError("Cancelled before request was sent")

        request_task = asyncio.create_task(self._post(body))
        cancel_task = asyncio.create_task(cancel_event.wait())
        try:
            await asyncio.wait({request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            abandoned = not request_task.done()
            if abandoned:
                request_task.cancel()
                await asyncio.gather(request_task, return_exceptions=True)

        if abandoned:
            raise LLMCancelledError("Cancelled while waiting for completion")

        return request_task.result()

    @staticmethod
    def _extract_text_and_reason(response: dict) -> tuple[str, Optional[str]]:
        """Extract message text and finish_reason from a completion envelope."""
        choices = response.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise LLMError("Completion response has no choices", body=str(response)[:500])

        choice = choices[0]
        if not isinstance(choice, dict):
            raise LLMError("Completion choice is not a JSON object", body=str(response)[:500])

        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise LLMError("Completion message is not a JSON object", body=str(response)[:500])

        text = message.get("content") or ""
        if not isinstance(text, str):
            raise LLMError("Completion content is not a string", body=str(response)[:500])
        return text, choice.get("finish_reason")
