"""
AI completion client.

Async httpx client for an Anthropic-compatible Messages endpoint. The
extraction engine only needs ``complete(system, prompt, max_tokens) -> text``;
everything provider-specific lives here.

Features:
- Async httpx client with configurable timeout, reused across calls
- API key authentication
- Transport and API failures raised as CompletionError
"""

import logging
from typing import Any, Dict, Optional

import httpx
from django.conf import settings

from tango_crawler.exceptions import CompletionError

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class CompletionClient:
    """
    Async HTTP client for the AI completion service.

    Calls the /v1/messages endpoint with a system instruction and a single
    user prompt and returns the concatenated text of the response.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the completion client.

        Args:
            api_key: API key (defaults to settings.AI_COMPLETION_API_KEY)
            model: Model identifier (defaults to settings.AI_COMPLETION_MODEL)
            base_url: Service URL (defaults to settings.AI_COMPLETION_BASE_URL)
            timeout: Request timeout in seconds
            max_tokens: Default response token ceiling
            http_client: Pre-built httpx client, mainly for tests
        """
        self.api_key = api_key if api_key is not None else getattr(
            settings, "AI_COMPLETION_API_KEY", ""
        )
        self.model = model or getattr(settings, "AI_COMPLETION_MODEL", "claude-haiku-4-5-20251001")
        self.base_url = (base_url or getattr(
            settings, "AI_COMPLETION_BASE_URL", "https://api.anthropic.com"
        )).rstrip("/")
        self.timeout = timeout or getattr(settings, "AI_COMPLETION_TIMEOUT", 120.0)
        self.max_tokens = max_tokens or getattr(settings, "AI_COMPLETION_MAX_TOKENS", 4096)

        self.messages_endpoint = f"{self.base_url}/v1/messages"
        self._http_client = http_client

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._http_client

    async def close(self):
        """Close the underlying HTTP connection pool."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def complete(
        self,
        system: Optional[str],
        prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send one completion request.

        Args:
            system: System instruction, or None for a bare prompt
            prompt: User prompt
            max_tokens: Response token ceiling for this call

        Returns:
            Response text (may be empty if the model returned no text)

        Raises:
            CompletionError: On timeout, connection failure, non-200 status
                or an unreadable response body
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            payload["system"] = system

        logger.debug(
            f"Calling completion service ({self.model}, prompt length: {len(prompt)} chars)"
        )

        try:
            response = await self._get_client().post(
                self.messages_endpoint,
                json=payload,
                headers=self._get_headers(),
            )
        except httpx.TimeoutException as e:
            raise CompletionError(f"Completion request timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise CompletionError(f"Completion connection error: {e}") from e

        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response) -> str:
        """
        Pull the text blocks out of a Messages API response.

        Args:
            response: httpx Response object

        Returns:
            Concatenated text content
        """
        if response.status_code != 200:
            error_msg = f"Completion API returned status {response.status_code}"
            try:
                error_data = response.json()
                if isinstance(error_data, dict) and "error" in error_data:
                    error_msg = f"{error_msg}: {error_data['error']}"
            except ValueError:
                error_msg = f"{error_msg}: {response.text[:200]}"
            raise CompletionError(error_msg)

        try:
            data = response.json()
        except ValueError as e:
            raise CompletionError(f"Invalid JSON from completion API: {e}") from e
        if not isinstance(data, dict):
            raise CompletionError("Unexpected completion API response shape")

        blocks = data.get("content") or []
        text = "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )
        if not text:
            logger.warning("No text content in completion response")

        usage = data.get("usage") or {}
        logger.debug(
            f"Completion finished: {usage.get('input_tokens', 0)} in / "
            f"{usage.get('output_tokens', 0)} out tokens"
        )
        return text.strip()


def get_completion_client() -> CompletionClient:
    """
    Factory function to get a configured completion client.

    Returns:
        CompletionClient configured from Django settings
    """
    return CompletionClient()
