# ============================================================================
# src/medical_docintel/llm/mistral_client.py
# ============================================================================
"""
Mistral chat-completion client (aiohttp).

POST {base_url}/chat/completions with response_format json_object when
json_mode is set.
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp

from ..utils.exceptions import LLMResponseError
from .base import BaseLLMClient, Message


class MistralLLMClient(BaseLLMClient):
    """
    Mistral API client.

    Config:
        api_key: Mistral API key
        base_url: API root (default: https://api.mistral.ai/v1)
        model: Default model (e.g. mistral-large-latest)
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        base_url: str = "https://api.mistral.ai/v1",
        timeout: float = 90.0,
    ):
        super().__init__(model, timeout)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        current_loop = asyncio.get_running_loop()
        if self._session is None or self._session.closed or self._session_loop is not current_loop:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=30)
            )
            self._session_loop = current_loop
        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def _create_completion(
        self,
        messages: List[Message],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        json_mode: bool,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        session = await self._get_session()

        async def _do_request():
            async with session.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=headers,
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise RuntimeError(f"Mistral error ({response.status}): {error_text}")
                return await response.json()

        data = await asyncio.wait_for(_do_request(), timeout=self.timeout)

        choices = data.get("choices") or []
        if not choices:
            raise LLMResponseError("Mistral response has no choices")
        return choices[0].get("message", {}).get("content") or ""
