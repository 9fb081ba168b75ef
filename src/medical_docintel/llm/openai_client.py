# ============================================================================
# src/medical_docintel/llm/openai_client.py
# ============================================================================
"""
OpenAI / Azure OpenAI chat-completion client (openai SDK).

Azure uses the deployment name in place of the model name.
"""

import asyncio
from typing import Any, Dict, List, Optional

from openai import AsyncAzureOpenAI, AsyncOpenAI

from .base import BaseLLMClient, Message


class OpenAILLMClient(BaseLLMClient):
    """
    OpenAI-compatible client.

    Pass azure_endpoint to talk to Azure OpenAI; otherwise api.openai.com.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        timeout: float = 90.0,
        azure_endpoint: Optional[str] = None,
        azure_api_version: Optional[str] = None,
        azure_deployment: Optional[str] = None,
    ):
        super().__init__(azure_deployment or model, timeout)
        self.api_key = api_key
        self.azure_endpoint = azure_endpoint
        self.azure_api_version = azure_api_version
        self.azure_deployment = azure_deployment
        self._client = None

    @property
    def is_azure(self) -> bool:
        return bool(self.azure_endpoint)

    def is_available(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self):
        """Lazy load SDK client."""
        if self._client is None:
            if self.is_azure:
                self._client = AsyncAzureOpenAI(
                    azure_endpoint=self.azure_endpoint,
                    api_key=self.api_key,
                    api_version=self.azure_api_version,
                    timeout=self.timeout,
                )
                self.logger.info(f"Azure OpenAI client initialized: endpoint={self.azure_endpoint}")
            else:
                self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _create_completion(
        self,
        messages: List[Message],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        json_mode: bool,
    ) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.azure_deployment or model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await asyncio.wait_for(
            self.client.chat.completions.create(**kwargs),
            timeout=self.timeout,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
