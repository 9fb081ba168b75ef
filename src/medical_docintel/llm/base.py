# ============================================================================
# src/medical_docintel/llm/base.py
# ============================================================================
"""
Base LLM Client Interface

Chat-completion abstraction used by the classifier (LLM fallback) and the
extraction orchestrator. Backends implement:
- is_available(): credentials present
- _create_completion(): one chat-completion call returning the message text

complete() wraps that call and always returns a parsed JSON object, raising
LLMUnavailableError / LLMResponseError otherwise.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import json
import logging

from json_repair import repair_json

from ..utils.exceptions import LLMUnavailableError, LLMResponseError


Message = Dict[str, str]


class BaseLLMClient(ABC):
    """Abstract base class for chat-completion clients."""

    def __init__(self, model: str, timeout: float = 90.0):
        self._model_name = model
        self.timeout = timeout
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def model_name(self) -> str:
        """Default model identifier."""
        return self._model_name

    @abstractmethod
    def is_available(self) -> bool:
        """True when the backend is configured."""
        pass

    @abstractmethod
    async def _create_completion(
        self,
        messages: List[Message],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        json_mode: bool,
    ) -> str:
        """Run one chat completion and return the assistant message text."""
        pass

    async def close(self):
        """Release network resources."""
        pass

    async def complete(
        self,
        messages: List[Message],
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Chat completion parsed as a JSON object.

        Args:
            messages: [{"role": ..., "content": ...}, ...]
            temperature: Sampling temperature
            max_tokens: Completion token cap (backend default when None)
            json_mode: Ask the backend for a JSON object response
            model: Override the default model

        Raises:
            LLMUnavailableError: backend not configured
            LLMResponseError: empty or non-JSON response
        """
        if not self.is_available():
            raise LLMUnavailableError(f"{self.__class__.__name__} is not configured")

        text = await self._create_completion(
            messages,
            model or self.model_name,
            temperature,
            max_tokens,
            json_mode,
        )
        if not text or not text.strip():
            raise LLMResponseError("Empty response from LLM")

        data = self.extract_json(text)
        if data is None:
            raise LLMResponseError(f"LLM response is not a JSON object: {text[:200]}")
        return data

    def extract_json(self, response_text: str) -> Optional[Dict]:
        """
        Extract JSON object from generated text.

        LLMs sometimes wrap JSON in prose or code fences, or emit it slightly
        malformed (single quotes, trailing commas). Tries a direct parse,
        then json_repair, then the first balanced {...} block.
        """
        if not response_text or not response_text.strip():
            return None

        # Try 1: Direct parse of entire response
        try:
            parsed = json.loads(response_text.strip())
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        # Try 2: json_repair on entire response
        try:
            repaired = repair_json(response_text, return_objects=True)
            if isinstance(repaired, dict) and repaired:
                self.logger.debug("json_repair fixed entire response")
                return repaired
        except Exception as e:
            self.logger.debug(f"json_repair failed on response: {e}")

        # Try 3: Extract JSON block by brace matching
        start_idx = response_text.find('{')
        if start_idx == -1:
            self.logger.warning("No JSON found in response")
            return None

        depth = 0
        end_idx = len(response_text) - 1
        for i, char in enumerate(response_text[start_idx:], start=start_idx):
            if char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    end_idx = i
                    break

        json_str = response_text[start_idx:end_idx + 1]
        try:
            parsed = json.loads(json_str)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        try:
            repaired = repair_json(json_str, return_objects=True)
            if isinstance(repaired, dict):
                return repaired
        except Exception as e:
            self.logger.debug(f"json_repair failed on extracted block: {e}")

        self.logger.warning(f"Could not parse JSON from response: {response_text[:200]}...")
        return None
