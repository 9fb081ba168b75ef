# ============================================================================
# src/medical_docintel/llm/__init__.py
# ============================================================================
"""
LLM module - chat-completion clients used for classification and extraction
"""

from .base import BaseLLMClient
from .mistral_client import MistralLLMClient
from .openai_client import OpenAILLMClient
from .client import create_llm_client

__all__ = [
    "BaseLLMClient",
    "MistralLLMClient",
    "OpenAILLMClient",
    "create_llm_client",
]
