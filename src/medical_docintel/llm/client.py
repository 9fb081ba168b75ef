# ============================================================================
# src/medical_docintel/llm/client.py
# ============================================================================
"""
LLM client factory.

    from medical_docintel.llm import create_llm_client

    client = create_llm_client(config.llm)
    data = await client.complete(messages, temperature=0.1)

The provider comes from LLM_PROVIDER. There is no module-level client cache:
build_pipeline() creates one client and shares it between classifier and
extractor.
"""

import logging

from ..config import LLMSettings
from ..utils.exceptions import ConfigurationError
from .base import BaseLLMClient
from .mistral_client import MistralLLMClient
from .openai_client import OpenAILLMClient

logger = logging.getLogger(__name__)


def create_llm_client(settings: LLMSettings) -> BaseLLMClient:
    """
    Create the configured chat-completion client.

    The default model is EXTRACTION_MODEL; the classifier passes
    CLASSIFICATION_MODEL per call.
    """
    provider = settings.LLM_PROVIDER.lower()

    if provider == "mistral":
        client = MistralLLMClient(
            api_key=settings.MISTRAL_API_KEY,
            model=settings.EXTRACTION_MODEL,
            base_url=settings.MISTRAL_BASE_URL,
            timeout=settings.LLM_REQUEST_TIMEOUT_SECONDS,
        )
    elif provider == "openai":
        client = OpenAILLMClient(
            api_key=settings.OPENAI_API_KEY,
            model=settings.EXTRACTION_MODEL,
            timeout=settings.LLM_REQUEST_TIMEOUT_SECONDS,
        )
    elif provider == "azure_openai":
        client = OpenAILLMClient(
            api_key=settings.AZURE_OPENAI_API_KEY,
            model=settings.EXTRACTION_MODEL,
            timeout=settings.LLM_REQUEST_TIMEOUT_SECONDS,
            azure_endpoint=settings.AZURE_OPENAI_ENDPOINT,
            azure_api_version=settings.AZURE_OPENAI_API_VERSION,
            azure_deployment=settings.AZURE_OPENAI_DEPLOYMENT,
        )
    else:
        raise ConfigurationError(f"Unknown LLM provider: {settings.LLM_PROVIDER}")

    if not client.is_available():
        logger.warning(f"LLM provider '{provider}' has no credentials; LLM calls will fail")
    else:
        logger.info(f"LLM client: provider={provider}, model={client.model_name}")
    return client
