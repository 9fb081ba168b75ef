# ============================================================================
# src/medical_docintel/config/llm_config.py
# ============================================================================
"""
LLM Provider Settings
- Provider selection (mistral / openai / azure_openai)
- Model names for classification and extraction
- Credentials and request timeout
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class LLMSettings(BaseSettings):
    LLM_PROVIDER: str = Field(
        default="mistral",
        pattern="^(mistral|openai|azure_openai)$",
        description="Chat-completion backend used for classification fallback and extraction"
    )
    CLASSIFICATION_MODEL: str = Field(
        default="mistral-large-latest",
        description="Model used for LLM classification fallback"
    )
    EXTRACTION_MODEL: str = Field(
        default="mistral-large-latest",
        description="Model used for structured extraction"
    )
    LLM_REQUEST_TIMEOUT_SECONDS: float = Field(
        default=90.0,
        gt=0,
        description="Per-request timeout for chat completions"
    )

    # Mistral
    MISTRAL_API_KEY: Optional[str] = Field(default=None, description="Mistral API key")
    MISTRAL_BASE_URL: str = Field(default="https://api.mistral.ai/v1", description="Mistral API root")

    # OpenAI / Azure OpenAI
    OPENAI_API_KEY: Optional[str] = Field(default=None, description="OpenAI API key")
    AZURE_OPENAI_API_KEY: Optional[str] = Field(default=None, description="Azure OpenAI key")
    AZURE_OPENAI_ENDPOINT: Optional[str] = Field(default=None, description="Azure OpenAI endpoint")
    AZURE_OPENAI_API_VERSION: str = Field(default="2024-10-21", description="Azure OpenAI API version")
    AZURE_OPENAI_DEPLOYMENT: Optional[str] = Field(
        default=None,
        description="Azure deployment name; overrides the model names when set"
    )
