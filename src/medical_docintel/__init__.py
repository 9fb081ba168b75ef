# ============================================================================
# src/medical_docintel/__init__.py
# ============================================================================
"""
Medical Document Intelligence Pipeline

Scanned or uploaded medical documents in, typed and confidence-scored
structured data out:

    storage -> preprocessing -> OCR (Textract / Mistral OCR, with fallback)
            -> classification (patterns, LLM fallback)
            -> LLM extraction -> schema mapping -> persisted result

Entry points:
    build_pipeline(load_config())       assemble every component
    python -m medical_docintel ...      CLI (serve / process / engines)
"""

__version__ = "1.0.0"

from .core.config import PipelineConfig, load_config
from .pipeline.factory import Pipeline, build_pipeline

__all__ = [
    "__version__",
    "PipelineConfig",
    "load_config",
    "Pipeline",
    "build_pipeline",
]
