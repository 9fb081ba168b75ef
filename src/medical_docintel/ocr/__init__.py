# ============================================================================
# src/medical_docintel/ocr/__init__.py
# ============================================================================
"""OCR engines, result types and engine orchestration."""

from .types import (
    BoundingBox,
    OcrBlock,
    OcrTableCell,
    OcrTable,
    OcrKeyValuePair,
    OcrPage,
    OcrOptions,
    OcrResult,
    EnsembleOcrResult,
)
from .base import BaseOcrEngine
from .textract_engine import TextractEngine
from .mistral_engine import MistralOcrEngine
from .orchestrator import OcrOrchestrator, select_ocr_engine
from .tables import cells_to_grid, grid_to_markdown, table_to_markdown, parse_markdown_tables

__all__ = [
    "BoundingBox",
    "OcrBlock",
    "OcrTableCell",
    "OcrTable",
    "OcrKeyValuePair",
    "OcrPage",
    "OcrOptions",
    "OcrResult",
    "EnsembleOcrResult",
    "BaseOcrEngine",
    "TextractEngine",
    "MistralOcrEngine",
    "OcrOrchestrator",
    "select_ocr_engine",
    "cells_to_grid",
    "grid_to_markdown",
    "table_to_markdown",
    "parse_markdown_tables",
]
