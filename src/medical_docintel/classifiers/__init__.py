# ============================================================================
# src/medical_docintel/classifiers/__init__.py
# ============================================================================
"""
Classifiers module - document type classification
"""

from .document_classifier import (
    AlternativeType,
    ClassificationResult,
    DocumentClassifier,
    PatternMatchResult,
    map_to_document_type,
)
from .patterns import DOCUMENT_PATTERNS, PATTERN_WEIGHTS, TYPE_SYNONYMS

__all__ = [
    "AlternativeType",
    "ClassificationResult",
    "DocumentClassifier",
    "PatternMatchResult",
    "map_to_document_type",
    "DOCUMENT_PATTERNS",
    "PATTERN_WEIGHTS",
    "TYPE_SYNONYMS",
]
