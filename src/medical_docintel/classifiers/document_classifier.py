# ============================================================================
# src/medical_docintel/classifiers/document_classifier.py
# ============================================================================
"""
Document Type Classifier

Two tiers:

1. PATTERN MATCH (primary)
   - Weighted literal phrase counting per document type
   - score = weight * log2(count + 1) per matched phrase
   - Accepted when confidence >= PATTERN_MATCH_MIN_CONFIDENCE

2. LLM FALLBACK (ambiguous documents)
   - Few-shot chat completion returning JSON
   - Free-form labels normalized to DocumentType
   - Any LLM failure falls back to the pattern result

A user-supplied type hint is only compared and logged, never applied.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional
import logging
import math
import re

from ..config import ExtractionSettings
from ..core.enums import ClassificationMethod, DocumentType
from ..llm.base import BaseLLMClient
from ..utils.exceptions import ClassificationError
from .patterns import DOCUMENT_PATTERNS, PATTERN_WEIGHTS, TYPE_SYNONYMS
from .prompts import (
    CLASSIFICATION_FEW_SHOT_EXAMPLES,
    CLASSIFICATION_SYSTEM_PROMPT,
    build_classification_user_prompt,
)


@dataclass
class AlternativeType:
    type: DocumentType
    confidence: float


@dataclass
class ClassificationResult:
    document_type: DocumentType
    confidence: float
    method: ClassificationMethod
    alternative_types: List[AlternativeType] = field(default_factory=list)
    reasoning: Optional[str] = None
    matched_patterns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["document_type"] = self.document_type.value
        data["method"] = self.method.value
        data["alternative_types"] = [
            {"type": alt.type.value, "confidence": alt.confidence}
            for alt in self.alternative_types
        ]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassificationResult":
        return cls(
            document_type=DocumentType(data["document_type"]),
            confidence=data["confidence"],
            method=ClassificationMethod(data["method"]),
            alternative_types=[
                AlternativeType(DocumentType(a["type"]), a["confidence"])
                for a in data.get("alternative_types", [])
            ],
            reasoning=data.get("reasoning"),
            matched_patterns=list(data.get("matched_patterns", [])),
        )


@dataclass
class PatternMatchResult:
    document_type: DocumentType
    confidence: float
    score: float
    matched_patterns: List[str]


def map_to_document_type(label: Any) -> DocumentType:
    """
    Normalize a free-form type label.

    "lab-result" / "Lab Result" -> LAB_RESULT; synonyms such as "XRAY" or
    "BIOPSY" map to their canonical type; anything else is UNKNOWN.
    """
    if not isinstance(label, str):
        return DocumentType.UNKNOWN

    normalized = re.sub(r"[\s-]", "_", label.strip().upper())
    try:
        return DocumentType(normalized)
    except ValueError:
        return TYPE_SYNONYMS.get(normalized, DocumentType.UNKNOWN)


class DocumentClassifier:
    """
    Classifies OCR text into one of the DocumentType values.

    Args:
        settings: Thresholds and LLM fallback switches
        llm_client: Chat-completion client for the fallback (optional)
        model: Model override for classification calls
    """

    def __init__(
        self,
        settings: ExtractionSettings,
        llm_client: Optional[BaseLLMClient] = None,
        model: Optional[str] = None,
    ):
        self.settings = settings
        self.llm_client = llm_client
        self.model = model
        self.logger = logging.getLogger(self.__class__.__name__)

    async def classify(
        self,
        ocr_text: str,
        user_hint: Optional[DocumentType] = None,
    ) -> ClassificationResult:
        pattern_result = self.classify_by_patterns(ocr_text)

        self.logger.info(
            f"Pattern classification: {pattern_result.document_type.value} "
            f"(confidence={pattern_result.confidence:.2f}, "
            f"matches={pattern_result.matched_patterns[:5]})"
        )

        result = ClassificationResult(
            document_type=pattern_result.document_type,
            confidence=pattern_result.confidence,
            method=ClassificationMethod.PATTERN_MATCH,
            matched_patterns=pattern_result.matched_patterns,
        )

        if pattern_result.confidence < self.settings.PATTERN_MATCH_MIN_CONFIDENCE and self._llm_enabled():
            try:
                result = await self.classify_by_llm(ocr_text)
                self.logger.info(
                    f"LLM classification: {result.document_type.value} "
                    f"(confidence={result.confidence:.2f}, reasoning={result.reasoning})"
                )
            except Exception as e:
                self.logger.error(f"LLM classification failed, using pattern result: {e}")

        if user_hint and user_hint != result.document_type:
            self.logger.warning(
                f"Classification {result.document_type.value} differs from "
                f"user-provided type {user_hint.value} (confidence={result.confidence:.2f})"
            )

        return result

    def _llm_enabled(self) -> bool:
        return (
            self.settings.LLM_FALLBACK_ENABLED
            and self.llm_client is not None
            and self.llm_client.is_available()
        )

    def classify_by_patterns(self, ocr_text: str) -> PatternMatchResult:
        """Weighted pattern scoring. Ties keep the earlier type."""
        text_lower = ocr_text.lower()

        best_type = DocumentType.UNKNOWN
        best_score = 0.0
        best_matches: List[str] = []

        for doc_type, patterns in DOCUMENT_PATTERNS.items():
            if not patterns:
                continue

            score = 0.0
            matches = []
            for pattern in patterns:
                pattern_lower = pattern.lower()
                count = text_lower.count(pattern_lower)
                if count > 0:
                    matches.append(pattern)
                    # Diminishing returns for repeats of the same phrase
                    score += PATTERN_WEIGHTS.get(pattern_lower, 1.0) * math.log2(count + 1)

            if score > best_score:
                best_type = doc_type
                best_score = score
                best_matches = matches

        if best_score <= 0:
            return PatternMatchResult(DocumentType.UNKNOWN, 0.0, 0.0, [])

        diversity = len(best_matches) / (len(DOCUMENT_PATTERNS[best_type]) or 1)
        normalized = min(best_score / 10, 1.0)
        confidence = min(0.5 + normalized * 0.3 + diversity * 0.2, 0.99)

        return PatternMatchResult(best_type, confidence, best_score, best_matches)

    async def classify_by_llm(self, ocr_text: str) -> ClassificationResult:
        messages = [
            {"role": "system", "content": CLASSIFICATION_SYSTEM_PROMPT},
            *CLASSIFICATION_FEW_SHOT_EXAMPLES,
            {
                "role": "user",
                "content": build_classification_user_prompt(
                    ocr_text, self.settings.CLASSIFICATION_MAX_TEXT_CHARS
                ),
            },
        ]

        parsed = await self.llm_client.complete(
            messages,
            temperature=self.settings.CLASSIFICATION_TEMPERATURE,
            json_mode=True,
            model=self.model,
        )

        if "document_type" not in parsed:
            raise ClassificationError("LLM classification response has no document_type")

        alternatives = [
            AlternativeType(
                type=map_to_document_type(alt.get("type")),
                confidence=_clamp(alt.get("confidence", 0.0)),
            )
            for alt in parsed.get("alternative_types") or []
            if isinstance(alt, dict)
        ]

        return ClassificationResult(
            document_type=map_to_document_type(parsed["document_type"]),
            confidence=_clamp(parsed.get("confidence", 0.0)),
            method=ClassificationMethod.LLM,
            alternative_types=alternatives,
            reasoning=parsed.get("reasoning"),
        )


def _clamp(value: Any) -> float:
    try:
        return max(0.0, min(float(value), 1.0))
    except (TypeError, ValueError):
        return 0.0
