# ============================================================================
# src/medical_docintel/ocr/types.py
# ============================================================================
"""
OCR result types shared by all engines.

Results are frozen dataclasses: once an engine returns an OcrResult it is
persisted as-is and never mutated by later stages. to_dict()/from_dict()
give the JSON shape stored by the repository.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import OcrEngine, OcrBlockType


@dataclass(frozen=True)
class BoundingBox:
    """Normalized (0-1) page coordinates."""
    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0


@dataclass(frozen=True)
class OcrBlock:
    id: str
    type: OcrBlockType
    text: str
    confidence: float
    bounding_box: BoundingBox = field(default_factory=BoundingBox)


@dataclass(frozen=True)
class OcrTableCell:
    row_index: int                # 0-based
    column_index: int             # 0-based
    text: str
    row_span: int = 1
    column_span: int = 1
    is_header: bool = False
    confidence: float = 0.0
    bounding_box: BoundingBox = field(default_factory=BoundingBox)


@dataclass(frozen=True)
class OcrTable:
    id: str
    page_number: int
    row_count: int
    column_count: int
    cells: Tuple[OcrTableCell, ...] = ()
    confidence: float = 0.0
    title: Optional[str] = None


@dataclass(frozen=True)
class OcrKeyValuePair:
    key: str
    value: str
    key_confidence: float = 0.0
    value_confidence: float = 0.0
    key_bounding_box: BoundingBox = field(default_factory=BoundingBox)
    value_bounding_box: BoundingBox = field(default_factory=BoundingBox)


@dataclass(frozen=True)
class OcrPage:
    page_number: int
    width: float
    height: float
    text: str
    blocks: Tuple[OcrBlock, ...] = ()
    tables: Tuple[OcrTable, ...] = ()


@dataclass(frozen=True)
class OcrOptions:
    """Per-call engine options."""
    enable_tables: bool = True
    enable_forms: bool = True
    queries: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OcrResult:
    engine: OcrEngine
    raw_text: str
    pages: Tuple[OcrPage, ...] = ()
    tables: Tuple[OcrTable, ...] = ()
    key_value_pairs: Tuple[OcrKeyValuePair, ...] = ()
    overall_confidence: float = 0.0
    word_count: int = 0
    processing_time_ms: int = 0
    engine_version: Optional[str] = None
    raw_response: Any = field(default=None, compare=False, repr=False)

    def to_dict(self, include_raw: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        data["engine"] = self.engine.value
        if not include_raw:
            data.pop("raw_response", None)
        for page in data["pages"]:
            for block in page["blocks"]:
                block["type"] = OcrBlockType(block["type"]).value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OcrResult":
        return cls(
            engine=OcrEngine(data["engine"]),
            raw_text=data.get("raw_text", ""),
            pages=tuple(_page_from_dict(p) for p in data.get("pages", [])),
            tables=tuple(_table_from_dict(t) for t in data.get("tables", [])),
            key_value_pairs=tuple(_kv_from_dict(kv) for kv in data.get("key_value_pairs", [])),
            overall_confidence=data.get("overall_confidence", 0.0),
            word_count=data.get("word_count", 0),
            processing_time_ms=data.get("processing_time_ms", 0),
            engine_version=data.get("engine_version"),
            raw_response=data.get("raw_response"),
        )


@dataclass(frozen=True)
class EnsembleOcrResult:
    primary: OcrResult
    secondary: Optional[OcrResult] = None

    @property
    def results(self) -> List[OcrResult]:
        return [r for r in (self.primary, self.secondary) if r is not None]


# ----------------------------------------------------------------------------
# dict -> dataclass helpers
# ----------------------------------------------------------------------------

def _bbox(data: Optional[Dict[str, Any]]) -> BoundingBox:
    return BoundingBox(**data) if data else BoundingBox()


def _cell_from_dict(data: Dict[str, Any]) -> OcrTableCell:
    return OcrTableCell(
        row_index=data["row_index"],
        column_index=data["column_index"],
        text=data.get("text", ""),
        row_span=data.get("row_span", 1),
        column_span=data.get("column_span", 1),
        is_header=data.get("is_header", False),
        confidence=data.get("confidence", 0.0),
        bounding_box=_bbox(data.get("bounding_box")),
    )


def _table_from_dict(data: Dict[str, Any]) -> OcrTable:
    return OcrTable(
        id=data["id"],
        page_number=data.get("page_number", 1),
        row_count=data.get("row_count", 0),
        column_count=data.get("column_count", 0),
        cells=tuple(_cell_from_dict(c) for c in data.get("cells", [])),
        confidence=data.get("confidence", 0.0),
        title=data.get("title"),
    )


def _block_from_dict(data: Dict[str, Any]) -> OcrBlock:
    return OcrBlock(
        id=data["id"],
        type=OcrBlockType(data["type"]),
        text=data.get("text", ""),
        confidence=data.get("confidence", 0.0),
        bounding_box=_bbox(data.get("bounding_box")),
    )


def _page_from_dict(data: Dict[str, Any]) -> OcrPage:
    return OcrPage(
        page_number=data["page_number"],
        width=data.get("width", 1),
        height=data.get("height", 1),
        text=data.get("text", ""),
        blocks=tuple(_block_from_dict(b) for b in data.get("blocks", [])),
        tables=tuple(_table_from_dict(t) for t in data.get("tables", [])),
    )


def _kv_from_dict(data: Dict[str, Any]) -> OcrKeyValuePair:
    return OcrKeyValuePair(
        key=data["key"],
        value=data.get("value", ""),
        key_confidence=data.get("key_confidence", 0.0),
        value_confidence=data.get("value_confidence", 0.0),
        key_bounding_box=_bbox(data.get("key_bounding_box")),
        value_bounding_box=_bbox(data.get("value_bounding_box")),
    )
