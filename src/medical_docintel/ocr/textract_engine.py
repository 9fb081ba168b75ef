# ============================================================================
# src/medical_docintel/ocr/textract_engine.py
# ============================================================================
"""
AWS Textract OCR Engine

- Images: synchronous AnalyzeDocument on the raw bytes
- PDFs: staged to S3, StartDocumentAnalysis, polled with GetDocumentAnalysis
  (NextToken pagination once SUCCEEDED); the staged object is always deleted
- Features: TABLES and FORMS (each can be switched off), QUERIES when queries
  are passed

boto3 is synchronous, so every SDK call runs in a worker thread via
asyncio.to_thread and polling sleeps with asyncio.sleep. Cancelling the
calling task stops the poll loop.
"""

import asyncio
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

import boto3

from ..config import OcrSettings
from ..core.enums import OcrEngine, OcrBlockType
from ..utils.exceptions import OcrEngineUnavailableError, OcrJobFailedError, OcrTimeoutError
from .base import BaseOcrEngine, PDF_MIME_TYPE
from .types import (
    BoundingBox,
    OcrBlock,
    OcrKeyValuePair,
    OcrOptions,
    OcrPage,
    OcrResult,
    OcrTable,
    OcrTableCell,
)


TEXTRACT_API_VERSION = "2018-06-27"

_BLOCK_TYPE_MAP = {
    "LINE": OcrBlockType.LINE,
    "WORD": OcrBlockType.WORD,
    "TABLE": OcrBlockType.TABLE,
    "KEY_VALUE_SET": OcrBlockType.FORM_FIELD,
}


class TextractEngine(BaseOcrEngine):
    """
    Textract adapter.

    Args:
        settings: OCR settings (credentials, region, polling)
        staging: Object with stage_for_textract(content, processing_id, mime_type)
            -> (bucket, key) and delete_staged(key); usually S3Storage
        client: Pre-built Textract client (tests inject a fake)
    """

    def __init__(self, settings: OcrSettings, staging: Any = None, client: Any = None):
        super().__init__()
        self.settings = settings
        self.staging = staging
        self._client = client

    @property
    def engine(self) -> OcrEngine:
        return OcrEngine.AWS_TEXTRACT

    def is_available(self) -> bool:
        return self._client is not None or self.settings.aws_configured

    def _get_client(self):
        if self._client is None:
            self._client = boto3.client(
                "textract",
                region_name=self.settings.AWS_REGION,
                aws_access_key_id=self.settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=self.settings.AWS_SECRET_ACCESS_KEY,
            )
        return self._client

    async def process_document(
        self,
        content: bytes,
        mime_type: str,
        options: Optional[OcrOptions] = None,
    ) -> OcrResult:
        if not self.is_available():
            raise OcrEngineUnavailableError(self.engine.value)

        options = options or OcrOptions()
        start = time.perf_counter()

        features = self._build_features(options)
        is_pdf = mime_type == PDF_MIME_TYPE
        self.logger.info(f"Starting Textract analysis: features={features}, mime_type={mime_type}")

        if is_pdf:
            blocks = await self._analyze_multi_page(content, mime_type, features, options.queries)
        else:
            blocks = await self._analyze_single_page(content, features, options.queries)

        parsed = parse_textract_blocks(blocks)

        return OcrResult(
            engine=self.engine,
            engine_version=TEXTRACT_API_VERSION,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
            raw_response=blocks,
            **parsed,
        )

    @staticmethod
    def _build_features(options: OcrOptions) -> List[str]:
        features = []
        if options.enable_tables:
            features.append("TABLES")
        if options.enable_forms:
            features.append("FORMS")
        if options.queries:
            features.append("QUERIES")
        return features

    @staticmethod
    def _analysis_kwargs(features: List[str], queries: Tuple[str, ...]) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"FeatureTypes": features}
        if queries:
            kwargs["QueriesConfig"] = {"Queries": [{"Text": q} for q in queries]}
        return kwargs

    async def _analyze_single_page(
        self,
        content: bytes,
        features: List[str],
        queries: Tuple[str, ...],
    ) -> List[Dict[str, Any]]:
        client = self._get_client()
        response = await asyncio.to_thread(
            client.analyze_document,
            Document={"Bytes": content},
            **self._analysis_kwargs(features, queries),
        )
        return response.get("Blocks", [])

    async def _analyze_multi_page(
        self,
        content: bytes,
        mime_type: str,
        features: List[str],
        queries: Tuple[str, ...],
    ) -> List[Dict[str, Any]]:
        if self.staging is None:
            raise OcrEngineUnavailableError(f"{self.engine.value} (no S3 staging configured)")

        processing_id = f"textract-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
        bucket, key = await self.staging.stage_for_textract(content, processing_id, mime_type)

        try:
            client = self._get_client()
            response = await asyncio.to_thread(
                client.start_document_analysis,
                DocumentLocation={"S3Object": {"Bucket": bucket, "Name": key}},
                **self._analysis_kwargs(features, queries),
            )
            job_id = response.get("JobId")
            if not job_id:
                raise OcrJobFailedError("Textract did not return a JobId")

            self.logger.info(f"Textract async job started: job_id={job_id}, s3://{bucket}/{key}")
            return await self._poll_for_results(job_id)
        finally:
            await self.staging.delete_staged(key)

    async def _poll_for_results(self, job_id: str) -> List[Dict[str, Any]]:
        client = self._get_client()
        max_attempts = self.settings.TEXTRACT_MAX_POLL_ATTEMPTS
        interval = self.settings.TEXTRACT_POLL_INTERVAL_SECONDS

        for attempt in range(max_attempts):
            response = await asyncio.to_thread(client.get_document_analysis, JobId=job_id)
            status = response.get("JobStatus")
            self.logger.debug(f"Textract job {job_id} status={status} poll={attempt}")

            if status == "SUCCEEDED":
                blocks = list(response.get("Blocks", []))
                next_token = response.get("NextToken")
                while next_token:
                    page = await asyncio.to_thread(
                        client.get_document_analysis, JobId=job_id, NextToken=next_token
                    )
                    blocks.extend(page.get("Blocks", []))
                    next_token = page.get("NextToken")

                self.logger.info(f"Textract job {job_id} completed: {len(blocks)} blocks")
                return blocks

            if status == "FAILED":
                raise OcrJobFailedError(f"Textract job failed: {response.get('StatusMessage')}")

            await asyncio.sleep(interval)

        raise OcrTimeoutError(
            f"Textract job timed out after {max_attempts * interval:.0f}s"
        )


# ----------------------------------------------------------------------------
# Block parsing
# ----------------------------------------------------------------------------

def parse_textract_blocks(blocks: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Convert Textract blocks into OcrResult fields.

    Returns a dict with raw_text, pages, tables, key_value_pairs,
    overall_confidence and word_count.
    """
    block_map = {b["Id"]: b for b in blocks if b.get("Id")}

    lines = [b for b in blocks if b.get("BlockType") == "LINE"]
    raw_text = "\n".join(line.get("Text", "") for line in lines)
    word_count = sum(1 for b in blocks if b.get("BlockType") == "WORD")

    confidences = [b["Confidence"] for b in blocks if b.get("Confidence") is not None]
    overall_confidence = sum(confidences) / len(confidences) / 100 if confidences else 0.0

    pages = [
        _parse_page(page_block, block_map, idx + 1)
        for idx, page_block in enumerate(b for b in blocks if b.get("BlockType") == "PAGE")
    ]
    if not pages and lines:
        pages.append(OcrPage(
            page_number=1,
            width=1,
            height=1,
            text=raw_text,
            blocks=tuple(_to_block(line) for line in lines),
        ))

    tables = [
        _parse_table(tb, block_map, tb.get("Page", 1), idx)
        for idx, tb in enumerate(b for b in blocks if b.get("BlockType") == "TABLE")
    ]

    return {
        "raw_text": raw_text,
        "pages": tuple(pages),
        "tables": tuple(tables),
        "key_value_pairs": tuple(_parse_key_value_pairs(blocks, block_map)),
        "overall_confidence": overall_confidence,
        "word_count": word_count,
    }


def _child_ids(block: Dict[str, Any], rel_type: str = "CHILD") -> List[str]:
    for rel in block.get("Relationships", []) or []:
        if rel.get("Type") == rel_type:
            return rel.get("Ids", [])
    return []


def _text_from_children(block: Dict[str, Any], block_map: Dict[str, Dict[str, Any]]) -> str:
    return " ".join(
        block_map.get(cid, {}).get("Text", "") for cid in _child_ids(block)
    ).strip()


def _bbox(block: Optional[Dict[str, Any]]) -> BoundingBox:
    box = ((block or {}).get("Geometry") or {}).get("BoundingBox") or {}
    return BoundingBox(
        left=box.get("Left", 0.0),
        top=box.get("Top", 0.0),
        width=box.get("Width", 0.0),
        height=box.get("Height", 0.0),
    )


def _to_block(block: Dict[str, Any]) -> OcrBlock:
    return OcrBlock(
        id=block.get("Id") or str(uuid.uuid4()),
        type=_BLOCK_TYPE_MAP.get(block.get("BlockType"), OcrBlockType.PARAGRAPH),
        text=block.get("Text", ""),
        confidence=(block.get("Confidence") or 0) / 100,
        bounding_box=_bbox(block),
    )


def _parse_page(page_block: Dict[str, Any], block_map: Dict[str, Dict[str, Any]], page_number: int) -> OcrPage:
    children = [block_map[cid] for cid in _child_ids(page_block) if cid in block_map]
    lines = [b for b in children if b.get("BlockType") == "LINE"]
    tables = [
        _parse_table(tb, block_map, page_number, idx)
        for idx, tb in enumerate(b for b in children if b.get("BlockType") == "TABLE")
    ]
    return OcrPage(
        page_number=page_number,
        width=1,
        height=1,
        text="\n".join(line.get("Text", "") for line in lines),
        blocks=tuple(_to_block(line) for line in lines),
        tables=tuple(tables),
    )


def _parse_table(
    table_block: Dict[str, Any],
    block_map: Dict[str, Dict[str, Any]],
    page_number: int,
    table_index: int,
) -> OcrTable:
    cells = []
    max_row = 0
    max_col = 0

    for cell_id in _child_ids(table_block):
        cell = block_map.get(cell_id)
        if not cell or cell.get("BlockType") != "CELL":
            continue

        # Textract indices are 1-based
        row = cell.get("RowIndex") or 1
        col = cell.get("ColumnIndex") or 1
        max_row = max(max_row, row)
        max_col = max(max_col, col)

        cells.append(OcrTableCell(
            row_index=row - 1,
            column_index=col - 1,
            text=_text_from_children(cell, block_map),
            row_span=cell.get("RowSpan") or 1,
            column_span=cell.get("ColumnSpan") or 1,
            is_header=row == 1,
            confidence=(cell.get("Confidence") or 0) / 100,
            bounding_box=_bbox(cell),
        ))

    return OcrTable(
        id=table_block.get("Id") or f"table-{page_number}-{table_index}",
        page_number=page_number,
        row_count=max_row,
        column_count=max_col,
        cells=tuple(cells),
        confidence=(table_block.get("Confidence") or 0) / 100,
    )


def _parse_key_value_pairs(
    blocks: List[Dict[str, Any]],
    block_map: Dict[str, Dict[str, Any]],
) -> List[OcrKeyValuePair]:
    pairs = []

    for key_block in blocks:
        if key_block.get("BlockType") != "KEY_VALUE_SET":
            continue
        if "KEY" not in (key_block.get("EntityTypes") or []):
            continue

        value_ids = _child_ids(key_block, "VALUE")
        value_block = block_map.get(value_ids[0]) if value_ids else None

        key_text = _text_from_children(key_block, block_map)
        if not key_text:
            continue

        pairs.append(OcrKeyValuePair(
            key=key_text,
            value=_text_from_children(value_block, block_map) if value_block else "",
            key_confidence=(key_block.get("Confidence") or 0) / 100,
            value_confidence=((value_block or {}).get("Confidence") or 0) / 100,
            key_bounding_box=_bbox(key_block),
            value_bounding_box=_bbox(value_block),
        ))

    return pairs
