# ============================================================================
# src/medical_docintel/ocr/mistral_engine.py
# ============================================================================
"""
Mistral OCR Engine

Sends the document as a base64 data URL to the Mistral OCR endpoint and
converts the returned per-page markdown into OcrPages:
- markdown tables become OcrTables
- every non-blank line becomes a LINE block
- Mistral reports no confidence, so a configured fixed value is used
"""

import asyncio
import base64
import time
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import OcrSettings
from ..core.enums import OcrEngine, OcrBlockType
from ..utils.exceptions import OcrEngineUnavailableError, OcrError
from .base import BaseOcrEngine, PDF_MIME_TYPE
from .tables import parse_markdown_tables
from .types import BoundingBox, OcrBlock, OcrOptions, OcrPage, OcrResult


class MistralOcrEngine(BaseOcrEngine):
    """Mistral OCR adapter (HTTP via aiohttp)."""

    def __init__(self, settings: OcrSettings):
        super().__init__()
        self.settings = settings
        self.base_url = settings.MISTRAL_BASE_URL.rstrip("/")
        self.model = settings.MISTRAL_OCR_MODEL
        self.timeout = settings.OCR_PROCESSING_TIMEOUT_SECONDS

        # HTTP session (created lazily, tied to event loop)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def engine(self) -> OcrEngine:
        return OcrEngine.MISTRAL_OCR

    def is_available(self) -> bool:
        return self.settings.mistral_configured

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        current_loop = asyncio.get_running_loop()
        if self._session is None or self._session.closed or self._session_loop is not current_loop:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=30)
            )
            self._session_loop = current_loop
        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop = None

    async def process_document(
        self,
        content: bytes,
        mime_type: str,
        options: Optional[OcrOptions] = None,
    ) -> OcrResult:
        if not self.is_available():
            raise OcrEngineUnavailableError(self.engine.value)

        start = time.perf_counter()
        data_url = f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"

        if mime_type == PDF_MIME_TYPE:
            document = {"type": "document_url", "document_url": data_url}
        else:
            document = {"type": "image_url", "image_url": data_url}

        payload = {
            "model": self.model,
            "document": document,
            "include_image_base64": self.settings.MISTRAL_INCLUDE_IMAGES,
        }

        self.logger.info(f"Starting Mistral OCR: mime_type={mime_type}, bytes={len(content)}")
        response = await self._call_api(payload)

        parsed = parse_mistral_response(response, self.settings.MISTRAL_OCR_CONFIDENCE)

        return OcrResult(
            engine=self.engine,
            engine_version=self.model,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
            raw_response=response,
            **parsed,
        )

    async def _call_api(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = await self._get_session()
        headers = {
            "Authorization": f"Bearer {self.settings.MISTRAL_API_KEY}",
            "Content-Type": "application/json",
        }

        async def _do_request():
            async with session.post(f"{self.base_url}/ocr", json=payload, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise OcrError(f"Mistral OCR error ({response.status}): {error_text}")
                return await response.json()

        return await asyncio.wait_for(_do_request(), timeout=self.timeout)


def parse_mistral_response(response: Dict[str, Any], confidence: float) -> Dict[str, Any]:
    """
    Convert a Mistral OCR response into OcrResult fields.

    Pages come from response["pages"]; when there are none a top-level
    "text" is treated as a single page.
    """
    pages: List[OcrPage] = []
    tables = []
    all_text = ""

    for page_idx, page in enumerate(response.get("pages") or []):
        page_number = page_idx + 1
        page_text = page.get("markdown") or page.get("text") or ""
        all_text += page_text + "\n"

        dims = page.get("dimensions") or {}
        page_tables = parse_markdown_tables(page_text, page_number, confidence, id_prefix="mistral-table")
        tables.extend(page_tables)

        pages.append(OcrPage(
            page_number=page_number,
            width=page.get("width") or dims.get("width") or 1,
            height=page.get("height") or dims.get("height") or 1,
            text=page_text,
            blocks=tuple(_blocks_from_text(page_text, confidence)),
            tables=tuple(page_tables),
        ))

    if not pages and response.get("text"):
        all_text = response["text"]
        page_tables = parse_markdown_tables(all_text, 1, confidence, id_prefix="mistral-table")
        tables.extend(page_tables)
        pages.append(OcrPage(
            page_number=1,
            width=1,
            height=1,
            text=all_text,
            blocks=tuple(_blocks_from_text(all_text, confidence)),
            tables=tuple(page_tables),
        ))

    return {
        "raw_text": all_text.strip(),
        "pages": tuple(pages),
        "tables": tuple(tables),
        "key_value_pairs": (),
        "overall_confidence": confidence,
        "word_count": len(all_text.split()),
    }


def _blocks_from_text(text: str, confidence: float) -> List[OcrBlock]:
    lines = [line for line in text.split("\n") if line.strip()]
    total = len(lines) or 1
    return [
        OcrBlock(
            id=f"mistral-line-{idx}",
            type=OcrBlockType.LINE,
            text=line,
            confidence=confidence,
            bounding_box=BoundingBox(left=0.0, top=idx / total, width=1.0, height=1 / total),
        )
        for idx, line in enumerate(lines)
    ]
