# ============================================================================
# src/medical_docintel/persistence/sqlite_store.py
# ============================================================================
"""
SQLite Document Repository

Raw sqlite3, one short-lived connection per call, JSON text for stage
results. Each write commits before returning, so a status or result is
durable before the worker moves on to the next stage.
"""

import sqlite3
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, List, Optional

from ..classifiers.document_classifier import ClassificationResult
from ..core.enums import DocumentType, ProcessingStatus
from ..extraction.models import ExtractionResult
from ..ocr.types import OcrResult
from ..utils.exceptions import DocumentNotFoundError
from .base import DocumentRecord, DocumentRepository

logger = logging.getLogger(__name__)

_TERMINAL_STATUSES = tuple(s.value for s in ProcessingStatus if s.is_terminal)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteDocumentRepository(DocumentRepository):
    """
    SQLite-backed repository.

    Args:
        db_path: Database file; parent directories are created.
                 ":memory:" is not supported (each call opens a new connection).
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._init_database()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    def _init_database(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            cur = conn.cursor()

            cur.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    document_id             TEXT PRIMARY KEY,
                    file_name               TEXT NOT NULL,
                    mime_type               TEXT NOT NULL,
                    storage_key             TEXT NOT NULL,
                    file_size               INTEGER DEFAULT 0,
                    status                  TEXT NOT NULL DEFAULT 'PENDING',
                    progress                INTEGER NOT NULL DEFAULT 0,
                    document_type_hint      TEXT,
                    document_type           TEXT,
                    requires_review         INTEGER,
                    error_message           TEXT,
                    retry_count             INTEGER NOT NULL DEFAULT 0,
                    created_at              TEXT NOT NULL,
                    updated_at              TEXT NOT NULL,
                    processing_started_at   TEXT,
                    processing_completed_at TEXT
                )
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS ocr_results (
                    document_id TEXT NOT NULL,
                    is_primary  INTEGER NOT NULL,
                    engine      TEXT NOT NULL,
                    result_data TEXT NOT NULL,
                    created_at  TEXT NOT NULL,
                    PRIMARY KEY (document_id, is_primary)
                )
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS classifications (
                    document_id TEXT PRIMARY KEY,
                    result_data TEXT NOT NULL,
                    created_at  TEXT NOT NULL
                )
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS extractions (
                    document_id TEXT PRIMARY KEY,
                    result_data TEXT NOT NULL,
                    created_at  TEXT NOT NULL
                )
            """)

            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_status
                ON documents (status)
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_created
                ON documents (created_at DESC)
            """)

        logger.info(f"Document repository initialized: {self.db_path}")

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------
    def create_document(self, record: DocumentRecord) -> DocumentRecord:
        now = _now()
        record.created_at = record.created_at or now
        record.updated_at = now

        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO documents
                    (document_id, file_name, mime_type, storage_key, file_size,
                     status, progress, document_type_hint, document_type,
                     requires_review, error_message, retry_count,
                     created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.document_id,
                record.file_name,
                record.mime_type,
                record.storage_key,
                record.file_size,
                record.status.value,
                record.progress,
                record.document_type_hint.value if record.document_type_hint else None,
                record.document_type.value if record.document_type else None,
                None if record.requires_review is None else int(record.requires_review),
                record.error_message,
                record.retry_count,
                record.created_at,
                record.updated_at,
            ))

        logger.info(f"Registered document {record.document_id} ({record.file_name})")
        return record

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM documents WHERE document_id = ?", (document_id,)
            ).fetchone()
        return _row_to_record(row) if row else None

    def list_documents(
        self,
        status: Optional[ProcessingStatus] = None,
        limit: int = 200,
        offset: int = 0,
    ) -> List[DocumentRecord]:
        query = "SELECT * FROM documents WHERE 1=1"
        params: list = []

        if status:
            query += " AND status = ?"
            params.append(status.value)

        query += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_record(r) for r in rows]

    def list_unfinished(self) -> List[DocumentRecord]:
        placeholders = ", ".join("?" for _ in _TERMINAL_STATUSES)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM documents WHERE status NOT IN ({placeholders}) "
                "ORDER BY created_at ASC",
                _TERMINAL_STATUSES,
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        progress: Optional[int] = None,
        error_message: Optional[str] = None,
        retry_count: Optional[int] = None,
    ) -> None:
        now = _now()
        assignments = ["status = ?", "error_message = ?", "updated_at = ?"]
        params: List[Any] = [status.value, error_message, now]

        if progress is not None:
            assignments.append("progress = ?")
            params.append(progress)
        if retry_count is not None:
            assignments.append("retry_count = ?")
            params.append(retry_count)
        if status == ProcessingStatus.PREPROCESSING:
            assignments.append("processing_started_at = COALESCE(processing_started_at, ?)")
            params.append(now)
        if status.is_terminal:
            assignments.append("processing_completed_at = ?")
            params.append(now)

        params.append(document_id)
        with self._connect() as conn:
            cur = conn.execute(
                f"UPDATE documents SET {', '.join(assignments)} WHERE document_id = ?",
                params,
            )
            if cur.rowcount == 0:
                raise DocumentNotFoundError(document_id)

        logger.debug(f"Document {document_id} -> {status.value} ({progress})")

    # ------------------------------------------------------------------
    # Stage results
    # ------------------------------------------------------------------
    def save_ocr_result(self, document_id: str, result: OcrResult, is_primary: bool = True) -> None:
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO ocr_results
                    (document_id, is_primary, engine, result_data, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                document_id,
                1 if is_primary else 0,
                result.engine.value,
                json.dumps(result.to_dict(), default=str),
                _now(),
            ))

    def get_ocr_results(self, document_id: str) -> List[OcrResult]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT result_data FROM ocr_results WHERE document_id = ? ORDER BY is_primary DESC",
                (document_id,),
            ).fetchall()
        return [OcrResult.from_dict(json.loads(r["result_data"])) for r in rows]

    def save_classification(self, document_id: str, result: ClassificationResult) -> None:
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO classifications (document_id, result_data, created_at)
                VALUES (?, ?, ?)
            """, (document_id, json.dumps(result.to_dict()), _now()))
            conn.execute(
                "UPDATE documents SET document_type = ?, updated_at = ? WHERE document_id = ?",
                (result.document_type.value, _now(), document_id),
            )

    def get_classification(self, document_id: str) -> Optional[ClassificationResult]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT result_data FROM classifications WHERE document_id = ?", (document_id,)
            ).fetchone()
        return ClassificationResult.from_dict(json.loads(row["result_data"])) if row else None

    def save_extraction(self, document_id: str, result: ExtractionResult) -> None:
        with self._connect() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO extractions (document_id, result_data, created_at)
                VALUES (?, ?, ?)
            """, (document_id, json.dumps(result.to_dict(), default=str), _now()))
            conn.execute(
                "UPDATE documents SET requires_review = ?, updated_at = ? WHERE document_id = ?",
                (int(result.requires_review), _now(), document_id),
            )

    def get_extraction(self, document_id: str) -> Optional[ExtractionResult]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT result_data FROM extractions WHERE document_id = ?", (document_id,)
            ).fetchone()
        return ExtractionResult.from_dict(json.loads(row["result_data"])) if row else None

    def clear_stage_results(self, document_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM ocr_results WHERE document_id = ?", (document_id,))
            conn.execute("DELETE FROM classifications WHERE document_id = ?", (document_id,))
            conn.execute("DELETE FROM extractions WHERE document_id = ?", (document_id,))
            conn.execute(
                "UPDATE documents SET document_type = NULL, requires_review = NULL, "
                "updated_at = ? WHERE document_id = ?",
                (_now(), document_id),
            )
        logger.info(f"Cleared stage results for document {document_id}")


def _row_to_record(row: sqlite3.Row) -> DocumentRecord:
    return DocumentRecord(
        document_id=row["document_id"],
        file_name=row["file_name"],
        mime_type=row["mime_type"],
        storage_key=row["storage_key"],
        status=ProcessingStatus(row["status"]),
        progress=row["progress"],
        file_size=row["file_size"] or 0,
        document_type_hint=DocumentType(row["document_type_hint"]) if row["document_type_hint"] else None,
        document_type=DocumentType(row["document_type"]) if row["document_type"] else None,
        requires_review=None if row["requires_review"] is None else bool(row["requires_review"]),
        error_message=row["error_message"],
        retry_count=row["retry_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        processing_started_at=row["processing_started_at"],
        processing_completed_at=row["processing_completed_at"],
    )
