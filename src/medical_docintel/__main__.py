# ============================================================================
# src/medical_docintel/__main__.py
# ============================================================================
"""
Command line entry point.

    python -m medical_docintel serve [--host 0.0.0.0] [--port 8000]
    python -m medical_docintel process FILE [--type LAB_RESULT]
    python -m medical_docintel engines
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import signal
import sys
import uuid
from pathlib import Path
from typing import Optional

from .core.config import PipelineConfig, load_config
from .core.enums import DocumentType
from .persistence.base import DocumentRecord
from .pipeline.factory import Pipeline, build_pipeline
from .pipeline.jobs import JobState
from .utils.logging import setup_logging

logger = logging.getLogger("medical_docintel")


def _install_shutdown_handlers(pipeline: Pipeline) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(pipeline.queue.close()))
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass


async def process_file(config: PipelineConfig, path: Path, hint: Optional[DocumentType]) -> dict:
    """Run one file through the queue and return its stored results."""
    pipeline = build_pipeline(config)
    _install_shutdown_handlers(pipeline)

    content = path.read_bytes()
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    document_id = str(uuid.uuid4())
    storage_key = f"documents/{document_id}{path.suffix.lower()}"

    try:
        await pipeline.storage.upload(content, storage_key, content_type=mime_type)
        pipeline.repository.create_document(DocumentRecord(
            document_id=document_id,
            file_name=path.name,
            mime_type=mime_type,
            storage_key=storage_key,
            file_size=len(content),
            document_type_hint=hint,
        ))

        await pipeline.queue.start()
        job_id = await pipeline.queue.enqueue(document_id, storage_key)
        job = await pipeline.queue.wait_for_job(job_id)
    finally:
        await pipeline.aclose()

    record = pipeline.repository.get_document(document_id)
    extraction = pipeline.repository.get_extraction(document_id)
    classification = pipeline.repository.get_classification(document_id)
    return {
        "document": record.to_dict() if record else None,
        "job": job.to_dict(),
        "classification": classification.to_dict() if classification else None,
        "extraction": extraction.to_dict() if extraction else None,
    }


def list_engines(config: PipelineConfig) -> int:
    pipeline = build_pipeline(config)
    available = set(pipeline.ocr_orchestrator.get_available_engines())
    for engine in pipeline.ocr_engines:
        status = "available" if engine.engine in available else "not configured"
        print(f"{engine.engine.value:<15} {status}")
    print(f"{'LLM':<15} {'available' if pipeline.llm_client.is_available() else 'not configured'}")
    return 0


def serve(config: PipelineConfig, host: str, port: int) -> int:
    import uvicorn

    from .api.app import create_app

    app = create_app(build_pipeline(config))
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="medical_docintel",
        description="Medical document OCR, classification and extraction"
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load settings from this .env file"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API with a queue worker")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)

    process_parser = subparsers.add_parser("process", help="Process one document and print JSON")
    process_parser.add_argument("file", type=Path)
    process_parser.add_argument(
        "--type",
        dest="document_type",
        choices=[t.value for t in DocumentType],
        default=None,
        help="Document type hint"
    )

    subparsers.add_parser("engines", help="List OCR engines and their availability")

    args = parser.parse_args(argv)
    config = load_config(args.env_file)
    setup_logging(
        config.logging.LOG_LEVEL,
        log_file=config.logging.LOG_FILE,
        format_json=config.logging.LOG_FORMAT_JSON,
        stream=sys.stderr if args.command == "process" else None,
    )

    if args.command == "serve":
        return serve(config, args.host, args.port)

    if args.command == "engines":
        return list_engines(config)

    if not args.file.is_file():
        logger.error(f"File not found: {args.file}")
        return 1

    hint = DocumentType(args.document_type) if args.document_type else None
    result = asyncio.run(process_file(config, args.file, hint))
    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0 if result["job"]["state"] == JobState.COMPLETED.value else 1


if __name__ == "__main__":
    sys.exit(main())
