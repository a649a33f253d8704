from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any

import structlog

from helpdesk.core.config import settings
from helpdesk.models import Document, DocumentChunk
from helpdesk.repositories import AppLogStore, ChunkStore
from helpdesk.services.app_log_store import log_event
from helpdesk.services.document_ingestion import (
    ParseError,
    UnsupportedFormat,
    is_supported,
    normalize_file_type,
    process_document,
    validate_document,
)
from helpdesk.services.llm_clients import EmbeddingClient
from helpdesk.utils.time import isoformat, parse_timestamp, utc_now

logger = structlog.get_logger(__name__)

STATUS_PROCESSING = "processing"
STATUS_READY = "ready"
STATUS_FAILED = "failed"


class DocumentNotFound(Exception):
    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class InvalidDocument(Exception):
    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


def _document_to_dict(document: Document) -> dict[str, Any]:
    return {
        "id": document.id,
        "file_name": document.file_name,
        "file_type": document.file_type,
        "file_size": document.file_size,
        "status": document.status,
        "error": document.error,
        "chunk_count": document.chunk_count,
        "created_at": isoformat(document.created_at),
    }


def _chunk_to_dict(chunk: DocumentChunk) -> dict[str, Any]:
    return {
        "id": chunk.id,
        "document_id": chunk.document_id,
        "index": chunk.index,
        "text": chunk.text,
        "embedding": chunk.embedding,
    }


class KnowledgeBase:
    def __init__(
        self,
        chunks: ChunkStore,
        embedder: EmbeddingClient | None,
        *,
        app_logs: AppLogStore | None = None,
        upload_dir: str | Path | None = None,
    ) -> None:
        self.chunks = chunks
        self.embedder = embedder
        self.app_logs = app_logs
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)

    async def upload(self, file_name: str, content: bytes) -> tuple[Document, Path]:
        file_type = normalize_file_type(Path(file_name).suffix)
        if not is_supported(file_type):
            raise UnsupportedFormat(file_type or "unknown")

        document_id = str(uuid.uuid4())
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        path = self.upload_dir / f"{document_id}.{file_type}"
        path.write_bytes(content)
        errors = validate_document(str(path), file_type, len(content))
        if errors:
            path.unlink(missing_ok=True)
            raise InvalidDocument(errors)

        document = Document(
            id=document_id,
            file_name=Path(file_name).name,
            file_type=file_type,
            file_size=len(content),
            status=STATUS_PROCESSING,
            error=None,
            chunk_count=0,
            created_at=utc_now(),
        )
        document = await self.chunks.add_document(document)
        logger.info("document_uploaded", document_id=document_id, file_name=document.file_name)
        return document, path

    async def process(self, document_id: str, path: str | Path) -> Document:
        document = await self.get(document_id)
        try:
            processed = await process_document(
                str(path),
                document.file_name,
                document.file_type,
                document.file_size,
                self.embedder,
            )
        except (UnsupportedFormat, ParseError) as exc:
            document.status = STATUS_FAILED
            document.error = str(exc)
            document = await self.chunks.save_document(document)
            logger.warning("document_processing_failed", document_id=document_id, error=str(exc))
            if self.app_logs is not None:
                await log_event(
                    self.app_logs,
                    level="error",
                    event_type="document_processing_failed",
                    message=str(exc),
                    data={"document_id": document_id, "file_name": document.file_name},
                )
            return document

        await self.chunks.add_chunks(
            [
                DocumentChunk(
                    id=str(uuid.uuid4()),
                    document_id=document_id,
                    index=chunk.index,
                    text=chunk.text,
                    embedding=chunk.embedding,
                )
                for chunk in processed.chunks
            ]
        )
        document.status = STATUS_READY
        document.error = None
        document.chunk_count = processed.chunk_count
        document = await self.chunks.save_document(document)
        embedded = sum(1 for chunk in processed.chunks if chunk.embedding is not None)
        logger.info(
            "document_processed",
            document_id=document_id,
            chunk_count=processed.chunk_count,
            embedded=embedded,
        )
        return document

    async def get(self, document_id: str) -> Document:
        document = await self.chunks.get_document(document_id)
        if document is None:
            raise DocumentNotFound(document_id)
        return document

    async def list_documents(self) -> list[Document]:
        return await self.chunks.list_documents()

    async def list_chunks(self, document_id: str) -> list[DocumentChunk]:
        await self.get(document_id)
        return await self.chunks.list_chunks(document_id)

    async def delete(self, document_id: str) -> None:
        document = await self.get(document_id)
        await self.chunks.delete_document(document_id)
        path = self.upload_dir / f"{document.id}.{document.file_type}"
        path.unlink(missing_ok=True)
        logger.info("document_deleted", document_id=document_id)

    async def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        documents = await self.chunks.list_documents()
        chunks = await self.chunks.list_chunks()
        return {
            "documents": [_document_to_dict(item) for item in documents],
            "chunks": [_chunk_to_dict(item) for item in chunks],
        }

    async def restore(self, data: dict[str, Any]) -> int:
        """Load documents missing from the store; returns how many were added."""
        chunks_by_document: dict[str, list[DocumentChunk]] = {}
        for raw in data.get("chunks") or []:
            chunk = DocumentChunk(
                id=raw["id"],
                document_id=raw["document_id"],
                index=int(raw.get("index", 0)),
                text=raw.get("text") or "",
                embedding=raw.get("embedding"),
            )
            chunks_by_document.setdefault(chunk.document_id, []).append(chunk)

        restored = 0
        for raw in data.get("documents") or []:
            if await self.chunks.get_document(raw["id"]) is not None:
                continue
            await self.chunks.add_document(
                Document(
                    id=raw["id"],
                    file_name=raw.get("file_name") or "",
                    file_type=raw.get("file_type") or "",
                    file_size=int(raw.get("file_size") or 0),
                    status=raw.get("status") or STATUS_READY,
                    error=raw.get("error"),
                    chunk_count=int(raw.get("chunk_count") or 0),
                    created_at=parse_timestamp(raw.get("created_at")) or utc_now(),
                )
            )
            await self.chunks.add_chunks(chunks_by_document.get(raw["id"], []))
            restored += 1
        logger.info("knowledge_base_restored", documents=restored)
        return restored
