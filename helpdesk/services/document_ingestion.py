"""Turn uploaded files into embedded knowledge-base chunks.

Extraction is dispatched on the file extension. Chunking prefers sentence,
line and word boundaries and keeps an overlap between consecutive chunks so
retrieval does not lose context at the seams.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

import structlog

from helpdesk.core.config import settings
from helpdesk.services.llm_clients import EmbeddingClient

logger = structlog.get_logger(__name__)

SUPPORTED_TYPES = ("pdf", "doc", "docx", "txt", "xls", "xlsx")
BOUNDARY_RATIO = 0.7
TEXT_ENCODINGS = ("utf-8", "utf-16", "latin-1")


class UnsupportedFormat(Exception):
    def __init__(self, file_type: str) -> None:
        super().__init__(f"Unsupported file type: {file_type}")
        self.file_type = file_type


class ParseError(Exception):
    pass


@dataclass
class ProcessedChunk:
    text: str
    index: int
    embedding: list[float] | None = None


@dataclass
class ProcessedDocument:
    file_name: str
    file_type: str
    file_size: int
    full_text: str
    chunks: list[ProcessedChunk] = field(default_factory=list)

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)


def normalize_file_type(file_type: str) -> str:
    return file_type.lower().strip().lstrip(".")


def is_supported(file_type: str) -> bool:
    return normalize_file_type(file_type) in SUPPORTED_TYPES


def _parse_pdf(path: str) -> str:
    import fitz

    with fitz.open(path) as doc:
        return "\n".join(page.get_text() for page in doc)


def _parse_word(path: str) -> str:
    from docx import Document as WordDocument

    doc = WordDocument(path)
    parts = [para.text for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            parts.append(" | ".join(cell.text for cell in row.cells))
    return "\n".join(parts)


def _parse_spreadsheet(path: str) -> str:
    import openpyxl

    workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        parts: list[str] = []
        for sheet_name in workbook.sheetnames:
            rows = []
            for row in workbook[sheet_name].iter_rows(values_only=True):
                cells = ["" if cell is None else str(cell) for cell in row]
                if any(cells):
                    rows.append(",".join(cells))
            parts.append(f"Sheet: {sheet_name}\n" + "\n".join(rows) + "\n")
        return "\n".join(parts)
    finally:
        workbook.close()


def _parse_text(path: str) -> str:
    for encoding in TEXT_ENCODINGS:
        try:
            with open(path, "r", encoding=encoding) as handle:
                return handle.read()
        except UnicodeDecodeError:
            continue
    with open(path, "rb") as handle:
        return handle.read().decode("utf-8", errors="replace")


PARSERS = {
    "pdf": _parse_pdf,
    "doc": _parse_word,
    "docx": _parse_word,
    "txt": _parse_text,
    "xls": _parse_spreadsheet,
    "xlsx": _parse_spreadsheet,
}


def parse_document(path: str, file_type: str) -> str:
    parser = PARSERS.get(normalize_file_type(file_type))
    if parser is None:
        raise UnsupportedFormat(file_type)
    try:
        text = parser(path)
    except Exception as exc:
        logger.error("document_parse_failed", path=path, file_type=file_type, error=str(exc))
        raise ParseError(f"Failed to parse document: {exc}") from exc
    return text.strip()


def _find_split(text: str, start: int, end: int, max_chunk_size: int) -> int:
    threshold = start + max_chunk_size * BOUNDARY_RATIO
    for boundary in (".", "\n", " "):
        position = text.rfind(boundary, start, end)
        if position > threshold:
            return position + 1
    return end


def split_into_chunks(
    text: str,
    max_chunk_size: int | None = None,
    overlap: int | None = None,
) -> list[str]:
    max_chunk_size = settings.CHUNK_MAX_SIZE if max_chunk_size is None else max_chunk_size
    overlap = settings.CHUNK_OVERLAP if overlap is None else overlap
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if overlap < 0 or overlap >= max_chunk_size:
        raise ValueError("overlap must be in [0, max_chunk_size)")

    if len(text) <= max_chunk_size:
        return [text.strip()] if text.strip() else []

    chunks: list[str] = []
    start = 0
    while start < len(text):
        end = start + max_chunk_size
        if end < len(text):
            end = _find_split(text, start, end, max_chunk_size)
        chunk = text[start:end].strip()
        if chunk:
            chunks.append(chunk)
        if end >= len(text):
            break
        start = max(end - overlap, start + 1)
    return chunks


async def process_document(
    path: str,
    file_name: str,
    file_type: str,
    file_size: int,
    embedder: EmbeddingClient | None,
    *,
    max_chunk_size: int | None = None,
    overlap: int | None = None,
) -> ProcessedDocument:
    logger.info("document_processing_started", file_name=file_name, file_type=file_type)
    text = parse_document(path, file_type)
    pieces = split_into_chunks(text, max_chunk_size, overlap)
    logger.info(
        "document_chunked",
        file_name=file_name,
        characters=len(text),
        chunk_count=len(pieces),
    )

    processed = ProcessedDocument(
        file_name=file_name,
        file_type=normalize_file_type(file_type),
        file_size=file_size,
        full_text=text,
    )
    for index, piece in enumerate(pieces):
        embedding = None
        if embedder is not None:
            try:
                embedding = await embedder.embed(piece)
            except Exception as exc:
                logger.warning(
                    "chunk_embedding_failed",
                    file_name=file_name,
                    chunk_index=index,
                    error=str(exc),
                )
        processed.chunks.append(ProcessedChunk(text=piece, index=index, embedding=embedding))
    return processed


def validate_document(path: str, file_type: str, file_size: int) -> list[str]:
    errors: list[str] = []
    if not os.path.exists(path):
        errors.append("File not found")
    if not is_supported(file_type):
        errors.append(f"Unsupported file type: {file_type}")
    if file_size > settings.DOCUMENT_MAX_BYTES:
        max_mb = settings.DOCUMENT_MAX_BYTES // (1024 * 1024)
        errors.append(f"File too large. Maximum size is {max_mb}MB")
    return errors
