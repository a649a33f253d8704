from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

import structlog

from helpdesk.core.config import settings
from helpdesk.services.knowledge_base import KnowledgeBase

logger = structlog.get_logger(__name__)

DOCUMENTS_FILE = "documents.json"
CHUNKS_FILE = "chunks.json"


def _write_json(path: Path, payload: Any) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False)
    os.replace(tmp_path, path)


def _read_json(path: Path) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    return data if isinstance(data, list) else []


async def write_snapshot(knowledge_base: KnowledgeBase, directory: str | Path) -> None:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    snapshot = await knowledge_base.snapshot()
    _write_json(directory / DOCUMENTS_FILE, snapshot["documents"])
    _write_json(directory / CHUNKS_FILE, snapshot["chunks"])
    logger.info(
        "knowledge_base_flushed",
        documents=len(snapshot["documents"]),
        chunks=len(snapshot["chunks"]),
    )


async def load_snapshot(knowledge_base: KnowledgeBase, directory: str | Path) -> int:
    directory = Path(directory)
    try:
        documents = _read_json(directory / DOCUMENTS_FILE)
        chunks = _read_json(directory / CHUNKS_FILE)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("knowledge_base_snapshot_unreadable", error=str(exc))
        return 0
    return await knowledge_base.restore({"documents": documents, "chunks": chunks})


async def snapshot_worker(
    knowledge_base: KnowledgeBase,
    stop_event: asyncio.Event,
    directory: str | Path | None = None,
    interval: float | None = None,
) -> None:
    directory = directory or settings.SNAPSHOT_DIR
    interval = interval or settings.SNAPSHOT_INTERVAL_SEC
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=max(1, interval))
        except asyncio.TimeoutError:
            pass
        try:
            await write_snapshot(knowledge_base, directory)
        except Exception as exc:
            logger.error("knowledge_base_flush_failed", error=str(exc))
