from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile

from helpdesk.api.deps import get_services
from helpdesk.api.utils import list_response
from helpdesk.schemas.document import DocumentChunkOut, DocumentOut
from helpdesk.services.container import Services

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("", response_model=DocumentOut, status_code=202)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    services: Services = Depends(get_services),
) -> DocumentOut:
    content = await file.read()
    document, path = await services.knowledge_base.upload(file.filename or "", content)
    background_tasks.add_task(services.knowledge_base.process, document.id, path)
    return DocumentOut.model_validate(document)


@router.get("", response_model=dict)
async def list_documents(services: Services = Depends(get_services)) -> dict:
    documents = await services.knowledge_base.list_documents()
    return list_response([DocumentOut.model_validate(item) for item in documents], len(documents))


@router.get("/{document_id}", response_model=DocumentOut)
async def get_document(
    document_id: str,
    services: Services = Depends(get_services),
) -> DocumentOut:
    return DocumentOut.model_validate(await services.knowledge_base.get(document_id))


@router.get("/{document_id}/chunks", response_model=list[DocumentChunkOut])
async def list_chunks(
    document_id: str,
    services: Services = Depends(get_services),
) -> list[DocumentChunkOut]:
    chunks = await services.knowledge_base.list_chunks(document_id)
    return [
        DocumentChunkOut(
            id=chunk.id,
            document_id=chunk.document_id,
            index=chunk.index,
            text=chunk.text,
            has_embedding=bool(chunk.embedding),
        )
        for chunk in chunks
    ]


@router.delete("/{document_id}", response_model=dict)
async def delete_document(
    document_id: str,
    services: Services = Depends(get_services),
) -> dict:
    await services.knowledge_base.delete(document_id)
    return {"status": "deleted"}
