from datetime import datetime, timezone
from urllib.parse import quote
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from starlette.concurrency import run_in_threadpool
from pydantic import BaseModel
from typing import List, Optional
from ..core.config import settings
from ..core.database import get_db
from ..core.auth import require_user
from ..core.dependencies import get_storage_client
from ..core.errors import StorageError
from ..core.storage import DOCUMENTS_BUCKET, StorageClient
from ..models.document import Document
from ..utils.files import build_storage_path, format_file_size
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


class DocumentResponse(BaseModel):
    id: int
    file_name: str
    file_type: str
    file_size: int
    file_size_display: str
    storage_path: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DocumentRename(BaseModel):
    file_name: str


def _document_response(doc: Document) -> DocumentResponse:
    return DocumentResponse(
        id=doc.id,
        file_name=doc.file_name,
        file_type=doc.file_type,
        file_size=doc.file_size,
        file_size_display=format_file_size(doc.file_size),
        storage_path=doc.storage_path,
        created_at=doc.created_at,
        updated_at=doc.updated_at,
    )


async def _get_document_or_404(db: AsyncSession, document_id: int, user_id: str) -> Document:
    result = await db.execute(
        select(Document).filter(Document.id == document_id, Document.user_id == user_id)
    )
    doc = result.scalar_one_or_none()
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


@router.get("", response_model=List[DocumentResponse])
async def get_documents(db: AsyncSession = Depends(get_db), user_id: str = Depends(require_user)):
    try:
        result = await db.execute(
            select(Document)
            .filter(Document.user_id == user_id)
            .order_by(Document.created_at.desc(), Document.id.desc())
        )
        return [_document_response(doc) for doc in result.scalars().all()]
    except Exception as e:
        logger.error(f"Error getting documents: {e}")
        raise HTTPException(status_code=500, detail="Error retrieving documents")


@router.post("", response_model=DocumentResponse)
async def upload_document(file: UploadFile = File(...), file_name: Optional[str] = Form(None),
                          db: AsyncSession = Depends(get_db), user_id: str = Depends(require_user),
                          storage: StorageClient = Depends(get_storage_client)):
    actual_file_name = (file_name or "").strip() or file.filename or "document"
    path = None
    try:
        data = await file.read()
        if len(data) > settings.max_upload_bytes:
            raise HTTPException(status_code=413, detail="File is too large.")

        content_type = file.content_type or "application/octet-stream"
        path = build_storage_path(user_id, actual_file_name)
        await run_in_threadpool(storage.upload, DOCUMENTS_BUCKET, path, data, content_type)
    except HTTPException:
        raise
    except StorageError as e:
        logger.error(f"Upload error for {user_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Upload error: {e}")

    try:
        db_document = Document(
            user_id=user_id,
            file_name=actual_file_name,
            file_type=content_type,
            file_size=len(data),
            storage_path=path,
        )
        db.add(db_document)
        await db.commit()
        await db.refresh(db_document)

        logger.info(f"Document uploaded: {path} ({len(data)} bytes)")
        return _document_response(db_document)
    except Exception as e:
        logger.error(f"Error saving document metadata for {path}: {e}")
        await db.rollback()
        # Don't leave an orphaned object behind
        try:
            await run_in_threadpool(storage.remove, DOCUMENTS_BUCKET, [path])
        except StorageError as cleanup_error:
            logger.error(f"Could not remove orphaned object {path}: {cleanup_error}")
        raise HTTPException(status_code=500, detail="Error saving document")


@router.get("/{document_id}/download")
async def download_document(document_id: int, db: AsyncSession = Depends(get_db),
                            user_id: str = Depends(require_user),
                            storage: StorageClient = Depends(get_storage_client)):
    try:
        doc = await _get_document_or_404(db, document_id, user_id)
        data = await run_in_threadpool(storage.download, DOCUMENTS_BUCKET, doc.storage_path)

        logger.info(f"Document {document_id} downloaded by {user_id}")
        return Response(
            content=data,
            media_type=doc.file_type,
            headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(doc.file_name)}"},
        )
    except HTTPException:
        raise
    except StorageError as e:
        logger.error(f"Download error for document {document_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Download error: {e}")
    except Exception as e:
        logger.error(f"Error downloading document {document_id}: {e}")
        raise HTTPException(status_code=500, detail="Error downloading document")


@router.put("/{document_id}", response_model=DocumentResponse)
async def rename_document(document_id: int, request: DocumentRename, db: AsyncSession = Depends(get_db),
                          user_id: str = Depends(require_user)):
    try:
        new_name = request.file_name.strip()
        if not new_name:
            raise HTTPException(status_code=400, detail="File name cannot be empty")

        doc = await _get_document_or_404(db, document_id, user_id)
        doc.file_name = new_name
        doc.updated_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(doc)
        return _document_response(doc)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error renaming document {document_id}: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Error renaming document")


@router.delete("/{document_id}")
async def delete_document(document_id: int, db: AsyncSession = Depends(get_db),
                          user_id: str = Depends(require_user),
                          storage: StorageClient = Depends(get_storage_client)):
    try:
        doc = await _get_document_or_404(db, document_id, user_id)

        # Storage first: a failed removal keeps the row so the file stays reachable
        await run_in_threadpool(storage.remove, DOCUMENTS_BUCKET, [doc.storage_path])

        await db.delete(doc)
        await db.commit()
        logger.info(f"Document {document_id} deleted by {user_id}")
        return {"message": "Document removed successfully."}
    except HTTPException:
        raise
    except StorageError as e:
        logger.error(f"Storage deletion error for document {document_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Storage deletion error: {e}")
    except Exception as e:
        logger.error(f"Error deleting document {document_id}: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Error deleting document")
