# qrtrace/api/routers/documents.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from qrtrace.db.session import get_session
from qrtrace.schemas.document import DocumentOut
from qrtrace.services.document_store import SqlDocumentStore

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("/{doc_type}/{doc_id}", response_model=DocumentOut)
async def get_document(
    doc_type: str,
    doc_id: str,
    session: AsyncSession = Depends(get_session),
):
    doc = await SqlDocumentStore(session).load(doc_type, doc_id)
    return DocumentOut.from_domain(doc)
