import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError

from rh_portal.dependencies import get_backend, get_session, require_user
from rh_portal.schemas.document import (
    DocumentListResponse,
    DocumentRow,
    DocumentStatus,
    PieceJustificative,
    PreviewInfo,
    StatusUpdate,
)
from rh_portal.schemas.session import CurrentUser
from rh_portal.services.backend_client import BackendClient, BackendError
from rh_portal.services.document_service import EMPTY_NOTICE, load_documents, to_row
from rh_portal.services.preview_service import build_preview
from rh_portal.services.session_service import SessionContext, SessionExpired, capabilities_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pieces-justificatives", tags=["documents"])


def _backend_failure(exc: Exception, session: SessionContext) -> Exception:
    if isinstance(exc, BackendError):
        if exc.status_code == 401:
            session.logout()
            return SessionExpired()
        return HTTPException(status_code=exc.status_code or 502, detail=str(exc))
    return HTTPException(status_code=502, detail=f"Backend unreachable: {exc}")


async def _fetch_document(doc_id: int, backend: BackendClient, session: SessionContext) -> PieceJustificative:
    try:
        data = await backend.get_document(doc_id, headers=session.auth_headers())
    except (BackendError, httpx.HTTPError) as exc:
        raise _backend_failure(exc, session)
    try:
        return PieceJustificative.model_validate(data)
    except ValidationError as exc:
        logger.warning("Unreadable document %s from backend: %s", doc_id, exc)
        raise _backend_failure(BackendError(f"Invalid payload for document {doc_id}", 502), session)


def _check_can_view(doc: PieceJustificative, user: CurrentUser):
    if capabilities_for(user).can_view_all_owners:
        return
    if doc.collaborateur_id is None or doc.collaborateur_id != user.collaborateur_id:
        raise HTTPException(status_code=403, detail="Not allowed to view this document")


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    collaborateur_id: int | None = Query(None, alias="collaborateurId"),
    statut: DocumentStatus | None = None,
    user: CurrentUser = Depends(require_user),
    backend: BackendClient = Depends(get_backend),
    session: SessionContext = Depends(get_session),
):
    """Documents of one collaborateur, or of everyone for admins, optionally filtered by status."""
    capabilities = capabilities_for(user)
    if not capabilities.can_view_all_owners:
        if user.collaborateur_id is None:
            raise HTTPException(status_code=403, detail="No collaborateur linked to this account")
        if collaborateur_id is not None and collaborateur_id != user.collaborateur_id:
            raise HTTPException(status_code=403, detail="Not allowed to view these documents")
        collaborateur_id = user.collaborateur_id

    try:
        listing = await load_documents(backend, collaborateur_id, statut, headers=session.auth_headers())
    except BackendError as exc:
        raise _backend_failure(exc, session)

    rows = [to_row(doc) for doc in listing.documents]
    notice = None
    if listing.error is None and not rows:
        notice = EMPTY_NOTICE
    return DocumentListResponse(documents=rows, total=len(rows), notice=notice, error=listing.error)


@router.get("/{doc_id}", response_model=DocumentRow)
async def get_document(
    doc_id: int,
    user: CurrentUser = Depends(require_user),
    backend: BackendClient = Depends(get_backend),
    session: SessionContext = Depends(get_session),
):
    doc = await _fetch_document(doc_id, backend, session)
    _check_can_view(doc, user)
    return to_row(doc)


@router.get("/{doc_id}/preview", response_model=PreviewInfo)
async def preview_document(
    doc_id: int,
    user: CurrentUser = Depends(require_user),
    backend: BackendClient = Depends(get_backend),
    session: SessionContext = Depends(get_session),
):
    """Where the browser can fetch the file, and whether it can be shown inline."""
    doc = await _fetch_document(doc_id, backend, session)
    _check_can_view(doc, user)
    return build_preview(doc)


@router.patch("/{doc_id}/statut")
async def update_status(
    doc_id: int,
    req: StatusUpdate,
    user: CurrentUser = Depends(require_user),
    backend: BackendClient = Depends(get_backend),
    session: SessionContext = Depends(get_session),
):
    if not capabilities_for(user).can_change_status:
        raise HTTPException(status_code=403, detail="Not allowed to change the document status")
    try:
        data = await backend.update_status(doc_id, req.statut.value, headers=session.auth_headers())
    except (BackendError, httpx.HTTPError) as exc:
        raise _backend_failure(exc, session)
    logger.info("Document %s status set to %s by user %s", doc_id, req.statut.value, user.id)
    return data if data is not None else {"id": doc_id, "statut": req.statut.value}


@router.delete("/{doc_id}")
async def delete_document(
    doc_id: int,
    user: CurrentUser = Depends(require_user),
    backend: BackendClient = Depends(get_backend),
    session: SessionContext = Depends(get_session),
):
    if not capabilities_for(user).can_delete_others:
        doc = await _fetch_document(doc_id, backend, session)
        if doc.collaborateur_id is None or doc.collaborateur_id != user.collaborateur_id:
            raise HTTPException(status_code=403, detail="Not allowed to delete this document")
    try:
        data = await backend.delete_document(doc_id, headers=session.auth_headers())
    except (BackendError, httpx.HTTPError) as exc:
        raise _backend_failure(exc, session)
    logger.info("Document %s deleted by user %s", doc_id, user.id)
    return data if data is not None else {"message": "Document deleted"}
