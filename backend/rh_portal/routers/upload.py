"""
Same-origin upload proxies for supporting documents (pièces justificatives).

The browser posts a multipart form with a `file` part and a `pieceJustificative`
part holding the metadata as JSON. The proxy validates both, flattens the
metadata into individual form fields and forwards everything to the backend
with the caller's credentials. Validation failures never reach the backend.
"""

import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import UploadFile

from rh_portal.config import settings
from rh_portal.dependencies import get_backend, get_session
from rh_portal.schemas.document import BatchUploadResponse, PieceJustificativeIn
from rh_portal.services.backend_client import BackendClient, error_message
from rh_portal.services.document_service import InvalidFormData, parse_piece_justificative, read_upload
from rh_portal.services.session_service import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload/pieces-justificatives", tags=["upload"])

INCOMPLETE_UPLOAD = "Incomplete form data: 'file' and 'pieceJustificative' are required."
INCOMPLETE_UPDATE = "Incomplete form data: 'pieceJustificative' is required."


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _relay_success(response: httpx.Response) -> Response:
    try:
        response.json()
    except ValueError:
        return JSONResponse({"success": True})
    return Response(content=response.content, status_code=response.status_code, media_type="application/json")


def _is_present(part) -> bool:
    if part is None:
        return False
    if isinstance(part, UploadFile):
        return True
    return bool(part.strip())


async def _file_part(upload: UploadFile) -> tuple[str, bytes, str]:
    content = await read_upload(upload, settings.max_upload_bytes)
    if not content:
        raise InvalidFormData("Empty file")
    filename = upload.filename or "upload"
    content_type = upload.content_type or "application/octet-stream"
    logger.info("File details: name=%s type=%s size=%d", filename, content_type, len(content))
    return filename, content, content_type


@router.post("")
async def upload_piece_justificative(
    request: Request,
    backend: BackendClient = Depends(get_backend),
    session: SessionContext = Depends(get_session),
):
    form = await request.form()
    logger.info("Received upload request, form data keys: %s", list(form.keys()))

    upload = form.get("file")
    raw_metadata = form.get("pieceJustificative")
    if not isinstance(upload, UploadFile) or not _is_present(raw_metadata):
        return _error(INCOMPLETE_UPLOAD, 400)

    try:
        metadata = await parse_piece_justificative(raw_metadata)
        file_part = await _file_part(upload)
    except InvalidFormData as exc:
        return _error(str(exc), exc.status_code)

    try:
        response = await backend.forward_create(metadata.to_form_fields(), file_part, headers=session.auth_headers())
    except Exception as exc:
        logger.exception("Error processing upload")
        return _error(str(exc) or "An error occurred", 500)

    if not response.is_success:
        logger.error("Backend error: %s %s", response.status_code, response.text[:200])
        return Response(
            content=response.content,
            status_code=response.status_code,
            media_type=response.headers.get("content-type", "text/plain"),
        )

    logger.info("Upload successful, returning data to client")
    return _relay_success(response)


@router.post("/batch", response_model=BatchUploadResponse)
async def upload_batch(
    request: Request,
    backend: BackendClient = Depends(get_backend),
    session: SessionContext = Depends(get_session),
):
    """Upload several files for one collaborateur; a failing file does not stop the others."""
    form = await request.form()
    uploads = [f for f in form.getlist("files") if isinstance(f, UploadFile)]
    types = [t for t in form.getlist("types") if isinstance(t, str)]

    try:
        collaborateur_id = int(form.get("collaborateurId") or "")
    except (TypeError, ValueError):
        return _error("A valid 'collaborateurId' is required.", 400)
    if not uploads:
        return _error(INCOMPLETE_UPLOAD, 400)
    if len(uploads) != len(types):
        return _error(f"Got {len(uploads)} files but {len(types)} types.", 400)

    logger.info("Starting upload of %d files for collaborateur %s", len(uploads), collaborateur_id)
    uploaded: list[dict] = []
    failed: list[str] = []
    for index, (upload, doc_type) in enumerate(zip(uploads, types), start=1):
        filename = upload.filename or f"file-{index}"
        try:
            metadata = PieceJustificativeIn(
                collaborateurId=collaborateur_id, nom=filename, type=doc_type, description=filename
            )
            file_part = await _file_part(upload)
            response = await backend.forward_create(
                metadata.to_form_fields(), file_part, headers=session.auth_headers()
            )
        except (InvalidFormData, ValueError, httpx.HTTPError) as exc:
            logger.error("Error uploading file %d/%d (%s): %s", index, len(uploads), filename, exc)
            failed.append(filename)
            continue
        if not response.is_success:
            logger.error(
                "Error uploading file %d/%d (%s): %s", index, len(uploads), filename, error_message(response)
            )
            failed.append(filename)
            continue
        try:
            uploaded.append(response.json())
        except ValueError:
            uploaded.append({"success": True, "nom": filename})

    logger.info("Successfully uploaded %d/%d files", len(uploaded), len(uploads))
    return BatchUploadResponse(uploaded=uploaded, failed=failed, total=len(uploads))


@router.put("/{doc_id}")
async def update_piece_justificative(
    doc_id: str,
    request: Request,
    backend: BackendClient = Depends(get_backend),
    session: SessionContext = Depends(get_session),
):
    try:
        if not doc_id.strip():
            return _error("Missing identifier for the update.", 400)

        form = await request.form()
        raw_metadata = form.get("pieceJustificative")
        if not _is_present(raw_metadata):
            logger.error("Missing pieceJustificative data")
            return _error(INCOMPLETE_UPDATE, 400)

        try:
            metadata = await parse_piece_justificative(raw_metadata)
            upload = form.get("file")
            # Browsers send an empty, nameless part when no replacement file is picked.
            file_part = await _file_part(upload) if isinstance(upload, UploadFile) and upload.filename else None
        except InvalidFormData as exc:
            return _error(str(exc), exc.status_code)

        logger.info("Form data keys: %s", list(form.keys()))
        response = await backend.forward_update(
            doc_id.strip(), metadata.to_form_fields(), file_part, headers=session.auth_headers()
        )

        if not response.is_success:
            message = error_message(response)
            logger.error("Backend error: %s %s", response.status_code, message)
            return _error(f"Error {response.status_code}: {message}", response.status_code)

        return _relay_success(response)
    except Exception as exc:
        logger.exception("Error processing update request")
        return _error(str(exc) or "Unknown error", 500)
