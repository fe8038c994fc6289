import json
import logging
from dataclasses import dataclass, field

import httpx
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from rh_portal.schemas.document import (
    DocumentRow,
    DocumentStatus,
    PieceJustificative,
    PieceJustificativeIn,
)
from rh_portal.services.backend_client import BackendClient, BackendError
from rh_portal.services.preview_service import build_preview
from rh_portal.utils.formatting import document_type_label, format_date_fr, full_name, status_badge

logger = logging.getLogger(__name__)

LOAD_ERROR = "Unable to load documents"
EMPTY_NOTICE = "No documents available"


class InvalidFormData(ValueError):
    """Inbound form rejected before any backend call."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


async def parse_piece_justificative(raw) -> PieceJustificativeIn:
    """Validate the `pieceJustificative` part: a JSON string, a JSON blob or an already decoded mapping."""
    if isinstance(raw, UploadFile):
        raw = await raw.read()
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidFormData("'pieceJustificative' must be UTF-8 encoded JSON")
    if isinstance(raw, str):
        if not raw.strip():
            raise InvalidFormData("Incomplete form data: 'pieceJustificative' is empty")
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidFormData(f"Malformed 'pieceJustificative' JSON: {exc.msg}")
    if not isinstance(raw, dict):
        raise InvalidFormData("'pieceJustificative' must be a JSON object")

    try:
        return PieceJustificativeIn.model_validate(raw)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "pieceJustificative" for err in exc.errors())
        raise InvalidFormData(f"Invalid 'pieceJustificative' fields: {fields}")


async def read_upload(upload: UploadFile, max_bytes: int) -> bytes:
    """Read an uploaded file in chunks, refusing anything above max_bytes."""
    size = 0
    chunks: list[bytes] = []
    while True:
        chunk = await upload.read(1024 * 1024)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise InvalidFormData(f"File too large (max {max_bytes} bytes)", status_code=413)
        chunks.append(chunk)
    return b"".join(chunks)


@dataclass
class DocumentListing:
    documents: list[PieceJustificative] = field(default_factory=list)
    error: str | None = None


async def load_documents(
    backend: BackendClient,
    collaborateur_id: int | None = None,
    status_filter: DocumentStatus | None = None,
    headers: dict[str, str] | None = None,
) -> DocumentListing:
    """
    Fetch all documents, or one owner's, then keep those matching status_filter.

    Backend order is preserved. A failed fetch yields an empty listing with an
    error message; nothing is retried. 401 propagates so the caller can end the
    session.
    """
    try:
        if collaborateur_id is not None:
            raw = await backend.list_documents_for(collaborateur_id, headers=headers)
        else:
            raw = await backend.list_documents(headers=headers)
    except BackendError as exc:
        if exc.status_code == 401:
            raise
        logger.error("Error loading documents: %s", exc)
        return DocumentListing(error=LOAD_ERROR)
    except httpx.HTTPError as exc:
        logger.error("Error loading documents: %s", exc)
        return DocumentListing(error=LOAD_ERROR)

    if not isinstance(raw, list):
        logger.error("Unexpected documents payload: %r", type(raw).__name__)
        return DocumentListing(error=LOAD_ERROR)
    try:
        documents = [PieceJustificative.model_validate(item) for item in raw]
    except ValidationError as exc:
        logger.error("Malformed document in backend payload: %s", exc)
        return DocumentListing(error=LOAD_ERROR)

    if status_filter is not None:
        documents = [d for d in documents if d.statut == status_filter]
    logger.debug("Loaded %d documents (owner=%s, statut=%s)", len(documents), collaborateur_id, status_filter)
    return DocumentListing(documents=documents)


def to_row(doc: PieceJustificative, files_base_url: str | None = None) -> DocumentRow:
    return DocumentRow(
        id=doc.id,
        collaborateur_id=doc.collaborateur_id,
        collaborateur=full_name(doc.collaborateur_nom, doc.collaborateur_prenom),
        nom=doc.nom,
        type=doc.type,
        type_label=document_type_label(doc.type),
        description=doc.description,
        statut=doc.statut,
        badge=status_badge(doc.statut),
        date_creation=doc.date_creation,
        date_creation_display=format_date_fr(doc.date_creation),
        preview=build_preview(doc, files_base_url),
    )
