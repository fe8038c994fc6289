"""
HTTP client for the HR backend REST API.

The backend owns persistence and file storage; this service only relays to it.
JSON helpers raise BackendError on non-2xx answers, while the forward_* methods
hand the raw httpx.Response back so the upload proxies can relay it unchanged.
"""

import json
import logging

import httpx

logger = logging.getLogger(__name__)

DOCUMENTS_ENDPOINT = "/api/pieces-justificatives"
CURRENT_USER_ENDPOINT = "/api/auth/me"

UploadFilePart = tuple[str, bytes, str]


class BackendError(Exception):
    """Non-2xx answer (or unreadable payload) from the backend."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def error_message(response: httpx.Response, fallback: str | None = None) -> str:
    """Best human-readable message from an error response: JSON field, JSON dump, raw text."""
    try:
        data = response.json()
    except ValueError:
        text = response.text.strip()
        return text or fallback or f"Error {response.status_code}"
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            if data.get(key):
                return str(data[key])
    return json.dumps(data, ensure_ascii=False)


def multipart_parts(fields: dict[str, str], file: UploadFilePart | None = None) -> list[tuple]:
    # (None, value) parts are plain form fields; this keeps the body multipart
    # even when no file is attached.
    parts: list[tuple] = [(name, (None, value)) for name, value in fields.items()]
    if file is not None:
        parts.append(("file", file))
    return parts


class BackendClient:
    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def _request_json(self, method: str, url: str, fallback: str, **kwargs):
        response = await self.http.request(method, url, **kwargs)
        if not response.is_success:
            message = error_message(response, fallback)
            logger.warning("Backend %s %s failed: %s %s", method, url, response.status_code, message)
            raise BackendError(message, response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise BackendError(f"Invalid JSON from backend for {method} {url}", 502)

    # --- documents ---

    async def list_documents(self, headers: dict[str, str] | None = None) -> list[dict]:
        data = await self._request_json("GET", DOCUMENTS_ENDPOINT, "Unable to load documents", headers=headers)
        return data or []

    async def list_documents_for(self, collaborateur_id: int, headers: dict[str, str] | None = None) -> list[dict]:
        data = await self._request_json(
            "GET",
            f"{DOCUMENTS_ENDPOINT}/collaborateur/{collaborateur_id}",
            "Unable to load documents",
            headers=headers,
        )
        return data or []

    async def get_document(self, doc_id: int, headers: dict[str, str] | None = None) -> dict:
        data = await self._request_json(
            "GET", f"{DOCUMENTS_ENDPOINT}/{doc_id}", f"Unable to load document {doc_id}", headers=headers
        )
        if not isinstance(data, dict):
            raise BackendError(f"Document {doc_id} not found", 404)
        return data

    async def update_status(self, doc_id: int, statut: str, headers: dict[str, str] | None = None) -> dict | None:
        return await self._request_json(
            "PATCH",
            f"{DOCUMENTS_ENDPOINT}/{doc_id}/statut",
            "Unable to update the document status",
            json={"statut": statut},
            headers=headers,
        )

    async def delete_document(self, doc_id: int, headers: dict[str, str] | None = None) -> dict | None:
        return await self._request_json(
            "DELETE", f"{DOCUMENTS_ENDPOINT}/{doc_id}", "Unable to delete the document", headers=headers
        )

    async def forward_create(
        self,
        fields: dict[str, str],
        file: UploadFilePart,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        logger.info("Sending request to backend: POST %s", DOCUMENTS_ENDPOINT)
        return await self.http.post(DOCUMENTS_ENDPOINT, files=multipart_parts(fields, file), headers=headers)

    async def forward_update(
        self,
        doc_id: str,
        fields: dict[str, str],
        file: UploadFilePart | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{DOCUMENTS_ENDPOINT}/{doc_id}"
        logger.info("Sending request to backend: PUT %s", url)
        return await self.http.put(url, files=multipart_parts(fields, file), headers=headers)

    # --- session ---

    async def current_user(self, headers: dict[str, str] | None = None) -> dict:
        return await self._request_json("GET", CURRENT_USER_ENDPOINT, "Unable to load the current user", headers=headers)
