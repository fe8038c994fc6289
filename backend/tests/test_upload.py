import json

import httpx

from backend_stub import StoredDocument
from rh_portal.config import settings

UPLOAD_URL = "/api/upload/pieces-justificatives"
PDF_BYTES = b"%PDF-1.4\n\x00\x01\x02 contrat binaire \xff\xfe"


def _metadata(**overrides):
    data = {"collaborateurId": 7, "nom": "Contrat", "type": "CONTRAT", "description": "Signé"}
    data.update(overrides)
    return json.dumps(data)


class TestUploadValidation:
    def test_missing_file_is_rejected_before_backend(self, mock_client, mock_backend):
        r = mock_client.post(UPLOAD_URL, data={"pieceJustificative": _metadata()})
        assert r.status_code == 400
        assert "Incomplete form data" in r.json()["error"]
        assert mock_backend.requests == []

    def test_missing_metadata_is_rejected_before_backend(self, mock_client, mock_backend):
        r = mock_client.post(UPLOAD_URL, files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")})
        assert r.status_code == 400
        assert mock_backend.requests == []

    def test_empty_metadata_part_is_incomplete_form_data(self, mock_client, mock_backend):
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": ""},
        )
        assert r.status_code == 400
        assert "Incomplete form data" in r.json()["error"]
        assert mock_backend.requests == []

    def test_malformed_json_is_rejected(self, mock_client, mock_backend):
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": "{not json"},
        )
        assert r.status_code == 400
        assert "Malformed" in r.json()["error"]
        assert mock_backend.requests == []

    def test_metadata_without_owner_is_rejected(self, mock_client, mock_backend):
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": json.dumps({"nom": "Contrat", "type": "CONTRAT"})},
        )
        assert r.status_code == 400
        assert "collaborateurId" in r.json()["error"]
        assert mock_backend.requests == []

    def test_oversized_file_is_rejected(self, mock_client, mock_backend, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 10)
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
        )
        assert r.status_code == 413
        assert mock_backend.requests == []


class TestUploadForwarding:
    def test_forwards_flat_fields_and_file(self, mock_client, mock_backend):
        mock_backend.reply = lambda request: httpx.Response(201, json={"id": 42, "nom": "Contrat"})
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
        )
        assert r.status_code == 201
        assert r.json() == {"id": 42, "nom": "Contrat"}

        [sent] = mock_backend.requests
        assert sent.method == "POST"
        assert sent.url.path == "/api/pieces-justificatives"
        assert sent.headers["content-type"].startswith("multipart/form-data")
        for name in (b'name="collaborateurId"', b'name="nom"', b'name="type"', b'name="description"'):
            assert name in sent.content
        assert b'name="pieceJustificative"' not in sent.content
        assert PDF_BYTES in sent.content

    def test_metadata_as_json_blob(self, mock_client, mock_backend):
        r = mock_client.post(
            UPLOAD_URL,
            files={
                "file": ("contrat.pdf", PDF_BYTES, "application/pdf"),
                "pieceJustificative": ("blob", _metadata().encode(), "application/json"),
            },
        )
        assert r.status_code == 200
        assert len(mock_backend.requests) == 1

    def test_file_bytes_reach_backend_unchanged(self, client, backend_db):
        r = client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
        )
        assert r.status_code == 201
        db = backend_db()
        stored = db.get(StoredDocument, r.json()["id"])
        assert stored.content == PDF_BYTES
        assert stored.nom_fichier == "contrat.pdf"
        assert stored.content_type == "application/pdf"
        assert stored.collaborateur_id == 7
        db.close()

    def test_incomplete_upload_never_reaches_backend(self, client, backend_app):
        r = client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": ""},
        )
        assert r.status_code == 400
        assert backend_app.state.requests == []

    def test_bearer_reaches_backend(self, client, backend_app):
        client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
            headers={"Authorization": "Bearer admin-token"},
        )
        [sent] = backend_app.state.requests
        assert sent["method"] == "POST"
        assert sent["headers"]["authorization"] == "Bearer admin-token"

    def test_backend_json_error_is_relayed_unchanged(self, mock_client, mock_backend):
        mock_backend.reply = lambda request: httpx.Response(409, json={"message": "Document déjà existant"})
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
        )
        assert r.status_code == 409
        assert r.json() == {"message": "Document déjà existant"}

    def test_backend_text_error_is_relayed_unchanged(self, mock_client, mock_backend):
        mock_backend.reply = lambda request: httpx.Response(
            503, text="maintenance", headers={"content-type": "text/plain"}
        )
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
        )
        assert r.status_code == 503
        assert r.text == "maintenance"

    def test_non_json_success_is_acknowledged(self, mock_client, mock_backend):
        mock_backend.reply = lambda request: httpx.Response(200, text="OK")
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
        )
        assert r.status_code == 200
        assert r.json() == {"success": True}

    def test_unreachable_backend_is_a_500(self, mock_client, mock_backend):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        mock_backend.reply = refuse
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
        )
        assert r.status_code == 500
        assert "connection refused" in r.json()["error"]

    def test_cookie_token_is_relayed_as_bearer(self, mock_client, mock_backend):
        mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
            headers={"Cookie": "token=abc123; XSRF-TOKEN=csrf-1"},
        )
        [sent] = mock_backend.requests
        assert sent.headers["authorization"] == "Bearer abc123"
        assert sent.headers["x-csrf-token"] == "csrf-1"


class TestBatchUpload:
    def test_failed_file_does_not_stop_the_others(self, mock_client, mock_backend):
        def reply(request):
            if b'filename="bad.pdf"' in request.content:
                return httpx.Response(500, json={"message": "stockage indisponible"})
            return httpx.Response(201, json={"id": len(mock_backend.requests)})

        mock_backend.reply = reply
        r = mock_client.post(
            f"{UPLOAD_URL}/batch",
            data={"collaborateurId": "7", "types": ["CV", "DIPLOME", "AUTRE"]},
            files=[
                ("files", ("cv.pdf", b"cv", "application/pdf")),
                ("files", ("bad.pdf", b"bad", "application/pdf")),
                ("files", ("photo.png", b"png", "image/png")),
            ],
        )
        assert r.status_code == 200
        data = r.json()
        assert data["total"] == 3
        assert data["failed"] == ["bad.pdf"]
        assert len(data["uploaded"]) == 2
        assert len(mock_backend.requests) == 3

    def test_types_must_match_files(self, mock_client, mock_backend):
        r = mock_client.post(
            f"{UPLOAD_URL}/batch",
            data={"collaborateurId": "7", "types": ["CV"]},
            files=[
                ("files", ("cv.pdf", b"cv", "application/pdf")),
                ("files", ("diplome.pdf", b"dip", "application/pdf")),
            ],
        )
        assert r.status_code == 400
        assert mock_backend.requests == []

    def test_owner_is_required(self, mock_client, mock_backend):
        r = mock_client.post(
            f"{UPLOAD_URL}/batch",
            data={"types": ["CV"]},
            files=[("files", ("cv.pdf", b"cv", "application/pdf"))],
        )
        assert r.status_code == 400
        assert mock_backend.requests == []


class TestUploadRedirects:
    def test_backend_redirect_is_not_reported_as_success(self, mock_client, mock_backend):
        mock_backend.reply = lambda request: httpx.Response(
            302, text="<html>login</html>", headers={"content-type": "text/html", "location": "/login"}
        )
        r = mock_client.post(
            UPLOAD_URL,
            files={"file": ("contrat.pdf", PDF_BYTES, "application/pdf")},
            data={"pieceJustificative": _metadata()},
            follow_redirects=False,
        )
        assert r.status_code == 302
        assert r.text == "<html>login</html>"
        assert r.headers["content-type"].startswith("text/html")

    def test_batch_counts_redirect_as_failure(self, mock_client, mock_backend):
        mock_backend.reply = lambda request: httpx.Response(302, headers={"location": "/login"})
        r = mock_client.post(
            f"{UPLOAD_URL}/batch",
            data={"collaborateurId": "7", "types": ["CV"]},
            files=[("files", ("cv.pdf", b"cv", "application/pdf"))],
        )
        assert r.status_code == 200
        assert r.json()["failed"] == ["cv.pdf"]
        assert r.json()["uploaded"] == []
