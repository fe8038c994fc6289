from urllib.parse import urlsplit

from rh_portal.config import settings
from rh_portal.schemas.document import PieceJustificative, PreviewInfo, PreviewKind

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "bmp", "svg"}
PDF_EXTENSIONS = {"pdf"}


def file_extension(reference: str | None) -> str:
    """Lowercase extension of a path or URL, ignoring query string and fragment."""
    if not reference:
        return ""
    path = urlsplit(reference).path if "://" in reference else reference.split("?", 1)[0].split("#", 1)[0]
    name = path.rstrip("/").rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def classify(stored_reference: str | None, original_filename: str | None = None) -> PreviewKind:
    extension = file_extension(original_filename) or file_extension(stored_reference)
    if not stored_reference:
        return PreviewKind.DOWNLOAD
    if extension in IMAGE_EXTENSIONS:
        return PreviewKind.IMAGE
    if extension in PDF_EXTENSIONS:
        return PreviewKind.PDF
    return PreviewKind.DOWNLOAD


def is_previewable(stored_reference: str | None, original_filename: str | None = None) -> bool:
    return classify(stored_reference, original_filename) is not PreviewKind.DOWNLOAD


def resolve_file_url(stored_reference: str | None, files_base_url: str | None = None) -> str | None:
    """Absolute URL the browser fetches directly from the backend."""
    if not stored_reference:
        return None
    if stored_reference.startswith(("http://", "https://")):
        return stored_reference
    base = (files_base_url or settings.files_base_url).rstrip("/")
    return f"{base}/{stored_reference.lstrip('/')}"


def build_preview(doc: PieceJustificative, files_base_url: str | None = None) -> PreviewInfo:
    reference = doc.chemin_fichier or doc.fichier_url
    kind = classify(reference, doc.nom_fichier)
    if doc.chemin_fichier:
        file_url = resolve_file_url(doc.chemin_fichier, files_base_url)
    else:
        file_url = resolve_file_url(doc.fichier_url, settings.backend_base_url)

    if kind is PreviewKind.PDF:
        preview_url = f"{file_url}#view=FitH"
    elif kind is PreviewKind.IMAGE:
        preview_url = file_url
    else:
        preview_url = None

    return PreviewInfo(
        kind=kind,
        extension=file_extension(doc.nom_fichier) or file_extension(reference),
        file_url=file_url,
        preview_url=preview_url,
        download_url=file_url,
    )
