from datetime import datetime

from rh_portal.schemas.document import DocumentStatus, StatusBadge

DOCUMENT_TYPE_LABELS = {
    "CONTRAT": "Contrat",
    "CV": "CV",
    "DIPLOME": "Diplôme",
    "PIECE_IDENTITE": "Pièce d'identité",
    "CERTIFICAT": "Certificat",
    "FICHE_PAIE": "Fiche de paie",
    "AUTRE": "Autre",
}


def document_type_label(doc_type: str | None) -> str:
    if not doc_type:
        return ""
    return DOCUMENT_TYPE_LABELS.get(doc_type, doc_type)


def status_badge(status: DocumentStatus) -> StatusBadge:
    if status is DocumentStatus.VALIDE:
        return StatusBadge(label="Validé", variant="success")
    if status is DocumentStatus.REJETE:
        return StatusBadge(label="Rejeté", variant="danger")
    return StatusBadge(label="En attente", variant="warning")


def format_date_fr(value: str | None) -> str:
    """dd/mm/YYYY for an ISO date or timestamp; anything unparseable is returned as is."""
    if not value:
        return ""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%d/%m/%Y")


def full_name(nom: str | None, prenom: str | None) -> str | None:
    parts = [p for p in (prenom, nom) if p]
    return " ".join(parts) or None
