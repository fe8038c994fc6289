from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class DocumentStatus(str, Enum):
    EN_ATTENTE = "EN_ATTENTE"
    VALIDE = "VALIDE"
    REJETE = "REJETE"


# Older backend builds answer with display labels instead of codes.
_LEGACY_STATUSES = {
    "Validée": DocumentStatus.VALIDE,
    "Rejetée": DocumentStatus.REJETE,
    "En attente": DocumentStatus.EN_ATTENTE,
}


def normalize_status(value) -> DocumentStatus:
    """Map a raw backend status to a DocumentStatus; absent or unknown means pending."""
    if isinstance(value, DocumentStatus):
        return value
    if not isinstance(value, str):
        return DocumentStatus.EN_ATTENTE
    if value in _LEGACY_STATUSES:
        return _LEGACY_STATUSES[value]
    try:
        return DocumentStatus(value)
    except ValueError:
        return DocumentStatus.EN_ATTENTE


class PieceJustificativeIn(BaseModel):
    """Metadata submitted with an upload or an update (the `pieceJustificative` part)."""

    collaborateur_id: int = Field(validation_alias=AliasChoices("collaborateurId", "collaborateur_id"))
    nom: str = ""
    type: str = Field(min_length=1)
    description: str | None = None
    statut: str | None = None

    def to_form_fields(self) -> dict[str, str]:
        """Flatten to the individual form fields the backend expects."""
        fields = {
            "collaborateurId": str(self.collaborateur_id),
            "nom": self.nom,
            "type": self.type,
            "description": self.description or "",
        }
        if self.statut:
            fields["statut"] = self.statut
        return fields


class PieceJustificative(BaseModel):
    """A document as returned by the backend."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int | None = None
    collaborateur_id: int | None = Field(
        None, validation_alias=AliasChoices("collaborateurId", "collaborateur_id")
    )
    nom: str = ""
    type: str = ""
    description: str | None = None
    chemin_fichier: str | None = Field(
        None, validation_alias=AliasChoices("cheminFichier", "fichierPath", "chemin_fichier")
    )
    # Backend-relative path that already includes the files prefix.
    fichier_url: str | None = Field(None, validation_alias=AliasChoices("fichierUrl", "fichier_url"))
    nom_fichier: str | None = Field(None, validation_alias=AliasChoices("nomFichier", "fichierNom", "nom_fichier"))
    statut: DocumentStatus = DocumentStatus.EN_ATTENTE
    date_creation: str | None = Field(None, validation_alias=AliasChoices("dateCreation", "date_creation"))
    collaborateur_nom: str | None = Field(None, validation_alias=AliasChoices("collaborateurNom", "collaborateur_nom"))
    collaborateur_prenom: str | None = Field(
        None, validation_alias=AliasChoices("collaborateurPrenom", "collaborateur_prenom")
    )

    @field_validator("statut", mode="before")
    @classmethod
    def _normalize_statut(cls, value):
        return normalize_status(value)


class PreviewKind(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    DOWNLOAD = "download"


class PreviewInfo(BaseModel):
    kind: PreviewKind
    extension: str
    file_url: str | None
    preview_url: str | None
    download_url: str | None


class StatusBadge(BaseModel):
    label: str
    variant: str


class DocumentRow(BaseModel):
    id: int | None
    collaborateur_id: int | None
    collaborateur: str | None
    nom: str
    type: str
    type_label: str
    description: str | None
    statut: DocumentStatus
    badge: StatusBadge
    date_creation: str | None
    date_creation_display: str
    preview: PreviewInfo


class DocumentListResponse(BaseModel):
    documents: list[DocumentRow]
    total: int
    notice: str | None = None
    error: str | None = None


class StatusUpdate(BaseModel):
    statut: DocumentStatus

    @field_validator("statut", mode="before")
    @classmethod
    def _accept_labels(cls, value):
        if isinstance(value, str):
            return _LEGACY_STATUSES.get(value, value)
        return value


class BatchUploadResponse(BaseModel):
    uploaded: list[dict]
    failed: list[str]
    total: int
