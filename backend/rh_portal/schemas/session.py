from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CurrentUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    role: str = "USER"
    cin: str | None = None
    email: str | None = None
    nom: str | None = None
    prenom: str | None = None
    collaborateur_id: int | None = Field(
        None, validation_alias=AliasChoices("collaborateurId", "collaborateur_id")
    )

    @property
    def is_admin(self) -> bool:
        return self.role.upper().removeprefix("ROLE_") == "ADMIN"


class Capabilities(BaseModel):
    can_change_status: bool = False
    can_delete_others: bool = False
    can_view_all_owners: bool = False
