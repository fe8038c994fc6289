from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Base URL of the HR backend (documents, collaborateurs, auth, static files).
    api_url: str = "http://localhost:8080"
    # Static files are served by the backend under this prefix, never proxied.
    files_path: str = "/api/files"
    # Same limit the upload form enforces before submitting.
    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MiB
    api_prefix: str = "/api"
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ]

    @property
    def backend_base_url(self) -> str:
        return self.api_url.rstrip("/")

    @property
    def files_base_url(self) -> str:
        return f"{self.backend_base_url}/{self.files_path.strip('/')}"

    model_config = {"env_prefix": "RH_"}


settings = Settings()
