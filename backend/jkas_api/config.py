from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "JKAS Operations API"
    # Pooled connection used by the financial dashboard endpoints.
    database_url: str = ""
    # Complaint intake opens its own connection; falls back to database_url.
    complaints_database_url: str = ""
    # Reported by the debug endpoint only.
    database_name: str = "jkasdb"
    # Comma-separated origins for CORS. Use "*" only for demo environments.
    cors_allow_origins: str = "*"
    log_level: str = "INFO"
    pool_min_size: int = 1
    pool_max_size: int = 10

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]

    @property
    def complaints_dsn(self) -> str:
        return self.complaints_database_url or self.database_url


settings = Settings()
