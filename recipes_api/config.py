from typing import List, Optional
from urllib.parse import quote_plus
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Core
    log_level: str = "INFO"
    service_env: str = "dev"  # dev|test|prod
    server_public_url: str = "http://localhost:8000"

    # CORS
    cors_allow_origins: str = "*"
    cors_allow_credentials: bool = True
    cors_allow_methods: str = "*"
    cors_allow_headers: str = "*"

    # DB
    db_url: str = "sqlite:///./recipes.db"
    db_auto_create: bool = True  # create_all at startup; prod runs alembic instead
    db_echo: bool = False

    # Postgres connection, injected from the credentials secret in ECS/CodeBuild
    pghost: Optional[str] = None
    pgport: int = 5432
    pguser: Optional[str] = None
    pgpassword: Optional[str] = None
    pgdatabase: Optional[str] = None

    # Auth: external identity provider (RS256 + JWKS)
    auth_issuer_url: Optional[str] = None  # e.g. https://tenant.auth0.com/
    auth_audience: Optional[str] = None
    auth_algorithms: str = "RS256"
    jwks_cache_lifespan_s: int = 300

    # Auth: development tokens (HS256)
    jwt_secret: str = "change-me-dev"
    jwt_expire_minutes: int = 120
    auth_dev_pin: Optional[str] = None

    # Size limit
    max_body_bytes: int = 262144  # 256KB

    def resolved_db_url(self) -> str:
        if not self.pghost:
            return self.db_url
        user = quote_plus(self.pguser or "")
        password = quote_plus(self.pgpassword or "")
        creds = f"{user}:{password}@" if user else ""
        return f"postgresql+psycopg2://{creds}{self.pghost}:{self.pgport}/{self.pgdatabase or ''}"

    def parsed_auth_algorithms(self) -> List[str]:
        return [a.strip() for a in self.auth_algorithms.split(",") if a.strip()]

    def jwks_url(self) -> Optional[str]:
        if not self.auth_issuer_url:
            return None
        issuer = self.auth_issuer_url if self.auth_issuer_url.endswith("/") else self.auth_issuer_url + "/"
        return f"{issuer}.well-known/jwks.json"

    @property
    def uses_identity_provider(self) -> bool:
        return bool(self.auth_issuer_url)

    @model_validator(mode="after")
    def _validate_security(self) -> "Settings":
        if self.auth_issuer_url and not self.auth_audience:
            raise ValueError("auth_audience must be set together with auth_issuer_url")
        if self.service_env != "dev":
            if not self.auth_issuer_url and self.jwt_secret == "change-me-dev":
                raise ValueError("auth_issuer_url or jwt_secret must be set via environment variable in non-dev environments")
            if self.auth_dev_pin is not None:
                raise ValueError("auth_dev_pin is only allowed in development")
        return self

settings = Settings()
