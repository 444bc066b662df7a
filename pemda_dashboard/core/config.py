"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every value can be overridden by an environment variable of the same
    name (case-insensitive) or from a ``.env`` file next to the process.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    # The SPA origin; FRONTEND_URL in the old deployment scripts.
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./pemda_dashboard.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(default=10, description="Number of persistent database connections")
    db_max_overflow: int = Field(default=10, description="Extra connections allowed during traffic bursts")
    db_pool_timeout: int = Field(default=5, description="Seconds to wait for a pooled connection")
    db_pool_recycle: int = Field(default=1800, description="Seconds before a connection is recycled")

    # Keycloak (OIDC provider + Admin REST API)
    keycloak_url: str = Field(default="http://localhost:8080", description="Keycloak base URL")
    keycloak_realm: str = Field(default="Jogja-SSO", description="Realm holding portal users")
    keycloak_client_id: str = Field(default="pemda-dashboard", description="Public/confidential client used by the SPA login")
    keycloak_client_secret: str = Field(default="", description="Secret for keycloak_client_id")
    keycloak_admin_client_id: str = Field(
        default="pemda-dashboard",
        description="Service-account client used for Admin API calls (client_credentials)"
    )
    keycloak_admin_client_secret: str = Field(default="", description="Secret for keycloak_admin_client_id")
    # Empty = do not check the ``iss`` claim. Keycloak stamps the hostname the
    # browser used, which differs between LAN and public deployments.
    keycloak_issuer: str = Field(default="", description="Expected token issuer (empty = skip check)")
    keycloak_jwks_cache_seconds: int = Field(default=300, description="How long realm signing keys are cached")
    keycloak_timeout: float = Field(default=10.0, description="Timeout in seconds for Keycloak HTTP calls")

    # Authentication
    # AUTH_ENABLED: when False, every request runs as a local development admin.
    auth_enabled: bool = Field(default=True, description="Verify Keycloak bearer tokens")
    admin_roles: str = Field(
        default="admin,realm-admin,manage-users,super_admin",
        description="Realm roles granting admin access (comma-separated, case-insensitive)"
    )
    admin_emails: str = Field(
        default="",
        description="Emails always treated as admins (comma-separated)"
    )

    # Object storage (MinIO / S3-compatible)
    minio_endpoint: str = Field(default="localhost", description="MinIO host name")
    minio_port: int = Field(default=9000, description="MinIO port")
    minio_use_ssl: bool = Field(default=False, description="Use HTTPS for MinIO")
    minio_access_key: str = Field(default="minioadmin")
    minio_secret_key: str = Field(default="minioadmin")
    minio_bucket: str = Field(default="pemda-documents", description="Bucket holding uploaded files")
    minio_public_url: str = Field(
        default="",
        description="Base URL used in download links (empty = derived from endpoint/port)"
    )

    # Uploads
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, description="Hard cap on request file size")

    # Login log retention
    login_log_retention_days: int = Field(
        default=365,
        description="Days to keep login log entries (0 = keep forever)"
    )

    # Rate Limiting
    rate_limit_per_minute: int = Field(default=120, description="Maximum requests per client per minute")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        # SECURITY: Prevent wildcard CORS (credentials are allowed)
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    def get_admin_roles(self) -> List[str]:
        return [r.strip().lower() for r in self.admin_roles.split(',') if r.strip()]

    def get_admin_emails(self) -> List[str]:
        return [e.strip().lower() for e in self.admin_emails.split(',') if e.strip()]

    @property
    def minio_base_url(self) -> str:
        """Base URL of the object store, used for both the S3 client and public links."""
        scheme = "https" if self.minio_use_ssl else "http"
        return f"{scheme}://{self.minio_endpoint}:{self.minio_port}"

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings use insecure defaults.
        In development, returns silently; main.py logs the individual warnings.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if not self.auth_enabled:
            errors.append("AUTH_ENABLED is false. Authentication must be enabled in production.")

        if not self.keycloak_admin_client_secret:
            errors.append(
                "KEYCLOAK_ADMIN_CLIENT_SECRET is empty. "
                "Admin API calls will be rejected by Keycloak."
            )

        if self.minio_access_key == "minioadmin" or self.minio_secret_key == "minioadmin":
            errors.append("MinIO is using the default minioadmin credentials.")

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
