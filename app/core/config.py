"""Application configuration using Pydantic Settings"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # App Configuration
    APP_NAME: str = "SBOMWatch"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database Configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./sbomwatch.db"

    # Local token scheme (short-lived tokens signed by this service)
    SECRET_KEY: str = "change-this-to-a-random-secret-key-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    LOCAL_TOKEN_ISSUER: str = "sbomwatch"

    # External token scheme (OIDC provider); disabled while OIDC_ISSUER is unset
    OIDC_ISSUER: Optional[str] = None
    OIDC_AUDIENCE: Optional[str] = None
    OIDC_JWKS_URL: Optional[str] = None
    OIDC_CLOCK_SKEW_SECONDS: int = 60
    JWKS_CACHE_TTL_SECONDS: int = 300
    JWKS_FETCH_TIMEOUT_SECONDS: float = 5.0

    # Opaque API tokens
    API_TOKEN_PREFIX: str = "sbom_"

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_IP_MAX: int = 100
    RATE_LIMIT_TOKENS_LIST: int = 10
    RATE_LIMIT_TOKENS_CREATE: int = 5
    RATE_LIMIT_TOKENS_DELETE: int = 10
    RATE_LIMIT_SBOM_SYNC: int = 30
    RATE_LIMIT_AUTH_TOKEN: int = 10
    # Honour X-Forwarded-For / X-Real-IP only when a trusted proxy sets them
    TRUSTED_PROXY_HEADERS: bool = False

    # Artifact store (S3); absence of credentials selects the local-reference fallback
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_REGION: str = "us-east-1"
    AWS_S3_BUCKET_NAME: str = "sbomwatch-sboms"
    AWS_S3_ENDPOINT: Optional[str] = None
    ARTIFACT_STORE_TIMEOUT_SECONDS: float = 10.0

    # Vulnerability correlator (OSV-compatible querybatch endpoint)
    VULN_CORRELATOR_ENABLED: bool = True
    VULN_CORRELATOR_URL: str = "https://api.osv.dev/v1/querybatch"
    VULN_CORRELATOR_TIMEOUT_SECONDS: float = 10.0

    # Project auto-provisioning
    DEFAULT_REPO_URL_TEMPLATE: str = "https://github.com/{name}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def jwks_url(self) -> Optional[str]:
        """JWKS endpoint for the external provider, derived from the issuer when not set."""
        if self.OIDC_JWKS_URL:
            return self.OIDC_JWKS_URL
        if not self.OIDC_ISSUER:
            return None
        return self.OIDC_ISSUER.rstrip("/") + "/.well-known/jwks.json"


# Global settings instance
settings = Settings()
