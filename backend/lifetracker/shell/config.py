"""Configuration - Settings read once from the environment.

Everything configurable lives here so that services and the app factory take
explicit values instead of reading os.environ themselves.
"""

import os
from dataclasses import dataclass, field


PRODUCTION = "production"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.environ.get(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime settings.

    Attributes:
        app_env: Deployment environment name
        firestore_project: GCP project ID (None for the client default)
        firestore_database: Firestore database name
        use_memory_store: Skip Firestore and keep data in memory (never in production)
        allow_store_fallback: Use the in-memory store when Firestore is unreachable
        allow_dev_identity: Substitute dev_user_id for unauthenticated requests
        dev_user_id: Placeholder owner id used in development
        search_enabled: Journal full-text search switch
        advanced_insights_enabled: Journal insight endpoints switch
        mcp_enabled: Mount the MCP tool server
        cors_origins: Origins allowed by the CORS middleware
        mcp_allowed_hosts: Host headers accepted by the MCP transport
        blob_base_url: Prefix for uploaded file URLs
        host: Bind address
        port: Bind port
        log_level: Root logging level name
    """

    app_env: str = "development"
    firestore_project: str | None = None
    firestore_database: str | None = "lifetracker"
    use_memory_store: bool = False
    allow_store_fallback: bool = True
    allow_dev_identity: bool = True
    dev_user_id: str = "dev-user-123"
    search_enabled: bool = True
    advanced_insights_enabled: bool = True
    mcp_enabled: bool = True
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )
    mcp_allowed_hosts: list[str] = field(default_factory=lambda: ["localhost:*", "127.0.0.1:*"])
    blob_base_url: str = "http://localhost:10000/devstoreaccount1"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        # Production never impersonates users or silently drops persistence
        if self.is_production:
            object.__setattr__(self, "allow_dev_identity", False)
            object.__setattr__(self, "allow_store_fallback", False)
            object.__setattr__(self, "use_memory_store", False)

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == PRODUCTION

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        app_env = os.environ.get("APP_ENV", "development")
        development = app_env.lower() != PRODUCTION

        return cls(
            app_env=app_env,
            firestore_project=os.environ.get("FIRESTORE_PROJECT") or None,
            firestore_database=os.environ.get("FIRESTORE_DATABASE", "lifetracker") or None,
            use_memory_store=_env_bool("USE_MEMORY_STORE", False),
            allow_store_fallback=_env_bool("ALLOW_STORE_FALLBACK", development),
            allow_dev_identity=_env_bool("ALLOW_DEV_IDENTITY", development),
            dev_user_id=os.environ.get("DEV_USER_ID", "dev-user-123"),
            search_enabled=_env_bool("FEATURE_SEARCH", True),
            advanced_insights_enabled=_env_bool("FEATURE_ADVANCED_INSIGHTS", True),
            mcp_enabled=_env_bool("MCP_ENABLED", True),
            cors_origins=_env_list("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"),
            mcp_allowed_hosts=_env_list("MCP_ALLOWED_HOSTS", "localhost:*,127.0.0.1:*"),
            blob_base_url=os.environ.get("BLOB_BASE_URL", "http://localhost:10000/devstoreaccount1"),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", 8080)),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
