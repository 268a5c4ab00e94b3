"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="coursehub", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )

    # Authentication
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        description="JWT signing key (min 32 chars)",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT algorithm")
    auth_access_token_expire_minutes: int = Field(
        default=15, description="Access token expiration (minutes)"
    )
    auth_refresh_token_expire_days: int = Field(
        default=7, description="Refresh token expiration (days)"
    )
    auth_cookie_name: str = Field(
        default="coursehub_refresh", description="Refresh token cookie name"
    )
    auth_cookie_secure: bool = Field(default=False, description="HTTPS-only cookie")
    auth_cookie_httponly: bool = Field(default=True, description="httpOnly cookie")
    auth_cookie_samesite: Literal["lax", "strict", "none"] = Field(
        default="lax", description="Cookie SameSite policy"
    )

    # Redis
    # Optional: without Redis, chat is stored but not pushed live
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 10
    redis_socket_timeout: float = 5.0
    redis_health_check_interval: int = 30

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="coursehub", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )
    cassandra_replication_factor: int = Field(
        default=1, description="Replication factor when the keyspace is created"
    )
    cassandra_datacenter: str = Field(
        default="datacenter1", description="Local datacenter (production topology)"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="CORS max age")

    # Firebase Storage
    firebase_enabled: bool = Field(
        default=False, description="Enable Firebase Storage for uploads"
    )
    firebase_credentials_path: str | None = Field(
        default=None, description="Path to Firebase service account JSON file"
    )
    firebase_storage_bucket: str | None = Field(
        default=None,
        description="Firebase Storage bucket (e.g., project-id.appspot.com)",
    )
    firebase_project_id: str | None = Field(
        default=None, description="Firebase project ID"
    )

    # Upload Settings
    upload_max_file_size_mb: int = Field(
        default=10, description="Maximum thumbnail size in MB"
    )
    upload_allowed_image_types: list[str] = Field(
        default=["image/jpeg", "image/png", "image/webp", "image/gif"],
        description="Allowed image MIME types",
    )
    content_max_file_size_mb: int = Field(
        default=500, description="Maximum lesson file size in MB"
    )
    content_allowed_types: list[str] = Field(
        default=[
            "video/mp4",
            "video/webm",
            "video/quicktime",
            "application/pdf",
        ],
        description="Allowed MIME types for lesson files",
    )

    # Course chat
    chat_history_limit: int = Field(
        default=100, description="Most recent messages returned per course"
    )

    # Transcripts
    transcript_provider: Literal["whisper", "assemblyai"] = Field(
        default="assemblyai", description="Speech-to-text provider"
    )
    openai_api_key: str | None = Field(
        default=None, description="OpenAI API key (Whisper)"
    )
    openai_transcription_url: str = Field(
        default="https://api.openai.com/v1/audio/transcriptions",
        description="Whisper transcription endpoint",
    )
    assemblyai_api_key: str | None = Field(
        default=None, description="AssemblyAI API key"
    )
    assemblyai_base_url: str = Field(
        default="https://api.assemblyai.com/v2",
        description="AssemblyAI API base URL",
    )
    transcript_poll_interval_seconds: float = Field(
        default=3.0, description="Delay between transcription status polls"
    )
    transcript_max_polls: int = Field(
        default=60, description="Maximum status polls before timing out"
    )
    transcript_word_gap_seconds: float = Field(
        default=1.5, description="Words closer than this join one segment"
    )
    transcript_http_timeout_seconds: float = Field(
        default=120.0, description="HTTP timeout for provider calls"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def firebase_configured(self) -> bool:
        """Check if Firebase Storage is configured."""
        return bool(
            self.firebase_enabled
            and self.firebase_credentials_path
            and self.firebase_storage_bucket
        )

    @property
    def transcripts_configured(self) -> bool:
        """Check if the selected transcript provider has credentials."""
        if self.transcript_provider == "whisper":
            return bool(self.openai_api_key)
        return bool(self.assemblyai_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
