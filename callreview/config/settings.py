import socket
from typing import Optional
from urllib.parse import quote_plus

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration"""

    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = Field(default=SecretStr("postgres"))
    database: str = "callreview"
    url_override: Optional[str] = Field(
        default=None,
        validation_alias="DATABASE_URL",
    )
    serverless: bool = Field(
        default=False,
        description="If true, disable connection pooling so serverless DBs can pause.",
    )
    auto_create: bool = Field(
        default=False,
        description="Create missing tables when the worker starts.",
    )

    @property
    def url(self) -> str:
        """Get database URL"""
        if self.url_override:
            return self.url_override
        username = quote_plus(self.username)
        password = quote_plus(self.password.get_secret_value())
        return (
            "postgresql+asyncpg://"
            f"{username}:{password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class StorageConfig(BaseSettings):
    """S3-compatible object storage configuration"""

    endpoint: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[SecretStr] = None
    region: str = "ru-central1"
    bucket: str = "callreview-uploads"

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class SpeechKitConfig(BaseSettings):
    """Yandex SpeechKit asynchronous recognition configuration."""

    api_key: Optional[SecretStr] = None
    folder_id: Optional[str] = None
    language: str = "ru-RU"
    model: str = "general"
    profanity_filter: bool = False
    diarization: bool = Field(
        default=True,
        description="Ask SpeechKit to label speakers in the recognition result.",
    )
    recognize_url: str = "https://stt.api.cloud.yandex.net/stt/v3/recognizeFileAsync"
    result_url: str = "https://stt.api.cloud.yandex.net/stt/v3/getRecognition"
    operation_url: str = "https://operation.api.cloud.yandex.net/operations"
    poll_interval_seconds: float = Field(default=10.0, gt=0)
    max_poll_attempts: int = Field(default=50, ge=1)
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="SPEECHKIT_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class BedrockConfig(BaseSettings):
    """Amazon Bedrock configuration."""

    region: str = Field(
        default="us-east-1",
        validation_alias="BEDROCK_REGION",
    )
    model_id: str = Field(
        default="anthropic.claude-3-5-sonnet-20240620-v1:0",
        validation_alias="BEDROCK_MODEL_ID",
    )
    max_tokens: int = Field(
        default=4096,
        validation_alias="BEDROCK_MAX_TOKENS",
        ge=1,
        le=8192,
    )
    temperature: float = Field(
        default=0.0,
        validation_alias="BEDROCK_TEMPERATURE",
        ge=0.0,
        le=1.0,
    )
    top_p: float = Field(
        default=0.9,
        validation_alias="BEDROCK_TOP_P",
        ge=0.0,
        le=1.0,
    )
    api_key: SecretStr | None = Field(
        default=None,
        validation_alias="BEDROCK_API_KEY",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class WorkerConfig(BaseSettings):
    """Job worker process configuration."""

    worker_id: str = Field(default_factory=socket.gethostname)
    concurrency: int = Field(default=1, ge=1)
    idle_sleep_seconds: float = Field(default=1.0, gt=0)
    backoff_base_seconds: int = Field(default=30, ge=0)
    backoff_cap_seconds: int = Field(default=600, ge=0)
    default_max_attempts: int = Field(default=5, ge=1)
    ffmpeg_path: str = "ffmpeg"
    scratch_dir: Optional[str] = None
    fail_fast_permanent_errors: bool = True
    metrics_enabled: bool = True
    metrics_host: str = "0.0.0.0"
    metrics_port: int = 9108

    model_config = SettingsConfigDict(
        env_prefix="WORKER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "Call Review Worker"
    app_version: str = "1.0.0"
    debug: bool = False
    log_file: str = "logs/worker.log"
    pipeline_log_file: str = "logs/pipeline.log"

    # Database
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # Object storage
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # SpeechKit
    speechkit: SpeechKitConfig = Field(default_factory=SpeechKitConfig)

    # Bedrock
    bedrock: BedrockConfig = Field(default_factory=BedrockConfig)

    # Worker
    worker: WorkerConfig = Field(default_factory=WorkerConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
