"""Configuration Management for DocVault

Loads configuration from an optional YAML file and environment variables.
Environment variables always win over the YAML file.
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class Settings(BaseSettings):
    """Environment-based settings (overrides config file)."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    config_path: str = Field(default="./config/docvault.yaml", validation_alias="CONFIG_PATH")

    # Database
    database_url: str = Field(default="sqlite:///./docvault.db", validation_alias="DATABASE_URL")

    # Auth
    jwt_secret_key: Optional[str] = Field(default=None, validation_alias="JWT_SECRET_KEY")
    token_expire_minutes: Optional[int] = Field(default=None, validation_alias="TOKEN_EXPIRE_MINUTES")

    # LLM
    groq_api_key: Optional[str] = Field(default=None, validation_alias="GROQ_API_KEY")
    llm_model: Optional[str] = Field(default=None, validation_alias="LLM_MODEL")

    # Object storage
    aws_s3_bucket: Optional[str] = Field(default=None, validation_alias="AWS_S3_BUCKET")
    aws_region: Optional[str] = Field(default=None, validation_alias="AWS_REGION")
    aws_access_key_id: Optional[str] = Field(default=None, validation_alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = Field(default=None, validation_alias="AWS_SECRET_ACCESS_KEY")

    # API settings
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8080, validation_alias="API_PORT")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")


@dataclass
class APIConfig:
    """API server configuration."""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    cors_credentials: bool = False
    cors_methods: List[str] = field(default_factory=lambda: ["*"])
    cors_headers: List[str] = field(default_factory=lambda: ["Authorization", "Content-Type"])
    title: str = "DocVault API"
    description: str = "Personal document storage, search and chat"
    version: str = "1.0.0"


@dataclass
class DatabaseConfig:
    """Document store configuration."""
    url: str = "sqlite:///./docvault.db"
    echo: bool = False


@dataclass
class AuthConfig:
    """Token and password configuration."""
    secret_key: Optional[str] = None
    algorithm: str = "HS256"
    token_expire_minutes: int = 300  # 5 hours
    # PUT /update/{id} is open unless this is switched on
    protect_content_updates: bool = False


@dataclass
class UploadConfig:
    """Ingestion configuration."""
    allowed_types: List[str] = field(default_factory=lambda: [PDF_MIME_TYPE, DOCX_MIME_TYPE])
    max_file_size: int = 52428800  # 50MB
    default_title: str = "Untitled PDF"
    converter_command: List[str] = field(default_factory=lambda: ["soffice", "--headless"])
    conversion_timeout: int = 120
    scratch_dir: Optional[str] = None


@dataclass
class LLMConfig:
    """Generative-language API configuration."""
    groq_api_key: Optional[str] = None
    model: str = "llama-3.3-70b-versatile"
    temperature: float = 0.3
    max_tokens: int = 1024
    max_lines: int = 5


@dataclass
class StorageConfig:
    """Object storage configuration (optional)."""
    bucket_name: Optional[str] = None
    region: str = "eu-north-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    share_link_expiration: int = 3600

    @property
    def enabled(self) -> bool:
        return bool(self.bucket_name)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "json"  # "json" or "text"


@dataclass
class DocVaultConfig:
    """Complete configuration for the DocVault service."""
    api: APIConfig = field(default_factory=APIConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> DocVaultConfig:
    """
    Load configuration from YAML file and environment variables.

    Environment variables override YAML settings.

    Args:
        config_path: Path to YAML config file (default: $CONFIG_PATH or ./config/docvault.yaml)

    Returns:
        DocVaultConfig object with all settings
    """
    env_settings = Settings()

    if config_path is None:
        config_path = env_settings.config_path

    config_file = Path(config_path)

    if config_file.exists():
        logger.info(f"Loading configuration from {config_file}")
        with open(config_file, 'r') as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        logger.debug(f"Config file not found: {config_file}. Using defaults.")
        yaml_config = {}

    config = DocVaultConfig(
        api=_load_api_config(yaml_config.get("api", {}), env_settings),
        database=_load_database_config(yaml_config.get("database", {}), env_settings),
        auth=_load_auth_config(yaml_config.get("auth", {}), env_settings),
        upload=_load_upload_config(yaml_config.get("upload", {})),
        llm=_load_llm_config(yaml_config.get("llm", {}), env_settings),
        storage=_load_storage_config(yaml_config.get("storage", {}), env_settings),
        logging=_load_logging_config(yaml_config.get("logging", {}), env_settings),
    )

    logger.debug("Configuration loaded successfully")
    return config


def _load_api_config(yaml_api: dict, env_settings: Settings) -> APIConfig:
    """Load API configuration with environment overrides."""
    defaults = APIConfig()
    return APIConfig(
        host=env_settings.api_host,
        port=env_settings.api_port,
        cors_origins=yaml_api.get("cors_origins", defaults.cors_origins),
        cors_credentials=yaml_api.get("cors_credentials", defaults.cors_credentials),
        cors_methods=yaml_api.get("cors_methods", defaults.cors_methods),
        cors_headers=yaml_api.get("cors_headers", defaults.cors_headers),
        title=yaml_api.get("title", defaults.title),
        description=yaml_api.get("description", defaults.description),
        version=yaml_api.get("version", defaults.version),
    )


def _load_database_config(yaml_db: dict, env_settings: Settings) -> DatabaseConfig:
    """Load database configuration; DATABASE_URL wins when set."""
    url = env_settings.database_url
    if "DATABASE_URL" not in os.environ and yaml_db.get("url"):
        url = yaml_db["url"]
    return DatabaseConfig(url=url, echo=yaml_db.get("echo", False))


def _load_auth_config(yaml_auth: dict, env_settings: Settings) -> AuthConfig:
    """Load auth configuration with environment overrides."""
    expire = env_settings.token_expire_minutes
    if expire is None:
        expire = yaml_auth.get("token_expire_minutes", 300)
    return AuthConfig(
        secret_key=env_settings.jwt_secret_key or yaml_auth.get("secret_key"),
        algorithm=yaml_auth.get("algorithm", "HS256"),
        token_expire_minutes=int(expire),
        protect_content_updates=yaml_auth.get("protect_content_updates", False),
    )


def _load_upload_config(yaml_upload: dict) -> UploadConfig:
    """Load upload configuration."""
    defaults = UploadConfig()
    return UploadConfig(
        allowed_types=yaml_upload.get("allowed_types", defaults.allowed_types),
        max_file_size=yaml_upload.get("max_file_size", defaults.max_file_size),
        default_title=yaml_upload.get("default_title", defaults.default_title),
        converter_command=yaml_upload.get("converter_command", defaults.converter_command),
        conversion_timeout=yaml_upload.get("conversion_timeout", defaults.conversion_timeout),
        scratch_dir=yaml_upload.get("scratch_dir"),
    )


def _load_llm_config(yaml_llm: dict, env_settings: Settings) -> LLMConfig:
    """Load LLM configuration with environment overrides."""
    defaults = LLMConfig()
    return LLMConfig(
        groq_api_key=env_settings.groq_api_key,
        model=env_settings.llm_model or yaml_llm.get("model", defaults.model),
        temperature=yaml_llm.get("temperature", defaults.temperature),
        max_tokens=yaml_llm.get("max_tokens", defaults.max_tokens),
        max_lines=yaml_llm.get("max_lines", defaults.max_lines),
    )


def _load_storage_config(yaml_storage: dict, env_settings: Settings) -> StorageConfig:
    """Load object storage configuration with environment overrides."""
    return StorageConfig(
        bucket_name=env_settings.aws_s3_bucket or yaml_storage.get("bucket_name"),
        region=env_settings.aws_region or yaml_storage.get("region", "eu-north-1"),
        access_key_id=env_settings.aws_access_key_id,
        secret_access_key=env_settings.aws_secret_access_key,
        share_link_expiration=yaml_storage.get("share_link_expiration", 3600),
    )


def _load_logging_config(yaml_logging: dict, env_settings: Settings) -> LoggingConfig:
    """Load logging configuration; LOG_LEVEL / LOG_FORMAT win when set."""
    level = env_settings.log_level
    if "LOG_LEVEL" not in os.environ and yaml_logging.get("level"):
        level = yaml_logging["level"]
    fmt = env_settings.log_format
    if "LOG_FORMAT" not in os.environ and yaml_logging.get("format"):
        fmt = yaml_logging["format"]
    return LoggingConfig(level=level.upper(), format=fmt)
