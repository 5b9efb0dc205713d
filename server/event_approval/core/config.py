# event_approval/core/config.py

import logging
from typing import List, Optional, Union, Any

# Import Pydantic v2 components
from pydantic import field_validator, ConfigDict
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.
    Uses Pydantic v2 features.
    """
    # --- App Configuration ---
    APP_NAME: str = "Event Approval API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"
    TESTING_MODE: bool = False

    # --- Database Configuration ---
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB: str = "event_approval_db"
    MONGODB_COLLECTION_USERS: str = "users"
    MONGODB_COLLECTION_REQUESTS: str = "event_requests"
    MONGODB_CONNECT_TIMEOUT_MS: int = 5000
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = 5000
    MONGODB_MAX_POOL_SIZE: int = 50

    # --- Security Configuration ---
    JWT_SECRET_KEY: str = "change_this_event_approval_secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # --- CORS Configuration ---
    CORS_ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # --- Default Role Accounts (seeded at startup) ---
    DEFAULT_ROLE_PASSWORD: Optional[str] = "changeme123"
    DEFAULT_ADMIN_PASSWORD: Optional[str] = "admin12345"

    # --- Report Storage ---
    REPORT_STORAGE_BACKEND: str = "local"  # "local" or "s3"
    UPLOAD_DIR: str = "uploads"
    REPORT_SUBDIR: str = "reports"
    MAX_REPORT_SIZE_MB: int = 10
    REPORT_URL_EXPIRE_SECONDS: int = 7 * 24 * 60 * 60

    # --- S3 (only used when REPORT_STORAGE_BACKEND == "s3") ---
    AWS_REGION: Optional[str] = None
    AWS_BUCKET: Optional[str] = None
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None

    # --- Approval Letter ---
    INSTITUTION_NAME: str = "KGISL INSTITUTE OF TECHNOLOGY"
    INSTITUTION_ADDRESS: str = "COIMBATORE -35, TN, INDIA"

    # --- Pydantic V2 Field Validators ---
    @field_validator('CORS_ALLOWED_ORIGINS', mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: Any) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith('['):
            return [i.strip() for i in v.split(',') if i.strip()]
        elif isinstance(v, list):
            return [str(i).strip() for i in v if str(i).strip()]
        return v

    @field_validator('REPORT_STORAGE_BACKEND', mode='before')
    @classmethod
    def normalize_storage_backend(cls, v: Any) -> str:
        value = str(v).strip().lower()
        if value not in ("local", "s3"):
            raise ValueError(f"REPORT_STORAGE_BACKEND must be 'local' or 's3', got '{v}'")
        return value

    # --- Pydantic V2 Model Configuration ---
    model_config = ConfigDict(
        case_sensitive=True,
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'
    )


def get_settings() -> Settings:
    """Loads and returns the application settings."""
    try:
        settings_instance = Settings()
        logger.info(f"Settings loaded for APP_NAME: {settings_instance.APP_NAME}")
        logger.info(f"MongoDB DB: {settings_instance.MONGODB_DB}")
        logger.info(f"Report storage backend: {settings_instance.REPORT_STORAGE_BACKEND}")
        return settings_instance
    except Exception as e:
        logger.critical(f"FATAL: Failed to load settings: {e}", exc_info=True)
        raise SystemExit(f"Could not load settings: {e}")


# Create a single settings instance for the application to import
settings = get_settings()
