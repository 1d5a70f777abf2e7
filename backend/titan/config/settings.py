"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "Titan OS"
    app_version: str = "1.0.0"
    debug: bool = True

    # Storage
    storage_type: str = "local"  # local, memory
    local_storage_path: str = "./data"
    metrics_namespace: str = "metrics"

    # LLM Provider settings (command classification + image analysis)
    llm_provider: str = "openai"
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None  # uses provider default if not set
    llm_base_url: Optional[str] = None  # uses provider default if not set

    # Legacy key, also used for Whisper transcription
    openai_api_key: Optional[str] = None
    transcription_model: str = "whisper-1"

    # Inference tuning
    inference_timeout: float = 60.0  # seconds
    command_temperature: float = 0.3
    image_max_tokens: int = 300

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/titan.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def inference_api_key(self) -> Optional[str]:
        """Key for the chat/vision inference calls."""
        return self.llm_api_key or self.openai_api_key


settings = Settings()
