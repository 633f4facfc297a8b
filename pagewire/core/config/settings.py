"""
Settings for the pagewire messaging backend.

Environment variable configuration for the webhook surface, the Graph API
credentials, storage, and the credential sweep.
"""

import os
import tomllib
from pathlib import Path

from dotenv import load_dotenv

# Load .env file for local development - look in current working directory
load_dotenv(".env")


def _get_version_from_pyproject() -> str:
    """
    Read version from pyproject.toml file.

    Returns:
        Version string from pyproject.toml, or fallback version
    """
    current_path = Path(__file__)
    for parent in [current_path.parent, *current_path.parents]:
        pyproject_path = parent / "pyproject.toml"
        if pyproject_path.exists():
            try:
                with open(pyproject_path, "rb") as f:
                    pyproject_data = tomllib.load(f)
                    version = pyproject_data.get("project", {}).get("version")
                    if version:
                        return version
            except (OSError, tomllib.TOMLDecodeError):
                continue

    return "0.1.0"


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    """Application settings with environment-based configuration."""

    def __init__(self):
        # ================================================================
        # Version & General Configuration
        # ================================================================
        self.version: str = _get_version_from_pyproject()
        self.port: int = int(os.getenv("PORT", "8000"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO")
        self.log_dir: str = os.getenv("LOG_DIR", "./logs")
        self.environment: str = os.getenv("ENVIRONMENT", "DEV")

        # ================================================================
        # Meta Graph API Configuration
        # ================================================================
        self.graph_api_version: str = os.getenv("GRAPH_API_VERSION", "v21.0")
        self.graph_base_url: str = os.getenv(
            "GRAPH_BASE_URL", "https://graph.facebook.com/"
        )
        self.meta_app_id: str | None = os.getenv("META_APP_ID")
        self.meta_app_secret: str | None = os.getenv("META_APP_SECRET")

        # Shared token echoed back during the subscription handshake
        self.webhook_verify_token: str | None = os.getenv("WEBHOOK_VERIFY_TOKEN")

        # ================================================================
        # Storage Configuration
        # ================================================================
        self.database_url: str = os.getenv(
            "DATABASE_URL", "sqlite+aiosqlite:///./pagewire.db"
        )
        self.database_echo: bool = _get_bool("DATABASE_ECHO", False)

        # ================================================================
        # Reply Generation (Optional)
        # ================================================================
        self.openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
        self.openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

        # ================================================================
        # Credential Lifecycle & Webhook Processing
        # ================================================================
        # Off in multi-worker deployments; schedule `pagewire sweep` there instead
        self.credential_sweep_enabled: bool = _get_bool("CREDENTIAL_SWEEP_ENABLED", True)
        self.credential_sweep_interval_seconds: int = int(
            os.getenv("CREDENTIAL_SWEEP_INTERVAL_SECONDS", "900")
        )
        self.credential_sweep_concurrency: int = int(
            os.getenv("CREDENTIAL_SWEEP_CONCURRENCY", "5")
        )
        self.event_timeout_seconds: float = float(
            os.getenv("EVENT_TIMEOUT_SECONDS", "20")
        )
        self.log_echo_messages: bool = _get_bool("LOG_ECHO_MESSAGES", True)

        # Guards the manual credential routes; routes are disabled when unset
        self.admin_api_key: str | None = os.getenv("ADMIN_API_KEY")

        self._validate_settings()

    def _validate_settings(self):
        """Validate settings values."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR"]
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        self.log_level = self.log_level.upper()

        valid_environments = ["DEV", "PROD"]
        if self.environment.upper() not in valid_environments:
            self.environment = "DEV"
        self.environment = self.environment.upper()

        if self.credential_sweep_interval_seconds <= 0:
            raise ValueError("CREDENTIAL_SWEEP_INTERVAL_SECONDS must be positive")
        if self.credential_sweep_concurrency <= 0:
            raise ValueError("CREDENTIAL_SWEEP_CONCURRENCY must be positive")
        if self.event_timeout_seconds <= 0:
            raise ValueError("EVENT_TIMEOUT_SECONDS must be positive")

    def validate_for_server(self):
        """Validate the credentials required to accept provider webhooks."""
        if not self.meta_app_secret:
            raise ValueError("META_APP_SECRET is required")
        if not self.webhook_verify_token:
            raise ValueError("WEBHOOK_VERIFY_TOKEN is required")
        if not self.meta_app_id:
            raise ValueError("META_APP_ID is required")

    @property
    def has_openai(self) -> bool:
        """Check if reply generation is configured."""
        return self.openai_api_key is not None

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "DEV"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "PROD"


# Global settings instance
settings = Settings()
