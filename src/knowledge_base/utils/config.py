"""
Configuration management for the knowledge base core.

This module handles:
- Database path and URL configuration
- Environment-specific configuration (development vs. production)
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import DATABASE_FILENAME

logger = logging.getLogger(__name__)

ENV_VAR = "KB_ENV"
DATABASE_URL_VAR = "KB_DATABASE_URL"


class Config:
    """
    Application configuration manager.

    Handles database location and environment settings. A database URL in
    ``KB_DATABASE_URL`` takes precedence over the file-based default.
    """

    def __init__(self, environment: str = "production", database_url: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
            database_url: Optional explicit SQLAlchemy URL
        """
        self.environment = environment
        self._database_url_override = database_url or os.environ.get(DATABASE_URL_VAR)

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_data_dir()

        self._database_dir = self._base_dir
        self._database_path = self._database_dir / DATABASE_FILENAME

        if self._database_url_override is None:
            self._ensure_directories()

    def _get_project_data_dir(self) -> Path:
        """
        Get the project's data directory for development.

        Returns:
            Path to project data/ directory
        """
        project_root = Path(__file__).parent.parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """
        Get the per-user data directory for production.

        Returns:
            Path to ~/.knowledge_base
        """
        return Path.home() / ".knowledge_base"

    def _ensure_directories(self):
        """Create necessary directories if they don't exist."""
        self._database_dir.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        """Full path to the default SQLite database file."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            Database URL string for SQLAlchemy
        """
        if self._database_url_override:
            return self._database_url_override
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def database_exists(self) -> bool:
        """
        Check if the default database file exists.

        Always True when an explicit database URL is configured.
        """
        if self._database_url_override:
            return True
        return self._database_path.exists()

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    KB_ENV or defaults to production. Ignored if the
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_VAR, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None
