# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Customer Record Store Configuration using Pydantic Settings

All configuration is type-safe, validated, and loaded from environment variables
(prefix CRM_STORE_) or a .env file.
"""

import logging
import os
from typing import Optional

from platformdirs import user_data_dir
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.customer import PAYLOAD_DROPPED_MARKER
from .storage.fallback import DEFAULT_QUOTA_BYTES, DEFAULT_STORAGE_KEY
from .storage.sqlite_store import DEFAULT_OPEN_TIMEOUT

logger = logging.getLogger(__name__)


# =============================================================================
# Path Validation Utilities
# =============================================================================

def validate_and_create_path(path: str) -> str:
    """Validate and create a directory path, ensuring it's writable."""
    abs_path = os.path.abspath(os.path.expanduser(path))
    os.makedirs(abs_path, exist_ok=True)

    if not os.path.isdir(abs_path):
        raise PermissionError(f"Path is not a directory: {abs_path}")
    if not os.access(abs_path, os.W_OK):
        raise PermissionError(f"Directory {abs_path} is not writable")

    logger.debug(f"Directory {abs_path} is writable.")
    return abs_path


def get_default_base_directory() -> str:
    """Platform-specific data directory (e.g. ~/.local/share/crm-store on Linux)."""
    return user_data_dir("crm-store", appauthor=False)


# =============================================================================
# Settings Models
# =============================================================================

class PathSettings(BaseSettings):
    """File system paths configuration."""

    model_config = SettingsConfigDict(
        env_prefix='CRM_STORE_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    base_dir: str = Field(
        default_factory=get_default_base_directory,
        description="Base directory for all customer store data"
    )

    sqlite_path: Optional[str] = Field(
        default=None,
        description="Path to the primary SQLite database file"
    )

    fallback_dir: Optional[str] = Field(
        default=None,
        description="Directory holding the fallback storage blobs"
    )

    @model_validator(mode='after')
    def validate_paths(self) -> 'PathSettings':
        """Validate and create all paths."""
        self.base_dir = validate_and_create_path(self.base_dir)

        if not self.sqlite_path:
            self.sqlite_path = os.path.join(self.base_dir, 'customers.db')

        if not self.fallback_dir:
            self.fallback_dir = os.path.join(self.base_dir, 'fallback')
        self.fallback_dir = validate_and_create_path(self.fallback_dir)

        return self


class PrimarySettings(BaseSettings):
    """Primary (SQLite) tier configuration."""

    model_config = SettingsConfigDict(
        env_prefix='CRM_STORE_PRIMARY_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    enabled: bool = Field(
        default=True,
        description="Set to false to run on the fallback tier only"
    )

    open_timeout: float = Field(
        default=DEFAULT_OPEN_TIMEOUT,
        ge=0.1,
        le=120.0,
        description="Seconds to wait for the primary connection to open"
    )


class SecondarySettings(BaseSettings):
    """Secondary (fallback) tier configuration."""

    model_config = SettingsConfigDict(
        env_prefix='CRM_STORE_SECONDARY_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    quota_bytes: int = Field(
        default=DEFAULT_QUOTA_BYTES,
        ge=1024,
        description="Hard size limit of the fallback storage (bytes)"
    )

    storage_key: str = Field(
        default=DEFAULT_STORAGE_KEY,
        pattern=r'^[A-Za-z0-9_.-]+$',
        description="Key of the single blob holding all fallback records"
    )

    degradation_marker: str = Field(
        default=PAYLOAD_DROPPED_MARKER,
        min_length=1,
        description="Text appended to a record whose heavy payload was dropped"
    )

    @field_validator('degradation_marker')
    @classmethod
    def strip_marker(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("degradation_marker must not be blank")
        return v


# =============================================================================
# Main Settings Class
# =============================================================================

class Settings(BaseSettings):
    """
    Main customer store settings.

    Combines all configuration sections into a single, validated settings object.
    Automatically loads from .env file and environment variables.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
        validate_default=True
    )

    paths: PathSettings = Field(default_factory=PathSettings)
    primary: PrimarySettings = Field(default_factory=PrimarySettings)
    secondary: SecondarySettings = Field(default_factory=SecondarySettings)

    def log_configuration(self):
        """Log current configuration."""
        logger.info("=" * 80)
        logger.info("Customer Store Configuration")
        logger.info("=" * 80)
        logger.info(f"Base Directory: {self.paths.base_dir}")
        logger.info(f"Primary: enabled={self.primary.enabled}, path={self.paths.sqlite_path}, "
                    f"open_timeout={self.primary.open_timeout}s")
        logger.info(f"Fallback: dir={self.paths.fallback_dir}, key={self.secondary.storage_key}, "
                    f"quota={self.secondary.quota_bytes} bytes")
        logger.info("=" * 80)


# =============================================================================
# Global Settings Instance
# =============================================================================

class _SettingsProxy:
    """
    Lazy settings proxy that defers Settings instantiation until first access.

    Environment variables are read at runtime, not import time.
    """
    _instance: Optional[Settings] = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = Settings()
            self._instance.log_configuration()
        return getattr(self._instance, name)

    def reset(self) -> None:
        """Drop the cached settings so the next access re-reads the environment."""
        self._instance = None


settings = _SettingsProxy()


def get_settings() -> Settings:
    """Return the process-wide Settings instance, creating it on first use."""
    if settings._instance is None:
        settings._instance = Settings()
        settings._instance.log_configuration()
    return settings._instance


# =============================================================================
# Module-level exports
# =============================================================================

def __getattr__(name: str):
    """
    Module-level __getattr__ to provide lazy config value access.

    Settings are only loaded when a value is first needed.
    """
    mapping = {
        'BASE_DIR': lambda s: s.paths.base_dir,
        'SQLITE_PATH': lambda s: s.paths.sqlite_path,
        'FALLBACK_DIR': lambda s: s.paths.fallback_dir,
        'PRIMARY_ENABLED': lambda s: s.primary.enabled,
        'PRIMARY_OPEN_TIMEOUT': lambda s: s.primary.open_timeout,
        'SECONDARY_QUOTA_BYTES': lambda s: s.secondary.quota_bytes,
        'SECONDARY_STORAGE_KEY': lambda s: s.secondary.storage_key,
        'DEGRADATION_MARKER': lambda s: s.secondary.degradation_marker,
    }

    if name in mapping:
        return mapping[name](get_settings())

    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
