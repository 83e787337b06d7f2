"""
Unit tests for environment-driven configuration.
"""

import os

import pytest
from pydantic import ValidationError

from crm_store import config
from crm_store.config import PathSettings, PrimarySettings, SecondarySettings
from crm_store.models.customer import PAYLOAD_DROPPED_MARKER


@pytest.fixture
def fresh_settings(monkeypatch, temp_db_path):
    """Point the process-wide settings at a temp directory and reset them."""
    monkeypatch.setenv("CRM_STORE_BASE_DIR", temp_db_path)
    config.settings.reset()
    yield temp_db_path
    config.settings.reset()


class TestDefaults:
    def test_secondary_defaults(self):
        settings = SecondarySettings()

        assert settings.quota_bytes == 5 * 1024 * 1024
        assert settings.storage_key == "fwp_crm_backup_data"
        assert settings.degradation_marker == PAYLOAD_DROPPED_MARKER

    def test_primary_defaults(self):
        settings = PrimarySettings()

        assert settings.enabled is True
        assert settings.open_timeout == 5.0

    def test_paths_derived_from_base_dir(self, temp_db_path):
        paths = PathSettings(base_dir=temp_db_path)

        assert paths.sqlite_path == os.path.join(temp_db_path, "customers.db")
        assert paths.fallback_dir == os.path.join(temp_db_path, "fallback")
        assert os.path.isdir(paths.fallback_dir)


class TestEnvironment:
    def test_values_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("CRM_STORE_SECONDARY_QUOTA_BYTES", "2048")
        monkeypatch.setenv("CRM_STORE_PRIMARY_ENABLED", "false")
        monkeypatch.setenv("CRM_STORE_PRIMARY_OPEN_TIMEOUT", "2.5")

        assert SecondarySettings().quota_bytes == 2048
        assert PrimarySettings().enabled is False
        assert PrimarySettings().open_timeout == 2.5

    def test_invalid_storage_key_rejected(self, monkeypatch):
        monkeypatch.setenv("CRM_STORE_SECONDARY_STORAGE_KEY", "../etc/passwd")

        with pytest.raises(ValidationError):
            SecondarySettings()

    def test_quota_lower_bound(self):
        with pytest.raises(ValidationError):
            SecondarySettings(quota_bytes=10)

    def test_open_timeout_bounds(self):
        with pytest.raises(ValidationError):
            PrimarySettings(open_timeout=0)

    def test_blank_marker_rejected(self):
        with pytest.raises(ValidationError):
            SecondarySettings(degradation_marker="   ")


class TestModuleExports:
    def test_lazy_module_attributes(self, fresh_settings):
        assert config.BASE_DIR == os.path.abspath(fresh_settings)
        assert config.SQLITE_PATH == os.path.join(os.path.abspath(fresh_settings), "customers.db")
        assert config.SECONDARY_STORAGE_KEY == "fwp_crm_backup_data"

    def test_settings_cached_until_reset(self, fresh_settings, monkeypatch):
        first = config.get_settings()
        monkeypatch.setenv("CRM_STORE_SECONDARY_QUOTA_BYTES", "4096")

        assert config.get_settings() is first
        config.settings.reset()
        assert config.get_settings().secondary.quota_bytes == 4096

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            config.NOT_A_SETTING
