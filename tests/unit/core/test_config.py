import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from gatehouse.core.config import DEFAULT_SECRET_KEY, Settings, get_settings


def test_settings_defaults():
    """Test that settings load with correct defaults."""
    get_settings.cache_clear()

    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)

    assert settings.app_name == "Gatehouse"
    assert settings.environment == "development"
    assert settings.storage_backend == "sql"
    assert settings.login_route == "/login"
    assert settings.access_denied_route == "/access-denied"
    assert settings.home_route == "/dashboard"
    assert settings.bulk_delete_policy == "abort"
    assert settings.seed_default_modules is False
    assert settings.is_development is True


def test_settings_env_override():
    """Test that environment variables override defaults."""
    with patch.dict(
        os.environ,
        {
            "GATEHOUSE_ENVIRONMENT": "testing",
            "GATEHOUSE_STORAGE_BACKEND": "memory",
            "GATEHOUSE_BULK_DELETE_POLICY": "skip",
            "GATEHOUSE_SEED_DEFAULT_MODULES": "true",
            "GATEHOUSE_PORT": "9000",
        },
    ):
        settings = Settings(_env_file=None)

    assert settings.is_testing is True
    assert settings.storage_backend == "memory"
    assert settings.bulk_delete_policy == "skip"
    assert settings.seed_default_modules is True
    assert settings.port == 9000


def test_invalid_bulk_delete_policy():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, bulk_delete_policy="ignore")


def test_production_requires_real_secret():
    """Production refuses the placeholder secret key."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None, environment="production", secret_key=DEFAULT_SECRET_KEY)

    settings = Settings(_env_file=None, environment="production", secret_key="s3cr3t-value")
    assert settings.is_production is True


def test_empty_secret_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, secret_key="  ")
