"""Tests for shared/config.py."""

import os
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

from shared.config import Settings, get_settings


class TestSettings:
    def test_default_values(self):
        """Settings should have sensible defaults."""
        settings = Settings()
        assert settings.app_name == "vARY API"
        assert settings.debug is False
        assert settings.port == 8000
        assert settings.host == "0.0.0.0"
        assert settings.app_version == "0.1.0"
        assert settings.store_backend == "memory"
        assert settings.max_credit_grant == Decimal("1000")
        assert settings.stale_charge_minutes == 30

    def test_default_level_thresholds(self):
        """Level progression defaults to steps of five."""
        settings = Settings()
        assert settings.level_unique_model_step == 5
        assert settings.level_generation_step == 5
        assert settings.max_level == 10

    def test_default_catalog_path_exists(self):
        """The bundled model catalog should be found by default."""
        settings = Settings()
        assert isinstance(settings.model_catalog_path, Path)
        assert settings.model_catalog_path.name == "models.yaml"
        assert settings.model_catalog_path.exists()

    def test_loads_from_env(self):
        """Settings should load from environment variables."""
        with patch.dict(os.environ, {"DEBUG": "true", "PORT": "9000"}):
            settings = Settings()
            assert settings.debug is True
            assert settings.port == 9000

    def test_loads_stripe_config_from_env(self):
        """Settings should load Stripe configuration and allowances."""
        with patch.dict(os.environ, {
            "STRIPE_WEBHOOK_SECRET": "whsec_test",
            "STRIPE_LIGHT_PRICE_ID": "price_light",
            "LIGHT_MONTHLY_CREDITS": "9.99",
        }):
            settings = Settings()
            assert settings.stripe_webhook_secret == "whsec_test"
            assert settings.stripe_light_price_id == "price_light"
            assert settings.light_monthly_credits == Decimal("9.99")

    def test_loads_supabase_config_from_env(self):
        """Settings should load Supabase configuration from environment variables."""
        with patch.dict(os.environ, {
            "SUPABASE_URL": "https://test.supabase.co",
            "SUPABASE_ANON_KEY": "test-anon-key",
            "SUPABASE_SERVICE_ROLE_KEY": "test-service-key",
            "STORE_BACKEND": "supabase",
        }):
            settings = Settings()
            assert settings.supabase_url == "https://test.supabase.co"
            assert settings.supabase_anon_key == "test-anon-key"
            assert settings.supabase_service_role_key == "test-service-key"
            assert settings.store_backend == "supabase"

    def test_loads_admin_emails_as_json_list(self):
        with patch.dict(os.environ, {"ADMIN_EMAILS": '["boss@vary.ai"]'}):
            settings = Settings()
            assert settings.admin_emails == ["boss@vary.ai"]


class TestGetSettings:
    def test_get_settings_returns_settings_instance(self):
        """get_settings should return a Settings instance."""
        # Clear the cache first
        get_settings.cache_clear()
        settings = get_settings()
        assert isinstance(settings, Settings)

    def test_get_settings_caches(self):
        """get_settings should return cached instance."""
        # Clear the cache first
        get_settings.cache_clear()
        settings1 = get_settings()
        settings2 = get_settings()
        assert settings1 is settings2
