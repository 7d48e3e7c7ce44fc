import unittest
from dataclasses import FrozenInstanceError

from app.services.integration_settings import (
    SQUARE_PRODUCTION_URL,
    SQUARE_SANDBOX_URL,
    IntegrationSettings,
)


class IntegrationSettingsTests(unittest.TestCase):
    def test_from_mapping_reads_flask_config_keys(self):
        settings = IntegrationSettings.from_mapping({
            "APP_URL": "https://app.flowy.example/",
            "SQUARE_APP_ID": "app-id",
            "SQUARE_APP_SECRET": "secret",
            "SQUARE_USE_SANDBOX": True,
            "SQUARE_SYNC_PAGE_LIMIT": "50",
            "SYNC_BACKFILL_DAYS": 3,
            "SYNC_MAX_WORKERS": 0,
            "CRON_SECRET": "cron",
        })

        self.assertEqual(settings.square_app_id, "app-id")
        self.assertEqual(settings.sync_page_limit, 50)
        self.assertEqual(settings.backfill_days, 3)
        self.assertEqual(settings.max_workers, 1)
        self.assertEqual(settings.cron_secret, "cron")
        self.assertTrue(settings.has_square_credentials)

    def test_defaults_when_keys_missing(self):
        settings = IntegrationSettings.from_mapping({})

        self.assertFalse(settings.has_square_credentials)
        self.assertEqual(settings.sync_overlap_seconds, 300)
        self.assertEqual(settings.backfill_days, 7)
        self.assertEqual(settings.cron_secret, "")

    def test_base_url_follows_sandbox_flag(self):
        self.assertEqual(IntegrationSettings.from_mapping({}).square_base_url, SQUARE_PRODUCTION_URL)
        self.assertEqual(
            IntegrationSettings.from_mapping({"SQUARE_USE_SANDBOX": True}).square_base_url,
            SQUARE_SANDBOX_URL,
        )

    def test_callback_url_is_tenant_scoped(self):
        settings = IntegrationSettings.from_mapping({"APP_URL": "https://app.flowy.example/"})
        self.assertEqual(
            settings.callback_url("cafe-alpha"),
            "https://app.flowy.example/api/teams/cafe-alpha/square/callback",
        )

    def test_settings_are_immutable(self):
        settings = IntegrationSettings.from_mapping({})
        with self.assertRaises(FrozenInstanceError):
            settings.square_app_id = "changed"


if __name__ == "__main__":
    unittest.main()
