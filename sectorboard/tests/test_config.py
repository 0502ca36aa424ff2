import unittest
from unittest.mock import patch

from sectorboard import config
from sectorboard.errors import ConfigError


class ConfigTests(unittest.TestCase):
    def test_missing_settings_are_fatal_and_named(self) -> None:
        with patch.object(config, "BACKEND_URL", ""), patch.object(config, "API_KEY", ""):
            with self.assertRaises(ConfigError) as ctx:
                config.require_backend_settings()
        self.assertIn("SECTORBOARD_BACKEND_URL", str(ctx.exception))
        self.assertIn("SECTORBOARD_API_KEY", str(ctx.exception))

    def test_blank_api_key_is_missing(self) -> None:
        with patch.object(config, "BACKEND_URL", "sqlite:///data/board.db"), patch.object(config, "API_KEY", "  "):
            with self.assertRaisesRegex(ConfigError, "SECTORBOARD_API_KEY"):
                config.require_backend_settings()

    def test_complete_settings_pass(self) -> None:
        with patch.object(config, "BACKEND_URL", "postgres://db/board"), patch.object(config, "API_KEY", "anon"):
            config.require_backend_settings()

    def test_backend_kind_and_sqlite_path(self) -> None:
        self.assertEqual(config.backend_kind("postgresql://host/db"), "postgres")
        self.assertEqual(config.backend_kind("sqlite:///tmp/x.db"), "sqlite")
        self.assertEqual(config.sqlite_path("sqlite:///tmp/x.db"), "tmp/x.db")
        self.assertEqual(config.sqlite_path("sqlite://"), ":memory:")
        self.assertEqual(config.sqlite_path(""), ":memory:")

    def test_functions_url_follows_http_backend(self) -> None:
        self.assertEqual(config._default_functions_url("https://abc.example.co/"), "https://abc.example.co/functions/v1")
        self.assertEqual(config._default_functions_url("postgres://db"), "")


if __name__ == "__main__":
    unittest.main()
