"""
Tests for process settings and logging setup.
"""

import logging
import logging.handlers

from shared.settings import Settings, configure_logging


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self, monkeypatch):
        """Test defaults when no variables are set."""
        for name in ("NOTIFIER_DATABASE_URL", "NOTIFIER_TEST_PHONE", "NOTIFIER_CART_DELAY_SECONDS"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.database_url == "sqlite:///notifier.db"
        assert settings.test_phone is None
        assert settings.cart_reminder_delay_seconds == 3600

    def test_reads_environment(self, monkeypatch):
        """Test that NOTIFIER_* variables override defaults."""
        monkeypatch.setenv("NOTIFIER_DATABASE_URL", "sqlite://")
        monkeypatch.setenv("NOTIFIER_TEST_PHONE", "+919999999999")
        monkeypatch.setenv("NOTIFIER_CART_DELAY_SECONDS", "10")

        settings = Settings.from_env()

        assert settings.database_url == "sqlite://"
        assert settings.test_phone == "+919999999999"
        assert settings.cart_reminder_delay_seconds == 10

    def test_blank_variables_are_ignored(self, monkeypatch):
        """Test that an empty variable falls back to the default."""
        monkeypatch.setenv("NOTIFIER_LOG_LEVEL", "  ")

        assert Settings.from_env().log_level == "INFO"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_adds_rotating_file_handler(self, tmp_path):
        """Test that log_file adds a rotating file handler."""
        log_file = tmp_path / "logs" / "notifier.log"
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level

        configure_logging(Settings(log_file=str(log_file)))
        try:
            added = [h for h in root.handlers if h not in before]
            assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in added)
            assert log_file.parent.exists()
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
                    handler.close()
            root.setLevel(level)
