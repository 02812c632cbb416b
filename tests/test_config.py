import logging
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from kinetic.config import (
    DEFAULT_ENDPOINT,
    DEFAULT_RECONNECT_DELAY,
    MonitorSettings,
    coerce_log_level,
    configure_logging,
)
from kinetic.errors import ConfigurationError


class MonitorSettingsTests(unittest.TestCase):
    def test_defaults(self):
        settings = MonitorSettings()
        self.assertEqual(settings.endpoint, DEFAULT_ENDPOINT)
        self.assertEqual(settings.reconnect_delay, DEFAULT_RECONNECT_DELAY)
        self.assertEqual(settings.event_capacity, 10)
        self.assertEqual(settings.command_capacity, 10)
        self.assertEqual(settings.history_capacity, 100)
        self.assertEqual(settings.profile, "cherry_mx_red")

    def test_from_env_reads_prefixed_variables(self):
        settings = MonitorSettings.from_env(
            {
                "KINETIC_ENDPOINT": "ws://10.0.0.2:3489",
                "KINETIC_RECONNECT_DELAY": "2.5",
                "KINETIC_PROFILE": "Cherry-MX-Brown",
                "KINETIC_LOG_LEVEL": "debug",
            }
        )
        self.assertEqual(settings.endpoint, "ws://10.0.0.2:3489")
        self.assertEqual(settings.reconnect_delay, 2.5)
        self.assertEqual(settings.profile, "cherry_mx_brown")
        self.assertEqual(settings.log_level, "DEBUG")

    def test_explicit_overrides_win(self):
        settings = MonitorSettings.from_env(
            {"KINETIC_PROFILE": "membrane"}, profile="cherry_mx_blue", endpoint=None
        )
        self.assertEqual(settings.profile, "cherry_mx_blue")
        self.assertEqual(settings.endpoint, DEFAULT_ENDPOINT)

    def test_invalid_values(self):
        with self.assertRaises(ConfigurationError):
            MonitorSettings.from_env({"KINETIC_RECONNECT_DELAY": "soon"})
        with self.assertRaises(ConfigurationError):
            MonitorSettings(endpoint="http://127.0.0.1:3489")
        with self.assertRaises(ConfigurationError):
            MonitorSettings(reconnect_delay=-1)
        with self.assertRaises(ConfigurationError):
            MonitorSettings(event_capacity=0)
        with self.assertRaises(ConfigurationError):
            MonitorSettings(profile="topre")
        with self.assertRaises(ValueError):
            MonitorSettings(log_level="LOUD")

    def test_with_overrides_skips_none(self):
        settings = MonitorSettings().with_overrides(reconnect_delay=1.0, profile=None)
        self.assertEqual(settings.reconnect_delay, 1.0)
        self.assertEqual(settings.profile, "cherry_mx_red")


class LoggingTests(unittest.TestCase):
    def tearDown(self):
        root = logging.getLogger("kinetic_config_test")
        for handler in list(root.handlers):
            root.removeHandler(handler)

    def test_coerce_log_level(self):
        self.assertEqual(coerce_log_level("warning"), logging.WARNING)
        self.assertEqual(coerce_log_level(logging.DEBUG), logging.DEBUG)
        with self.assertRaises(ConfigurationError):
            coerce_log_level("chatty")

    def test_handler_attached_once(self):
        logger = configure_logging("kinetic_config_test.session", "DEBUG")
        configure_logging("kinetic_config_test.monitor", "INFO")
        root = logging.getLogger("kinetic_config_test")
        self.assertEqual(logger.name, "kinetic_config_test.session")
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(root.level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
