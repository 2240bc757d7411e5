import unittest
from src.config import AppConfig, TransportConfig, build_transport_config
from src.errors import ConfigurationError

BASE_ENV = {"EMAIL_USER": "relay@example.com", "EMAIL_PASS": "app-password"}


def config_from(**env):
    merged = dict(BASE_ENV)
    merged.update(env)
    return AppConfig.from_env({k: v for k, v in merged.items() if v is not None})


class TestAppConfig(unittest.TestCase):
    def test_defaults(self):
        config = AppConfig.from_env({})
        self.assertIsNone(config.email_user)
        self.assertIsNone(config.email_to)
        self.assertFalse(config.debug)
        self.assertEqual(config.site_name, "NodeWave")
        self.assertEqual(config.site_url, "nodewave.com")
        self.assertEqual(config.timeout, 30.0)
        self.assertEqual(config.max_message_length, 10000)

    def test_debug_flag_accepts_true_and_one(self):
        self.assertTrue(AppConfig.from_env({"DEBUG_APP": "true"}).debug)
        self.assertTrue(AppConfig.from_env({"DEBUG_APP": "1"}).debug)
        self.assertFalse(AppConfig.from_env({"DEBUG_APP": "no"}).debug)

    def test_blank_values_count_as_unset(self):
        config = AppConfig.from_env({"EMAIL_TO": "  ", "EMAIL_TIMEOUT": "soon", "MAX_MESSAGE_LENGTH": "0"})
        self.assertIsNone(config.email_to)
        self.assertEqual(config.timeout, 30.0)
        self.assertEqual(config.max_message_length, 0)


class TestBuildTransportConfig(unittest.TestCase):
    def test_provider_mode(self):
        transport = build_transport_config(config_from(EMAIL_SERVICE="Outlook"))
        self.assertIsInstance(transport, TransportConfig)
        self.assertTrue(transport.is_provider_mode)
        self.assertEqual(transport.service, "Outlook")
        self.assertIsNone(transport.host)
        self.assertEqual(transport.user, "relay@example.com")
        self.assertEqual(transport.password, "app-password")
        self.assertFalse(transport.debug)

    def test_gmail_debug_only_with_debug_flag(self):
        self.assertTrue(build_transport_config(config_from(EMAIL_SERVICE="GMAIL", DEBUG_APP="true")).debug)
        self.assertFalse(build_transport_config(config_from(EMAIL_SERVICE="gmail")).debug)
        self.assertFalse(build_transport_config(config_from(EMAIL_SERVICE="yahoo", DEBUG_APP="true")).debug)

    def test_custom_mode_defaults_to_587(self):
        transport = build_transport_config(config_from(EMAIL_HOST="mail.example.com"))
        self.assertFalse(transport.is_provider_mode)
        self.assertEqual(transport.host, "mail.example.com")
        self.assertEqual(transport.port, 587)
        self.assertFalse(transport.secure)

    def test_smtp_service_selects_custom_mode(self):
        transport = build_transport_config(config_from(EMAIL_SERVICE="SMTP", EMAIL_HOST="mail.example.com", EMAIL_PORT="465"))
        self.assertIsNone(transport.service)
        self.assertEqual(transport.port, 465)
        self.assertTrue(transport.secure)

    def test_unparseable_port_falls_back(self):
        transport = build_transport_config(config_from(EMAIL_HOST="mail.example.com", EMAIL_PORT="abc"))
        self.assertEqual(transport.port, 587)

    def test_port_reads_leading_digits(self):
        transport = build_transport_config(config_from(EMAIL_HOST="mail.example.com", EMAIL_PORT="465abc"))
        self.assertEqual(transport.port, 465)
        self.assertTrue(transport.secure)
        self.assertEqual(build_transport_config(config_from(EMAIL_HOST="mail.example.com", EMAIL_PORT="0")).port, 587)

    def test_custom_mode_requires_host(self):
        with self.assertRaises(ConfigurationError) as ctx:
            build_transport_config(config_from(EMAIL_SERVICE="smtp"))
        self.assertIn("EMAIL_HOST", str(ctx.exception))

    def test_credentials_are_required(self):
        for missing in ("EMAIL_USER", "EMAIL_PASS"):
            with self.assertRaises(ConfigurationError):
                build_transport_config(config_from(EMAIL_SERVICE="gmail", **{missing: None}))


if __name__ == '__main__':
    unittest.main()
