from django.core.cache import caches
from django.test import TestCase, override_settings

from configuration.models import Configuration


@override_settings(CONFIGURATION_CACHE_TIMEOUT=60)
class TestConfigurationSignal(TestCase):
    def setUp(self):
        caches["configuration_cache"].clear()

    def test_signal_caches_valid_value(self):
        Configuration.objects.create(
            key="signal-key",
            value="42",
            data_type=Configuration.DataType.NUMBER,
        )
        self.assertEqual(caches["configuration_cache"].get("config_signal-key"), 42)

    def test_signal_does_not_cache_invalid_json(self):
        config = Configuration.objects.create(
            key="signal-json",
            value='{"a": 1}',
            data_type=Configuration.DataType.JSON,
        )
        self.assertEqual(caches["configuration_cache"].get("config_signal-json"), {"a": 1})

        config.value = "not valid json"
        config.save()
        # The previous value must not linger
        self.assertIsNone(caches["configuration_cache"].get("config_signal-json"))

    def test_delete_clears_cache(self):
        config = Configuration.objects.create(
            key="signal-delete",
            value="/mnt/in",
            data_type=Configuration.DataType.TEXT,
        )
        self.assertEqual(
            caches["configuration_cache"].get("config_signal-delete"), "/mnt/in"
        )
        config.delete()
        self.assertIsNone(caches["configuration_cache"].get("config_signal-delete"))
