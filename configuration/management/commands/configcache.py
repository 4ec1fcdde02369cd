from django.core.cache import caches
from django.core.management.base import BaseCommand, CommandError

from configuration.models import Configuration
from configuration.utils import CONFIGURATION_KEY_PREFIX, cache_configuration_value


class Command(BaseCommand):
    help = "Show or refresh a value in the configuration cache by key."  # NOQA: A003

    def add_arguments(self, parser):
        parser.add_argument("key", type=str, help="The configuration key")
        parser.add_argument(
            "--refresh",
            action="store_true",
            help="Reload the value from the database before displaying it",
        )

    def handle(self, *args, **options):
        key = options["key"]
        if options["refresh"]:
            try:
                cache_configuration_value(key)
            except Configuration.DoesNotExist as exc:
                raise CommandError(f"Configuration key '{key}' does not exist") from exc

        value = caches["configuration_cache"].get(f"{CONFIGURATION_KEY_PREFIX}_{key}")

        if value is None:
            self.stdout.write(self.style.WARNING(f"Key '{key}' not found in cache."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Key '{key}' found:"))
            self.stdout.write(str(value))
