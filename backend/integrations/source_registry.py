"""Source registry for the reporting APIs synced each run.

The registry is responsible for:
- Initializing and tracking the available source clients
- Providing access to a specific source by store key
- Mapping store keys to human-readable labels for summaries
"""

import importlib
import logging

from integrations.source_protocol import CursorSource, ReportJobClient

logger = logging.getLogger(__name__)

# Each tuple is (source_name, label, module_path, class_name).
# Adding a new source only requires appending one entry here.
SOURCE_DEFINITIONS: list[tuple[str, str, str, str]] = [
    ("amazon", "Amazon", "integrations.amazon_sp_client", "AmazonSellingPartnerClient"),
    ("facebook", "Facebook", "integrations.facebook_client", "FacebookAdsClient"),
    ("posthog", "PostHog", "integrations.posthog_client", "PostHogClient"),
    ("amazon_ads", "Amazon Ads", "integrations.amazon_ads_client", "AmazonAdsClient"),
]

ALL_SOURCE_NAMES: list[str] = [name for name, _, _, _ in SOURCE_DEFINITIONS]

SOURCE_LABELS: dict[str, str] = {name: label for name, label, _, _ in SOURCE_DEFINITIONS}


class SourceRegistry:
    """Registry of source clients, keyed by store key.

    Example:
        registry = SourceRegistry()
        registry.initialize_default_sources()
        client = registry.get_source("facebook")
    """

    def __init__(self):
        self._sources: dict[str, CursorSource | ReportJobClient] = {}

    def register_source(self, source: CursorSource | ReportJobClient) -> None:
        self._sources[source.source_name] = source

    def get_source(self, name: str) -> CursorSource | ReportJobClient:
        """Get a source client by store key.

        Raises:
            ValueError: If the source is not registered.
        """
        if name not in self._sources:
            raise ValueError(f"Source '{name}' is not registered")
        return self._sources[name]

    def list_sources(self) -> list[str]:
        return list(self._sources.keys())

    def is_registered(self, name: str) -> bool:
        return name in self._sources

    @staticmethod
    def label(name: str) -> str:
        """Human-readable label for a store key, falling back to the key."""
        return SOURCE_LABELS.get(name, name)

    def initialize_default_sources(self) -> None:
        """Instantiate and register every known source client.

        Each import is wrapped in try/except so a broken client module
        never prevents the rest from registering.
        """
        for name, _, module_path, class_name in SOURCE_DEFINITIONS:
            try:
                module = importlib.import_module(module_path)
                cls = getattr(module, class_name)
            except ImportError:
                logger.debug("Source skipped (not installed): %s", name)
                continue
            try:
                self.register_source(cls())
            except Exception:
                logger.warning("Source failed to initialize: %s", name, exc_info=True)

        names = self.list_sources()
        if names:
            logger.info("Active sources: %s", ", ".join(names))
        else:
            logger.warning("No sources registered")


def get_source_registry() -> SourceRegistry:
    """Create a registry with all default source clients registered."""
    registry = SourceRegistry()
    registry.initialize_default_sources()
    return registry
