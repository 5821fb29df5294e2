"""
Provider registry – holds all integrated booking providers.

Provides a single place to look up an adapter by name or by sport.
Built once at application startup and passed to the services that need
it.
"""

from __future__ import annotations

import logging

from playscanner.models import ProviderDescriptor
from playscanner.services.providers.base import ProviderAdapter
from playscanner.services.providers.playtomic.adapter import PlaytomicAdapter
from playscanner.services.providers.playtomic.client import PlaytomicClient

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry of all integrated providers.

    Each adapter is registered by its name (e.g. "playtomic") and can be
    looked up at runtime by the search engine and the collector.
    """

    def __init__(self) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}

    def register(self, adapter: ProviderAdapter) -> None:
        self._adapters[adapter.name] = adapter
        logger.info("Registered provider %s (sports=%s)", adapter.name, ",".join(adapter.sports))

    def register_playtomic(self, *, timeout: float = 30.0, health_timeout: float = 10.0) -> None:
        """Initialize and register the Playtomic integration."""
        client = PlaytomicClient(timeout=timeout)
        self.register(PlaytomicAdapter(client, health_timeout=health_timeout))

    async def close(self) -> None:
        """Close all HTTP clients."""
        for adapter in self._adapters.values():
            try:
                await adapter.close()
            except Exception:
                logger.exception("Failed to close provider %s", adapter.name)

    def get(self, name: str) -> ProviderAdapter | None:
        return self._adapters.get(name)

    def names(self) -> list[str]:
        return list(self._adapters)

    def all(self) -> list[ProviderAdapter]:
        return list(self._adapters.values())

    def for_sport(self, sport: str) -> list[ProviderAdapter]:
        return [a for a in self._adapters.values() if sport in a.sports]

    def describe(self) -> list[ProviderDescriptor]:
        return [
            ProviderDescriptor(name=a.name, sports=list(a.sports), regions=list(a.regions))
            for a in self._adapters.values()
        ]
