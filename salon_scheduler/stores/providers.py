"""Provider directory: which salonists exist and which salon they work at."""

import logging
import threading
from typing import Protocol

from salon_scheduler.errors import NotFoundError
from salon_scheduler.schemas.provider_schema import Provider, ProviderStatus, Salon

logger = logging.getLogger(__name__)


class ProviderDirectory(Protocol):
    def get(self, provider_id: str) -> Provider:
        ...

    def get_salon(self, salon_id: str) -> Salon:
        ...

    def active_providers(self, salon_id: str) -> list[Provider]:
        ...


class InMemoryProviderDirectory:
    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}
        self._salons: dict[str, Salon] = {}
        self._lock = threading.Lock()

    def add_salon(self, salon: Salon) -> Salon:
        with self._lock:
            self._salons[salon.salon_id] = salon
        return salon

    def add_provider(self, provider: Provider) -> Provider:
        with self._lock:
            if provider.salon_id not in self._salons:
                self._salons[provider.salon_id] = Salon(
                    salon_id=provider.salon_id, name=provider.salon_id
                )
            self._providers[provider.provider_id] = provider
        logger.debug("Provider registered: %s at %s", provider.provider_id, provider.salon_id)
        return provider

    def get(self, provider_id: str) -> Provider:
        with self._lock:
            provider = self._providers.get(provider_id)
        if provider is None:
            raise NotFoundError(f"Provider {provider_id} not found.")
        return provider

    def get_salon(self, salon_id: str) -> Salon:
        with self._lock:
            salon = self._salons.get(salon_id)
        if salon is None:
            raise NotFoundError(f"Salon {salon_id} not found.")
        return salon

    def active_providers(self, salon_id: str) -> list[Provider]:
        """Active providers of a salon, in registration order.

        Raises:
            NotFoundError: If the salon is unknown.
        """
        with self._lock:
            if salon_id not in self._salons:
                raise NotFoundError(f"Salon {salon_id} not found.")
            return [
                p for p in self._providers.values()
                if p.salon_id == salon_id and p.status == ProviderStatus.ACTIVE
            ]

    def clear(self) -> None:
        with self._lock:
            self._providers.clear()
            self._salons.clear()
