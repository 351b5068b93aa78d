"""Print provider enrichment and the global provider directory."""

import logging

from .client import PrintifyClient
from .errors import FetchError
from .models import PrintProvider
from .policy import FailurePolicy, ResourceKind
from .progress import ProgressTracker

logger = logging.getLogger(__name__)


class ProviderEnricher:
    """Overlays provider-detail fields onto list-level providers."""

    def __init__(self, client: PrintifyClient, policy: FailurePolicy):
        self.client = client
        self.policy = policy

    async def _fetch_merged(self, provider: PrintProvider) -> PrintProvider:
        detail = await self.client.fetch_print_provider_detail(provider.id)
        return provider.merge_detail(detail)

    async def enrich(
        self, provider: PrintProvider, blueprint_id: int | None = None
    ) -> PrintProvider:
        """Return the enriched provider, or the base provider if the detail fetch fails.

        Args:
            provider: Base provider from a list endpoint
            blueprint_id: Blueprint being aggregated, for failure context

        Returns:
            Enriched copy or ``provider`` itself
        """
        return await self.policy.guarded(
            ResourceKind.PROVIDER_DETAIL,
            self._fetch_merged(provider),
            default=lambda: provider,
            blueprint_id=blueprint_id,
            provider_id=provider.id,
        )

    async def enrich_all(
        self, providers: list[PrintProvider], blueprint_id: int | None = None
    ) -> list[PrintProvider]:
        """Enrich providers one at a time, preserving order."""
        enriched: list[PrintProvider] = []
        for provider in providers:
            enriched.append(await self.enrich(provider, blueprint_id))
        return enriched


class ProviderDirectoryLoader:
    """Loads and enriches the global print provider list."""

    def __init__(self, client: PrintifyClient, tracker: ProgressTracker):
        self.client = client
        self.tracker = tracker
        self.enricher = ProviderEnricher(client, FailurePolicy(tracker.record_failure))

    async def load(self) -> list[PrintProvider]:
        """Fetch every provider and enrich it with its detail payload.

        Returns:
            Enriched providers, empty if the global list cannot be fetched
        """
        try:
            base_providers = await self.client.fetch_all_print_providers()
        except FetchError as e:
            logger.error(f"Failed to fetch global print providers: {e}")
            return []

        self.tracker.providers_discovered(len(base_providers))
        logger.info(f"Enriching {len(base_providers)} print providers")

        enriched: list[PrintProvider] = []
        for provider in base_providers:
            enriched.append(await self.enricher.enrich(provider))
            self.tracker.provider_loaded()

        with_address = sum(1 for p in enriched if p.address is not None)
        logger.info(f"Provider directory loaded: {len(enriched)} providers, {with_address} with address")
        return enriched
