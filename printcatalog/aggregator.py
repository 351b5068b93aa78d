"""Per-blueprint aggregation of detail, providers, variants and shipping."""

import asyncio
import logging

from .client import PrintifyClient
from .enricher import ProviderEnricher
from .models import (
    Blueprint,
    CombinedProduct,
    PrintProvider,
    ProductDetail,
    ShippingOption,
    Variant,
)
from .policy import FailurePolicy, ResourceKind

logger = logging.getLogger(__name__)


class BlueprintAggregator:
    """Builds one CombinedProduct per blueprint.

    Fetch failures never escape :meth:`aggregate`; each one is replaced by a
    default value and, for required resources, recorded by the policy.
    """

    def __init__(
        self,
        client: PrintifyClient,
        policy: FailurePolicy,
        include_blueprint_variants: bool = False,
    ):
        """Initialize aggregator.

        Args:
            client: Resource fetcher
            policy: Failure policy bound to the run's failure buffer
            include_blueprint_variants: Fetch catalog-level variants instead of
                deriving them from the provider variants
        """
        self.client = client
        self.policy = policy
        self.include_blueprint_variants = include_blueprint_variants
        self.enricher = ProviderEnricher(client, policy)

    async def aggregate(self, blueprint: Blueprint) -> CombinedProduct:
        """Fetch and merge everything known about one blueprint."""
        bp_id = blueprint.id
        logger.debug(f"Aggregating blueprint {bp_id}")

        detail_task = self.policy.guarded(
            ResourceKind.PRODUCT_DETAIL,
            self.client.fetch_product_detail(bp_id),
            default=lambda: ProductDetail.partial(bp_id),
            blueprint_id=bp_id,
        )
        tasks = [detail_task, self._provider_data(bp_id)]
        if self.include_blueprint_variants:
            tasks.append(self.policy.guarded(
                ResourceKind.BLUEPRINT_VARIANTS,
                self.client.fetch_blueprint_variants(bp_id),
                default=list,
                blueprint_id=bp_id,
            ))

        results = await asyncio.gather(*tasks)
        product_detail = results[0]
        providers, provider_variants, provider_shipping = results[1]

        if self.include_blueprint_variants:
            variants = results[2]
        else:
            variants = [v for p in providers for v in provider_variants.get(p.id, [])]

        return CombinedProduct(
            id=bp_id,
            product_detail=product_detail,
            print_providers=providers,
            variants=variants,
            provider_variants=provider_variants,
            provider_shipping=provider_shipping,
        )

    async def _provider_data(
        self, bp_id: int
    ) -> tuple[list[PrintProvider], dict[int, list[Variant]], dict[int, list[ShippingOption]]]:
        """Providers of a blueprint with their variants and shipping options."""
        base_providers = await self.policy.guarded(
            ResourceKind.PRINT_PROVIDERS,
            self.client.fetch_print_providers(bp_id),
            default=list,
            blueprint_id=bp_id,
        )
        providers = await self.enricher.enrich_all(base_providers, bp_id)

        per_provider = await asyncio.gather(
            *(self._provider_resources(bp_id, provider.id) for provider in providers)
        )

        provider_variants: dict[int, list[Variant]] = {}
        provider_shipping: dict[int, list[ShippingOption]] = {}
        for provider, (variants, shipping) in zip(providers, per_provider):
            provider_variants[provider.id] = variants
            provider_shipping[provider.id] = shipping

        return providers, provider_variants, provider_shipping

    async def _provider_resources(
        self, bp_id: int, provider_id: int
    ) -> tuple[list[Variant], list[ShippingOption]]:
        variants, shipping = await asyncio.gather(
            self.policy.guarded(
                ResourceKind.PROVIDER_VARIANTS,
                self.client.fetch_provider_variants(bp_id, provider_id),
                default=list,
                blueprint_id=bp_id,
                provider_id=provider_id,
            ),
            self.policy.guarded(
                ResourceKind.PROVIDER_SHIPPING,
                self.client.fetch_shipping(bp_id, provider_id),
                default=list,
                blueprint_id=bp_id,
                provider_id=provider_id,
            ),
        )
        return variants, shipping
