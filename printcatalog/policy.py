"""Failure policy per resource kind."""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from .errors import FetchError
from .models import FailureRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResourceKind(str, Enum):
    """Resources fetched while aggregating a blueprint."""

    PRODUCT_DETAIL = "product_detail"
    PRINT_PROVIDERS = "print_providers"
    PROVIDER_DETAIL = "provider_detail"
    PROVIDER_VARIANTS = "provider_variants"
    PROVIDER_SHIPPING = "provider_shipping"
    BLUEPRINT_VARIANTS = "blueprint_variants"


class Criticality(str, Enum):
    """Whether a failure is recorded (required) or silently tolerated (auxiliary)."""

    REQUIRED = "required"
    AUXILIARY = "auxiliary"


OPERATION_NAMES: dict[ResourceKind, str] = {
    ResourceKind.PRODUCT_DETAIL: "fetchProductDetail",
    ResourceKind.PRINT_PROVIDERS: "fetchPrintProviders",
    ResourceKind.PROVIDER_DETAIL: "fetchPrintProviderDetail",
    ResourceKind.PROVIDER_VARIANTS: "fetchProviderVariants",
    ResourceKind.PROVIDER_SHIPPING: "fetchShippingInfo",
    ResourceKind.BLUEPRINT_VARIANTS: "fetchVariants",
}

DEFAULT_POLICY: dict[ResourceKind, Criticality] = {
    ResourceKind.PRODUCT_DETAIL: Criticality.REQUIRED,
    ResourceKind.PRINT_PROVIDERS: Criticality.REQUIRED,
    ResourceKind.PROVIDER_DETAIL: Criticality.AUXILIARY,
    ResourceKind.PROVIDER_VARIANTS: Criticality.REQUIRED,
    ResourceKind.PROVIDER_SHIPPING: Criticality.REQUIRED,
    ResourceKind.BLUEPRINT_VARIANTS: Criticality.REQUIRED,
}


class FailurePolicy:
    """Turns fetch failures into defaults, recording the required ones."""

    def __init__(
        self,
        record: Callable[[FailureRecord], None],
        table: dict[ResourceKind, Criticality] | None = None,
    ):
        """Initialize policy.

        Args:
            record: Sink for failure records (the run's tracker)
            table: Criticality per resource kind, defaults to DEFAULT_POLICY
        """
        self._record = record
        self.table = {**DEFAULT_POLICY, **(table or {})}

    def criticality(self, kind: ResourceKind) -> Criticality:
        return self.table[kind]

    async def guarded(
        self,
        kind: ResourceKind,
        call: Awaitable[T],
        default: Callable[[], T],
        blueprint_id: int | None,
        provider_id: int | None = None,
    ) -> T:
        """Await ``call``; on FetchError apply the policy and return ``default()``."""
        try:
            return await call
        except FetchError as e:
            operation = OPERATION_NAMES[kind]
            parts = []
            if blueprint_id is not None:
                parts.append(f"blueprint {blueprint_id}")
            if provider_id is not None:
                parts.append(f"provider {provider_id}")
            target = ", ".join(parts) or "catalog"

            if self.criticality(kind) == Criticality.AUXILIARY:
                logger.debug(f"Tolerated {operation} failure for {target}: {e}")
            else:
                logger.warning(f"{operation} failed for {target}: {e}")
                self._record(FailureRecord(
                    blueprint_id=blueprint_id,
                    operation=operation,
                    error=e,
                    provider_id=provider_id,
                ))
            return default()
