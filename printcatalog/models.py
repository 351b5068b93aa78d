"""Data models for the Printify catalog aggregator."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

PARTIAL_TITLE = "Partial Product"
PARTIAL_DESCRIPTION = "Data missing"


class Blueprint(BaseModel):
    """Catalog entry (product template) from the blueprint list."""

    model_config = ConfigDict(extra="allow")

    id: int = Field(description="Blueprint identifier")
    title: str | None = Field(default=None)
    description: str | None = Field(default=None)
    brand: str | None = Field(default=None)
    model: str | None = Field(default=None)
    images: list[str] = Field(default_factory=list)


class ProductOptionValue(BaseModel):
    """One value of a product option (e.g. a colour)."""

    id: int | None = Field(default=None)
    title: str | None = Field(default=None)
    colors: list[str] | None = Field(default=None)


class ProductOption(BaseModel):
    """Option axis of a product (colour, size, ...)."""

    id: int | None = Field(default=None)
    name: str | None = Field(default=None)
    type: str | None = Field(default=None)
    values: list[ProductOptionValue] | None = Field(default=None)


class PrintArea(BaseModel):
    """Print-area geometry."""

    position: str | None = Field(default=None)
    width: int | None = Field(default=None)
    height: int | None = Field(default=None)


class ProductDetail(BaseModel):
    """Blueprint detail payload."""

    model_config = ConfigDict(extra="allow")

    id: int = Field(description="Blueprint identifier")
    title: str | None = Field(default=None)
    description: str | None = Field(default=None)
    brand: str | None = Field(default=None)
    model: str | None = Field(default=None)
    images: list[str] | None = Field(default=None)
    tags: list[str] | None = Field(default=None)
    options: list[ProductOption] | None = Field(default=None)
    print_areas: list[PrintArea] | None = Field(default=None)
    created_at: str | None = Field(default=None)
    updated_at: str | None = Field(default=None)
    visible: bool | None = Field(default=None)
    primary_image: str | None = Field(default=None, description="Primary image URL")
    availability: str | None = Field(default=None, description="Stock status")

    @property
    def is_partial(self) -> bool:
        return self.title == PARTIAL_TITLE and self.description == PARTIAL_DESCRIPTION

    @classmethod
    def partial(cls, blueprint_id: int) -> "ProductDetail":
        """Placeholder detail used when the detail fetch fails."""
        return cls(
            id=blueprint_id,
            title=PARTIAL_TITLE,
            description=PARTIAL_DESCRIPTION,
        )


class Location(BaseModel):
    """Structured provider address."""

    address1: str | None = Field(default=None)
    address2: str | None = Field(default=None)
    city: str | None = Field(default=None)
    region: str | None = Field(default=None)
    country: str | None = Field(default=None)
    zip: str | None = Field(default=None)


class PrintProvider(BaseModel):
    """Print provider, either list-level (base) or enriched with detail fields.

    The wire ``location`` is a country code in list payloads and an address
    object in detail payloads. Both are normalized into ``location`` (country)
    plus an optional ``address``.
    """

    model_config = ConfigDict(extra="allow")

    id: int = Field(description="Print provider identifier")
    title: str | None = Field(default=None)
    location: str | None = Field(default=None, description="Country code")
    address: Location | None = Field(default=None, description="Structured address")
    average_production_time: int | None = Field(default=None)
    rating: float | None = Field(default=None)
    base_prices: dict[str, Any] | None = Field(default=None)
    offerings: list[Any] | None = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _normalize_location(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        raw = data.get("location")
        if raw is None or isinstance(raw, str):
            return data

        data = dict(data)
        if isinstance(raw, dict):
            country = raw.get("country")
            data["location"] = country if isinstance(country, str) else None
            if data.get("address") is None:
                data["address"] = raw
        else:
            data["location"] = None
        return data

    def merge_detail(self, detail: "PrintProvider") -> "PrintProvider":
        """Return a copy with the detail-only fields of ``detail`` overlaid."""
        updates: dict[str, Any] = {}
        for name in ENRICHED_FIELDS:
            value = getattr(detail, name)
            if value is not None:
                updates[name] = value
        if self.location is None and detail.location is not None:
            updates["location"] = detail.location
        return self.model_copy(update=updates)


ENRICHED_FIELDS = (
    "address",
    "average_production_time",
    "rating",
    "base_prices",
    "offerings",
)


class ProviderDetail(PrintProvider):
    """Payload of the print-provider detail endpoint."""


class VariantFile(BaseModel):
    """Design file attached to a variant."""

    id: int | None = Field(default=None)
    print_area_id: int | None = Field(default=None)
    url: str | None = Field(default=None)
    thumbnail_url: str | None = Field(default=None)


class Placeholder(BaseModel):
    """Printable placeholder geometry on a variant."""

    position: str | None = Field(default=None)
    width: int | None = Field(default=None)
    height: int | None = Field(default=None)


class Variant(BaseModel):
    """Purchasable configuration of a blueprint.

    Ids are only unique within their scope (blueprint or blueprint/provider pair).
    """

    model_config = ConfigDict(extra="allow")

    id: int = Field(description="Variant identifier")
    title: str | None = Field(default=None)
    price: float | None = Field(default=None)
    currency: str | None = Field(default=None)
    sku: str | None = Field(default=None)
    grams: int | None = Field(default=None)
    options: dict[str, Any] | None = Field(default=None)
    option_ids: list[int] | None = Field(default=None)
    files: list[VariantFile] | None = Field(default=None)
    placeholders: list[Placeholder] | None = Field(default=None)
    image_url: str | None = Field(default=None)
    is_enabled: bool | None = Field(default=None)
    is_available: bool | None = Field(default=None)
    in_stock: bool | None = Field(default=None)
    is_default: bool | None = Field(default=None)
    weight: float | None = Field(default=None)
    length: float | None = Field(default=None)
    width: float | None = Field(default=None)
    height: float | None = Field(default=None)


class VariantListResponse(BaseModel):
    """Envelope of the variant endpoints."""

    id: int | None = Field(default=None)
    title: str | None = Field(default=None)
    variants: list[Variant] = Field(default_factory=list)


class ShippingHandlingTime(BaseModel):
    value: int
    unit: str


class ShippingRate(BaseModel):
    cost: int
    currency: str


class ShippingProfile(BaseModel):
    """Group of variants sharing one cost tier and country list."""

    variant_ids: list[int] = Field(default_factory=list)
    first_item: ShippingRate
    additional_items: ShippingRate
    countries: list[str] = Field(default_factory=list)


class ShippingOption(BaseModel):
    """Shipping terms of a single variant."""

    variant_id: int
    handling_time: ShippingHandlingTime
    first_item_cost: ShippingRate
    additional_item_cost: ShippingRate
    countries: list[str] = Field(default_factory=list)


class ShippingResponse(BaseModel):
    """Envelope of the provider-scoped shipping endpoint."""

    handling_time: ShippingHandlingTime
    profiles: list[ShippingProfile] = Field(default_factory=list)

    def flatten(self) -> list[ShippingOption]:
        """Expand profiles into one option per listed variant id."""
        return [
            ShippingOption(
                variant_id=variant_id,
                handling_time=self.handling_time,
                first_item_cost=profile.first_item,
                additional_item_cost=profile.additional_items,
                countries=list(profile.countries),
            )
            for profile in self.profiles
            for variant_id in profile.variant_ids
        ]


class APIErrorDetail(BaseModel):
    reason: str | None = Field(default=None)
    code: int | None = Field(default=None)


class APIErrorResponse(BaseModel):
    """Error envelope returned with non-2xx responses."""

    status: str
    code: int
    message: str
    errors: APIErrorDetail | None = Field(default=None)


class CombinedProduct(BaseModel):
    """All data aggregated for one blueprint.

    Equality and hashing use the blueprint id only.
    """

    id: int = Field(description="Blueprint identifier")
    product_detail: ProductDetail
    print_providers: list[PrintProvider] = Field(default_factory=list)
    variants: list[Variant] = Field(
        default_factory=list,
        description="Blueprint variants, or every provider's variants in provider order",
    )
    provider_variants: dict[int, list[Variant]] = Field(default_factory=dict)
    provider_shipping: dict[int, list[ShippingOption]] = Field(default_factory=dict)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CombinedProduct):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def to_debug_json(self) -> str:
        """Render the record as indented JSON for debugging display.

        Provider-keyed maps are emitted with string keys; unset fields are omitted.
        """
        return self.model_dump_json(indent=2, exclude_none=True)


class FailureRecord(BaseModel):
    """A recorded, non-fatal fetch failure."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    blueprint_id: int | None = Field(description="Blueprint being aggregated, if any")
    operation: str = Field(description="Logical operation name")
    error: Exception
    provider_id: int | None = Field(default=None)
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def message(self) -> str:
        return str(self.error)
