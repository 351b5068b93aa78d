"""Async HTTP client for the Printify catalog API."""

import asyncio
import logging
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import BadURLError, DecodeError, NetworkError, ServerError
from .models import (
    APIErrorResponse,
    Blueprint,
    PrintProvider,
    ProductDetail,
    ProviderDetail,
    ShippingOption,
    ShippingResponse,
    Variant,
    VariantListResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BLUEPRINTS = TypeAdapter(list[Blueprint])
_PROVIDERS = TypeAdapter(list[PrintProvider])
_VARIANTS = TypeAdapter(list[Variant])


class RequestPacer:
    """Spaces the start of consecutive requests by a minimum interval."""

    def __init__(self, interval: float = 0.0):
        self.interval = interval
        self._lock = asyncio.Lock()
        self._last_start: float | None = None

    async def wait(self) -> None:
        """Wait until the next request may start."""
        if self.interval <= 0:
            return

        async with self._lock:
            loop = asyncio.get_running_loop()
            if self._last_start is not None:
                delay = self._last_start + self.interval - loop.time()
                if delay > 0:
                    await asyncio.sleep(delay)
            self._last_start = loop.time()


class PrintifyClient:
    """Stateless fetchers for each catalog resource.

    Every operation performs one GET, decodes the body and raises a
    :class:`~printcatalog.errors.FetchError` subclass on failure.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://api.printify.com/v1",
        api_version: str = "v1",
        timeout: float = 30.0,
        request_interval: float = 0.0,
        max_concurrent: int = 9,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            api_token: Bearer token
            base_url: API root URL
            api_version: Value of the X-PF-API-VERSION header
            timeout: Request timeout in seconds
            request_interval: Minimum seconds between request starts
            max_concurrent: Maximum requests in flight at once
            transport: Optional httpx transport (used by tests)
        """
        if not api_token:
            raise ValueError("API token is required")

        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout
        self._pacer = RequestPacer(request_interval)
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "PrintifyClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers=self.headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def headers(self) -> dict[str, str]:
        """Headers attached to every request."""
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Accept-Encoding": "identity",
            "X-PF-API-VERSION": self.api_version,
        }

    @staticmethod
    def _path_id(value: Any, name: str) -> int:
        """Validate a numeric path parameter."""
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise BadURLError(f"Invalid {name}: {value!r}")
        return value

    async def _get(self, path: str) -> Any:
        """GET ``path`` and return the decoded JSON body.

        Args:
            path: Path relative to the API root

        Returns:
            Parsed JSON value
        """
        if not self._client:
            raise RuntimeError("Client not started. Use async context manager.")

        url = f"{self.base_url}{path}"

        async with self._semaphore:
            await self._pacer.wait()
            logger.debug(f"GET {url}")

            try:
                response = await self._client.get(url)
            except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
                raise BadURLError(str(e), url) from e
            except httpx.RequestError as e:
                raise NetworkError(f"{type(e).__name__}: {e}", url) from e

        if not 200 <= response.status_code <= 299:
            raise self._server_error(response, url)

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON body: {e}", url) from e

    @staticmethod
    def _server_error(response: httpx.Response, url: str) -> ServerError:
        """Build a ServerError, preferring the API error envelope."""
        try:
            envelope = APIErrorResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            return ServerError(response.status_code, url=url)

        reason = envelope.errors.reason if envelope.errors else None
        return ServerError(
            response.status_code,
            message=envelope.message,
            url=url,
            code=envelope.code,
            reason=reason,
        )

    @staticmethod
    def _decode(adapter: TypeAdapter[T], data: Any, path: str) -> T:
        try:
            return adapter.validate_python(data)
        except ValidationError as e:
            raise DecodeError(f"Unexpected payload for {path}: {e}", path) from e

    def _decode_variants(self, data: Any, path: str) -> list[Variant]:
        # Variant endpoints wrap the list; tolerate a bare list too.
        if isinstance(data, list):
            return self._decode(_VARIANTS, data, path)
        return self._decode(TypeAdapter(VariantListResponse), data, path).variants

    # =========================================================================
    # Catalog
    # =========================================================================

    async def fetch_catalog(self) -> list[Blueprint]:
        """Fetch every blueprint in the catalog."""
        path = "/catalog/blueprints.json"
        return self._decode(_BLUEPRINTS, await self._get(path), path)

    async def fetch_product_detail(self, blueprint_id: int) -> ProductDetail:
        """Fetch the detail payload of one blueprint."""
        blueprint_id = self._path_id(blueprint_id, "blueprint id")
        path = f"/catalog/blueprints/{blueprint_id}.json"
        return self._decode(TypeAdapter(ProductDetail), await self._get(path), path)

    async def fetch_blueprint_variants(self, blueprint_id: int) -> list[Variant]:
        """Fetch catalog-level variants of one blueprint."""
        blueprint_id = self._path_id(blueprint_id, "blueprint id")
        path = f"/catalog/blueprints/{blueprint_id}/variants.json"
        return self._decode_variants(await self._get(path), path)

    # =========================================================================
    # Print providers
    # =========================================================================

    async def fetch_all_print_providers(self) -> list[PrintProvider]:
        """Fetch the global print provider list."""
        path = "/catalog/print_providers.json"
        return self._decode(_PROVIDERS, await self._get(path), path)

    async def fetch_print_providers(self, blueprint_id: int) -> list[PrintProvider]:
        """Fetch the providers offering one blueprint."""
        blueprint_id = self._path_id(blueprint_id, "blueprint id")
        path = f"/catalog/blueprints/{blueprint_id}/print_providers.json"
        return self._decode(_PROVIDERS, await self._get(path), path)

    async def fetch_print_provider_detail(self, provider_id: int) -> ProviderDetail:
        """Fetch the detail payload of one print provider."""
        provider_id = self._path_id(provider_id, "print provider id")
        path = f"/catalog/print_providers/{provider_id}.json"
        return self._decode(TypeAdapter(ProviderDetail), await self._get(path), path)

    # =========================================================================
    # Provider-scoped resources
    # =========================================================================

    async def fetch_provider_variants(
        self, blueprint_id: int, provider_id: int
    ) -> list[Variant]:
        """Fetch the variants one provider offers for one blueprint."""
        blueprint_id = self._path_id(blueprint_id, "blueprint id")
        provider_id = self._path_id(provider_id, "print provider id")
        path = f"/catalog/blueprints/{blueprint_id}/print_providers/{provider_id}/variants.json"
        return self._decode_variants(await self._get(path), path)

    async def fetch_shipping(
        self, blueprint_id: int, provider_id: int
    ) -> list[ShippingOption]:
        """Fetch shipping profiles and flatten them into per-variant options."""
        blueprint_id = self._path_id(blueprint_id, "blueprint id")
        provider_id = self._path_id(provider_id, "print provider id")
        path = f"/catalog/blueprints/{blueprint_id}/print_providers/{provider_id}/shipping.json"
        response = self._decode(TypeAdapter(ShippingResponse), await self._get(path), path)
        return response.flatten()
