"""Tests for the Printify API client."""

import asyncio

import httpx
import pytest

from printcatalog.client import PrintifyClient, RequestPacer
from printcatalog.errors import BadURLError, DecodeError, NetworkError, ServerError

from fakes import InFlightCounter

BASE = "https://api.test/v1"


def make_client(handler, **kwargs) -> PrintifyClient:
    return PrintifyClient(
        api_token="secret",
        base_url=BASE,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def routes(table: dict):
    """Handler answering from a path -> (status, json) table."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        status, body = table.get(request.url.path, (404, {"status": "error", "code": 404, "message": "Not found"}))
        return httpx.Response(status, json=body)

    handler.seen = seen
    return handler


class TestHeaders:
    """Tests for request headers."""

    @pytest.mark.asyncio
    async def test_fixed_headers_attached(self):
        handler = routes({"/v1/catalog/blueprints.json": (200, [{"id": 1}])})
        async with make_client(handler, api_version="v1") as client:
            await client.fetch_catalog()

        request = handler.seen[0]
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["X-PF-API-VERSION"] == "v1"

    def test_token_required(self):
        with pytest.raises(ValueError):
            PrintifyClient(api_token="")


class TestFetchers:
    """Tests for the resource fetch operations."""

    @pytest.mark.asyncio
    async def test_fetch_catalog(self):
        handler = routes({
            "/v1/catalog/blueprints.json": (200, [
                {"id": 3, "title": "Tee", "brand": "Gildan", "images": ["a.png"]},
                {"id": 5},
            ]),
        })
        async with make_client(handler) as client:
            catalog = await client.fetch_catalog()

        assert [b.id for b in catalog] == [3, 5]
        assert catalog[0].brand == "Gildan"

    @pytest.mark.asyncio
    async def test_fetch_product_detail(self):
        handler = routes({
            "/v1/catalog/blueprints/42.json": (200, {"id": 42, "title": "Mug", "tags": ["Home"]}),
        })
        async with make_client(handler) as client:
            detail = await client.fetch_product_detail(42)

        assert detail.title == "Mug"
        assert detail.tags == ["Home"]

    @pytest.mark.asyncio
    async def test_provider_variants_unwrapped(self):
        handler = routes({
            "/v1/catalog/blueprints/42/print_providers/7/variants.json": (200, {
                "id": 7,
                "title": "Acme",
                "variants": [
                    {"id": 100, "title": "S / White", "options": {"size": "S"}, "placeholders": [{"position": "front", "width": 10, "height": 12}]},
                    {"id": 101, "title": "M / White"},
                ],
            }),
        })
        async with make_client(handler) as client:
            variants = await client.fetch_provider_variants(42, 7)

        assert [v.id for v in variants] == [100, 101]
        assert variants[0].placeholders[0].position == "front"

    @pytest.mark.asyncio
    async def test_blueprint_variants_bare_list(self):
        handler = routes({"/v1/catalog/blueprints/42/variants.json": (200, [{"id": 1}, {"id": 2}])})
        async with make_client(handler) as client:
            variants = await client.fetch_blueprint_variants(42)

        assert len(variants) == 2

    @pytest.mark.asyncio
    async def test_shipping_flattened(self):
        handler = routes({
            "/v1/catalog/blueprints/42/print_providers/7/shipping.json": (200, {
                "handling_time": {"value": 5, "unit": "day"},
                "profiles": [
                    {
                        "variant_ids": [100, 101],
                        "first_item": {"cost": 400, "currency": "USD"},
                        "additional_items": {"cost": 100, "currency": "USD"},
                        "countries": ["US"],
                    },
                    {
                        "variant_ids": [100, 101, 102],
                        "first_item": {"cost": 900, "currency": "USD"},
                        "additional_items": {"cost": 300, "currency": "USD"},
                        "countries": ["REST_OF_THE_WORLD"],
                    },
                ],
            }),
        })
        async with make_client(handler) as client:
            options = await client.fetch_shipping(42, 7)

        assert len(options) == 5
        assert all(o.handling_time.value == 5 for o in options)

    @pytest.mark.asyncio
    async def test_provider_detail_location_object(self):
        handler = routes({
            "/v1/catalog/print_providers/7.json": (200, {
                "id": 7,
                "title": "Acme",
                "location": {"address1": "1 Main", "city": "Denver", "country": "US", "region": "CO", "zip": "80202"},
            }),
        })
        async with make_client(handler) as client:
            detail = await client.fetch_print_provider_detail(7)

        assert detail.location == "US"
        assert detail.address.region == "CO"

    @pytest.mark.asyncio
    async def test_print_providers(self):
        handler = routes({
            "/v1/catalog/blueprints/42/print_providers.json": (200, [{"id": 7, "title": "Acme"}]),
            "/v1/catalog/print_providers.json": (200, [{"id": 7}, {"id": 8, "location": "GB"}]),
        })
        async with make_client(handler) as client:
            scoped = await client.fetch_print_providers(42)
            everyone = await client.fetch_all_print_providers()

        assert [p.id for p in scoped] == [7]
        assert everyone[1].location == "GB"


class TestErrors:
    """Tests for error mapping."""

    @pytest.mark.asyncio
    async def test_error_envelope(self):
        handler = routes({
            "/v1/catalog/blueprints/42.json": (404, {
                "status": "error",
                "code": 8150,
                "message": "Blueprint not found.",
                "errors": {"reason": "missing", "code": 8150},
            }),
        })
        async with make_client(handler) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.fetch_product_detail(42)

        error = exc_info.value
        assert error.status_code == 404
        assert error.message == "Blueprint not found."
        assert error.code == 8150
        assert error.reason == "missing"

    @pytest.mark.asyncio
    async def test_generic_server_error(self):
        def handler(request):
            return httpx.Response(502, text="<html>Bad gateway</html>")

        async with make_client(handler) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.fetch_catalog()

        assert exc_info.value.message == "bad server response"
        assert exc_info.value.code is None

    @pytest.mark.asyncio
    async def test_schema_mismatch(self):
        handler = routes({"/v1/catalog/blueprints.json": (200, {"data": []})})
        async with make_client(handler) as client:
            with pytest.raises(DecodeError):
                await client.fetch_catalog()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text="not json")

        async with make_client(handler) as client:
            with pytest.raises(DecodeError):
                await client.fetch_catalog()

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(NetworkError):
                await client.fetch_catalog()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", [0, -1, "12", None, True])
    async def test_bad_path_id(self, bad_id):
        handler = routes({})
        async with make_client(handler) as client:
            with pytest.raises(BadURLError):
                await client.fetch_product_detail(bad_id)

        assert handler.seen == []

    @pytest.mark.asyncio
    async def test_not_started(self):
        client = make_client(routes({}))
        with pytest.raises(RuntimeError):
            await client.fetch_catalog()


class TestRequestPacer:
    """Tests for request pacing."""

    @pytest.mark.asyncio
    async def test_disabled_pacer_does_not_wait(self, monkeypatch):
        calls = []

        async def fake_sleep(delay):
            calls.append(delay)

        monkeypatch.setattr("printcatalog.client.asyncio.sleep", fake_sleep)
        pacer = RequestPacer(0)
        await pacer.wait()
        await pacer.wait()
        assert calls == []

    @pytest.mark.asyncio
    async def test_spaces_requests(self, monkeypatch):
        calls = []

        async def fake_sleep(delay):
            calls.append(delay)

        monkeypatch.setattr("printcatalog.client.asyncio.sleep", fake_sleep)
        pacer = RequestPacer(0.5)
        await pacer.wait()
        await pacer.wait()

        assert len(calls) == 1
        assert 0 < calls[0] <= 0.5


class TestConcurrencyLimit:
    """Tests for the in-flight request ceiling."""

    @pytest.mark.asyncio
    async def test_in_flight_requests_capped(self):
        handler = InFlightCounter(lambda request: httpx.Response(200, json={"id": 1}))
        async with make_client(handler, max_concurrent=3) as client:
            details = await asyncio.gather(*(client.fetch_product_detail(i) for i in range(1, 31)))

        assert len(details) == 30
        assert handler.peak == 3

    @pytest.mark.asyncio
    async def test_slot_released_on_error(self):
        handler = InFlightCounter(lambda request: httpx.Response(500, json={}))
        async with make_client(handler, max_concurrent=1) as client:
            for _ in range(3):
                with pytest.raises(ServerError):
                    await client.fetch_catalog()

        assert handler.peak == 1
        assert handler.active == 0
