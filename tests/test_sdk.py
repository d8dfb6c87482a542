"""
Unit tests for the SDK layer.

Tests the fal pricing HTTP client, the fixture source and the cost
tracker facade.
"""

import json
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

from falcon_cost.config.credentials import MissingCredentialError, StaticCredentialProvider
from falcon_cost.config.loader import FalconConfig
from falcon_cost.core.models import EstimateSource, EstimateType, PriceEntry
from falcon_cost.sdk.fal_pricing import (
    FalPricingClient,
    FixturePricingSource,
    PricingSourceError,
    pricing_source_from_env,
)
from falcon_cost.sdk.tracker import CostTracker
from falcon_cost.storage.models import Generation

BASE_URL = "https://api.test/v1"


def make_client(handler, key: str = "test-key") -> FalPricingClient:
    return FalPricingClient(
        StaticCredentialProvider(key),
        base_url=BASE_URL,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


class TestListPrices:
    """Test GET /models/pricing."""

    def test_parses_prices(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"prices": [{
                "endpoint_id": "fal-ai/nano-banana-pro",
                "unit_price": 0.15,
                "unit": "image",
                "currency": "USD",
            }]})

        prices = make_client(handler).list_prices(["fal-ai/nano-banana-pro", "fal-ai/flux-2"])

        assert prices == [PriceEntry("fal-ai/nano-banana-pro", Decimal("0.15"), "image", "USD")]
        request = seen[0]
        assert request.url.path == "/v1/models/pricing"
        assert request.url.params.get_list("endpoint_id") == ["fal-ai/nano-banana-pro", "fal-ai/flux-2"]
        assert request.headers["Authorization"] == "Key test-key"

    def test_http_error_raises(self):
        client = make_client(lambda request: httpx.Response(500, text="fail"))
        with pytest.raises(PricingSourceError, match="500"):
            client.list_prices(["a"])

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(PricingSourceError, match="unreachable"):
            make_client(handler).list_prices(["a"])

    def test_malformed_body_raises(self):
        client = make_client(lambda request: httpx.Response(200, json={"rows": []}))
        with pytest.raises(PricingSourceError, match="prices"):
            client.list_prices(["a"])

    def test_more_than_fifty_rejected(self):
        client = make_client(lambda request: httpx.Response(200, json={"prices": []}))
        with pytest.raises(ValueError, match="At most 50"):
            client.list_prices([str(i) for i in range(51)])

    def test_empty_request_makes_no_call(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert make_client(handler).list_prices([]) == []

    def test_missing_credential(self, monkeypatch):
        class NoKey(StaticCredentialProvider):
            def get_api_key(self):
                raise MissingCredentialError("FAL_KEY not found")

        client = FalPricingClient(
            NoKey("unused"),
            client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200))),
        )
        with pytest.raises(MissingCredentialError):
            client.list_prices(["a"])


class TestEstimate:
    """Test POST /models/pricing/estimate."""

    def test_unit_price_body(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"total_cost": 0.2, "currency": "USD"})

        quote = make_client(handler).estimate(EstimateType.UNIT_PRICE, "fal-ai/flux-2", 4)

        assert quote.cost == Decimal("0.2")
        assert quote.currency == "USD"
        assert bodies == [{
            "estimate_type": "unit_price",
            "endpoints": {"fal-ai/flux-2": {"unit_quantity": 4}},
        }]

    def test_historical_body_rounds_calls(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"total_cost": 0.01, "currency": "USD"})

        make_client(handler).estimate(EstimateType.HISTORICAL_API_PRICE, "fal-ai/birefnet", 0.2)

        assert bodies[0]["endpoints"] == {"fal-ai/birefnet": {"call_quantity": 1}}

    def test_error_status_raises(self):
        client = make_client(lambda request: httpx.Response(503))
        with pytest.raises(PricingSourceError, match="503"):
            client.estimate(EstimateType.UNIT_PRICE, "a", 1)

    def test_missing_total_raises(self):
        client = make_client(lambda request: httpx.Response(200, json={"currency": "USD"}))
        with pytest.raises(PricingSourceError, match="Malformed"):
            client.estimate(EstimateType.UNIT_PRICE, "a", 1)


class TestFixtureSource:
    """Test the offline fixture source."""

    def _fixture(self, tmp_path) -> Path:
        path = tmp_path / "fixture.json"
        path.write_text(json.dumps({"prices": [
            {"endpoint_id": "a", "unit_price": 0.1, "unit": "image", "currency": "USD"},
        ]}))
        return path

    def test_returns_requested_prices(self, tmp_path):
        source = FixturePricingSource(self._fixture(tmp_path))
        assert source.list_prices(["a"]) == [PriceEntry("a", Decimal("0.1"), "image", "USD")]

    def test_missing_endpoint_raises(self, tmp_path):
        source = FixturePricingSource(self._fixture(tmp_path))
        with pytest.raises(PricingSourceError, match="missing endpoint: b"):
            source.list_prices(["a", "b"])

    def test_unreadable_fixture_raises(self, tmp_path):
        with pytest.raises(PricingSourceError, match="Failed to load pricing fixture"):
            FixturePricingSource(tmp_path / "nope.json").list_prices(["a"])

    def test_selected_by_env(self, tmp_path, monkeypatch):
        default = object()
        monkeypatch.delenv("FALCON_PRICING_FIXTURE", raising=False)
        assert pricing_source_from_env(default) is default

        monkeypatch.setenv("FALCON_PRICING_FIXTURE", str(self._fixture(tmp_path)))
        assert isinstance(pricing_source_from_env(default), FixturePricingSource)


class TestCostTracker:
    """Test the facade end to end against a mocked API."""

    def setup_method(self):
        self.requests = []

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/models/pricing"):
            return httpx.Response(200, json={"prices": [{
                "endpoint_id": "fal-ai/nano-banana-pro",
                "unit_price": 0.15,
                "unit": "image",
                "currency": "USD",
            }]})
        return httpx.Response(500, text="fail")

    def _tracker(self, tmp_path, monkeypatch) -> CostTracker:
        monkeypatch.delenv("FALCON_PRICING_FIXTURE", raising=False)
        config = FalconConfig(config_dir=tmp_path, pricing_base_url=BASE_URL)
        return CostTracker(config=config, client=make_client(self._handler))

    def test_estimate_then_record(self, tmp_path, monkeypatch):
        with self._tracker(tmp_path, monkeypatch) as tracker:
            estimate = tracker.estimate_generation_cost("banana", "2K", 2)
            assert estimate.estimate_source == EstimateSource.PRICING
            assert estimate.cost == pytest.approx(0.30)

            generation = Generation.create(
                prompt="a lighthouse",
                model="banana",
                aspect="16:9",
                resolution="2K",
                output="lighthouse.png",
                estimate=estimate,
            )
            tracker.add_generation(generation)

            assert tracker.get_last_generation() == generation
            history = tracker.load_history()
            assert history.total_cost["USD"].all_time == pytest.approx(0.30)
        assert (tmp_path / "pricing.json").exists()
        assert (tmp_path / "history.json").exists()

    def test_second_estimate_uses_cache(self, tmp_path, monkeypatch):
        with self._tracker(tmp_path, monkeypatch) as tracker:
            tracker.estimate_generation_cost("banana")
            tracker.estimate_generation_cost("banana")

        listing_calls = [r for r in self.requests if r.url.path.endswith("/models/pricing")]
        assert len(listing_calls) == 1

    def test_refresh_pricing_unknown_model(self, tmp_path, monkeypatch):
        with self._tracker(tmp_path, monkeypatch) as tracker:
            with pytest.raises(ValueError, match="Unsupported model"):
                tracker.refresh_pricing(["nope"])

    def test_refresh_pricing_selected_models(self, tmp_path, monkeypatch):
        with self._tracker(tmp_path, monkeypatch) as tracker:
            prices = tracker.refresh_pricing(["banana"])
        assert "fal-ai/nano-banana-pro" in prices
