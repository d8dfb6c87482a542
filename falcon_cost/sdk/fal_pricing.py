"""
fal.ai pricing API client.

Lists per-endpoint unit prices and asks the estimate endpoint for the
cost of a planned request. Every failure surfaces as an exception; the
callers decide how to degrade.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from ..config.credentials import CredentialProvider
from ..config.loader import DEFAULT_PRICING_BASE_URL
from ..core.models import EstimateQuote, EstimateType, PriceEntry, to_decimal

logger = logging.getLogger(__name__)

PRICING_FIXTURE_ENV = "FALCON_PRICING_FIXTURE"
MAX_ENDPOINTS_PER_REQUEST = 50


class PricingSourceError(Exception):
    """Raised when pricing data cannot be obtained or understood."""


class PricingSource(Protocol):
    """Anything that can list unit prices for endpoints."""

    def list_prices(self, endpoint_ids: Sequence[str]) -> List[PriceEntry]:
        ...


class EstimateSource(Protocol):
    """Anything that can quote the cost of a planned request."""

    def estimate(
        self,
        estimate_type: EstimateType,
        endpoint_id: str,
        quantity: float
    ) -> EstimateQuote:
        ...


def _parse_price_rows(data: Any) -> List[PriceEntry]:
    """Convert an API/fixture ``{"prices": [...]}`` payload to entries."""
    if not isinstance(data, dict) or not isinstance(data.get("prices"), list):
        raise PricingSourceError("Pricing response missing 'prices' list")

    entries = []
    for row in data["prices"]:
        try:
            entries.append(PriceEntry.from_dict({
                "endpointId": row.get("endpoint_id"),
                "unitPrice": row.get("unit_price"),
                "unit": row.get("unit"),
                "currency": row.get("currency"),
            }))
        except (AttributeError, ValueError) as e:
            raise PricingSourceError(f"Malformed pricing row {row!r}: {e}")
    return entries


class FalPricingClient:
    """HTTP client for the fal pricing endpoints.

    Implements both PricingSource and EstimateSource.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        base_url: str = DEFAULT_PRICING_BASE_URL,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None
    ):
        """Initialize the client.

        Args:
            credentials: Provider for the fal API key (resolved per request)
            base_url: Pricing API root
            timeout: Request timeout in seconds; None waits indefinitely
            client: Preconfigured httpx client (tests inject a MockTransport)
        """
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "FalPricingClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Key {self.credentials.get_api_key()}"}

    def list_prices(self, endpoint_ids: Sequence[str]) -> List[PriceEntry]:
        """Fetch unit prices for up to 50 endpoints in one request.

        Raises:
            ValueError: If more than 50 ids are requested
            MissingCredentialError: If no API key is configured
            PricingSourceError: On HTTP errors or malformed responses
        """
        if not endpoint_ids:
            return []
        if len(endpoint_ids) > MAX_ENDPOINTS_PER_REQUEST:
            raise ValueError(
                f"At most {MAX_ENDPOINTS_PER_REQUEST} endpoints per request, got {len(endpoint_ids)}"
            )

        params = [("endpoint_id", endpoint_id) for endpoint_id in endpoint_ids]
        logger.debug("Fetching pricing for %d endpoint(s)", len(endpoint_ids))
        try:
            response = self.client.get(
                f"{self.base_url}/models/pricing",
                params=params,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise PricingSourceError(f"Failed to fetch pricing: {e}")

        if response.is_error:
            raise PricingSourceError(f"Failed to fetch pricing: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise PricingSourceError(f"Pricing response is not JSON: {e}")
        return _parse_price_rows(data)

    def estimate(
        self,
        estimate_type: EstimateType,
        endpoint_id: str,
        quantity: float
    ) -> EstimateQuote:
        """Ask the estimate endpoint for the cost of ``quantity`` units/calls.

        Raises:
            MissingCredentialError: If no API key is configured
            PricingSourceError: On HTTP errors or malformed responses
        """
        if estimate_type == EstimateType.UNIT_PRICE:
            endpoint_body: Dict[str, Any] = {"unit_quantity": quantity}
        else:
            endpoint_body = {"call_quantity": max(1, round(quantity))}

        body = {
            "estimate_type": estimate_type.value,
            "endpoints": {endpoint_id: endpoint_body},
        }
        try:
            response = self.client.post(
                f"{self.base_url}/models/pricing/estimate",
                json=body,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise PricingSourceError(f"Failed to estimate pricing: {e}")

        if response.is_error:
            raise PricingSourceError(f"Failed to estimate pricing: {response.status_code}")

        try:
            data = response.json()
            return EstimateQuote(
                cost=to_decimal(data["total_cost"], "total_cost"),
                currency=str(data.get("currency") or "USD"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise PricingSourceError(f"Malformed estimate response: {e}")


class FixturePricingSource:
    """PricingSource backed by a local JSON file in the API's format.

    Used for offline runs and end-to-end tests; selected by setting
    FALCON_PRICING_FIXTURE.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def list_prices(self, endpoint_ids: Sequence[str]) -> List[PriceEntry]:
        """Return fixture prices for the requested endpoints.

        Raises:
            PricingSourceError: If the fixture is unreadable or lacks an id
        """
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PricingSourceError(f"Failed to load pricing fixture: {self.path}. {e}")

        by_id = {entry.endpoint_id: entry for entry in _parse_price_rows(data)}
        results = []
        for endpoint_id in endpoint_ids:
            if endpoint_id not in by_id:
                raise PricingSourceError(
                    f"Failed to load pricing fixture: {self.path}. "
                    f"Pricing fixture missing endpoint: {endpoint_id}"
                )
            results.append(by_id[endpoint_id])
        return results


def pricing_source_from_env(default: PricingSource) -> PricingSource:
    """The fixture source when FALCON_PRICING_FIXTURE is set, else ``default``."""
    fixture_path = os.environ.get(PRICING_FIXTURE_ENV)
    if fixture_path:
        logger.debug("Using pricing fixture %s", fixture_path)
        return FixturePricingSource(Path(fixture_path))
    return default
