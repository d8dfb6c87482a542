"""
Cost estimation with graceful degradation.

Estimates are produced by the first tier that succeeds:

1. Live estimate - the pricing API quotes the request directly
2. Cached pricing - cached unit price x unit quantity
3. Fallback - static flat-rate table

The fallback tier always succeeds, so estimation never raises and never
blocks the operation being priced.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Optional

from .models import (
    CostEstimate,
    EstimateKind,
    EstimateSource,
    EstimateType,
    PriceEntry,
)
from .pricing import CATALOG, PriceCatalog
from .pricing_cache import PricingCache
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

FALLBACK_CURRENCY = "USD"


def is_compute_unit(unit: Optional[str]) -> bool:
    """Units billed by compute time rather than output."""
    if not unit:
        return False
    normalized = unit.lower()
    return "gpu" in normalized or "compute" in normalized or "second" in normalized


def is_megapixel_unit(unit: Optional[str]) -> bool:
    if not unit:
        return False
    normalized = unit.lower()
    return "megapixel" in normalized or "mp" in normalized


@dataclass(frozen=True)
class EstimateParams:
    """Request parameters that influence cost."""
    resolution: Optional[str] = None
    num_images: int = 1
    input_width: Optional[int] = None
    input_height: Optional[int] = None
    scale_factor: float = 1.0


@dataclass(frozen=True)
class PricingRequest:
    """Everything the tiers need to price one request."""
    kind: EstimateKind
    model: str
    params: EstimateParams
    endpoint_id: str
    entry: Optional[PriceEntry]
    estimate_type: EstimateType
    unit_quantity: float
    call_quantity: int


def unit_quantity_for(
    kind: EstimateKind,
    params: EstimateParams,
    entry: Optional[PriceEntry]
) -> float:
    """Billing units consumed by a request.

    Upscales priced per megapixel are charged on output area, which grows
    with the square of the scale factor.
    """
    if kind == EstimateKind.GENERATION:
        return params.num_images
    if kind == EstimateKind.UPSCALE:
        unit = entry.unit if entry else None
        if is_megapixel_unit(unit) and params.input_width and params.input_height:
            input_mp = (params.input_width * params.input_height) / 1_000_000
            return input_mp * params.scale_factor * params.scale_factor
        return 1
    return 1


class EstimationEngine:
    """Prices generation, upscale and background-removal requests."""

    def __init__(
        self,
        cache: PricingCache,
        estimate_source,
        catalog: PriceCatalog = CATALOG
    ):
        """Initialize the engine.

        Args:
            cache: Pricing cache used for unit prices
            estimate_source: EstimateSource for live quotes
            catalog: Model catalog and flat rates
        """
        self.cache = cache
        self.estimate_source = estimate_source
        self.catalog = catalog
        self.tiers: List[Callable[[PricingRequest], Result]] = [
            self._live_estimate,
            self._cached_pricing,
            self._fallback,
        ]

    def estimate(
        self,
        kind: EstimateKind,
        model: str,
        params: Optional[EstimateParams] = None
    ) -> CostEstimate:
        """Estimate the cost of one request.

        Args:
            kind: Operation being priced
            model: Catalog model alias
            params: Cost-relevant request parameters

        Returns:
            CostEstimate from the most trusted tier that succeeded
        """
        params = params or EstimateParams()
        endpoint_id = self.catalog.endpoint_for(model)
        if endpoint_id is None:
            logger.debug("Unknown model %s, returning zero-cost fallback", model)
            return CostEstimate(
                amount=Decimal("0"),
                currency=FALLBACK_CURRENCY,
                unit_quantity=self._fallback_quantity(kind, params),
                estimate_type=EstimateType.UNIT_PRICE,
                estimate_source=EstimateSource.FALLBACK,
                endpoint_id=model,
            )

        request = self._build_request(kind, model, params, endpoint_id)
        for tier in self.tiers:
            outcome = tier(request)
            if outcome.ok:
                return outcome.value
            logger.debug("%s tier skipped for %s: %s", tier.__name__.strip("_"), endpoint_id, outcome.reason)

        # Unreachable while _fallback is the last tier
        raise RuntimeError(f"No pricing tier produced an estimate for {model}")

    def _build_request(
        self,
        kind: EstimateKind,
        model: str,
        params: EstimateParams,
        endpoint_id: str
    ) -> PricingRequest:
        entry = self._lookup_price(endpoint_id)
        unit_quantity = unit_quantity_for(kind, params, entry)

        if is_compute_unit(entry.unit if entry else None):
            estimate_type = EstimateType.HISTORICAL_API_PRICE
        else:
            estimate_type = EstimateType.UNIT_PRICE
        calls = params.num_images if kind == EstimateKind.GENERATION else 1

        return PricingRequest(
            kind=kind,
            model=model,
            params=params,
            endpoint_id=endpoint_id,
            entry=entry,
            estimate_type=estimate_type,
            unit_quantity=unit_quantity,
            call_quantity=max(1, round(calls or 1)),
        )

    def _lookup_price(self, endpoint_id: str) -> Optional[PriceEntry]:
        try:
            return self.cache.get_or_refresh([endpoint_id]).get(endpoint_id)
        except Exception as e:
            logger.warning("Pricing cache lookup failed for %s: %s", endpoint_id, e)
            return None

    def _live_estimate(self, request: PricingRequest) -> Result:
        if request.estimate_type == EstimateType.UNIT_PRICE:
            quantity = request.unit_quantity
        else:
            quantity = request.call_quantity
        try:
            quote = self.estimate_source.estimate(request.estimate_type, request.endpoint_id, quantity)
        except Exception as e:
            return Err(f"estimate source failed: {e}")

        entry = request.entry
        return Ok(CostEstimate(
            amount=quote.cost,
            currency=quote.currency,
            unit_quantity=request.unit_quantity,
            estimate_type=request.estimate_type,
            estimate_source=EstimateSource.ESTIMATE,
            endpoint_id=request.endpoint_id,
            unit_price=entry.unit_price if entry else None,
            unit=entry.unit if entry else None,
        ))

    def _cached_pricing(self, request: PricingRequest) -> Result:
        entry = request.entry
        if entry is None:
            return Err("no cached price")
        if request.estimate_type != EstimateType.UNIT_PRICE:
            return Err(f"compute-priced unit '{entry.unit}' needs a live estimate")

        amount = entry.unit_price * Decimal(str(request.unit_quantity))
        return Ok(CostEstimate(
            amount=amount,
            currency=entry.currency,
            unit_quantity=request.unit_quantity,
            estimate_type=request.estimate_type,
            estimate_source=EstimateSource.PRICING,
            endpoint_id=request.endpoint_id,
            unit_price=entry.unit_price,
            unit=entry.unit,
        ))

    def _fallback(self, request: PricingRequest) -> Result:
        quantity = self._fallback_quantity(request.kind, request.params)
        return Ok(CostEstimate(
            amount=self.catalog.fallback_cost(request.model, request.params.resolution, quantity),
            currency=FALLBACK_CURRENCY,
            unit_quantity=quantity,
            estimate_type=request.estimate_type,
            estimate_source=EstimateSource.FALLBACK,
            endpoint_id=request.endpoint_id,
        ))

    @staticmethod
    def _fallback_quantity(kind: EstimateKind, params: EstimateParams) -> int:
        return params.num_images if kind == EstimateKind.GENERATION else 1

    def estimate_generation_cost(
        self,
        model: str,
        resolution: Optional[str] = None,
        num_images: int = 1
    ) -> CostEstimate:
        return self.estimate(
            EstimateKind.GENERATION,
            model,
            EstimateParams(resolution=resolution, num_images=num_images),
        )

    def estimate_upscale_cost(
        self,
        model: str,
        scale_factor: float,
        input_width: Optional[int] = None,
        input_height: Optional[int] = None
    ) -> CostEstimate:
        return self.estimate(
            EstimateKind.UPSCALE,
            model,
            EstimateParams(
                input_width=input_width,
                input_height=input_height,
                scale_factor=scale_factor,
            ),
        )

    def estimate_background_removal_cost(self, model: str) -> CostEstimate:
        return self.estimate(EstimateKind.BACKGROUND_REMOVAL, model)
