"""
Cost tracker facade.

Wires configuration, credentials, the pricing client, the price cache,
the estimation engine and the history ledger together for callers such
as the CLI.
"""

from datetime import timedelta
from typing import Optional

from ..config.credentials import CredentialProvider, EnvCredentialProvider
from ..config.loader import FalconConfig, load_config
from ..core.estimator import EstimationEngine
from ..core.models import CostEstimate
from ..core.pricing import CATALOG, PriceCatalog
from ..core.pricing_cache import PricingCache
from ..storage.models import Generation, HistoryLedger
from ..storage.repository import CostLedger
from .fal_pricing import FalPricingClient, pricing_source_from_env


class CostTracker:
    """Estimates costs before operations and records them afterwards.

    Estimation never raises. Recording raises if the ledger cannot be
    written, so a spend record is never lost silently.
    """

    def __init__(
        self,
        config: Optional[FalconConfig] = None,
        credentials: Optional[CredentialProvider] = None,
        client: Optional[FalPricingClient] = None,
        catalog: PriceCatalog = CATALOG
    ):
        """Initialize the tracker.

        Args:
            config: Settings (defaults to the user's config file)
            credentials: API key provider (defaults to FAL_KEY / config)
            client: Pricing client (built from config when omitted)
            catalog: Model catalog and flat rates
        """
        self.config = config or load_config()
        self.credentials = credentials or EnvCredentialProvider(self.config)
        self.client = client or FalPricingClient(
            self.credentials,
            base_url=self.config.pricing_base_url,
        )
        self.catalog = catalog
        self.cache = PricingCache(
            self.config.pricing_cache_path,
            pricing_source_from_env(self.client),
            ttl=timedelta(hours=self.config.pricing_ttl_hours),
        )
        self.engine = EstimationEngine(self.cache, self.client, catalog=catalog)
        self.ledger = CostLedger(
            self.config.history_path,
            history_limit=self.config.history_limit,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "CostTracker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def estimate_generation_cost(
        self,
        model: str,
        resolution: Optional[str] = None,
        num_images: int = 1
    ) -> CostEstimate:
        return self.engine.estimate_generation_cost(model, resolution, num_images)

    def estimate_upscale_cost(
        self,
        model: str,
        scale_factor: float,
        input_width: Optional[int] = None,
        input_height: Optional[int] = None
    ) -> CostEstimate:
        return self.engine.estimate_upscale_cost(model, scale_factor, input_width, input_height)

    def estimate_background_removal_cost(self, model: str) -> CostEstimate:
        return self.engine.estimate_background_removal_cost(model)

    def refresh_pricing(self, models: Optional[list] = None) -> dict:
        """Force-refresh cached prices for ``models`` (all catalog models by default).

        Raises:
            ValueError: If a model alias is unknown
            PricingSourceError, MissingCredentialError, OSError: On failure
        """
        if models:
            endpoint_ids = [self.catalog.get_model(model).endpoint for model in models]
        else:
            endpoint_ids = self.catalog.endpoints()
        return self.cache.refresh(endpoint_ids)

    def add_generation(self, generation: Generation) -> HistoryLedger:
        return self.ledger.add_generation(generation)

    def get_last_generation(self) -> Optional[Generation]:
        return self.ledger.get_last_generation()

    def load_history(self) -> HistoryLedger:
        return self.ledger.load_history()


def estimate_generation_cost(
    model: str,
    resolution: Optional[str] = None,
    num_images: int = 1,
    config: Optional[FalconConfig] = None
) -> CostEstimate:
    """One-shot generation estimate using the user's configuration."""
    with CostTracker(config) as tracker:
        return tracker.estimate_generation_cost(model, resolution, num_images)


def estimate_upscale_cost(
    model: str,
    scale_factor: float,
    input_width: Optional[int] = None,
    input_height: Optional[int] = None,
    config: Optional[FalconConfig] = None
) -> CostEstimate:
    """One-shot upscale estimate using the user's configuration."""
    with CostTracker(config) as tracker:
        return tracker.estimate_upscale_cost(model, scale_factor, input_width, input_height)


def estimate_background_removal_cost(
    model: str,
    config: Optional[FalconConfig] = None
) -> CostEstimate:
    """One-shot background-removal estimate using the user's configuration."""
    with CostTracker(config) as tracker:
        return tracker.estimate_background_removal_cost(model)
