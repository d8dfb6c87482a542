"""
Static model catalog and flat-rate pricing.

Maps model aliases to their fal endpoints and holds the hard-coded
approximate prices used when no dynamic pricing is obtainable.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class ModelType(Enum):
    """Whether a model creates images or transforms existing ones."""
    GENERATION = "generation"
    UTILITY = "utility"


@dataclass(frozen=True)
class ModelSpec:
    """Catalog entry for a single model alias."""
    name: str
    endpoint: str
    type: ModelType
    pricing_label: str  # Human readable, shown by `falcon-cost models`
    flat_rate: Decimal  # Per image (or per call for utilities)
    flat_rate_4k: Optional[Decimal] = None  # Overrides flat_rate at 4K

    def rate_for(self, resolution: Optional[str]) -> Decimal:
        """Flat rate for a single image at the given resolution."""
        if resolution == "4K" and self.flat_rate_4k is not None:
            return self.flat_rate_4k
        return self.flat_rate


@dataclass(frozen=True)
class PriceCatalog:
    """Fixed catalog of supported models."""
    models: Dict[str, ModelSpec]

    def get_model(self, model: str) -> ModelSpec:
        """Get the catalog entry for a model alias.

        Raises:
            ValueError: If model is not supported
        """
        if model not in self.models:
            raise ValueError(f"Unsupported model: {model}")
        return self.models[model]

    def endpoint_for(self, model: str) -> Optional[str]:
        """Endpoint id for a model alias, or None when unknown."""
        spec = self.models.get(model)
        return spec.endpoint if spec else None

    def endpoints(self) -> List[str]:
        return [spec.endpoint for spec in self.models.values()]

    def aliases(self, model_type: Optional[ModelType] = None) -> List[str]:
        return [
            alias for alias, spec in self.models.items()
            if model_type is None or spec.type == model_type
        ]

    def fallback_cost(
        self,
        model: str,
        resolution: Optional[str] = None,
        num_images: int = 1
    ) -> Decimal:
        """Flat-rate cost for ``num_images`` images.

        Unknown models cost zero so estimation never blocks the caller.
        Exactly linear in ``num_images``.
        """
        spec = self.models.get(model)
        if spec is None:
            return Decimal("0")
        return spec.rate_for(resolution) * num_images


# Fixed catalog - flat rates are approximations of the published prices
CATALOG = PriceCatalog({
    "gpt": ModelSpec(
        name="GPT Image 1.5",
        endpoint="fal-ai/gpt-image-1.5",
        type=ModelType.GENERATION,
        pricing_label="$0.01-$0.20/image",
        flat_rate=Decimal("0.13"),  # high quality default
    ),
    "banana": ModelSpec(
        name="Nano Banana Pro",
        endpoint="fal-ai/nano-banana-pro",
        type=ModelType.GENERATION,
        pricing_label="$0.15-$0.30/image",
        flat_rate=Decimal("0.15"),
        flat_rate_4k=Decimal("0.30"),
    ),
    "gemini": ModelSpec(
        name="Gemini 2.5 Flash",
        endpoint="fal-ai/gemini-25-flash-image",
        type=ModelType.GENERATION,
        pricing_label="$0.039/image",
        flat_rate=Decimal("0.039"),
    ),
    "gemini3": ModelSpec(
        name="Gemini 3 Pro",
        endpoint="fal-ai/gemini-3-pro-image-preview",
        type=ModelType.GENERATION,
        pricing_label="$0.15-$0.30/image",
        flat_rate=Decimal("0.15"),
        flat_rate_4k=Decimal("0.30"),
    ),
    "flux2": ModelSpec(
        name="Flux 2",
        endpoint="fal-ai/flux-2",
        type=ModelType.GENERATION,
        pricing_label="$0.04-$0.06/image",
        flat_rate=Decimal("0.05"),
    ),
    "flux2Flash": ModelSpec(
        name="Flux 2 Flash",
        endpoint="fal-ai/flux-2/flash",
        type=ModelType.GENERATION,
        pricing_label="$0.015-$0.025/image",
        flat_rate=Decimal("0.02"),
    ),
    "flux2Turbo": ModelSpec(
        name="Flux 2 Turbo",
        endpoint="fal-ai/flux-2/turbo",
        type=ModelType.GENERATION,
        pricing_label="$0.03-$0.05/image",
        flat_rate=Decimal("0.035"),
    ),
    "imagine": ModelSpec(
        name="Grok Imagine",
        endpoint="xai/grok-imagine-image",
        type=ModelType.GENERATION,
        pricing_label="$0.04/image",
        flat_rate=Decimal("0.04"),
    ),
    "clarity": ModelSpec(
        name="Clarity Upscaler",
        endpoint="fal-ai/clarity-upscaler",
        type=ModelType.UTILITY,
        pricing_label="~$0.02/image",
        flat_rate=Decimal("0.02"),
    ),
    "crystal": ModelSpec(
        name="Crystal Upscaler",
        endpoint="clarityai/crystal-upscaler",
        type=ModelType.UTILITY,
        pricing_label="$0.016/megapixel",
        flat_rate=Decimal("0.02"),
    ),
    "rmbg": ModelSpec(
        name="BiRefNet (Background Removal)",
        endpoint="fal-ai/birefnet",
        type=ModelType.UTILITY,
        pricing_label="~$0.02/image",
        flat_rate=Decimal("0.02"),
    ),
    "bria": ModelSpec(
        name="Bria RMBG 2.0",
        endpoint="fal-ai/bria/background/remove",
        type=ModelType.UTILITY,
        pricing_label="$0.018/image",
        flat_rate=Decimal("0.02"),
    ),
})
