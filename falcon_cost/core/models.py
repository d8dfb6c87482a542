"""
Pricing and estimate data models.

Defines the value types that flow between the pricing cache, the
estimation engine and the cost ledger, with their JSON representations.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional


class EstimateKind(Enum):
    """Operations that can be priced."""
    GENERATION = "generation"
    UPSCALE = "upscale"
    BACKGROUND_REMOVAL = "background_removal"


class EstimateType(Enum):
    """How the estimate source is asked to price a request."""
    UNIT_PRICE = "unit_price"
    HISTORICAL_API_PRICE = "historical_api_price"


class EstimateSource(Enum):
    """Provenance of an estimate, from most to least trusted."""
    ESTIMATE = "estimate"    # Live answer from the estimate API
    PRICING = "pricing"      # Cached unit price x quantity
    FALLBACK = "fallback"    # Static flat-rate table


def to_decimal(value: Any, field_name: str) -> Decimal:
    """Convert a JSON number (or numeric string) to Decimal.

    Floats go through ``str`` so 0.2 stays 0.2 rather than its binary
    expansion.

    Raises:
        ValueError: If the value is not numeric
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValueError(f"'{field_name}' must be a number")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"'{field_name}' must be a number")
    if not result.is_finite():
        raise ValueError(f"'{field_name}' must be finite")
    return result


@dataclass(frozen=True)
class PriceEntry:
    """Unit price for a single endpoint."""
    endpoint_id: str
    unit_price: Decimal
    unit: str
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpointId": self.endpoint_id,
            "unitPrice": float(self.unit_price),
            "unit": self.unit,
            "currency": self.currency,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceEntry":
        """Build an entry from its cache-file representation.

        Raises:
            ValueError: If a required field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("price entry must be an object")
        for key in ("endpointId", "unit", "currency"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"price entry '{key}' must be a string")
        if "unitPrice" not in data:
            raise ValueError("price entry missing 'unitPrice'")
        return cls(
            endpoint_id=data["endpointId"],
            unit_price=to_decimal(data["unitPrice"], "unitPrice"),
            unit=data["unit"],
            currency=data["currency"],
        )


@dataclass(frozen=True)
class EstimateQuote:
    """Answer from the live estimate API."""
    cost: Decimal
    currency: str


@dataclass(frozen=True)
class CostEstimate:
    """Estimated cost of one operation together with its provenance."""
    amount: Decimal
    currency: str
    unit_quantity: float
    estimate_type: EstimateType
    estimate_source: EstimateSource
    endpoint_id: str
    unit_price: Optional[Decimal] = None
    unit: Optional[str] = None

    @property
    def cost(self) -> float:
        """Amount as a float, the form the ledger accumulates."""
        return float(self.amount)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "amount": float(self.amount),
            "currency": self.currency,
            "unitQuantity": self.unit_quantity,
            "estimateType": self.estimate_type.value,
            "estimateSource": self.estimate_source.value,
            "endpointId": self.endpoint_id,
        }
        if self.unit_price is not None:
            data["unitPrice"] = float(self.unit_price)
        if self.unit is not None:
            data["unit"] = self.unit
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], amount: Any = None) -> "CostEstimate":
        """Rebuild a snapshot stored in a history file.

        Older snapshots carry no ``amount``; the caller passes the
        generation's own cost in that case.

        Raises:
            ValueError: If the snapshot is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("costDetails must be an object")
        if not isinstance(data.get("currency"), str):
            raise ValueError("costDetails 'currency' must be a string")
        if not isinstance(data.get("endpointId"), str):
            raise ValueError("costDetails 'endpointId' must be a string")

        try:
            estimate_type = EstimateType(data.get("estimateType"))
            estimate_source = EstimateSource(data.get("estimateSource"))
        except ValueError as e:
            raise ValueError(f"costDetails has invalid tag: {e}")

        raw_amount = data.get("amount", amount)
        unit_price = data.get("unitPrice")
        unit = data.get("unit")
        return cls(
            amount=to_decimal(raw_amount if raw_amount is not None else 0, "amount"),
            currency=data["currency"],
            unit_quantity=float(to_decimal(data.get("unitQuantity", 1), "unitQuantity")),
            estimate_type=estimate_type,
            estimate_source=estimate_source,
            endpoint_id=data["endpointId"],
            unit_price=to_decimal(unit_price, "unitPrice") if unit_price is not None else None,
            unit=unit if isinstance(unit, str) else None,
        )
