"""
Data models for the history ledger.

Defines generation records and the per-currency cost accumulators.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.models import CostEstimate

DEFAULT_CURRENCY = "USD"


@dataclass(frozen=True)
class Generation:
    """Immutable record of one completed generation or edit.

    Appended to the ledger once and never modified afterwards.
    """
    id: str
    prompt: str
    model: str
    aspect: str
    resolution: str
    output: str
    cost: float
    timestamp: str
    cost_details: Optional[CostEstimate] = None
    seed: Optional[int] = None
    edited_from: Optional[str] = None

    @classmethod
    def create(
        cls,
        prompt: str,
        model: str,
        aspect: str,
        resolution: str,
        output: str,
        estimate: Optional[CostEstimate] = None,
        cost: Optional[float] = None,
        seed: Optional[int] = None,
        edited_from: Optional[str] = None
    ) -> "Generation":
        """New record with a fresh UUID and the current UTC timestamp.

        The cost defaults to the estimate's amount.
        """
        if cost is None:
            cost = estimate.cost if estimate is not None else 0.0
        return cls(
            id=str(uuid.uuid4()),
            prompt=prompt,
            model=model,
            aspect=aspect,
            resolution=resolution,
            output=output,
            cost=float(cost),
            timestamp=datetime.now(timezone.utc).isoformat(),
            cost_details=estimate,
            seed=seed,
            edited_from=edited_from,
        )

    @property
    def currency(self) -> str:
        if self.cost_details is not None and self.cost_details.currency:
            return self.cost_details.currency
        return DEFAULT_CURRENCY

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "prompt": self.prompt,
            "model": self.model,
            "aspect": self.aspect,
            "resolution": self.resolution,
            "output": self.output,
            "cost": self.cost,
            "timestamp": self.timestamp,
        }
        if self.cost_details is not None:
            data["costDetails"] = self.cost_details.to_dict()
        if self.seed is not None:
            data["seed"] = self.seed
        if self.edited_from is not None:
            data["editedFrom"] = self.edited_from
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Generation":
        """Rebuild a record from the history file.

        Raises:
            ValueError: If a required field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("generation must be an object")
        for key in ("id", "prompt", "model", "output", "timestamp"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"generation '{key}' must be a string")
        cost = data.get("cost")
        if isinstance(cost, bool) or not isinstance(cost, (int, float)):
            raise ValueError("generation 'cost' must be a number")
        seed = data.get("seed")
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise ValueError("generation 'seed' must be an integer")

        details = data.get("costDetails")
        return cls(
            id=data["id"],
            prompt=data["prompt"],
            model=data["model"],
            aspect=str(data.get("aspect", "")),
            resolution=str(data.get("resolution", "")),
            output=data["output"],
            cost=float(cost),
            timestamp=data["timestamp"],
            cost_details=CostEstimate.from_dict(details, amount=cost) if details is not None else None,
            seed=seed,
            edited_from=data.get("editedFrom") if isinstance(data.get("editedFrom"), str) else None,
        )


@dataclass
class CostTotals:
    """Spend accumulators for one currency."""
    session: float = 0.0
    today: float = 0.0
    all_time: float = 0.0

    def add(self, amount: float) -> None:
        self.session += amount
        self.today += amount
        self.all_time += amount

    def reset_day(self) -> None:
        self.session = 0.0
        self.today = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"session": self.session, "today": self.today, "allTime": self.all_time}


@dataclass
class HistoryLedger:
    """Contents of the history file.

    Generations are stored oldest first.
    """
    generations: List[Generation] = field(default_factory=list)
    total_cost: Dict[str, CostTotals] = field(default_factory=dict)
    last_session_date: str = ""

    def totals_for(self, currency: str) -> CostTotals:
        """Accumulators for ``currency``, created zeroed on first use."""
        if currency not in self.total_cost:
            self.total_cost[currency] = CostTotals()
        return self.total_cost[currency]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generations": [generation.to_dict() for generation in self.generations],
            "totalCost": {
                currency: totals.to_dict()
                for currency, totals in self.total_cost.items()
            },
            "lastSessionDate": self.last_session_date,
        }
