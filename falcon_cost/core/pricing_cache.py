"""
On-disk cache of per-endpoint unit prices.

Prices are refreshed from the pricing source only when the cache is
stale or lacks a requested endpoint. Network failures never propagate
from the lookup path: the last known prices are returned instead.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..storage import atomic
from ..storage.atomic import ReadStatus
from .models import PriceEntry
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=6)
BATCH_SIZE = 50


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def chunk(items: Sequence[str], size: int) -> List[List[str]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


@dataclass
class PricingSnapshot:
    """Contents of the pricing cache file."""
    fetched_at: str
    prices: Dict[str, PriceEntry] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fetchedAt": self.fetched_at,
            "prices": {
                endpoint_id: entry.to_dict()
                for endpoint_id, entry in self.prices.items()
            },
        }


def parse_snapshot(raw: Any) -> Result:
    """Validate a cache document.

    Returns:
        Ok(PricingSnapshot) or Err(reason). Individual malformed price
        entries are dropped rather than invalidating the whole snapshot.
    """
    if not isinstance(raw, dict):
        return Err("cache document is not an object")
    if not isinstance(raw.get("fetchedAt"), str):
        return Err("cache 'fetchedAt' missing or not a string")
    prices = raw.get("prices")
    if not isinstance(prices, dict):
        return Err("cache 'prices' missing or not an object")

    entries: Dict[str, PriceEntry] = {}
    for endpoint_id, data in prices.items():
        try:
            entries[endpoint_id] = PriceEntry.from_dict(data)
        except ValueError as e:
            logger.warning("Dropping malformed cached price for %s: %s", endpoint_id, e)
    return Ok(PricingSnapshot(fetched_at=raw["fetchedAt"], prices=entries))


class PricingCache:
    """TTL-bounded price cache backed by a JSON file."""

    def __init__(
        self,
        path: Path,
        source,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow
    ):
        """Initialize the cache.

        Args:
            path: Cache file location
            source: PricingSource used for refreshes
            ttl: Freshness window
            clock: Returns the current aware datetime
        """
        self.path = Path(path)
        self.source = source
        self.ttl = ttl
        self.clock = clock

    def load(self) -> Optional[PricingSnapshot]:
        """Read the cache file; None when missing or unusable."""
        result = atomic.read_json(self.path)
        if result.status == ReadStatus.ABSENT:
            return None
        if result.status == ReadStatus.CORRUPT:
            logger.warning("Ignoring corrupt pricing cache %s: %s", self.path, result.reason)
            return None

        parsed = parse_snapshot(result.value)
        if not parsed.ok:
            logger.warning("Ignoring invalid pricing cache %s: %s", self.path, parsed.reason)
            return None
        return parsed.value

    def is_fresh(self, snapshot: Optional[PricingSnapshot]) -> bool:
        if snapshot is None:
            return False
        fetched_at = parse_timestamp(snapshot.fetched_at)
        if fetched_at is None:
            return False
        return self.clock() - fetched_at < self.ttl

    def _fetch(self, endpoint_ids: Sequence[str]) -> Dict[str, PriceEntry]:
        fetched: Dict[str, PriceEntry] = {}
        for batch in chunk(endpoint_ids, BATCH_SIZE):
            for entry in self.source.list_prices(batch):
                fetched[entry.endpoint_id] = entry
        return fetched

    def _save(self, prices: Dict[str, PriceEntry]) -> None:
        snapshot = PricingSnapshot(fetched_at=format_timestamp(self.clock()), prices=prices)
        atomic.write_json(self.path, snapshot.to_dict())

    def get_or_refresh(
        self,
        endpoint_ids: Sequence[str],
        force_refresh: bool = False
    ) -> Dict[str, PriceEntry]:
        """Prices for ``endpoint_ids``, refreshing only when needed.

        Never raises for source failures: the last known prices (possibly
        empty or stale) are returned. A failure to persist refreshed
        prices is logged and the refreshed map is still returned.

        Args:
            endpoint_ids: Endpoints the caller needs
            force_refresh: Fetch even if the cache is fresh and complete

        Returns:
            Map of endpoint id to PriceEntry; may lack requested ids
        """
        snapshot = self.load()
        cached = dict(snapshot.prices) if snapshot else {}
        missing = [endpoint_id for endpoint_id in endpoint_ids if endpoint_id not in cached]

        if not force_refresh and self.is_fresh(snapshot) and not missing:
            return cached

        try:
            fetched = self._fetch(endpoint_ids)
        except Exception as e:
            logger.warning("Pricing refresh failed, using cached prices: %s", e)
            return cached

        merged = {**cached, **fetched}
        try:
            self._save(merged)
        except OSError as e:
            logger.error("Could not persist pricing cache %s: %s", self.path, e)
        return merged

    def refresh(self, endpoint_ids: Sequence[str]) -> Dict[str, PriceEntry]:
        """Force a refresh and persist it.

        Unlike get_or_refresh, source and write failures propagate so an
        explicit refresh can report them.
        """
        snapshot = self.load()
        cached = dict(snapshot.prices) if snapshot else {}
        fetched = self._fetch(endpoint_ids)
        merged = {**cached, **fetched}
        self._save(merged)
        logger.info("Refreshed pricing for %d endpoint(s)", len(fetched))
        return merged
