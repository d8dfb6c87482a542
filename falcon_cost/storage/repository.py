"""
Repository for the generation history ledger.

Handles loading, validating, migrating and appending to the on-disk
history of generations and their costs.
"""

import copy
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ..config.loader import DEFAULT_HISTORY_LIMIT, load_config
from ..core.result import Err, Ok, Result
from . import atomic
from .atomic import ReadStatus
from .models import DEFAULT_CURRENCY, CostTotals, Generation, HistoryLedger

logger = logging.getLogger(__name__)

_TOTAL_KEYS = ("session", "today", "allTime")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_legacy_totals(total_cost: Any) -> bool:
    """Old files kept one flat ``{session, today, allTime}`` in USD."""
    if not isinstance(total_cost, dict) or not total_cost:
        return False
    return set(total_cost) <= set(_TOTAL_KEYS) and all(
        _is_number(value) for value in total_cost.values()
    )


def migrate(raw: Any) -> Any:
    """Bring a history document up to the current schema.

    Pure and idempotent: the input is not modified and migrating a
    current document returns an equal copy.
    """
    if not isinstance(raw, dict):
        return raw
    migrated = copy.deepcopy(raw)
    if _is_legacy_totals(migrated.get("totalCost")):
        migrated["totalCost"] = {DEFAULT_CURRENCY: migrated["totalCost"]}
    return migrated


def _parse_totals(currency: str, data: Any) -> CostTotals:
    if not isinstance(data, dict):
        raise ValueError(f"totalCost '{currency}' must be an object")
    values = {}
    for key in _TOTAL_KEYS:
        value = data.get(key, 0)
        if not _is_number(value):
            raise ValueError(f"totalCost '{currency}.{key}' must be a number")
        values[key] = float(value)
    return CostTotals(
        session=values["session"],
        today=values["today"],
        all_time=values["allTime"],
    )


def parse_history(raw: Any) -> Result:
    """Validate a (migrated) history document.

    Returns:
        Ok(HistoryLedger), or Err(reason) when the document's overall
        shape is wrong. Malformed individual generations are skipped with
        a warning so one bad record does not discard the whole history.
    """
    if not isinstance(raw, dict):
        return Err("history document is not an object")

    generations_data = raw.get("generations")
    if not isinstance(generations_data, list):
        return Err("'generations' missing or not a list")

    total_cost_data = raw.get("totalCost")
    if not isinstance(total_cost_data, dict):
        return Err("'totalCost' missing or not an object")

    last_session_date = raw.get("lastSessionDate")
    if not isinstance(last_session_date, str):
        return Err("'lastSessionDate' missing or not a string")

    try:
        total_cost = {
            currency: _parse_totals(currency, data)
            for currency, data in total_cost_data.items()
        }
    except ValueError as e:
        return Err(str(e))

    generations = []
    for index, data in enumerate(generations_data):
        try:
            generations.append(Generation.from_dict(data))
        except ValueError as e:
            logger.warning("Skipping malformed generation at index %d: %s", index, e)

    return Ok(HistoryLedger(
        generations=generations,
        total_cost=total_cost,
        last_session_date=last_session_date,
    ))


def apply_day_rollover(ledger: HistoryLedger, today: str) -> HistoryLedger:
    """Reset session and daily totals when the calendar day has changed.

    All-time totals are never reset.
    """
    if ledger.last_session_date != today:
        for totals in ledger.total_cost.values():
            totals.reset_day()
        ledger.last_session_date = today
    return ledger


def utc_today() -> date:
    """Calendar date in UTC, independent of the host time zone."""
    return datetime.now(timezone.utc).date()


def default_history(today: str) -> HistoryLedger:
    return HistoryLedger(
        generations=[],
        total_cost={DEFAULT_CURRENCY: CostTotals()},
        last_session_date=today,
    )


class CostLedger:
    """Append-only, size-bounded history of generations and their cost.

    Each write replaces the file atomically. Concurrent processes are not
    coordinated: the last writer wins.
    """

    def __init__(
        self,
        history_path: Union[str, Path],
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        today: Callable[[], date] = utc_today
    ):
        """Initialize the ledger.

        Args:
            history_path: Path to the history JSON file
            history_limit: Maximum number of generations retained
            today: Returns the current UTC calendar date
        """
        if history_limit <= 0:
            raise ValueError("history_limit must be > 0")
        self.history_path = Path(history_path)
        self.history_limit = history_limit
        self._today = today

    def today(self) -> str:
        return self._today().isoformat()

    def load_history(self) -> HistoryLedger:
        """Load the ledger, migrated and rolled over to today.

        Never raises: a missing file gives an empty ledger, and an
        unreadable or invalid one is logged and replaced by an empty
        ledger.
        """
        today = self.today()
        result = atomic.read_json(self.history_path)
        if result.status == ReadStatus.ABSENT:
            return default_history(today)
        if result.status == ReadStatus.CORRUPT:
            logger.warning("History file %s is corrupt, starting fresh: %s", self.history_path, result.reason)
            return default_history(today)

        parsed = parse_history(migrate(result.value))
        if not parsed.ok:
            logger.warning("History file %s is invalid, starting fresh: %s", self.history_path, parsed.reason)
            return default_history(today)
        return apply_day_rollover(parsed.value, today)

    def add_generation(self, generation: Generation) -> HistoryLedger:
        """Append a generation and add its cost to the totals.

        Returns:
            The ledger as persisted

        Raises:
            OSError: If the history file cannot be written. A cost record
                is never dropped silently.
        """
        ledger = self.load_history()

        ledger.generations.append(generation)
        ledger.totals_for(generation.currency).add(generation.cost)
        ledger.last_session_date = self.today()

        overflow = len(ledger.generations) - self.history_limit
        if overflow > 0:
            del ledger.generations[:overflow]

        atomic.write_json(self.history_path, ledger.to_dict())
        logger.debug(
            "Recorded generation %s (%.4f %s)", generation.id, generation.cost, generation.currency
        )
        return ledger

    def get_last_generation(self) -> Optional[Generation]:
        generations = self.load_history().generations
        return generations[-1] if generations else None

    def get_totals(self, currency: Optional[str] = None) -> Dict[str, CostTotals]:
        """Per-currency totals, optionally narrowed to one currency."""
        totals = self.load_history().total_cost
        if currency is None:
            return totals
        return {currency: totals.get(currency, CostTotals())}


def get_ledger(history_path: Optional[Union[str, Path]] = None) -> CostLedger:
    """Build a ledger from the user's configuration.

    Args:
        history_path: Override for the history file location

    Returns:
        A CostLedger honouring the configured history limit
    """
    config = load_config()
    return CostLedger(
        history_path or config.history_path,
        history_limit=config.history_limit,
    )


def load_history(history_path: Optional[Union[str, Path]] = None) -> HistoryLedger:
    return get_ledger(history_path).load_history()


def add_generation(
    generation: Generation,
    history_path: Optional[Union[str, Path]] = None
) -> HistoryLedger:
    return get_ledger(history_path).add_generation(generation)


def get_last_generation(history_path: Optional[Union[str, Path]] = None) -> Optional[Generation]:
    return get_ledger(history_path).get_last_generation()
