"""
Tagged result variants.

Used wherever an operation can degrade instead of failing: parsing
persisted JSON and walking the estimation tiers.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying a human-readable reason."""
    reason: str

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
