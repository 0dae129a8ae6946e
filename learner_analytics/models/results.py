# learner_analytics/models/results.py
from typing import Generic, TypeVar

from pydantic import BaseModel

from learner_analytics.models.enums import StoreStatus

T = TypeVar("T")


class StoreResult(BaseModel, Generic[T]):
    """
    Outcome of a store read or write. Keeps "no data" and "storage failure"
    apart so callers can pick the right fallback.
    """
    status: StoreStatus
    value: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, value: T) -> "StoreResult[T]":
        return cls(status=StoreStatus.OK, value=value)

    @classmethod
    def not_found(cls) -> "StoreResult[T]":
        return cls(status=StoreStatus.NOT_FOUND)

    @classmethod
    def unavailable(cls, error: Exception | str) -> "StoreResult[T]":
        return cls(status=StoreStatus.UNAVAILABLE, error=str(error))

    @property
    def is_ok(self) -> bool:
        return self.status == StoreStatus.OK

    def value_or(self, default: T) -> T:
        """Returns the value on success, otherwise the given default."""
        if self.status == StoreStatus.OK and self.value is not None:
            return self.value
        return default
