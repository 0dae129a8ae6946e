# Store collaborator interface; every component reads and writes learner data only through this
# learner_analytics/stores/base.py
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, List

from learner_analytics.models.enums import BehaviorType
from learner_analytics.models.records import (
    BehaviorEvent,
    CompetencyRecord,
    PerformanceEvent,
    utc_now,
)


class StorageUnavailable(Exception):
    """Raised by a store when a read or write cannot be completed."""


class LearnerStore(ABC):
    """
    Keyed record store for competency records, performance events and
    behavior events. Implementations do no locking or versioning; callers
    serialize writes per (user_id, topic).
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock

    def _cutoff(self, since_days: float | None) -> datetime | None:
        if since_days is None:
            return None
        return self.clock() - timedelta(days=since_days)

    @abstractmethod
    async def get_competency(
        self, user_id: str, topic: str | None = None
    ) -> CompetencyRecord | None | List[CompetencyRecord]:
        """One record (or None) when topic is given, otherwise all records of the user."""

    @abstractmethod
    async def put_competency(self, user_id: str, topic: str, record: CompetencyRecord) -> CompetencyRecord:
        """Overwrites the record stored under (user_id, topic)."""

    @abstractmethod
    async def log_performance_event(self, user_id: str, event: PerformanceEvent) -> PerformanceEvent:
        ...

    @abstractmethod
    async def query_performance_events(
        self,
        user_id: str,
        topic: str | None = None,
        since_days: float | None = None,
        limit: int | None = None,
    ) -> List[PerformanceEvent]:
        """
        Events in chronological order (oldest first). With a limit, only the
        most recent `limit` events are returned, still oldest first.
        """

    @abstractmethod
    async def log_behavior_event(self, user_id: str, event: BehaviorEvent) -> BehaviorEvent:
        ...

    @abstractmethod
    async def query_behavior_events(
        self,
        user_id: str,
        behavior_type: BehaviorType | None = None,
        since_days: float | None = None,
    ) -> List[BehaviorEvent]:
        """Events in chronological order (oldest first)."""
