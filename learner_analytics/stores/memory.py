# learner_analytics/stores/memory.py
from collections import defaultdict
from typing import Dict, List, Tuple

from learner_analytics.models.enums import BehaviorType
from learner_analytics.models.records import BehaviorEvent, CompetencyRecord, PerformanceEvent
from learner_analytics.stores.base import LearnerStore
from learner_analytics.utils.logger import logger


class InMemoryLearnerStore(LearnerStore):
    """Process-local store for tests and local runs. Records are copied in and out."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._competencies: Dict[Tuple[str, str], CompetencyRecord] = {}
        self._performance: Dict[str, List[PerformanceEvent]] = defaultdict(list)
        self._behavior: Dict[str, List[BehaviorEvent]] = defaultdict(list)

    async def get_competency(self, user_id, topic=None):
        if topic is not None:
            record = self._competencies.get((user_id, topic))
            return record.model_copy(deep=True) if record else None
        return [
            record.model_copy(deep=True)
            for (uid, _), record in self._competencies.items()
            if uid == user_id
        ]

    async def put_competency(self, user_id, topic, record):
        stored = record.model_copy(deep=True, update={"user_id": user_id, "topic": topic})
        self._competencies[(user_id, topic)] = stored
        logger.debug(f"Stored competency for {user_id}/{topic}: level={stored.overall_level}")
        return stored.model_copy(deep=True)

    async def log_performance_event(self, user_id, event):
        self._performance[user_id].append(event)
        return event

    async def query_performance_events(self, user_id, topic=None, since_days=None, limit=None):
        cutoff = self._cutoff(since_days)
        events = sorted(self._performance.get(user_id, []), key=lambda e: e.timestamp)
        if cutoff is not None:
            events = [e for e in events if e.timestamp >= cutoff]
        if topic is not None:
            events = [e for e in events if e.topic == topic]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    async def log_behavior_event(self, user_id, event):
        self._behavior[user_id].append(event)
        return event

    async def query_behavior_events(self, user_id, behavior_type: BehaviorType | None = None, since_days=None):
        cutoff = self._cutoff(since_days)
        events = sorted(self._behavior.get(user_id, []), key=lambda e: e.timestamp)
        if cutoff is not None:
            events = [e for e in events if e.timestamp >= cutoff]
        if behavior_type is not None:
            events = [e for e in events if e.behavior_type == behavior_type]
        return events
