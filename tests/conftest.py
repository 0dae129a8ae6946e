# tests/conftest.py
import logging
import os
import random
import sys
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from learner_analytics.models.enums import Difficulty
from learner_analytics.models.records import PerformanceEvent
from learner_analytics.services.aggregator import ContextAggregator
from learner_analytics.services.behavior import BehaviorMonitor
from learner_analytics.services.competency import CompetencyModel
from learner_analytics.services.performance import PerformanceAnalyzer
from learner_analytics.services.topic_catalog import TopicCatalog
from learner_analytics.stores.base import StorageUnavailable
from learner_analytics.stores.memory import InMemoryLearnerStore

START_TIME = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock shared by the store and the components under test."""

    def __init__(self, start: datetime = START_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FailingStore(InMemoryLearnerStore):
    """Store whose every operation fails, as if the database were down."""

    async def get_competency(self, user_id, topic=None):
        raise StorageUnavailable("database is down")

    async def put_competency(self, user_id, topic, record):
        raise StorageUnavailable("database is down")

    async def log_performance_event(self, user_id, event):
        raise StorageUnavailable("database is down")

    async def query_performance_events(self, user_id, topic=None, since_days=None, limit=None):
        raise StorageUnavailable("database is down")

    async def log_behavior_event(self, user_id, event):
        raise StorageUnavailable("database is down")

    async def query_behavior_events(self, user_id, behavior_type=None, since_days=None):
        raise StorageUnavailable("database is down")


def make_events(clock: FakeClock, outcomes: List[bool], topic: str = "algebra",
                spacing_minutes: int = 30, **fields) -> List[PerformanceEvent]:
    """Chronological events ending at the current clock time, one per outcome."""
    count = len(outcomes)
    return [
        PerformanceEvent(
            topic=topic,
            success=success,
            timestamp=clock() - timedelta(minutes=spacing_minutes * (count - 1 - i)),
            **fields,
        )
        for i, success in enumerate(outcomes)
    ]


async def log_events(store, user_id: str, events: List[PerformanceEvent]) -> None:
    for event in events:
        await store.log_performance_event(user_id, event)


# --- Fixtures ---

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> InMemoryLearnerStore:
    return InMemoryLearnerStore(clock=clock)


@pytest.fixture
def failing_store(clock) -> FailingStore:
    return FailingStore(clock=clock)


@pytest.fixture
def catalog() -> TopicCatalog:
    return TopicCatalog(rng=random.Random(42))


@pytest.fixture
def competency_model(store, catalog, clock) -> CompetencyModel:
    return CompetencyModel(store, catalog=catalog, clock=clock)


@pytest.fixture
def performance_analyzer(store, clock) -> PerformanceAnalyzer:
    return PerformanceAnalyzer(store, clock=clock)


@pytest.fixture
def behavior_monitor(store, clock) -> BehaviorMonitor:
    return BehaviorMonitor(store, clock=clock)


@pytest.fixture
def aggregator(competency_model, performance_analyzer, behavior_monitor, clock) -> ContextAggregator:
    return ContextAggregator(competency_model, performance_analyzer, behavior_monitor, clock=clock)


@pytest.fixture
def hard_success() -> PerformanceEvent:
    return PerformanceEvent(topic="algebra", sub_topic="equations", success=True,
                            difficulty=Difficulty.HARD, time_spent=120)
