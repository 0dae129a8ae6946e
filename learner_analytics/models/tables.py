# learner_analytics/models/tables.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    DateTime,
    JSON,
    Boolean,
    Index,
)
from sqlalchemy.orm import declarative_base


Base = declarative_base()


class CompetencyRow(Base):
    __tablename__ = "competency_records"
    user_id = Column(String, primary_key=True)
    topic = Column(String, primary_key=True)
    overall_level = Column(Integer, default=3)
    sub_topics = Column(JSON, default=lambda: {})
    tasks_completed = Column(Integer, default=0)
    success_rate = Column(Float, default=0.0)
    average_time = Column(Float, default=0.0)
    last_practiced = Column(DateTime, nullable=True)
    last_updated = Column(DateTime, nullable=True)
    # Bounded list of {timestamp, level, event}
    history = Column(JSON, default=lambda: [])


class PerformanceEventRow(Base):
    __tablename__ = "performance_events"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    topic = Column(String, nullable=False)
    sub_topic = Column(String, nullable=True)
    difficulty = Column(String, default="medium")

    # Outcome details
    success = Column(Boolean, default=False)
    time_spent = Column(Float, default=0.0)
    hints_used = Column(Integer, default=0)
    showed_solution = Column(Boolean, default=False)
    attempts = Column(Integer, default=1)
    error_types = Column(JSON, default=lambda: [])

    __table_args__ = (Index("ix_performance_user_time", "user_id", "timestamp"),)


class BehaviorEventRow(Base):
    __tablename__ = "behavior_events"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    behavior_key = Column(String, nullable=False)  # behavior_type#timestamp
    behavior_type = Column(String, nullable=False)
    action = Column(String, nullable=True)
    context = Column(JSON, default=lambda: {})
    frequency = Column(Integer, default=1)
    timestamp = Column(DateTime, nullable=False)
    session_id = Column(String, nullable=True)

    __table_args__ = (Index("ix_behavior_user_time", "user_id", "timestamp"),)
