# learner_analytics/utils/config.py
import os
from pydantic import field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env file before defining settings
load_dotenv()

class Settings(BaseSettings):
    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # --- Storage Configuration ---
    storage_backend: str = os.getenv("STORAGE_BACKEND", "memory").lower()
    database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./learner_analytics.db")
    database_echo: bool = False  # Set to True to see SQL queries

    # Competency Model
    competency_default_level: int = 3  # Neutral, unassessed
    competency_history_limit: int = 50
    competency_weak_threshold: int = 3
    competency_strong_threshold: int = 4
    competency_tasks_for_full_credit: int = 20
    sub_topic_min_change: float = 0.2

    # Performance Analyzer
    trend_min_events: int = 5
    trend_threshold_pp: float = 10.0
    fluctuation_window: int = 3
    fluctuation_min_events: int = 3
    slow_task_seconds: float = 600.0  # 10 minutes per task

    # Behavior Monitor: real-time session rules
    session_window_minutes: int = 10
    session_ttl_minutes: int = 120
    threshold_solution_requests: int = 4
    threshold_quick_solutions: int = 3
    threshold_task_abandons: int = 3
    help_seeking_ratio_limit: float = 0.8
    help_seeking_min_events: int = 5

    # Behavior Monitor: long-horizon patterns
    pattern_max_solution_requests: int = 15
    pattern_max_task_abandons: int = 10
    pattern_min_self_solve_ratio: float = 0.3
    pattern_min_total_actions: int = 10

    @field_validator("storage_backend")
    @classmethod
    def check_storage_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("memory", "sql"):
            raise ValueError(f"STORAGE_BACKEND must be 'memory' or 'sql', got '{value}'")
        return value

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL '{value}' is not a valid logging level")
        return value

settings = Settings()
