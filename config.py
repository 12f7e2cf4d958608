"""
Configuration Management
Loads and validates environment variables
"""
import os
from dotenv import load_dotenv

from core.records.models import FLOW_METHODS

load_dotenv()

class Config:
    """Application configuration"""

    # Gap buffers (minutes)
    INTRA_JOB_BUFFER_MIN = float(os.getenv("INTRA_JOB_BUFFER_MIN", 0))
    JOB_TRANSITION_BUFFER_MIN = float(os.getenv("JOB_TRANSITION_BUFFER_MIN", 0))
    ALERT_THRESHOLD_MIN = float(os.getenv("ALERT_THRESHOLD_MIN", 10))

    # Dynamic interval flow
    FLOW_BUCKET_INTERVAL_MIN = int(os.getenv("FLOW_BUCKET_INTERVAL_MIN", 10))
    FLOW_EXCLUDE_EMPTY = os.getenv("FLOW_EXCLUDE_EMPTY", "true").lower() in ("true", "yes", "1")
    FLOW_CALCULATION_METHOD = os.getenv("FLOW_CALCULATION_METHOD", "interval")

    # Batch capacity / breaks
    UTILIZATION_CAP = int(os.getenv("UTILIZATION_CAP", 5))
    BREAK_THRESHOLD_SEC = float(os.getenv("BREAK_THRESHOLD_SEC", 300))

    # Application Settings
    TIMEZONE = os.getenv("TIMEZONE") or None
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls):
        """Validate configuration values"""
        problems = []

        for name in ('INTRA_JOB_BUFFER_MIN', 'JOB_TRANSITION_BUFFER_MIN', 'ALERT_THRESHOLD_MIN', 'BREAK_THRESHOLD_SEC'):
            if getattr(cls, name) < 0:
                problems.append(f"{name} must be >= 0")

        for name in ('FLOW_BUCKET_INTERVAL_MIN', 'UTILIZATION_CAP'):
            if getattr(cls, name) <= 0:
                problems.append(f"{name} must be positive")

        if cls.FLOW_CALCULATION_METHOD not in FLOW_METHODS:
            problems.append(f"FLOW_CALCULATION_METHOD must be one of {list(FLOW_METHODS)}")

        if problems:
            raise ValueError(f"Invalid configuration: {', '.join(problems)}")

        return True

# Validate on import
Config.validate()
