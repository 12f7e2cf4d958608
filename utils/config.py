"""
Configuration Management

Simple utility for loading environment configuration and turning it into a
BufferConfig for the analysis engine.
"""

import os
from typing import Optional
from dotenv import load_dotenv

from core.records.models import BufferConfig, parse_bool

# Environment variable -> BufferConfig field
BUFFER_ENV_VARS = {
    "INTRA_JOB_BUFFER_MIN": ("intra_job_buffer", float),
    "JOB_TRANSITION_BUFFER_MIN": ("job_transition_buffer", float),
    "ALERT_THRESHOLD_MIN": ("alert_threshold", float),
    "FLOW_BUCKET_INTERVAL_MIN": ("flow_bucket_interval", int),
    "FLOW_EXCLUDE_EMPTY": ("flow_exclude_empty", parse_bool),
    "FLOW_CALCULATION_METHOD": ("flow_calculation_method", str),
    "UTILIZATION_CAP": ("utilization_cap", int),
    "BREAK_THRESHOLD_SEC": ("break_threshold_sec", float),
    "IS_2D_LAYOUT_USED": ("is_2d_layout_used", parse_bool),
    "IS_ENGINEERED_STANDARDS_USED": ("is_engineered_standards_used", parse_bool),
    "TIMEZONE": ("timezone", str),
}


def load_config(env_path: Optional[str] = None) -> bool:
    """
    Load environment configuration from .env file.

    Args:
        env_path: Optional path to .env file. If None, searches in current directory.

    Returns:
        bool: True if .env file was found and loaded, False otherwise
    """
    if env_path:
        return load_dotenv(env_path)
    return load_dotenv()


def get_buffer_config(**overrides) -> BufferConfig:
    """
    Build a BufferConfig from environment variables.

    Unset variables fall back to the BufferConfig defaults; keyword overrides
    (e.g. from CLI options) win over the environment. None overrides are ignored.

    Returns:
        BufferConfig

    Raises:
        ValueError: If a variable cannot be parsed or a value is out of range
    """
    values = {}
    for env_var, (field_name, parse) in BUFFER_ENV_VARS.items():
        raw = os.getenv(env_var)
        if raw is None or raw == "":
            continue
        try:
            values[field_name] = parse(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {env_var}: {raw!r}") from e

    values.update({k: v for k, v in overrides.items() if v is not None})
    return BufferConfig(**values)


def get_app_config() -> dict:
    """
    Get application configuration settings.

    Returns:
        dict: Application settings
    """
    return {
        "timezone": os.getenv("TIMEZONE") or None,
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
    }


def validate_config() -> list:
    """
    Validate the analysis configuration held in the environment.

    Returns:
        list: List of configuration problems (empty if all valid)
    """
    problems = []

    try:
        get_buffer_config()
    except ValueError as e:
        problems.append(f"BUFFER: {str(e)}")

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        problems.append(f"LOG_LEVEL: Unknown log level {log_level!r}")

    return problems
