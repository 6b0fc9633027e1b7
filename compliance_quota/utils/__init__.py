"""Utility modules for the compliance quota service."""

from .timer_utils import elapsed_ms, Timer
from .async_utils import run_sync_in_executor
from .env_utils import (
    parse_bool_env,
    parse_int_env,
    parse_float_env,
    parse_str_env,
    parse_list_env,
)

__all__ = [
    # Timer utilities
    "elapsed_ms",
    "Timer",
    # Async utilities
    "run_sync_in_executor",
    # Environment utilities
    "parse_bool_env",
    "parse_int_env",
    "parse_float_env",
    "parse_str_env",
    "parse_list_env",
]
