"""
Shared utilities for BeatBandit.
"""

from .logging_config import (
    setup_logging,
    shutdown_logging,
    get_logger,
    log_performance,
    log_api_request,
    log_strategy_decision,
    log_error,
    set_request_context,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "log_performance",
    "log_api_request",
    "log_strategy_decision",
    "log_error",
    "set_request_context",
]
