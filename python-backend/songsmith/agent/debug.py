"""Debug tracing utilities for songwriter calls."""

from __future__ import annotations

import json
import logging
from typing import Any

log = logging.getLogger(__name__)


def _format_value(value: Any, max_length: int | None = 300) -> str:
    """Format a value for display, truncating if needed."""
    if isinstance(value, str):
        s = value
    elif isinstance(value, bytes):
        s = f"<bytes {len(value)} bytes>"
    elif isinstance(value, (dict, list)):
        s = json.dumps(value, indent=2, default=str)
    else:
        s = str(value)

    if max_length is not None and len(s) > max_length:
        return s[:max_length] + f"\n... (truncated {len(s) - max_length} chars)"
    return s


def trace_request(
    operation: str,
    model_name: str,
    temperature: float,
    system_prompt: str,
    user_prompt: str,
) -> None:
    """Log an outgoing chat completion request."""
    log.debug("=" * 80)
    log.debug(f"REQUEST: {operation}")
    log.debug("=" * 80)
    log.debug(f"Model: {model_name}")
    log.debug(f"Temperature: {temperature}")
    log.debug(f"System prompt:\n{_format_value(system_prompt, max_length=500)}")
    log.debug(f"User prompt:\n{_format_value(user_prompt, max_length=None)}")
    log.debug("=" * 80)


def trace_model_config(model_name: str, base_url: str) -> None:
    """Log model configuration."""
    log.debug("=" * 80)
    log.debug("MODEL CONFIGURATION")
    log.debug("=" * 80)
    log.debug(f"Model: {model_name}")
    log.debug(f"Base URL: {base_url}")
    log.debug("=" * 80)


def trace_final_output(operation: str, output: Any) -> None:
    """Log the raw model output."""
    log.debug("=" * 80)
    log.debug(f"FINAL OUTPUT: {operation}")
    log.debug("=" * 80)
    log.debug(_format_value(output, max_length=None))
    log.debug("=" * 80)


def trace_usage(operation: str, usage: Any) -> None:
    """Log token usage information."""
    if usage is None:
        return
    log.debug("=" * 80)
    log.debug(f"API USAGE: {operation}")
    log.debug("=" * 80)
    log.debug(_format_value(usage, max_length=None))
    log.debug("=" * 80)
