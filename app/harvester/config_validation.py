from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Optional

from . import config
from .logging_utils import _harvest_event
from .utils import log_line

if TYPE_CHECKING:  # pragma: no cover
    from .loop import LoopConfig

Entrypoint = Literal["ui", "cli", "replay", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _harvest_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def validate_runtime_config(
    entrypoint: Entrypoint, *, loop_config: Optional["LoopConfig"] = None
) -> None:
    """Validate runtime configuration for the given entrypoint.

    Checks the module-level defaults, or ``loop_config`` when one is given.
    Raises ``ValueError`` on the first blocking misconfiguration.
    """

    max_iterations = loop_config.max_iterations if loop_config else config.MAX_ITERATIONS
    growth_timeout_ms = loop_config.growth_timeout_ms if loop_config else config.GROWTH_TIMEOUT_MS
    post_trigger_delay_ms = (
        loop_config.post_trigger_delay_ms if loop_config else config.POST_TRIGGER_DELAY_MS
    )

    if max_iterations < 1:
        _raise_config_error(
            "MAX_ITERATIONS must be at least 1.",
            entrypoint=entrypoint,
            error="max_iterations_invalid",
        )

    if growth_timeout_ms <= 0:
        _raise_config_error(
            "GROWTH_TIMEOUT_MS must be greater than zero.",
            entrypoint=entrypoint,
            error="invalid_timeout",
        )

    if post_trigger_delay_ms < 0:
        _raise_config_error(
            "POST_TRIGGER_DELAY_MS must be non-negative.",
            entrypoint=entrypoint,
            error="post_trigger_delay_invalid",
        )

    if config.NAV_TIMEOUT_SECONDS <= 0:
        _raise_config_error(
            "NAV_TIMEOUT_SECONDS must be greater than zero.",
            entrypoint=entrypoint,
            error="invalid_timeout",
        )

    if not config.ASSET_HOST.startswith(("http://", "https://")):
        _raise_config_error(
            "ASSET_HOST must be an absolute http(s) URL.",
            entrypoint=entrypoint,
            error="asset_host_invalid",
        )


__all__ = ["validate_runtime_config", "Entrypoint"]
