"""Configuration constants for the review harvester."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("HARVESTER_DATA_DIR", "/app/data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
SNAPSHOT_DIR: Path = DATA_DIR / "snapshots"
SUMMARY_FILE: Path = DATA_DIR / "last_summary.json"
DB_PATH: Path = DATA_DIR / "harvester.db"


def _parse_int(env_var: str, default: int, *, minimum: int | None = None) -> int:
    """Parse an integer from the environment, falling back to ``default``."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    if minimum is not None:
        return max(minimum, value)
    return value


def _parse_flag(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


# Loop controller defaults. All three are overridable per run via LoopConfig.
MAX_ITERATIONS: int = _parse_int("HARVESTER_MAX_ITERATIONS", 20)
POST_TRIGGER_DELAY_MS: int = _parse_int("HARVESTER_POST_TRIGGER_DELAY_MS", 2000)
GROWTH_TIMEOUT_MS: int = _parse_int("HARVESTER_GROWTH_TIMEOUT_MS", 5000)

# Session bootstrap (outside the loop): container wait then a fixed settle.
CONTAINER_WAIT_MS: int = _parse_int("HARVESTER_CONTAINER_WAIT_MS", 10000, minimum=0)
CONTAINER_SETTLE_MS: int = _parse_int("HARVESTER_CONTAINER_SETTLE_MS", 2000, minimum=0)
NAV_TIMEOUT_SECONDS: int = _parse_int("HARVESTER_NAV_TIMEOUT_SECONDS", 30, minimum=1)
HEADLESS: bool = _parse_flag("HARVESTER_HEADLESS", True)
# Click-level timeout stays in milliseconds to match Playwright API expectations.
CLICK_TIMEOUT_MS: int = _parse_int("HARVESTER_CLICK_TIMEOUT_MS", 2000, minimum=1)

# Relative attachment URLs are resolved against this host.
ASSET_HOST: str = os.getenv("HARVESTER_ASSET_HOST", "https://images.priceoye.pk").rstrip("/")

SNAPSHOT_ON_EMPTY: bool = _parse_flag("HARVESTER_SNAPSHOT_ON_EMPTY", True)
PERSIST_MAX_ATTEMPTS: int = _parse_int("HARVESTER_PERSIST_MAX_ATTEMPTS", 3, minimum=1)

USER_AGENT: str = os.getenv(
    "HARVESTER_USER_AGENT",
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36"
    ),
)
