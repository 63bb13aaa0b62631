"""Environment-driven settings for the stable engine.

Values are read from the process environment after loading a `.env` file:
- STABLE_ENGINE_PRICE_TIMEOUT: freshness bound for price quotes, in seconds
- LOG_DIR: directory for audit journals

Protocol constants (threshold, bonus, precisions) live in
stable_engine.data.constants and are not configurable.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from stable_engine.core.errors import InvalidSetting
from stable_engine.data.constants import PRICE_FEED_TIMEOUT_SECONDS


@dataclass
class EngineSettings:
    """Runtime settings for an engine instance."""

    price_timeout_seconds: int = PRICE_FEED_TIMEOUT_SECONDS
    log_dir: Path = field(default_factory=lambda: Path("logs"))

    def __post_init__(self) -> None:
        if self.price_timeout_seconds <= 0:
            raise InvalidSetting(
                f"Price timeout must be positive, got {self.price_timeout_seconds}"
            )


def load_settings() -> EngineSettings:
    """Load settings from `.env` and the environment.

    Returns:
        EngineSettings populated from the environment, falling back to defaults.

    Raises:
        InvalidSetting: If a variable is present but cannot be used.
    """
    load_dotenv()

    raw_timeout = os.getenv("STABLE_ENGINE_PRICE_TIMEOUT", "").strip()
    if raw_timeout:
        try:
            timeout = int(raw_timeout)
        except ValueError as e:
            raise InvalidSetting(
                f"STABLE_ENGINE_PRICE_TIMEOUT must be an integer number of seconds, "
                f"got {raw_timeout!r}"
            ) from e
    else:
        timeout = PRICE_FEED_TIMEOUT_SECONDS

    return EngineSettings(
        price_timeout_seconds=timeout,
        log_dir=Path(os.getenv("LOG_DIR", "logs")),
    )
