"""Persisted plugin configuration."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin
from mashumaro.types import Alias

logger = logging.getLogger(__name__)

BUFFER_SIZE_NORMAL_KB = 4096
"""Transport read-ahead buffer in normal mode (4 MB)."""
BUFFER_SIZE_HIGH_LATENCY_KB = 16384
"""Transport read-ahead buffer in high latency mode (16 MB), for unstable networks."""

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_int(value: Any) -> int:
    """Parse an integer the lenient way settings forms submit them, 0 on garbage."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else 0
    return 0


@dataclass
class MetadataSettings(DataClassORJSONMixin):
    """User configurable metadata timing."""

    api_delay: Annotated[int, Alias("apiDelay")] = 0
    """Manual metadata delay in seconds."""
    high_latency_mode: Annotated[bool, Alias("highLatencyMode")] = False
    """Add a fixed extra delay and enlarge the transport buffer."""

    @classmethod
    def __pre_deserialize__(cls, d: dict[str, Any]) -> dict[str, Any]:
        """Coerce values submitted by the settings form."""
        d = dict(d)
        for key in ("apiDelay", "api_delay"):
            if key in d:
                d[key] = max(0, _parse_int(d[key]))
        for key in ("highLatencyMode", "high_latency_mode"):
            if key in d:
                d[key] = d[key] in (True, 1, "true", "True", "on", "1")
        return d

    def __post_init__(self) -> None:
        """Validate field values."""
        if self.api_delay < 0:
            raise ValueError(f"api_delay must not be negative, got {self.api_delay}")

    @property
    def manual_delay_ms(self) -> int:
        """Return the manual delay in milliseconds."""
        return self.api_delay * 1000

    @property
    def buffer_size_kb(self) -> int:
        """Return the transport buffer size matching the latency mode."""
        return BUFFER_SIZE_HIGH_LATENCY_KB if self.high_latency_mode else BUFFER_SIZE_NORMAL_KB

    class Config(BaseConfig):
        """Config for the persisted json file."""

        serialize_by_alias = True
        allow_deserialization_not_by_alias = True


def load_settings(path: str | Path) -> MetadataSettings:
    """Load settings from a json file, returning defaults if it is missing or invalid."""
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError:
        logger.debug("No settings file at %s, using defaults", path)
        return MetadataSettings()
    except OSError as err:
        logger.warning("Could not read settings file %s: %s", path, err)
        return MetadataSettings()
    try:
        return MetadataSettings.from_json(data)
    except Exception:  # noqa: BLE001
        logger.warning("Invalid settings file %s, using defaults", path)
        return MetadataSettings()


def save_settings(settings: MetadataSettings, path: str | Path) -> None:
    """Write settings to a json file."""
    Path(path).write_bytes(settings.to_jsonb())
    logger.info(
        "Saved settings: delay=%ds, high latency mode=%s",
        settings.api_delay,
        settings.high_latency_mode,
    )
