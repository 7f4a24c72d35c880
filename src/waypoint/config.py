"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups at request time.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from waypoint.errors import ConfigurationError

_LOG_LEVELS = frozenset({"debug", "info", "warning", "error", "critical"})


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, strict_slashes=True)
    """

    # Render tracebacks in default 500 responses
    debug: bool = False

    # When False, "/users/" matches the "/users" route
    strict_slashes: bool = False

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB

    # Applied to the "waypoint" logger when the app freezes
    log_level: str = "info"

    def __post_init__(self) -> None:
        if self.log_level.lower() not in _LOG_LEVELS:
            msg = f"Unknown log_level {self.log_level!r}. Expected one of: {', '.join(sorted(_LOG_LEVELS))}"
            raise ConfigurationError(msg)
        if self.max_content_length < 0:
            msg = "max_content_length must not be negative."
            raise ConfigurationError(msg)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> AppConfig:
        """Build a config from a plain mapping (e.g. a parsed settings file).

        Unknown keys raise ``ConfigurationError`` instead of being ignored.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            msg = f"Unknown config key(s): {', '.join(unknown)}"
            raise ConfigurationError(msg)
        return cls(**dict(values))
