"""Configuration management for the TimeForge engine and MCP server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from ..engine.clock import get_zone
from ..engine.errors import ConfigurationError
from ..engine.models import TimeRange
from ..engine.parser import parse_time_expression

logger = logging.getLogger(__name__)

_TRANSPORTS = ("stdio", "sse")


@dataclass
class EngineConfig:
    """Defaults applied when a request does not supply its own context."""

    timezone: str = "UTC"
    default_from: str = "now-1h"
    default_to: str = "now"
    transport: str = "stdio"
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_env(cls, required: bool = False) -> EngineConfig:
        """Load configuration from environment variables.

        Parameters
        ----------
        required:
            If True, raise ConfigurationError when a value is invalid.
            If False, log a warning and keep the default for that value.

        Returns
        -------
        EngineConfig
            Configuration with every invalid value replaced by its default.

        Raises
        ------
        ConfigurationError
            If required=True and any value is invalid.
        """
        defaults = cls()

        def reject(msg: str, field: str) -> None:
            if required:
                raise ConfigurationError(msg, field=field)
            logger.warning(msg)

        timezone = os.getenv("TIMEFORGE_TIMEZONE", defaults.timezone).strip() or defaults.timezone
        try:
            get_zone(timezone)
        except ConfigurationError:
            reject(f"TIMEFORGE_TIMEZONE={timezone!r} is not a known timezone. Using default: UTC", "timezone")
            timezone = defaults.timezone

        default_from = os.getenv("TIMEFORGE_DEFAULT_FROM", defaults.default_from).strip()
        if parse_time_expression(default_from) is None:
            reject(
                f"TIMEFORGE_DEFAULT_FROM={default_from!r} is not a valid time expression. "
                f"Using default: {defaults.default_from}",
                "default_from",
            )
            default_from = defaults.default_from

        default_to = os.getenv("TIMEFORGE_DEFAULT_TO", defaults.default_to).strip()
        if parse_time_expression(default_to) is None:
            reject(
                f"TIMEFORGE_DEFAULT_TO={default_to!r} is not a valid time expression. "
                f"Using default: {defaults.default_to}",
                "default_to",
            )
            default_to = defaults.default_to

        transport = os.getenv("MCP_TRANSPORT", defaults.transport).strip().lower()
        if transport not in _TRANSPORTS:
            reject(f"MCP_TRANSPORT={transport!r} is not supported. Using default: stdio", "transport")
            transport = defaults.transport

        host = os.getenv("MCP_HOST", defaults.host).strip() or defaults.host

        port_text = os.getenv("MCP_PORT", str(defaults.port)).strip()
        try:
            port = int(port_text)
            if not 0 < port < 65536:
                raise ValueError(port_text)
        except ValueError:
            reject(f"MCP_PORT={port_text!r} is not a valid port. Using default: {defaults.port}", "port")
            port = defaults.port

        logger.info(
            "TimeForge config loaded: timezone=%s, default range=%s..%s, transport=%s",
            timezone,
            default_from,
            default_to,
            transport,
        )
        return cls(
            timezone=timezone,
            default_from=default_from,
            default_to=default_to,
            transport=transport,
            host=host,
            port=port,
        )

    def default_range(self) -> TimeRange:
        return TimeRange(from_=self.default_from, to=self.default_to, enabled=True)

    def resolve_timezone(self, timezone: Optional[str]) -> str:
        """Return ``timezone`` when given, otherwise the configured default."""
        return (timezone or "").strip() or self.timezone
