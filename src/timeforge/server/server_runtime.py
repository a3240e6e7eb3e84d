from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from timeforge.engine.clock import current_time_ms, get_zone
from timeforge.engine.errors import ConfigurationError
from timeforge.engine.models import ColumnTimeEncoding
from timeforge.schema.column_records import ColumnParseResult, parse_column_records
from timeforge.shared.config import EngineConfig


logger = logging.getLogger(__name__)

TableKey = Tuple[str, str]


class ServerRuntime:
    """Holds configuration, the clock and the column schema cache for the MCP server."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self._schemas: Dict[TableKey, ColumnParseResult] = {}
        self._schema_lock = threading.Lock()
        self._server_ready = False

    # ------------------------------------------------------------------
    # Properties exposing runtime state
    # ------------------------------------------------------------------
    @property
    def server_ready(self) -> bool:
        return self._server_ready

    @property
    def registered_tables(self) -> List[str]:
        with self._schema_lock:
            return sorted(f"{db}.{table}" for db, table in self._schemas)

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------
    def now_ms(self) -> int:
        """Read the wall clock once, as integer milliseconds."""
        return current_time_ms()

    # ------------------------------------------------------------------
    # Column schema cache
    # ------------------------------------------------------------------
    @staticmethod
    def _key(database: str, table: str) -> TableKey:
        return ((database or "").strip(), (table or "").strip())

    def register_columns(
        self,
        database: str,
        table: str,
        rows: Union[str, Iterable[Mapping[str, Any]]],
    ) -> ColumnParseResult:
        """Parse DESCRIBE-style rows and cache them for ``database.table``."""
        key = self._key(database, table)
        if not key[1]:
            raise ConfigurationError("Table name is required to register columns", field="table")
        parsed = parse_column_records(rows)
        with self._schema_lock:
            self._schemas[key] = parsed
        logger.info(
            "Registered %d columns for %s.%s (time fields: %s)",
            len(parsed.columns),
            key[0],
            key[1],
            ", ".join(parsed.time_fields) or "none",
        )
        return parsed

    def get_columns(self, database: str, table: str) -> Optional[ColumnParseResult]:
        with self._schema_lock:
            return self._schemas.get(self._key(database, table))

    def lookup_column(self, database: str, table: str, column_name: str) -> Optional[ColumnTimeEncoding]:
        """Return the cached encoding of a column, or None if it is not registered."""
        parsed = self.get_columns(database, table)
        if parsed is None:
            return None
        return parsed.get(column_name)

    def clear_columns(self) -> None:
        with self._schema_lock:
            self._schemas.clear()

    # ------------------------------------------------------------------
    # Initialization routines
    # ------------------------------------------------------------------
    def initialize_critical_components(self) -> None:
        """Verify the configured defaults before accepting requests."""

        try:
            get_zone(self.config.timezone)
            logger.info("✅ Default timezone ready: %s", self.config.timezone)
        except ConfigurationError as exc:
            logger.warning("⚠️ %s; falling back to UTC", exc)
            self.config.timezone = "UTC"

        self._server_ready = True
        logger.info("✅ Critical components initialized - server ready to accept requests")


__all__ = ["ServerRuntime"]
