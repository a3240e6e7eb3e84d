"""
Shareable query links.

A link fragment is ``base64(percent-encoded JSON)`` of the query, database,
table, time field and time range bounds. Older links used plain
``q=...&db=...&tf=...&from=...&to=...`` fragments; both are decoded.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, quote, unquote

from .models import TimeRange

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves untouched, so links stay interchangeable.
_URI_COMPONENT_SAFE = "-_.!~*'()"

_LEGACY_KEYS = {"q": "query", "db": "db", "table": "table", "tf": "timeField", "from": "timeFrom", "to": "timeTo"}


@dataclass(frozen=True)
class SharedQueryParams:
    query: Optional[str] = None
    db: Optional[str] = None
    table: Optional[str] = None
    timeField: Optional[str] = None
    timeFrom: Optional[str] = None
    timeTo: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SharedQueryParams":
        known = {name: payload.get(name) for name in cls.__dataclass_fields__}
        return cls(**{k: (str(v) if v is not None else None) for k, v in known.items()})

    @classmethod
    def from_state(
        cls,
        query: str,
        db: str,
        table: Optional[str] = None,
        time_field: Optional[str] = None,
        time_range: Optional[TimeRange] = None,
    ) -> "SharedQueryParams":
        """Build link parameters from editor state. A disabled range is left out."""
        time_from = time_to = None
        if time_range is not None and time_range.enabled:
            time_from, time_to = time_range.from_, time_range.to
        return cls(
            query=query,
            db=db,
            table=table or None,
            timeField=time_field or None,
            timeFrom=time_from,
            timeTo=time_to,
        )

    def time_range(self) -> Optional[TimeRange]:
        """The shared range, or None when the link carries no complete range."""
        if not self.timeFrom or not self.timeTo:
            return None
        return TimeRange(from_=self.timeFrom, to=self.timeTo, enabled=True)

    def to_dict(self) -> Dict[str, str]:
        return {key: value for key, value in asdict(self).items() if value not in (None, "")}


def encode_share_params(params: SharedQueryParams) -> str:
    """Encode ``params`` as a link fragment; empty values are dropped."""
    payload = params.to_dict()
    if not payload:
        return ""
    text = quote(json.dumps(payload, separators=(",", ":"), ensure_ascii=False), safe=_URI_COMPONENT_SAFE)
    return base64.b64encode(text.encode("ascii")).decode("ascii")


def decode_share_params(fragment: Optional[str]) -> Optional[SharedQueryParams]:
    """Decode a link fragment. Malformed input yields None."""
    if not fragment:
        return None
    content = fragment[1:] if fragment.startswith("#") else fragment
    if not content:
        return None

    try:
        raw = base64.b64decode(content, validate=True).decode("ascii")
        payload = json.loads(unquote(raw))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        logger.debug("Fragment is not a base64 share link (%s); trying legacy format", exc)
        return _decode_legacy(content)

    if not isinstance(payload, dict):
        logger.warning("Share link payload is not an object: %r", payload)
        return None
    return SharedQueryParams.from_dict(payload)


def _decode_legacy(content: str) -> Optional[SharedQueryParams]:
    parsed = parse_qs(content, keep_blank_values=False)
    values = {target: parsed[key][0] for key, target in _LEGACY_KEYS.items() if parsed.get(key)}
    if not values:
        logger.warning("Failed to decode share link fragment")
        return None
    return SharedQueryParams.from_dict(values)


def build_share_url(base_url: str, params: SharedQueryParams) -> str:
    encoded = encode_share_params(params)
    base = base_url.split("#", 1)[0]
    return f"{base}#{encoded}" if encoded else base


__all__ = ["SharedQueryParams", "encode_share_params", "decode_share_params", "build_share_url"]
