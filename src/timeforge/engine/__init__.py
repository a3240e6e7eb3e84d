"""
Time expression and query-variable substitution engine.

This module provides relative time parsing, range resolution, time column
classification, epoch scaling and substitution of the ``$__timeFilter``,
``$__timeField``, ``$__timeFrom`` and ``$__timeTo`` query variables.
"""

from .classifier import classify_time_field, infer_unit_from_samples
from .context_validator import TimeContextValidator, validate_time_context
from .errors import (
    ConfigurationError,
    MissingContextError,
    ParseError,
    PrecisionError,
    TimeEngineError,
)
from .models import (
    ColumnTimeEncoding,
    EpochUnit,
    ResolvedTimeRange,
    SubstitutionContext,
    SubstitutionResult,
    TimeRange,
    TimeUnit,
)
from .parser import evaluate_time_expression, parse_relative_time, parse_time_expression
from .resolver import resolve_time_range
from .scaler import scale_instant, to_epoch
from .substitution import substitute_time_variables

__all__ = [
    'classify_time_field',
    'infer_unit_from_samples',
    'TimeContextValidator',
    'validate_time_context',
    'TimeEngineError',
    'ParseError',
    'ConfigurationError',
    'MissingContextError',
    'PrecisionError',
    'ColumnTimeEncoding',
    'EpochUnit',
    'ResolvedTimeRange',
    'SubstitutionContext',
    'SubstitutionResult',
    'TimeRange',
    'TimeUnit',
    'parse_time_expression',
    'evaluate_time_expression',
    'parse_relative_time',
    'resolve_time_range',
    'scale_instant',
    'to_epoch',
    'substitute_time_variables',
]
