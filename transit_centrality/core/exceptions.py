"""Error kinds raised by the analysis pipeline.

All are `ValueError` subclasses so callers that only guard against bad input
values keep working. Missing input files surface as the built-in
`FileNotFoundError`.
"""

from __future__ import annotations


class TransitAnalysisError(Exception):
    """Base class for pipeline errors."""


class SchemaError(TransitAnalysisError, ValueError):
    """A table is missing a required column, has uncoercible values or dangling ids."""


class NumericDegeneracyError(TransitAnalysisError, ValueError):
    """A numeric transform is undefined for its input (log of <= 0, zero range)."""


class EmptyGraphError(TransitAnalysisError, ValueError):
    """No edges were produced, so there is no network to analyse."""


class ConfigError(TransitAnalysisError, ValueError):
    """An analysis parameter is out of range or the config file is malformed."""
