"""Redaction primitives for HAR entries.

This module has ZERO external dependencies (stdlib only).

Exports:
    - PatternRedactor: scrub e-mails, card numbers, IDs and secrets from text
    - infer_schema / field_names: JSON shape inference and flattening
    - FieldClassifier / ClassificationResult: decide which fields are sensitive
    - RedactionEngine: rewrite a HAR entry
"""

from __future__ import annotations

from har_scrubber.redaction.classifier import (
    CLASSIFIER_POLICY,
    ClassificationResult,
    FieldClassifier,
)
from har_scrubber.redaction.har import (
    DEFAULT_MAX_HAR_SIZE,
    HarSizeError,
    HarValidationError,
    RedactionEngine,
    marker_for,
    strip_query,
    validate_har_structure,
)
from har_scrubber.redaction.schema import SchemaNode, field_names, infer_schema
from har_scrubber.redaction.text import REDACTION_MARKER, PatternRedactor

__all__ = [
    # Text
    "REDACTION_MARKER",
    "PatternRedactor",
    # Schema
    "SchemaNode",
    "infer_schema",
    "field_names",
    # Classification
    "CLASSIFIER_POLICY",
    "ClassificationResult",
    "FieldClassifier",
    # Entries
    "RedactionEngine",
    "marker_for",
    "strip_query",
    "validate_har_structure",
    "DEFAULT_MAX_HAR_SIZE",
    "HarSizeError",
    "HarValidationError",
]
