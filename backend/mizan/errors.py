"""
MIZAN Errors: engine exception hierarchy.

Every failure the engine reports to a caller is a MizanError carrying a
stable error_code, a human-readable message and optional details. The API
layer translates these into JSON error responses; background runs turn
them into a single terminal error message.
"""


class MizanError(Exception):
    """Base class for engine-level errors."""
    error_code: str = "MIZAN_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class MissingFieldMappingError(MizanError):
    """A required identity field has no source column mapped to it."""
    error_code = "MISSING_FIELD_MAPPING"


class NoLearnablePatternError(MizanError):
    """No component scored above zero for the selected pair."""
    error_code = "NO_PATTERN_TO_LEARN"


class PatternAlreadyCoveredError(MizanError):
    """The active rule set already matches the selected pair."""
    error_code = "PATTERN_ALREADY_COVERED"


class InvalidRuleError(MizanError):
    """A rule definition references an unknown field or operator."""
    error_code = "INVALID_RULE"


class DuplicateRuleError(MizanError):
    """A rule with the same id is already persisted."""
    error_code = "DUPLICATE_RULE"


class RecordSelectionError(MizanError):
    """Rule learning needs exactly two distinct records from the session."""
    error_code = "INVALID_SELECTION"


class InvalidBlockingKeyError(MizanError, ValueError):
    """A run named a blocking key the engine does not have."""
    error_code = "INVALID_BLOCKING_KEY"
