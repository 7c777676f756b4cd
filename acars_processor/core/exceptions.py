"""
Exception hierarchy for the processor.

Filters, annotators and receivers raise these; the step chain decides
whether an error vetoes a message or is logged and skipped.
"""


class ACARSProcessorError(Exception):
    """Base exception for all processor errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ConfigError(ACARSProcessorError):
    """Raised when the configuration file is missing or invalid."""


class StoreError(ACARSProcessorError):
    """Raised when the message store cannot be reached."""


class RetriableError(ACARSProcessorError):
    """
    Wraps a transient failure of an external call.

    The retry harness retries these; anything else propagates immediately.
    """

    def __init__(self, message: str, original_error: Exception | None = None, details: dict | None = None):
        details = dict(details or {})
        if original_error is not None:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__
        super().__init__(message, details)
        self.original_error = original_error


class AIResponseError(RetriableError):
    """Raised when a model response contains no usable JSON object."""


class FilterError(ACARSProcessorError):
    """Raised when a filter cannot reach a decision."""

    def __init__(self, message: str, filter_name: str | None = None, details: dict | None = None):
        details = dict(details or {})
        if filter_name:
            details["filter"] = filter_name
        super().__init__(message, details)
        self.filter_name = filter_name


class MissingFieldError(FilterError):
    """Raised when a predicate needs a field the message does not carry."""

    def __init__(self, field: str, filter_name: str | None = None):
        super().__init__(f"{field} field was empty", filter_name, {"field": field})
        self.field = field


class AnnotatorError(ACARSProcessorError):
    """Raised when an annotator lookup fails."""

    def __init__(self, message: str, annotator: str | None = None, details: dict | None = None):
        details = dict(details or {})
        if annotator:
            details["annotator"] = annotator
        super().__init__(message, details)
        self.annotator = annotator


class ReceiverError(ACARSProcessorError):
    """Raised when a receiver fails to deliver a message."""

    def __init__(
        self,
        message: str,
        receiver: str | None = None,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ):
        details = {"receiver": receiver, "status_code": status_code}
        if original_error is not None:
            details["original_error"] = str(original_error)
        super().__init__(message, details)
        self.receiver = receiver
        self.status_code = status_code
        self.original_error = original_error
