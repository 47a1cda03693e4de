"""Exceptions raised while compiling a recording into an Intent Spec.

Only ``MalformedRecordingError`` and ``FallbackExhaustedError`` reach the caller
of ``compile``. Every ``GenerationError`` is scoped to one generation path and
is absorbed by the coordinator when another path is available.
"""


class CompileError(Exception):
    """Base class for all compiler errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MalformedRecordingError(CompileError):
    """The recording is missing the fields needed to build even a degraded spec."""


class GenerationError(CompileError):
    """A single generation path failed. Recoverable by falling back."""


class ReductionOverflowError(GenerationError):
    """The reduced recording (or the prompt built from it) is over its size budget."""

    def __init__(self, message: str, size: int, budget: int):
        self.size = size
        self.budget = budget
        super().__init__(message)


class ServiceUnavailableError(GenerationError):
    """The external analysis service could not be reached or returned an error."""


class ServiceTimeoutError(GenerationError):
    """The external analysis service did not produce a result in time."""


class ServiceProtocolError(GenerationError):
    """The service broke the single request/response contract."""


class UnparseableResponseError(GenerationError):
    """The service replied, but no JSON object could be extracted from the text."""


class InvalidSpecError(GenerationError):
    """A parsed JSON object does not describe an Intent Spec."""


class RedactionViolationError(GenerationError):
    """A spec leaks a literal value and the leak cannot be traced to a Param."""

    def __init__(self, message: str, placeholders: list[str] | None = None):
        self.placeholders = placeholders or []
        super().__init__(message)


class FallbackExhaustedError(CompileError):
    """Every strategy in the chain failed."""

    def __init__(self, errors: list[GenerationError]):
        self.errors = errors
        details = "; ".join(f"{type(e).__name__}: {e.message}" for e in errors)
        super().__init__(f"All generation strategies failed ({details or 'no strategy ran'})")
