"""Exception taxonomy for the BSMI tools.

- BsmiToolsError (base)
- InvalidCodeFormat
- MalformedModel
- ArgumentValidationError
  - NullIteration, NullPartitions, EmptyPartitionList, NullOutputTarget
- ProviderError
  - ModelNotFound, ConnectionFailed

Non-fatal findings (conflicting or missing allocations) are not exceptions; they are
reported as ``AllocationIssue`` records by the allocation resolver.
"""

from __future__ import annotations


class BsmiToolsError(Exception):
    """Base class for all errors raised by the BSMI tools."""


class InvalidCodeFormat(BsmiToolsError, ValueError):
    """An allocation code is not a 4-digit numeric string."""

    def __init__(self, code: object) -> None:
        super().__init__(f"Input must be a 4-digit numeric string, got {code!r}")
        self.code = code


class MalformedModel(BsmiToolsError):
    """A required reference inside the model snapshot is missing or dangling."""


class ArgumentValidationError(BsmiToolsError, ValueError):
    """A required argument of a generator entry point is missing or empty."""


class NullIteration(ArgumentValidationError):
    def __init__(self, message: str = "iteration must not be None") -> None:
        super().__init__(message)


class NullPartitions(ArgumentValidationError):
    def __init__(self, message: str = "partitions must not be None") -> None:
        super().__init__(message)


class EmptyPartitionList(ArgumentValidationError):
    def __init__(self, message: str = "at least one specification partition is required") -> None:
        super().__init__(message)


class NullOutputTarget(ArgumentValidationError):
    def __init__(self, message: str = "output report path must not be None") -> None:
        super().__init__(message)


class ProviderError(BsmiToolsError):
    """The model snapshot could not be obtained."""


class ModelNotFound(ProviderError):
    pass


class ConnectionFailed(ProviderError):
    pass
