"""Custom exceptions for the bridgex exporter."""

from typing import Optional


class BridgexError(Exception):
    """Base exception class for bridgex-specific errors."""

    pass


class ConfigurationError(BridgexError):
    """Raised when configuration or a column invariant is invalid."""

    pass


class SynapseError(BridgexError):
    """Base class for errors returned by the Synapse REST API."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryableSynapseError(SynapseError):
    """Raised for Synapse failures that are worth retrying."""

    pass


class SynapseServiceError(RetryableSynapseError):
    """Raised on throttling (429) or server-side (5xx) responses."""

    pass


class SynapseTransportError(RetryableSynapseError):
    """Raised when the request never produced an HTTP response."""

    pass


class SynapseClientError(SynapseError):
    """Raised on client errors (4xx other than 429) and failed async jobs."""

    pass


class ResultNotReadyError(SynapseError):
    """Raised when an asynchronous job is still running.

    This is the expected steady state while polling, not a failure.
    """

    pass


class AsyncJobTimeoutError(BridgexError):
    """Raised when an asynchronous job exhausts its poll attempts."""

    def __init__(self, job_name: str, job_token: str, attempts: int) -> None:
        super().__init__(
            f"Timed out waiting for {job_name} job {job_token} after {attempts} polls"
        )
        self.job_name = job_name
        self.job_token = job_token
        self.attempts = attempts


class IncompatibleSchemaError(BridgexError):
    """Raised when an existing table cannot be migrated to new columns."""

    pass


class ProvisioningError(BridgexError):
    """Raised when table, column or ACL creation does not complete cleanly."""

    pass


class RowCountMismatchError(BridgexError):
    """Raised when Synapse processed a different number of rows than were written."""

    def __init__(self, table_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Wrong number of lines processed importing to table={table_id}, "
            f"expected={expected}, actual={actual}"
        )
        self.table_id = table_id
        self.expected = expected
        self.actual = actual


class RowProcessingError(BridgexError):
    """Raised when a single record cannot be rendered into a table row."""

    pass


class RegistryError(BridgexError):
    """Raised when the table registry cannot be read or written."""

    pass


class GcsOperationError(BridgexError):
    """Raised when a GCS operation fails."""

    pass
