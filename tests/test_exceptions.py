"""Tests for custom exceptions."""

import unittest

from bridgex.exceptions import (
    AsyncJobTimeoutError,
    BridgexError,
    ConfigurationError,
    GcsOperationError,
    IncompatibleSchemaError,
    ProvisioningError,
    RegistryError,
    ResultNotReadyError,
    RetryableSynapseError,
    RowCountMismatchError,
    RowProcessingError,
    SynapseClientError,
    SynapseError,
    SynapseServiceError,
    SynapseTransportError,
)


class TestExceptions(unittest.TestCase):
    """Test cases for custom exception classes."""

    def test_base_exception_inheritance(self) -> None:
        """Test that all exceptions inherit from BridgexError."""
        for exc_class in (
            AsyncJobTimeoutError,
            ConfigurationError,
            GcsOperationError,
            IncompatibleSchemaError,
            ProvisioningError,
            RegistryError,
            RowCountMismatchError,
            RowProcessingError,
            SynapseError,
        ):
            self.assertTrue(issubclass(exc_class, BridgexError), exc_class.__name__)

    def test_bridgex_error_inherits_from_exception(self) -> None:
        self.assertTrue(issubclass(BridgexError, Exception))

    def test_synapse_error_tiers(self) -> None:
        """Only service and transport failures are retryable."""
        self.assertTrue(issubclass(SynapseServiceError, RetryableSynapseError))
        self.assertTrue(issubclass(SynapseTransportError, RetryableSynapseError))
        self.assertFalse(issubclass(SynapseClientError, RetryableSynapseError))
        self.assertFalse(issubclass(ResultNotReadyError, RetryableSynapseError))

    def test_synapse_error_status_code(self) -> None:
        exc = SynapseServiceError("throttled", 429)

        self.assertEqual(str(exc), "throttled")
        self.assertEqual(exc.status_code, 429)
        self.assertIsNone(SynapseTransportError("reset").status_code)

    def test_async_job_timeout_message(self) -> None:
        exc = AsyncJobTimeoutError("csv import to syn1", "tok-1", 300)

        self.assertEqual(exc.job_token, "tok-1")
        self.assertEqual(exc.attempts, 300)
        self.assertIn("tok-1", str(exc))
        self.assertIn("300", str(exc))

    def test_row_count_mismatch_message(self) -> None:
        exc = RowCountMismatchError("syn1", 10, 9)

        self.assertEqual(
            str(exc), "Wrong number of lines processed importing to table=syn1, expected=10, actual=9"
        )

    def test_exception_chaining(self) -> None:
        """Test exception chaining with from clause."""
        original_error = ValueError("Original error")

        try:
            raise RegistryError("Connection failed") from original_error
        except RegistryError as e:
            self.assertIs(e.__cause__, original_error)


if __name__ == "__main__":
    unittest.main()
