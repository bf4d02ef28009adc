"""
Custom exception classes for the EOI CAN telemetry application.

Decoding never raises: an unrecognized or truncated frame is reported as
``None``. The exceptions below cover transport and configuration failures.
Contract violations (for example a payload longer than 8 bytes) raise
``ValueError`` at construction time.
"""

from typing import Any


class TelemetryException(Exception):
    """Base exception for all telemetry application errors.

    All custom exceptions inherit from this class so callers can catch every
    application-specific error while preserving the hierarchy.
    """
    pass


class CanAdapterError(TelemetryException):
    """Exception raised for CAN adapter connection or operation failures.

    Attributes:
        adapter_type: Type of adapter that failed (e.g., 'socketcan', 'sim')
        operation: Operation that failed (e.g., 'connect', 'send')
        original_error: The underlying exception that caused this error
    """

    def __init__(self, message: str, adapter_type: str = None, operation: str = None,
                 original_error: Exception = None):
        super().__init__(message)
        self.adapter_type = adapter_type
        self.operation = operation
        self.original_error = original_error


class TransportError(CanAdapterError):
    """Raised when reading from or writing to the bus fails.

    A transport error is fatal to the task that hit it. Whether that task is
    restarted is up to whoever supervises the pipeline.
    """
    pass


class ConfigurationError(TelemetryException):
    """Exception raised for invalid configuration values.

    Attributes:
        setting_name: Name of the setting that is invalid
        setting_value: The invalid value
        expected: Description of expected value
    """

    def __init__(self, message: str, setting_name: str = None, setting_value: Any = None,
                 expected: str = None):
        super().__init__(message)
        self.setting_name = setting_name
        self.setting_value = setting_value
        self.expected = expected
