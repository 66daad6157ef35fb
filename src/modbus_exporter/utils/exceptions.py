"""
Custom application exceptions.

Provides a structured way to handle errors across the pipeline stages.
Only SchemaError and ConfigurationError are fatal; everything else is
isolated to a single register, read range or sink.
"""

from typing import Any, Optional, Dict


class ExporterError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}


class ConfigurationError(ExporterError):
    """Raised when the process configuration is incomplete or inconsistent."""


class SchemaError(ExporterError):
    """Raised when a register schema document is malformed or inconsistent."""

    def __init__(self, message: str, problems: Optional[list[str]] = None):
        super().__init__(message, payload={"problems": list(problems or [])})
        self.problems = list(problems or [])

    def __str__(self) -> str:
        if not self.problems:
            return self.message
        return self.message + ": " + "; ".join(self.problems)


class DecodeError(ExporterError):
    """Raised when raw register words cannot be converted to a value."""

    def __init__(self, register_name: str, message: str):
        super().__init__(message, payload={"register": register_name})
        self.register_name = register_name

    def __str__(self) -> str:
        return f"{self.register_name}: {self.message}"


class LengthMismatchError(DecodeError):
    """Raised when the number of raw words does not match the data type span."""

    def __init__(self, register_name: str, expected: int, actual: int):
        super().__init__(
            register_name,
            f"expected {expected} register word(s), got {actual}",
        )
        self.expected = expected
        self.actual = actual


class ReadError(ExporterError):
    """Raised when a block of registers could not be read from the device."""

    def __init__(self, kind: str, address: int, count: int, message: str):
        super().__init__(
            message,
            payload={"kind": kind, "address": address, "count": count},
        )
        self.kind = kind
        self.address = address
        self.count = count

    def __str__(self) -> str:
        return f"{self.kind}[{self.address}:{self.address + self.count}]: {self.message}"


class SinkError(ExporterError):
    """Base class for metric sink failures."""

    def __init__(self, sink: str, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message, payload={"sink": sink, **(payload or {})})
        self.sink = sink

    def __str__(self) -> str:
        return f"{self.sink}: {self.message}"


class DeliveryFailedError(SinkError):
    """Raised when a backend rejects a write or cannot be reached."""

    def __init__(self, sink: str, message: str, status_code: Optional[int] = None):
        super().__init__(sink, message, payload={"status_code": status_code})
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return f"{self.sink}: delivery failed: {self.message}"
        return f"{self.sink}: delivery failed (HTTP {self.status_code}): {self.message}"
