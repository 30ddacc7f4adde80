"""Exception hierarchy shared by the Esplora client layers."""

from __future__ import annotations


class EsploraError(RuntimeError):
    """Base class for every error raised by the client."""


class TransportError(EsploraError):
    """Raised when the Esplora endpoint cannot be reached at all."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class ResponseError(EsploraError):
    """Raised when a response cannot be turned into a domain value."""


class RemoteError(ResponseError):
    """Raised when the server answers with a non-2xx status."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"HTTP {status}: {body}" if body else f"HTTP {status}")
        self.status = status
        self.body = body

    @property
    def not_found(self) -> bool:
        return self.status == 404


class InvalidResponseError(ResponseError):
    """Raised when a well-formed body carries a semantically invalid field."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"invalid field {field!r}: {reason}")
        self.field = field
        self.reason = reason


class DecodeError(EsploraError, ValueError):
    """Raised when consensus-serialized bytes cannot be decoded."""


class TruncatedError(DecodeError):
    """Fewer bytes remain than the next field requires."""

    def __init__(self, field: str, needed: int, available: int) -> None:
        super().__init__(
            f"truncated data reading {field}: needed {needed} bytes, {available} available"
        )
        self.field = field
        self.needed = needed
        self.available = available


class TrailingBytesError(DecodeError):
    """Bytes remain after a complete structure was parsed."""

    def __init__(self, structure: str, remaining: int) -> None:
        super().__init__(f"{remaining} trailing byte(s) after {structure}")
        self.structure = structure
        self.remaining = remaining


class BadEncodingError(DecodeError):
    """The bytes (or hex text) violate the serialization rules."""


class ConstructionError(EsploraError, ValueError):
    """Raised when a request cannot be built from the caller's parameters."""


class MissingParameterError(ConstructionError):
    def __init__(self, operation: str, parameter: str) -> None:
        super().__init__(f"operation {operation!r} requires parameter {parameter!r}")
        self.operation = operation
        self.parameter = parameter


class UnknownOperationError(ConstructionError):
    def __init__(self, operation: str) -> None:
        super().__init__(f"unknown operation {operation!r}")
        self.operation = operation
