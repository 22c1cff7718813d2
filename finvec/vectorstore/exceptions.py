"""
Error taxonomy for vector storage.

Every error carries the name of the backend that raised it, so a failed
call reports both the failure kind and which storage medium was active.
"""


class VectorStoreError(Exception):
    """Base exception for vector store errors."""

    def __init__(self, message: str, backend: str | None = None):
        super().__init__(message)
        self.message = message
        self.backend = backend

    def __str__(self) -> str:
        if self.backend:
            return f"[{self.backend}] {self.message}"
        return self.message


class DimensionMismatchError(VectorStoreError, ValueError):
    """Raised when a vector's length disagrees with the established dimensionality."""

    def __init__(self, expected: int, actual: int, backend: str | None = None):
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}",
            backend=backend,
        )
        self.expected = expected
        self.actual = actual


class BackendUnavailableError(VectorStoreError):
    """Raised when a backend is not configured or could never be reached."""


class StorageError(VectorStoreError):
    """Raised when the embedded store cannot read or write its file."""


class RemoteRequestError(VectorStoreError):
    """Raised when the remote service answered with an error or a bad body."""

    def __init__(
        self,
        message: str,
        backend: str | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message, backend=backend)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def is_transient(self) -> bool:
        """True for failures that may succeed on retry (429, 5xx, no status)."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class RemoteTimeoutError(RemoteRequestError):
    """Raised when a remote request exceeds its configured deadline."""


class MalformedStoredVectorError(VectorStoreError):
    """Raised when a stored vector cannot be deserialized."""

    def __init__(self, record_id: str, reason: str, backend: str | None = None):
        super().__init__(
            f"Stored vector for {record_id!r} is malformed: {reason}",
            backend=backend,
        )
        self.record_id = record_id
