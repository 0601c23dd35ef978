"""Exceptions for files app.

Every failure of a storage operation is reported as one of the
``FileStorageError`` subclasses below. The HTTP layer maps them to
responses: ``InputError`` and ``NotFoundError`` are client faults,
``UpstreamServiceError`` and ``MetadataInconsistencyError`` are
server faults.
"""

from django.core.exceptions import ImproperlyConfigured


class FileStorageError(Exception):
    """Base class for file storage failures."""

    def __init__(
        self,
        message: str,
        *,
        operation: str = '',
        object_key: str = '',
    ) -> None:
        """Initialize FileStorageError.

        Args:
            message: Human readable description.
            operation: Name of the failed operation (e.g. 'upload').
            object_key: Blob store key involved, if known.
        """
        self.operation = operation
        self.object_key = object_key
        super().__init__(message)


class InputError(FileStorageError):
    """Raised when the caller supplied an unusable payload or name."""


class NotFoundError(FileStorageError):
    """Raised when the requested object key does not exist."""


class UpstreamServiceError(FileStorageError):
    """Raised when the key service or the blob store fails."""


class MetadataInconsistencyError(FileStorageError):
    """Raised when blob store and metadata store disagree.

    Typical cause: the blob was written but the metadata record
    could not be saved, leaving an orphaned blob behind.
    """


class KeyResolutionError(ImproperlyConfigured):
    """Raised when the KMS key identifier cannot be resolved at startup."""
