"""Collaborator interfaces for the file storage service.

Each remote capability is described by a narrow protocol so that the
AWS-backed adapters in ``infrastructure`` can be swapped for in-memory
fakes in tests.
"""

from collections.abc import Iterator
from typing import BinaryIO, Protocol

from server.apps.files.models import FileRecord


class KeyService(Protocol):
    """Encrypts and decrypts opaque payloads (see ``KeyServiceClient``)."""

    def encrypt(self, plaintext: bytes) -> bytes: ...

    def decrypt(self, ciphertext: bytes) -> bytes: ...

    def decrypt_stream(self, stream: BinaryIO) -> Iterator[bytes]: ...


class BlobStore(Protocol):
    """Stores named byte objects in one bucket (see ``VaultStorage``)."""

    bucket_name: str

    def put(self, name: str, data: bytes) -> str: ...

    def get_bytes(self, name: str) -> bytes: ...

    def get_stream(self, name: str) -> BinaryIO: ...

    def delete(self, name: str) -> None: ...

    def list_keys(self) -> Iterator[str]: ...


class RecordRepository(Protocol):
    """Persists file records (see ``FileRecordRepository``)."""

    def save(self, record: FileRecord) -> FileRecord: ...

    def find_by_object_key(self, object_key: str) -> FileRecord | None: ...

    def find_by_file_name(self, file_name: str) -> FileRecord | None: ...

    def delete_by_file_name(self, file_name: str) -> int: ...

    def delete_by_object_key(self, object_key: str) -> int: ...
