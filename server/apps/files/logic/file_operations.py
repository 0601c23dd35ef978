"""Business logic for encrypted file operations."""

import logging
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from functools import cache
from typing import IO, BinaryIO, final

import boto3
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.files.storage import default_storage
from django.db import DatabaseError
from django.utils import timezone

from server.apps.files.exceptions import (
    InputError,
    MetadataInconsistencyError,
    NotFoundError,
    UpstreamServiceError,
)
from server.apps.files.infrastructure.kms import KeyServiceClient
from server.apps.files.infrastructure.metadata import (
    FileRecordRepository,
    build_object_key,
    extract_filename,
)
from server.apps.files.infrastructure.parameters import ParameterProvider
from server.apps.files.infrastructure.storage import VaultStorage
from server.apps.files.logic.interfaces import (
    BlobStore,
    KeyService,
    RecordRepository,
)
from server.apps.files.models import FileRecord

logger = logging.getLogger(__name__)


def _read_payload(payload: bytes | BinaryIO | None) -> bytes:
    """Read upload payload into memory.

    Args:
        payload: Raw bytes or a readable binary file object.

    Returns:
        Payload bytes.

    Raises:
        InputError: If the payload is missing or cannot be read.
    """
    if payload is None:
        raise InputError('Upload payload is required', operation='upload')
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)

    try:
        data = payload.read()
    except (OSError, ValueError) as error:
        logger.exception('Failed to read upload payload')
        raise InputError(
            'Failed to read upload payload',
            operation='upload',
        ) from error

    if not isinstance(data, bytes):
        raise InputError('Upload payload must be binary', operation='upload')
    return data


@final
class FileStorageService:
    """Stores files encrypted by KMS in the blob store with metadata records.

    Consistency model: the blob store is the source of truth for bytes,
    ``FileRecord`` is a catalog written after a successful blob write and
    removed after a successful blob delete. A failure between the two
    steps is reported as ``MetadataInconsistencyError`` and is not
    rolled back; orphans are found by the ``find_orphaned_blobs``
    management command.

    The service holds no mutable state, so one instance serves all
    requests concurrently.
    """

    def __init__(
        self,
        key_service: KeyService,
        blob_store: BlobStore,
        records: RecordRepository,
    ) -> None:
        """Initialize the service.

        Args:
            key_service: Encrypts/decrypts under the resolved KMS key.
            blob_store: Holds ciphertext objects.
            records: Persists file records.
        """
        self._key_service = key_service
        self._blob_store = blob_store
        self._records = records

    @property
    def bucket_name(self) -> str:
        """Bucket every object of this service lives in."""
        return self._blob_store.bucket_name

    def upload(
        self,
        payload: bytes | BinaryIO | None,
        original_name: str,
        uploaded_by: str = '',
    ) -> str:
        """Encrypt a file, store it and record its metadata.

        Order: encrypt, write blob, save record. The record's
        ``object_key`` is the key the blob store actually wrote.

        Args:
            payload: File contents (may be empty).
            original_name: Client-supplied file name.
            uploaded_by: Login of the uploader, if known.

        Returns:
            Object key to use for later downloads and deletes.

        Raises:
            InputError: If the name is invalid or the payload unreadable.
                No remote call is made in that case.
            UpstreamServiceError: If KMS or the blob store fails. No
                record is written.
            MetadataInconsistencyError: If the record could not be saved
                after the blob was written (orphaned blob).
        """
        filename = extract_filename(original_name or '')
        data = _read_payload(payload)
        object_key = build_object_key(filename)

        logger.info(
            'Uploading file %s as %s (%d bytes)',
            filename,
            object_key,
            len(data),
        )

        try:
            ciphertext = self._key_service.encrypt(data)
            saved_key = self._blob_store.put(object_key, ciphertext)
        except UpstreamServiceError:
            logger.exception(
                'Upload failed before metadata write: operation=upload, key=%s',
                object_key,
            )
            raise

        record = FileRecord(
            bucket_name=self.bucket_name,
            file_name=filename,
            object_key=saved_key,
            file_size=len(data),
            uploaded_by=uploaded_by or '',
            uploaded_at=timezone.now(),
        )
        try:
            self._records.save(record)
        except DatabaseError as error:
            logger.exception(
                'Metadata write failed, orphaned blob in bucket %s: %s',
                self.bucket_name,
                saved_key,
            )
            raise MetadataInconsistencyError(
                f'Stored object {saved_key} but failed to record its metadata',
                operation='upload',
                object_key=saved_key,
            ) from error

        logger.info('File uploaded successfully: %s', saved_key)
        return saved_key

    def download_as_bytes(self, object_key: str) -> bytes:
        """Fetch and decrypt a stored file.

        Args:
            object_key: Key returned by ``upload``.

        Returns:
            Decrypted file contents.

        Raises:
            NotFoundError: If no object exists under the key.
            UpstreamServiceError: If the blob store fails or the
                ciphertext cannot be decrypted.
        """
        logger.info('Downloading file: %s', object_key)
        try:
            ciphertext = self._blob_store.get_bytes(object_key)
            plaintext = self._key_service.decrypt(ciphertext)
        except UpstreamServiceError:
            logger.exception(
                'Download failed: operation=download, key=%s',
                object_key,
            )
            raise

        logger.info(
            'File downloaded and decrypted: %s (%d bytes)',
            object_key,
            len(plaintext),
        )
        return plaintext

    def open_download(self, object_key: str) -> IO[bytes]:
        """Decrypt a stored file into a new temporary file.

        The returned file is positioned at offset 0 and is removed from
        disk when closed. Ownership passes to the caller, who must close
        it. On any error the temporary file is closed before the
        exception propagates, so a partially written file never escapes.

        Args:
            object_key: Key returned by ``upload``.

        Returns:
            Open temporary file holding the plaintext.

        Raises:
            NotFoundError: If no object exists under the key.
            UpstreamServiceError: If the blob store fails or the
                ciphertext cannot be decrypted.
        """
        logger.info('Downloading file to temporary file: %s', object_key)
        handle = tempfile.TemporaryFile(prefix='download-')
        try:
            self._write_plaintext(object_key, handle)
        except UpstreamServiceError:
            handle.close()
            logger.exception(
                'Download failed: operation=download_file, key=%s',
                object_key,
            )
            raise
        except Exception:
            handle.close()
            raise

        handle.seek(0)
        return handle

    @contextmanager
    def download_as_file(self, object_key: str) -> Iterator[IO[bytes]]:
        """Context manager around ``open_download``.

        The temporary file is released when the block exits, whether it
        completes or raises.

        Args:
            object_key: Key returned by ``upload``.

        Yields:
            Open temporary file holding the plaintext.
        """
        handle = self.open_download(object_key)
        with handle:
            yield handle

    def list_files(self) -> Iterator[str]:
        """List object keys in the bucket.

        Order is the blob store's native listing order. Each call
        starts a fresh enumeration.

        Returns:
            Iterator over object keys.
        """
        logger.debug('Listing files in bucket: %s', self.bucket_name)
        return self._blob_store.list_keys()

    def get_record(self, object_key: str) -> FileRecord:
        """Get the metadata record of a stored file.

        Args:
            object_key: Key returned by ``upload``.

        Returns:
            FileRecord for the key.

        Raises:
            NotFoundError: If no record exists for the key.
        """
        record = self._records.find_by_object_key(object_key)
        if record is None:
            raise NotFoundError(
                f'No file record for key: {object_key}',
                operation='get_record',
                object_key=object_key,
            )
        return record

    def delete(self, object_key: str) -> None:
        """Delete a stored file and its metadata record.

        The blob is deleted first. Metadata is only touched once the
        blob is gone, and is matched by ``object_key``.

        Args:
            object_key: Key returned by ``upload``.

        Raises:
            NotFoundError: If no object exists under the key. Metadata
                is left untouched.
            UpstreamServiceError: If the blob store fails. Metadata is
                left untouched.
            MetadataInconsistencyError: If the blob was deleted but the
                record could not be removed.
        """
        logger.info('Deleting file: %s', object_key)
        try:
            self._blob_store.delete(object_key)
        except UpstreamServiceError:
            logger.exception(
                'Blob delete failed, metadata left untouched: key=%s',
                object_key,
            )
            raise

        try:
            deleted = self._records.delete_by_object_key(object_key)
        except DatabaseError as error:
            logger.exception(
                'Metadata delete failed after blob delete: key=%s',
                object_key,
            )
            raise MetadataInconsistencyError(
                f'Deleted object {object_key} but failed to remove its record',
                operation='delete',
                object_key=object_key,
            ) from error

        if not deleted:
            logger.warning(
                'Deleted object had no metadata record: %s',
                object_key,
            )
        logger.info('File deleted successfully: %s', object_key)

    def _write_plaintext(self, object_key: str, handle: IO[bytes]) -> None:
        stream = self._blob_store.get_stream(object_key)
        try:
            for chunk in self._key_service.decrypt_stream(stream):
                handle.write(chunk)
        finally:
            stream.close()
        handle.flush()


def _resolve_key_id(provider: ParameterProvider) -> str:
    """Resolve the KMS key id from settings or Parameter Store."""
    if settings.KMS_KEY_ID:
        logger.info('Using KMS key id from settings')
        return settings.KMS_KEY_ID
    return provider.resolve_key_id(settings.KMS_KEY_PARAMETER_NAME)


def _get_storage(provider: ParameterProvider | None = None) -> VaultStorage:
    """Get the blob store backend.

    Uses the configured default storage unless storage credentials are
    kept in Secrets Manager, in which case a dedicated backend is built
    with those credentials.

    Args:
        provider: Parameter provider used to load the credentials secret.

    Returns:
        VaultStorage instance.
    """
    secret_name = settings.AWS_CREDENTIALS_SECRET_NAME
    if not secret_name:
        return default_storage  # type: ignore[return-value]

    provider = provider or _build_parameter_provider()
    secret = provider.load_secret(secret_name)
    try:
        credentials = {
            'access_key': secret['AWS_ACCESS_KEY_ID'],
            'secret_key': secret['AWS_SECRET_ACCESS_KEY'],
        }
    except KeyError as error:
        raise ImproperlyConfigured(
            f'Secret {secret_name} lacks AWS access key fields',
        ) from error

    options = {
        **settings.STORAGES['default'].get('OPTIONS', {}),
        **credentials,
    }
    return VaultStorage(**options)


def get_blob_store() -> VaultStorage:
    """Get the blob store backend for maintenance tasks.

    Returns:
        VaultStorage instance.
    """
    return _get_storage()


def _build_parameter_provider() -> ParameterProvider:
    region = settings.AWS_REGION_NAME
    return ParameterProvider(
        ssm_client=boto3.client('ssm', region_name=region),
        secrets_client=boto3.client('secretsmanager', region_name=region),
    )


@cache
def get_file_storage_service() -> FileStorageService:
    """Build the process-wide file storage service.

    The KMS key id is resolved exactly once per process, here. Call
    this at startup so a missing key id stops the process early.

    Returns:
        Shared FileStorageService.

    Raises:
        KeyResolutionError: If the KMS key id cannot be resolved.
    """
    provider = _build_parameter_provider()
    key_id = _resolve_key_id(provider)
    service = FileStorageService(
        key_service=KeyServiceClient(
            boto3.client('kms', region_name=settings.AWS_REGION_NAME),
            key_id,
        ),
        blob_store=_get_storage(provider),
        records=FileRecordRepository(),
    )
    logger.info(
        'File storage service ready (bucket: %s)',
        service.bucket_name,
    )
    return service
