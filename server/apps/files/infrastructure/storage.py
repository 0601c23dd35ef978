"""Blob store backend for encrypted file contents."""

import logging
from collections.abc import Iterator
from datetime import datetime
from typing import Any, BinaryIO, Final, final, override

from botocore.exceptions import BotoCoreError, ClientError
from django.core.files.base import ContentFile
from storages.backends.s3 import S3Storage
from storages.utils import clean_name

from server.apps.files.exceptions import NotFoundError, UpstreamServiceError

logger = logging.getLogger(__name__)

# Error codes S3-compatible services use for a missing key
_MISSING_KEY_CODES: Final = frozenset(('NoSuchKey', 'NotFound', '404'))


def _is_missing_key(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') in _MISSING_KEY_CODES


@final
class VaultStorage(S3Storage):
    """S3 storage backend holding ciphertext objects.

    Extends django-storages S3Storage with a narrow byte-oriented API
    (put/get/delete/list) used by the file storage service. The bucket
    is fixed per deployment through ``bucket_name``.

    botocore failures are translated into ``UpstreamServiceError``,
    missing keys into ``NotFoundError``. Nothing is retried here.
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save object to S3 with error handling and logging.

        Args:
            name: Object key for the content.
            content: File content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            Actual key used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading object to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded object: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload object to storage: %s', name)
            raise
        else:
            return saved_name

    def put(self, name: str, data: bytes) -> str:
        """Write bytes under the given key.

        Args:
            name: Requested object key.
            data: Bytes to store.

        Returns:
            Key the object was actually written under. Callers must
            use this value for every later access to the object.

        Raises:
            UpstreamServiceError: If the blob store rejects the write.
        """
        try:
            return self.save(name, ContentFile(data))
        except (BotoCoreError, ClientError) as error:
            raise UpstreamServiceError(
                f'Failed to write object to bucket {self.bucket_name}',
                operation='put',
                object_key=name,
            ) from error

    def get_stream(self, name: str) -> BinaryIO:
        """Open the object body as a byte stream.

        The caller is responsible for closing the returned stream.

        Args:
            name: Object key.

        Returns:
            Streaming body of the object.

        Raises:
            NotFoundError: If no object exists under the key.
            UpstreamServiceError: If the blob store request fails.
        """
        key = self._object_key(name)
        try:
            response = self.bucket.Object(key).get()
        except ClientError as error:
            if _is_missing_key(error):
                logger.warning('Object not found in storage: %s', key)
                raise NotFoundError(
                    f'Object not found: {name}',
                    operation='get',
                    object_key=name,
                ) from error
            logger.exception('Failed to fetch object from storage: %s', key)
            raise UpstreamServiceError(
                f'Failed to fetch object from bucket {self.bucket_name}',
                operation='get',
                object_key=name,
            ) from error
        except BotoCoreError as error:
            logger.exception('Failed to fetch object from storage: %s', key)
            raise UpstreamServiceError(
                f'Failed to fetch object from bucket {self.bucket_name}',
                operation='get',
                object_key=name,
            ) from error
        return response['Body']

    def get_bytes(self, name: str) -> bytes:
        """Read the whole object into memory.

        Args:
            name: Object key.

        Returns:
            Object contents.

        Raises:
            NotFoundError: If no object exists under the key.
            UpstreamServiceError: If the blob store request fails.
        """
        stream = self.get_stream(name)
        try:
            return stream.read()
        except BotoCoreError as error:
            logger.exception('Failed to read object body: %s', name)
            raise UpstreamServiceError(
                f'Failed to read object from bucket {self.bucket_name}',
                operation='get',
                object_key=name,
            ) from error
        finally:
            stream.close()

    @override
    def delete(self, name: str) -> None:
        """Delete object from S3 with error handling and logging.

        S3 reports success for missing keys, so existence is checked
        first to let callers tell the two cases apart.

        Args:
            name: Object key to delete.

        Raises:
            NotFoundError: If no object exists under the key.
            UpstreamServiceError: If the blob store request fails.
        """
        if not self.object_exists(name):
            logger.warning('Object to delete not found in storage: %s', name)
            raise NotFoundError(
                f'Object not found: {name}',
                operation='delete',
                object_key=name,
            )

        try:
            logger.info('Deleting object from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted object: %s', name)
        except (BotoCoreError, ClientError) as error:
            logger.exception('Failed to delete object from storage: %s', name)
            raise UpstreamServiceError(
                f'Failed to delete object from bucket {self.bucket_name}',
                operation='delete',
                object_key=name,
            ) from error

    def object_exists(self, name: str) -> bool:
        """Check whether an object exists under the key.

        Args:
            name: Object key.

        Returns:
            True if the object exists, False otherwise.

        Raises:
            UpstreamServiceError: If the existence check itself fails.
        """
        key = self._object_key(name)
        try:
            self.connection.meta.client.head_object(
                Bucket=self.bucket_name,
                Key=key,
            )
        except ClientError as error:
            if _is_missing_key(error):
                return False
            raise UpstreamServiceError(
                f'Failed to check object in bucket {self.bucket_name}',
                operation='head',
                object_key=name,
            ) from error
        except BotoCoreError as error:
            raise UpstreamServiceError(
                f'Failed to check object in bucket {self.bucket_name}',
                operation='head',
                object_key=name,
            ) from error
        return True

    def list_keys(self) -> Iterator[str]:
        """Enumerate object keys in the bucket.

        Keys come back in the store's native listing order. The
        iterator is single use; call again to re-enumerate.

        Yields:
            Object keys.

        Raises:
            UpstreamServiceError: If listing fails.
        """
        for object_key, _ in self.list_objects():
            yield object_key

    def list_objects(self) -> Iterator[tuple[str, datetime]]:
        """Enumerate object keys with their last modification time.

        Yields:
            (key, last modified) pairs in native listing order.

        Raises:
            UpstreamServiceError: If listing fails.
        """
        logger.debug('Listing objects in bucket: %s', self.bucket_name)
        try:
            for summary in self.bucket.objects.all():
                yield summary.key, summary.last_modified
        except (BotoCoreError, ClientError) as error:
            logger.exception(
                'Failed to list objects in bucket: %s',
                self.bucket_name,
            )
            raise UpstreamServiceError(
                f'Failed to list objects in bucket {self.bucket_name}',
                operation='list',
            ) from error

    def _object_key(self, name: str) -> str:
        return self._normalize_name(clean_name(name))
