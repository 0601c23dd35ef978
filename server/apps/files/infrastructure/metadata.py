"""Metadata store for file records and object key naming."""

import logging
import uuid
from pathlib import PurePosixPath, PureWindowsPath
from typing import Final, final

from django.db import transaction

from server.apps.files.exceptions import InputError
from server.apps.files.models import FileRecord

logger = logging.getLogger(__name__)

_KEY_SEPARATOR: Final = '_'
_RESERVED_NAMES: Final = frozenset(('', '.', '..'))


def extract_filename(original_name: str) -> str:
    """Extract the final path component of a client-supplied name.

    Both POSIX and Windows separators are stripped, so
    'C:\\docs\\report.pdf' and 'docs/report.pdf' both give 'report.pdf'.

    Args:
        original_name: Name as sent by the client.

    Returns:
        Bare filename.

    Raises:
        InputError: If nothing usable remains or the name does not fit
            the ``FileRecord.file_name`` column.
    """
    filename = PureWindowsPath(PurePosixPath(original_name).name).name
    filename = filename.strip()
    max_length = FileRecord._meta.get_field('file_name').max_length  # noqa: WPS437
    if filename in _RESERVED_NAMES or len(filename) > max_length:
        raise InputError(
            f'Invalid file name: {original_name!r}',
            operation='upload',
        )
    return filename


def build_object_key(filename: str) -> str:
    """Build a collision-free object key for a file.

    Args:
        filename: Bare filename (see ``extract_filename``).

    Returns:
        Key of the form '{random token}_{filename}'.
    """
    return f'{uuid.uuid4().hex}{_KEY_SEPARATOR}{filename}'


def filename_from_object_key(object_key: str) -> str:
    """Recover the original filename from an object key.

    Args:
        object_key: Key produced by ``build_object_key``.

    Returns:
        Original filename, or the key itself if it has no token prefix.
    """
    _, separator, filename = object_key.partition(_KEY_SEPARATOR)
    return filename if separator and filename else object_key


@final
class FileRecordRepository:
    """Persists ``FileRecord`` rows through the Django ORM."""

    def save(self, record: FileRecord) -> FileRecord:
        """Insert a new record.

        Args:
            record: Unsaved record.

        Returns:
            The saved record with its id assigned.
        """
        with transaction.atomic():
            record.save(force_insert=True)
        logger.info(
            'File record created in database: %s (ID: %d)',
            record.object_key,
            record.id,
        )
        return record

    def find_by_object_key(self, object_key: str) -> FileRecord | None:
        """Look up the record for an object key.

        Args:
            object_key: Blob store key.

        Returns:
            Matching record or None.
        """
        return FileRecord.objects.filter(object_key=object_key).first()

    def find_by_file_name(self, file_name: str) -> FileRecord | None:
        """Look up the most recent record with an original filename.

        File names are not unique; the newest upload wins.

        Args:
            file_name: Original client-supplied name.

        Returns:
            Matching record or None.
        """
        return FileRecord.objects.filter(
            file_name=file_name,
        ).order_by('-uploaded_at', '-id').first()

    def delete_by_file_name(self, file_name: str) -> int:
        """Delete every record with an original filename.

        Args:
            file_name: Original client-supplied name.

        Returns:
            Number of records deleted.
        """
        with transaction.atomic():
            deleted, _ = FileRecord.objects.filter(file_name=file_name).delete()
        logger.info('Deleted %d file records named: %s', deleted, file_name)
        return deleted

    def delete_by_object_key(self, object_key: str) -> int:
        """Delete the record for an object key.

        Args:
            object_key: Blob store key.

        Returns:
            Number of records deleted (0 or 1).
        """
        with transaction.atomic():
            deleted, _ = FileRecord.objects.filter(
                object_key=object_key,
            ).delete()
        logger.info('Deleted %d file records for key: %s', deleted, object_key)
        return deleted
