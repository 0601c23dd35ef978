"""Database models for files app."""

from typing import Final, final, override

from django.db import models
from django.utils import timezone

# Constants for field max lengths
_BUCKET_NAME_MAX_LENGTH: Final = 63  # S3 bucket name limit
_FILE_NAME_MAX_LENGTH: Final = 255
_OBJECT_KEY_MAX_LENGTH: Final = 1024  # S3 object key limit
_UPLOADED_BY_MAX_LENGTH: Final = 150  # Django username length


@final
class FileRecord(models.Model):
    """Catalog entry for an encrypted object in the blob store.

    A record exists exactly when a live object exists in ``bucket_name``
    under ``object_key``. Records are written once, after a successful
    blob store write, and are never updated afterwards.

    ``object_key`` follows the pattern ``{token}_{file_name}`` and is the
    same string used for every put/get/delete call against the bucket.
    """

    bucket_name = models.CharField(
        max_length=_BUCKET_NAME_MAX_LENGTH,
        help_text='Blob store bucket holding the object',
    )

    file_name = models.CharField(
        max_length=_FILE_NAME_MAX_LENGTH,
        help_text='Original client-supplied file name (not unique)',
        db_index=True,
    )

    object_key = models.CharField(
        max_length=_OBJECT_KEY_MAX_LENGTH,
        unique=True,
        help_text='Key of the encrypted object in the blob store',
    )

    file_size = models.BigIntegerField(
        null=True,
        blank=True,
        help_text='Plaintext size in bytes',
    )

    uploaded_by = models.CharField(
        max_length=_UPLOADED_BY_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Login of the uploader',
    )

    uploaded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        """Model metadata."""

        verbose_name = 'File record'  # type: ignore[mutable-override]
        verbose_name_plural = 'File records'  # type: ignore[mutable-override]
        ordering = ['-uploaded_at', '-id']

        indexes = [
            models.Index(
                fields=['file_name', '-uploaded_at'],
                name='files_name_recent_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.bucket_name}:{self.object_key}'
