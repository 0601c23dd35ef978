"""Management command to reconcile the blob store with file records."""

import logging
from datetime import timedelta
from typing import Any, Final

from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.files.exceptions import FileStorageError
from server.apps.files.infrastructure.storage import VaultStorage
from server.apps.files.logic.file_operations import get_blob_store
from server.apps.files.models import FileRecord

logger = logging.getLogger(__name__)

# Uploads write the blob before the record; younger blobs may be in flight
_DEFAULT_MIN_AGE_MINUTES: Final = 60


class Command(BaseCommand):
    """Report blobs without records and records without blobs.

    Uploads that stored a blob but failed to write the record leave
    orphaned blobs behind; this command finds them out of band. Blobs
    younger than ``--min-age`` minutes are never treated as orphans,
    since their upload may still be about to save its record.
    """

    help = 'Find orphaned blobs and file records without blobs'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--delete-orphans',
            action='store_true',
            help='Delete blobs that have no file record',
        )
        parser.add_argument(
            '--min-age',
            type=int,
            default=_DEFAULT_MIN_AGE_MINUTES,
            help=(
                'Minimum blob age in minutes before it counts as orphaned '
                f'(default: {_DEFAULT_MIN_AGE_MINUTES})'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the reconciliation.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        delete_orphans = options['delete_orphans']
        min_age = options['min_age']
        storage = get_blob_store()
        bucket_name = storage.bucket_name
        cutoff = timezone.now() - timedelta(minutes=min_age)

        self.stdout.write(f'Scanning bucket {bucket_name}')

        blobs = dict(storage.list_objects())
        record_keys = set(
            FileRecord.objects.filter(
                bucket_name=bucket_name,
            ).values_list('object_key', flat=True),
        )

        unrecorded = sorted(set(blobs) - record_keys)
        orphaned_blobs = [key for key in unrecorded if blobs[key] <= cutoff]
        recent_blobs = [key for key in unrecorded if blobs[key] > cutoff]
        missing_blobs = sorted(record_keys - set(blobs))

        for object_key in orphaned_blobs:
            self.stdout.write(f'Orphaned blob: {object_key}')
        for object_key in recent_blobs:
            self.stdout.write(f'Skipping recent blob: {object_key}')
        for object_key in missing_blobs:
            self.stdout.write(f'Record without blob: {object_key}')

        self.stdout.write(
            f'Found {len(orphaned_blobs)} orphaned blobs and '
            f'{len(missing_blobs)} records without blobs',
        )

        if delete_orphans:
            self._delete_orphans(storage, orphaned_blobs)

    def _delete_orphans(
        self,
        storage: VaultStorage,
        orphaned_blobs: list[str],
    ) -> None:
        deleted = 0
        failed = 0
        for object_key in orphaned_blobs:
            # A record may have been committed since the scan
            if FileRecord.objects.filter(object_key=object_key).exists():
                logger.info('Blob gained a record, keeping: %s', object_key)
                continue
            try:
                storage.delete(object_key)
                deleted += 1
                logger.info('Deleted orphaned blob: %s', object_key)
            except FileStorageError as exc:
                self.stderr.write(f'Failed to delete {object_key}: {exc}')
                logger.exception('Failed to delete orphaned blob: %s', object_key)
                failed += 1

        self.stdout.write(
            self.style.SUCCESS(
                f'Deleted {deleted} orphaned blobs, {failed} failed',
            ),
        )
