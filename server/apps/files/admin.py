"""Django admin configuration for files app."""

from django.contrib import admin
from django.http import HttpRequest

from server.apps.files.models import FileRecord


@admin.register(FileRecord)
class FileRecordAdmin(admin.ModelAdmin[FileRecord]):
    """Read-only admin interface for FileRecord model.

    Records mirror objects in the blob store, so they are never edited
    or created here. Use the API to upload and delete files.
    """

    list_display = [
        'file_name',
        'object_key',
        'size_display',
        'uploaded_by',
        'uploaded_at',
    ]

    list_filter = [
        'bucket_name',
        'uploaded_at',
    ]

    search_fields = [
        'file_name',
        'object_key',
        'uploaded_by',
    ]

    readonly_fields = [
        'bucket_name',
        'file_name',
        'object_key',
        'file_size',
        'uploaded_by',
        'uploaded_at',
    ]

    def size_display(self, obj: FileRecord) -> str:
        """Display file size in human-readable format.

        Args:
            obj: FileRecord instance.

        Returns:
            Formatted size string (e.g., '1.5 MB').
        """
        size_bytes = obj.file_size
        if size_bytes is None:
            return '-'

        # Convert to appropriate unit
        if size_bytes < 1024:
            return f'{size_bytes} B'
        if size_bytes < 1024 * 1024:  # noqa: WPS531
            return f'{size_bytes / 1024:.1f} KB'
        if size_bytes < 1024 * 1024 * 1024:  # noqa: WPS531
            return f'{size_bytes / (1024 * 1024):.1f} MB'
        return f'{size_bytes / (1024 * 1024 * 1024):.1f} GB'
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def has_add_permission(self, request: HttpRequest) -> bool:
        """Records are only created by uploads."""
        return False

    def has_change_permission(
        self,
        request: HttpRequest,
        obj: FileRecord | None = None,
    ) -> bool:
        """Records are immutable once written."""
        return False
