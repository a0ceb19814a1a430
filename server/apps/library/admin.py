"""Django admin configuration for library app."""

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest

from server.apps.library.models import (
    File,
    FilePermission,
    Folder,
    FolderPermission,
)


def _format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes < 1024:
        return f'{size_bytes} B'
    if size_bytes < 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / 1024:.1f} KB'
    if size_bytes < 1024 * 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / (1024 * 1024):.1f} MB'
    return f'{size_bytes / (1024 * 1024 * 1024):.1f} GB'


class FolderPermissionInline(admin.TabularInline):
    """Grants on a folder, edited in place."""

    model = FolderPermission
    extra = 0
    raw_id_fields = ['user']
    readonly_fields = ['granted_at']


class FilePermissionInline(admin.TabularInline):
    """Grants on a file, edited in place."""

    model = FilePermission
    extra = 0
    raw_id_fields = ['user']
    readonly_fields = ['granted_at']


@admin.register(Folder)
class FolderAdmin(admin.ModelAdmin[Folder]):
    """Admin interface for Folder model."""

    list_display = [
        'name',
        'owner',
        'parent',
        'is_public',
        'order',
        'created_at',
    ]

    list_filter = [
        'is_public',
        'created_at',
        'owner',
    ]

    search_fields = [
        'name',
        'public_slug',
    ]

    raw_id_fields = ['owner', 'parent']

    readonly_fields = [
        'public_slug',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        ('Folder Information', {
            'fields': ('name', 'description', 'owner', 'parent', 'order'),
        }),
        ('Sharing', {
            'fields': ('is_public', 'public_slug'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    inlines = [FolderPermissionInline]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Folder]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('owner', 'parent')


@admin.register(File)
class FileAdmin(admin.ModelAdmin[File]):
    """Admin interface for File model."""

    list_display = [
        'name',
        'owner',
        'folder',
        'size_display',
        'mime_type',
        'is_public',
        'created_at',
    ]

    list_filter = [
        'mime_type',
        'is_public',
        'created_at',
        'owner',
    ]

    search_fields = [
        'name',
        'original_name',
        'file',  # Searches the storage key
    ]

    raw_id_fields = ['owner', 'folder']

    readonly_fields = [
        'file',
        'size_bytes',
        'mime_type',
        'extension',
        'public_slug',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        ('File Information', {
            'fields': (
                'name',
                'original_name',
                'description',
                'owner',
                'folder',
                'order',
            ),
        }),
        ('Storage', {
            'fields': (
                'file',
                'size_bytes',
                'mime_type',
                'extension',
            ),
        }),
        ('Sharing', {
            'fields': ('is_public', 'public_slug'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    inlines = [FilePermissionInline]

    def size_display(self, obj: File) -> str:
        """Display file size in human-readable format.

        Args:
            obj: File instance.

        Returns:
            Formatted size string.
        """
        return _format_bytes(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[File]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('owner', 'folder')
