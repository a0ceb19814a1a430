"""Database models for library app."""

from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_EXTENSION_MAX_LENGTH: Final = 32
_STORAGE_KEY_MAX_LENGTH: Final = 512
_SLUG_MAX_LENGTH: Final = 64
_ROLE_MAX_LENGTH: Final = 16


class PermissionRole(models.TextChoices):
    """Access level granted to a non-owner.

    Ordered VIEWER < EDITOR < OWNER, see ``logic.access_control.role_rank``.
    """

    OWNER = 'OWNER', 'Owner'
    EDITOR = 'EDITOR', 'Editor'
    VIEWER = 'VIEWER', 'Viewer'


class ResourceKind(models.TextChoices):
    """The two node kinds of the library hierarchy."""

    FOLDER = 'folder', 'Folder'
    FILE = 'file', 'File'


@final
class Folder(models.Model):
    """Folder in a user's library.

    Folders form a tree through ``parent``; a null parent means the folder
    sits at the owner's root. Deleting a folder row cascades to its
    subfolders, files and permission entries at the database level.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='folders',
        db_index=True,
    )

    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    description = models.TextField(null=True, blank=True)  # noqa: DJ001

    order = models.IntegerField(default=0)

    is_public = models.BooleanField(default=False)

    public_slug = models.CharField(
        max_length=_SLUG_MAX_LENGTH,
        unique=True,
        null=True,
        blank=True,
        help_text='Unguessable token for anonymous access',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['order', 'name']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['owner', 'parent'],
                name='folders_owner_parent_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.name}'


@final
class File(models.Model):
    """File stored in S3-compatible storage.

    The row carries the metadata; ``file.name`` is the opaque storage key
    of the bytes, following the pattern ``{owner_id}/{random}{ext}``.
    A null ``folder`` means the file sits at the owner's root.
    """

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    folder = models.ForeignKey(
        Folder,
        on_delete=models.CASCADE,
        related_name='files',
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    original_name = models.CharField(max_length=_NAME_MAX_LENGTH)

    description = models.TextField(null=True, blank=True)  # noqa: DJ001

    # upload_to='' means we control the full key
    file = models.FileField(
        upload_to='',
        max_length=_STORAGE_KEY_MAX_LENGTH,
        help_text='Storage key: {owner_id}/{random}.ext',
    )

    mime_type = models.CharField(max_length=_MIME_TYPE_MAX_LENGTH)

    size_bytes = models.BigIntegerField(help_text='File size in bytes')

    extension = models.CharField(
        max_length=_EXTENSION_MAX_LENGTH,
        blank=True,
        default='',
    )

    order = models.IntegerField(default=0)

    is_public = models.BooleanField(default=False)

    public_slug = models.CharField(
        max_length=_SLUG_MAX_LENGTH,
        unique=True,
        null=True,
        blank=True,
        help_text='Unguessable token for anonymous access',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['order', 'name']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['owner', 'folder'],
                name='files_owner_folder_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.name}'

    @property
    def storage_key(self) -> str:
        """Opaque key of the stored bytes."""
        return self.file.name


@final
class FolderPermission(models.Model):
    """Explicit grant of a role on a folder to a non-owner."""

    folder = models.ForeignKey(
        Folder,
        on_delete=models.CASCADE,
        related_name='permissions',
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='folder_permissions',
        db_index=True,
    )

    role = models.CharField(
        max_length=_ROLE_MAX_LENGTH,
        choices=PermissionRole.choices,
        default=PermissionRole.VIEWER,
    )

    granted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder permission'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folder permissions'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-granted_at']

        constraints: ClassVar[list[models.UniqueConstraint]] = [
            # One grant per (folder, user) pair
            models.UniqueConstraint(
                fields=['folder', 'user'],
                name='folder_permissions_folder_user_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}@folder:{self.folder_id} ({self.role})'


@final
class FilePermission(models.Model):
    """Explicit grant of a role on a file to a non-owner."""

    file = models.ForeignKey(
        File,
        on_delete=models.CASCADE,
        related_name='permissions',
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='file_permissions',
        db_index=True,
    )

    role = models.CharField(
        max_length=_ROLE_MAX_LENGTH,
        choices=PermissionRole.choices,
        default=PermissionRole.VIEWER,
    )

    granted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File permission'  # type: ignore[mutable-override]
        verbose_name_plural = 'File permissions'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-granted_at']

        constraints: ClassVar[list[models.UniqueConstraint]] = [
            # One grant per (file, user) pair
            models.UniqueConstraint(
                fields=['file', 'user'],
                name='file_permissions_file_user_unique',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user_id}@file:{self.file_id} ({self.role})'


# Either node kind of the hierarchy
Resource = Folder | File
