"""Result objects returned by the library logic layer.

Batch, recursive and listing operations return these instead of bare
values so callers can inspect partial success.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Final, final, override

from django.conf import settings

from server.apps.library.models import (
    File,
    FilePermission,
    Folder,
    FolderPermission,
    PermissionRole,
    ResourceKind,
)


@final
class _Unset:
    """Marker for keyword arguments the caller did not pass."""

    @override
    def __repr__(self) -> str:
        return 'UNSET'


# ``None`` is a meaningful value for parent/folder ids (the root),
# so "not given" needs its own marker.
UNSET: Final = _Unset()


@final
@dataclass(frozen=True)
class Capabilities:
    """Per-caller flags derived from ownership, grants and public flag."""

    is_owner: bool
    user_role: PermissionRole | None
    can_edit: bool
    can_delete: bool
    can_share: bool
    can_download: bool


@final
@dataclass(frozen=True)
class Breadcrumb:
    """One ancestor entry of a folder's path."""

    id: int
    name: str
    parent_id: int | None


@final
@dataclass(frozen=True)
class PageMeta:
    """Pagination metadata of a listing."""

    page: int
    limit: int
    total: int
    total_pages: int


def build_page_meta(page: int, limit: int, total: int) -> PageMeta:
    """Build pagination metadata.

    Args:
        page: 1-based page number.
        limit: Page size.
        total: Total number of items.

    Returns:
        PageMeta instance.
    """
    return PageMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if limit else 0,
    )


def page_bounds(page: int | None, limit: int | None) -> tuple[int, int]:
    """Normalize page and limit, falling back to the configured page size.

    Args:
        page: Requested 1-based page (``None`` or < 1 means 1).
        limit: Requested page size (``None`` or < 1 means default).

    Returns:
        Tuple of (page, limit).
    """
    default_limit = getattr(settings, 'LIBRARY_DEFAULT_PAGE_SIZE', 20)
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else default_limit
    return page, limit


@final
@dataclass(frozen=True)
class DeleteResult:
    """Outcome of a (possibly cascading) folder delete."""

    folders_deleted: int
    files_deleted: int
    storage_failures: int


@final
@dataclass(frozen=True)
class FolderEntry:
    """Folder annotated with the caller's capabilities."""

    folder: Folder
    capabilities: Capabilities


@final
@dataclass(frozen=True)
class FileEntry:
    """File annotated with the caller's capabilities."""

    file: File
    capabilities: Capabilities


@final
@dataclass(frozen=True)
class FolderContent:
    """A folder with its breadcrumbs and direct children."""

    folder: FolderEntry
    breadcrumbs: list[Breadcrumb]
    path: str
    subfolders: list[FolderEntry]
    files: list[FileEntry]
    total_subfolders: int
    total_files: int


@final
@dataclass(frozen=True)
class DownloadInfo:
    """Where and how to download a file's bytes."""

    url: str
    file_name: str
    mime_type: str
    size_bytes: int
    expires_at: datetime | None


@final
@dataclass(frozen=True)
class FolderCloneResult:
    """Outcome of a recursive folder clone."""

    cloned_folder: Folder
    cloned_files_count: int
    cloned_subfolders_count: int


@final
@dataclass(frozen=True)
class FileCloneResult:
    """Outcome of a single file clone."""

    cloned_file: File


@final
@dataclass(frozen=True)
class PermissionCheck:
    """Answer to "may this user act on this resource"."""

    has_access: bool
    user_role: PermissionRole | None
    is_owner: bool


@final
@dataclass(frozen=True)
class BatchGrantResult:
    """Outcome of granting one resource to many users."""

    granted: int
    failed: int
    permissions: list[FolderPermission | FilePermission]


@final
@dataclass(frozen=True)
class GrantError:
    """A (resource, user) pair that could not be granted."""

    resource_id: int
    user_id: int
    error: str


@final
@dataclass(frozen=True)
class BulkGrantResult:
    """Outcome of granting many resources to many users."""

    success: int
    failed: int
    errors: list[GrantError]


@final
@dataclass(frozen=True)
class SharedUser:
    """A grantee of a resource."""

    user_id: int
    user_name: str
    user_email: str
    role: PermissionRole
    granted_at: datetime
    permission_id: int


@final
@dataclass(frozen=True)
class SharedUsers:
    """All grantees of a resource."""

    users: list[SharedUser]
    total_users: int


@final
@dataclass(frozen=True)
class GrantedResource:
    """A resource a user holds an explicit grant on."""

    kind: ResourceKind
    resource_id: int
    resource_name: str
    role: PermissionRole


@final
@dataclass(frozen=True)
class UserPermissionSummary:
    """Every explicit grant held by one user."""

    user_id: int
    folders: list[GrantedResource]
    files: list[GrantedResource]


@final
@dataclass(frozen=True)
class OwnerGrant:
    """A grant on one of an owner's resources, seen from the owner."""

    permission_id: int
    resource_id: int
    resource_name: str
    resource_description: str | None
    role: PermissionRole
    granted_at: datetime


@final
@dataclass
class UserWithAccess:
    """A grantee with every grant they hold on an owner's resources."""

    user_id: int
    user_name: str
    user_email: str
    user_created_at: datetime
    folders: list[OwnerGrant] = field(default_factory=list)
    files: list[OwnerGrant] = field(default_factory=list)
    total_folders: int = 0
    total_files: int = 0


@final
@dataclass(frozen=True)
class UsersWithAccessPage:
    """Paginated grantees of an owner's resources."""

    users: list[UserWithAccess]
    meta: PageMeta


@final
@dataclass(frozen=True)
class PublicResource:
    """A resource resolved from a public slug."""

    kind: ResourceKind
    resource: Folder | File


@final
@dataclass(frozen=True)
class LibraryStats:
    """Totals over a user's own resources."""

    total_folders: int
    total_files: int
    total_size_bytes: int
    public_folders: int
    public_files: int


@final
@dataclass(frozen=True)
class LibraryPage:
    """A user's library: owned and shared folders and files."""

    folders: list[FolderEntry]
    folders_meta: PageMeta
    files: list[FileEntry]
    files_meta: PageMeta
    stats: LibraryStats


@final
@dataclass(frozen=True)
class SearchResult:
    """Matches of a library search."""

    query: str
    folders: list[Folder]
    files: list[File]
    total_folders: int
    total_files: int
