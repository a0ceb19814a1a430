"""User-level views over the library: listing, totals and search."""

import logging
from typing import Final

from django.db.models import Q, Sum

from server.apps.library.exceptions import BadRequestError
from server.apps.library.logic.queries import file_entries, folder_entries
from server.apps.library.logic.types import (
    LibraryPage,
    LibraryStats,
    SearchResult,
    build_page_meta,
    page_bounds,
)
from server.apps.library.models import File, Folder

logger = logging.getLogger(__name__)

_SEARCH_KINDS: Final = frozenset(('all', 'folder', 'file'))


def _visible_to(user_id: int) -> Q:
    """Resources the user owns or holds a grant on."""
    return Q(owner_id=user_id) | Q(permissions__user_id=user_id)


def get_library_stats(user_id: int) -> LibraryStats:
    """Count a user's own folders and files.

    Args:
        user_id: Owner.

    Returns:
        LibraryStats with totals, public counts and total size in bytes.
    """
    own_folders = Folder.objects.filter(owner_id=user_id)
    own_files = File.objects.filter(owner_id=user_id)
    total_size = own_files.aggregate(total=Sum('size_bytes'))['total']
    return LibraryStats(
        total_folders=own_folders.count(),
        total_files=own_files.count(),
        total_size_bytes=total_size or 0,
        public_folders=own_folders.filter(is_public=True).count(),
        public_files=own_files.filter(is_public=True).count(),
    )


def get_user_library(
    user_id: int,
    *,
    folders_page: int | None = None,
    folders_limit: int | None = None,
    files_page: int | None = None,
    files_limit: int | None = None,
) -> LibraryPage:
    """List everything a user owns or was granted, newest first.

    Folders and files are paginated independently and annotated with the
    caller's capabilities.

    Args:
        user_id: Caller.
        folders_page: 1-based page of folders.
        folders_limit: Folders per page.
        files_page: 1-based page of files.
        files_limit: Files per page.

    Returns:
        LibraryPage with both listings, their metadata and the caller's
        stats.
    """
    folders_page, folders_limit = page_bounds(folders_page, folders_limit)
    files_page, files_limit = page_bounds(files_page, files_limit)

    folders = Folder.objects.filter(
        _visible_to(user_id),
    ).distinct().order_by('-created_at', '-pk')
    files = File.objects.filter(
        _visible_to(user_id),
    ).distinct().order_by('-created_at', '-pk')

    folders_start = (folders_page - 1) * folders_limit
    files_start = (files_page - 1) * files_limit
    return LibraryPage(
        folders=folder_entries(
            folders[folders_start:folders_start + folders_limit],
            user_id,
        ),
        folders_meta=build_page_meta(
            folders_page,
            folders_limit,
            folders.count(),
        ),
        files=file_entries(
            files[files_start:files_start + files_limit],
            user_id,
        ),
        files_meta=build_page_meta(files_page, files_limit, files.count()),
        stats=get_library_stats(user_id),
    )


def search_library(  # noqa: WPS211
    user_id: int,
    query: str,
    *,
    kind: str = 'all',
    folder_id: int | None = None,
    is_public: bool | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> SearchResult:
    """Case-insensitive name search over the caller's own resources.

    Folders match on ``name``; files on ``name`` or ``original_name``.

    Args:
        user_id: Owner whose resources are searched.
        query: Substring to look for.
        kind: 'all', 'folder' or 'file'.
        folder_id: Restrict to direct children of this folder.
        is_public: Restrict to public (True) or private (False) resources.
        page: 1-based page, applied to folders and files separately.
        limit: Page size.

    Returns:
        SearchResult with matching folders and files, newest first, and
        their totals.

    Raises:
        BadRequestError: If ``kind`` is unknown.
    """
    if kind not in _SEARCH_KINDS:
        raise BadRequestError(f'Invalid search type: {kind}')
    page, limit = page_bounds(page, limit)
    start = (page - 1) * limit

    folder_filter = Q(owner_id=user_id, name__icontains=query)
    file_filter = Q(owner_id=user_id) & (
        Q(name__icontains=query) | Q(original_name__icontains=query)
    )
    if folder_id is not None:
        folder_filter &= Q(parent_id=folder_id)
        file_filter &= Q(folder_id=folder_id)
    if is_public is not None:
        folder_filter &= Q(is_public=is_public)
        file_filter &= Q(is_public=is_public)

    folders: list[Folder] = []
    files: list[File] = []
    total_folders = 0
    total_files = 0
    if kind in {'all', 'folder'}:
        folder_matches = Folder.objects.filter(folder_filter).order_by(
            '-created_at',
        )
        folders = list(folder_matches[start:start + limit])
        total_folders = folder_matches.count()
    if kind in {'all', 'file'}:
        file_matches = File.objects.filter(file_filter).order_by('-created_at')
        files = list(file_matches[start:start + limit])
        total_files = file_matches.count()

    logger.debug(
        'Library search: user=%d query=%r folders=%d files=%d',
        user_id,
        query,
        total_folders,
        total_files,
    )
    return SearchResult(
        query=query,
        folders=folders,
        files=files,
        total_folders=total_folders,
        total_files=total_files,
    )
