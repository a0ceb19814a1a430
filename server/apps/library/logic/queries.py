"""Lookups and orderings shared by the library operations."""

import logging
from typing import Final

from django.contrib.auth import get_user_model
from django.db.models import QuerySet

from server.apps.library.exceptions import BadRequestError, NotFoundError
from server.apps.library.infrastructure.metadata import sanitize_name
from server.apps.library.logic.access_control import (
    get_capabilities,
    require_owner,
    with_caller_permissions,
)
from server.apps.library.logic.types import Breadcrumb, FileEntry, FolderEntry
from server.apps.library.models import File, Folder

User = get_user_model()
logger = logging.getLogger(__name__)

# Public sort field name -> model field
SORT_FIELDS: Final = {
    'name': 'name',
    'order': 'order',
    'created_at': 'created_at',
    'updated_at': 'updated_at',
}

_SORT_ORDERS: Final = frozenset(('asc', 'desc'))

# Guards parent walks against corrupted (cyclic) data
MAX_FOLDER_DEPTH: Final = 256


def clean_name(name: str) -> str:
    """Sanitize a folder or file name.

    Raises:
        BadRequestError: If nothing is left after sanitizing.
    """
    cleaned = sanitize_name(name or '')
    if not cleaned:
        raise BadRequestError('Name cannot be empty')
    return cleaned


def get_folder_or_404(folder_id: int) -> Folder:
    """Fetch a folder by ID.

    Raises:
        NotFoundError: If the folder does not exist.
    """
    try:
        return Folder.objects.get(pk=folder_id)
    except Folder.DoesNotExist as error:
        raise NotFoundError('Folder not found') from error


def get_file_or_404(file_id: int) -> File:
    """Fetch a file by ID.

    Raises:
        NotFoundError: If the file does not exist.
    """
    try:
        return File.objects.get(pk=file_id)
    except File.DoesNotExist as error:
        raise NotFoundError('File not found') from error


def get_user_or_404(user_id: int) -> User:
    """Fetch a user by ID.

    Raises:
        NotFoundError: If the user does not exist.
    """
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist as error:
        raise NotFoundError('User not found') from error


def get_target_folder(
    folder_id: int | None,
    owner_id: int,
    message: str = "You don't own the target folder",
) -> Folder | None:
    """Resolve a destination folder that must belong to ``owner_id``.

    Args:
        folder_id: Destination folder ID, or None for the root.
        owner_id: User who will own the new or moved resource.
        message: Forbidden message for a foreign folder.

    Returns:
        The folder, or None for the root.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
    """
    if folder_id is None:
        return None

    folder = get_folder_or_404(folder_id)
    require_owner(folder, owner_id, message)
    return folder


def order_by_sort(
    queryset: QuerySet,
    sort_by: str | None,
    sort_order: str = 'asc',
) -> QuerySet:
    """Apply a caller supplied sort to a folder or file listing.

    Args:
        queryset: Folder or File queryset.
        sort_by: One of ``SORT_FIELDS``; None keeps the model ordering.
        sort_order: 'asc' or 'desc'.

    Returns:
        Ordered queryset.

    Raises:
        BadRequestError: If the field or direction is unknown.
    """
    if sort_order not in _SORT_ORDERS:
        raise BadRequestError(f'Invalid sort order: {sort_order}')
    if sort_by is None:
        field_name = 'order'
    elif sort_by in SORT_FIELDS:
        field_name = SORT_FIELDS[sort_by]
    else:
        raise BadRequestError(f'Invalid sort field: {sort_by}')

    prefix = '-' if sort_order == 'desc' else ''
    return queryset.order_by(f'{prefix}{field_name}', 'pk')


def collect_breadcrumbs(
    folder_id: int,
    stop_at: int | None = None,
) -> list[Breadcrumb]:
    """Walk parent links from a folder up to the root.

    The walk ends at the root, at ``stop_at`` (included), at a dangling
    parent link, or after ``MAX_FOLDER_DEPTH`` steps.

    Args:
        folder_id: Folder to start from (included in the result).
        stop_at: Optional ancestor ID where the walk ends.

    Returns:
        Breadcrumbs ordered root-first.
    """
    breadcrumbs: list[Breadcrumb] = []
    current_id: int | None = folder_id
    while current_id is not None and len(breadcrumbs) < MAX_FOLDER_DEPTH:
        row = Folder.objects.filter(pk=current_id).values_list(
            'name',
            'parent_id',
        ).first()
        if row is None:
            logger.warning('Dangling parent link: folder=%d', current_id)
            break
        name, parent_id = row
        breadcrumbs.append(
            Breadcrumb(id=current_id, name=name, parent_id=parent_id),
        )
        if current_id == stop_at:
            break
        current_id = parent_id

    breadcrumbs.reverse()
    return breadcrumbs


def breadcrumbs_path(breadcrumbs: list[Breadcrumb]) -> str:
    """Render breadcrumbs as an absolute '/A/B/C' path."""
    return '/' + '/'.join(crumb.name for crumb in breadcrumbs)


def folder_entries(
    queryset: QuerySet,
    user_id: int | None,
) -> list[FolderEntry]:
    """Annotate folders with the caller's capabilities."""
    return [
        FolderEntry(
            folder=folder,
            capabilities=get_capabilities(folder, user_id),
        )
        for folder in with_caller_permissions(queryset, user_id)
    ]


def file_entries(queryset: QuerySet, user_id: int | None) -> list[FileEntry]:
    """Annotate files with the caller's capabilities."""
    return [
        FileEntry(file=file, capabilities=get_capabilities(file, user_id))
        for file in with_caller_permissions(queryset, user_id)
    ]
