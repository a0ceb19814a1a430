"""Business logic for folder operations."""

import logging

from django.db import transaction

from server.apps.library.exceptions import BadRequestError
from server.apps.library.infrastructure.storage import FileStorage, get_storage
from server.apps.library.logic.access_control import (
    get_capabilities,
    require_access,
    require_owner,
)
from server.apps.library.logic.queries import (
    MAX_FOLDER_DEPTH,
    breadcrumbs_path,
    clean_name,
    collect_breadcrumbs,
    file_entries,
    folder_entries,
    get_folder_or_404,
    get_target_folder,
    order_by_sort,
)
from server.apps.library.logic.slugs import apply_public_flag
from server.apps.library.logic.types import (
    UNSET,
    Breadcrumb,
    DeleteResult,
    FolderContent,
    FolderEntry,
)
from server.apps.library.models import Folder, PermissionRole

logger = logging.getLogger(__name__)


def create_folder(  # noqa: WPS211
    owner_id: int,
    name: str,
    *,
    description: str | None = None,
    parent_id: int | None = None,
    is_public: bool = False,
    order: int = 0,
) -> Folder:
    """Create a folder owned by the caller.

    Args:
        owner_id: Caller, who becomes the owner.
        name: Folder name (sanitized, must not be blank).
        description: Optional description.
        parent_id: Parent folder ID, or None for the root.
        is_public: Publish the folder right away (mints a slug).
        order: Display order among siblings.

    Returns:
        Created Folder instance.

    Raises:
        BadRequestError: If the name is blank.
        NotFoundError: If the parent does not exist.
        ForbiddenError: If the parent belongs to someone else.
    """
    cleaned_name = clean_name(name)
    parent = get_target_folder(
        parent_id,
        owner_id,
        "You don't have permission to create folder in this location",
    )

    folder = Folder(
        owner_id=owner_id,
        parent=parent,
        name=cleaned_name,
        description=description,
        order=order,
    )
    apply_public_flag(folder, is_public)
    folder.save()
    logger.info(
        'Folder created: ID=%d owner=%d parent=%s',
        folder.pk,
        owner_id,
        parent_id,
    )
    return folder


def get_folder(folder_id: int, user_id: int | None) -> Folder:
    """Fetch a folder the caller may read.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the caller has no access.
    """
    folder = get_folder_or_404(folder_id)
    require_access(folder, user_id)
    return folder


def update_folder(  # noqa: WPS211
    folder_id: int,
    user_id: int,
    *,
    name=UNSET,
    description=UNSET,
    order=UNSET,
    is_public=UNSET,
    parent_id=UNSET,
) -> Folder:
    """Update folder fields; only the passed keyword arguments change.

    Editors may rename, describe and reorder. Publishing and re-parenting
    are reserved to the owner; re-parenting follows ``move_folder``.

    Args:
        folder_id: Folder to update.
        user_id: Caller.
        name: New name.
        description: New description (None clears it).
        order: New display order.
        is_public: New public flag.
        parent_id: New parent ID (None moves to the root).

    Returns:
        Updated Folder instance.

    Raises:
        NotFoundError: If the folder or new parent does not exist.
        ForbiddenError: If the caller lacks EDITOR or ownership.
        BadRequestError: On a blank name or an invalid move.
    """
    folder = get_folder_or_404(folder_id)
    require_access(folder, user_id, PermissionRole.EDITOR)

    if is_public is not UNSET and is_public != folder.is_public:
        require_owner(folder, user_id)
    cleaned_name = clean_name(name) if name is not UNSET else UNSET

    # Move and field changes commit together
    with transaction.atomic():
        if parent_id is not UNSET and parent_id != folder.parent_id:
            folder = move_folder(folder_id, parent_id, user_id)

        update_fields: list[str] = []
        if cleaned_name is not UNSET:
            folder.name = cleaned_name
            update_fields.append('name')
        if description is not UNSET:
            folder.description = description
            update_fields.append('description')
        if order is not UNSET:
            folder.order = order
            update_fields.append('order')
        if is_public is not UNSET:
            update_fields.extend(apply_public_flag(folder, is_public))

        if update_fields:
            update_fields.append('updated_at')
            folder.save(update_fields=update_fields)
    if update_fields:
        logger.info('Folder updated: ID=%d fields=%s', folder_id, update_fields)
    return folder


def _ensure_not_descendant(folder_id: int, new_parent_id: int) -> None:
    """Walk ancestors of ``new_parent_id`` looking for ``folder_id``."""
    visited: set[int] = set()
    current_id: int | None = new_parent_id
    while current_id is not None and current_id not in visited:
        if current_id == folder_id:
            raise BadRequestError(
                'Cannot move folder: circular dependency detected',
            )
        if len(visited) >= MAX_FOLDER_DEPTH:
            break
        visited.add(current_id)
        current_id = Folder.objects.filter(
            pk=current_id,
        ).values_list('parent_id', flat=True).first()


def move_folder(
    folder_id: int,
    new_parent_id: int | None,
    user_id: int,
) -> Folder:
    """Re-parent a folder, refusing moves that would create a cycle.

    Args:
        folder_id: Folder to move.
        new_parent_id: New parent ID, or None to move to the root.
        user_id: Caller, who must own the folder and the new parent.

    Returns:
        Moved Folder instance.

    Raises:
        NotFoundError: If the folder or the new parent does not exist.
        ForbiddenError: If the caller owns neither.
        BadRequestError: If the new parent is the folder or one of its
            descendants.
    """
    folder = get_folder_or_404(folder_id)
    require_owner(folder, user_id)

    if new_parent_id is not None:
        if new_parent_id == folder_id:
            raise BadRequestError('Folder cannot be its own parent')
        _ensure_not_descendant(folder_id, new_parent_id)

    parent = get_target_folder(new_parent_id, user_id, 'Invalid target folder')
    folder.parent = parent
    folder.save(update_fields=['parent', 'updated_at'])
    logger.info('Folder moved: ID=%d parent=%s', folder_id, new_parent_id)
    return folder


def _delete_subtree(folder: Folder, storage: FileStorage) -> DeleteResult:
    """Depth-first delete of a folder, its descendants and their files."""
    folders_deleted = 0
    files_deleted = 0
    storage_failures = 0

    for child in list(folder.children.all()):
        child_result = _delete_subtree(child, storage)
        folders_deleted += child_result.folders_deleted
        files_deleted += child_result.files_deleted
        storage_failures += child_result.storage_failures

    for file_instance in list(folder.files.all()):
        if not storage.discard(file_instance.storage_key):
            storage_failures += 1
        file_instance.delete()
        files_deleted += 1

    folder.delete()
    return DeleteResult(
        folders_deleted=folders_deleted + 1,
        files_deleted=files_deleted,
        storage_failures=storage_failures,
    )


def delete_folder(
    folder_id: int,
    user_id: int,
    cascade: bool = False,  # noqa: FBT001, FBT002
) -> DeleteResult:
    """Delete a folder, optionally with everything below it.

    A cascade removes descendants depth-first. Stored objects of contained
    files are deleted best-effort: a storage failure is logged and counted
    but never blocks the database delete.

    Args:
        folder_id: Folder to delete.
        user_id: Caller, who must own the folder.
        cascade: Delete subfolders and files too.

    Returns:
        DeleteResult with counts of removed folders, files and failed
        storage deletes.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the caller doesn't own the folder.
        BadRequestError: If the folder is not empty and cascade is off.
    """
    folder = get_folder_or_404(folder_id)
    require_owner(folder, user_id)

    if not cascade:
        if folder.children.exists() or folder.files.exists():
            raise BadRequestError(
                'Folder is not empty. Use cascade=true to delete with contents',
            )
        with transaction.atomic():
            folder.delete()
        logger.info('Folder deleted: ID=%d', folder_id)
        return DeleteResult(
            folders_deleted=1,
            files_deleted=0,
            storage_failures=0,
        )

    result = _delete_subtree(folder, get_storage())
    logger.info(
        'Folder deleted (cascade): ID=%d folders=%d files=%d failures=%d',
        folder_id,
        result.folders_deleted,
        result.files_deleted,
        result.storage_failures,
    )
    return result


def get_folder_breadcrumbs(folder_id: int) -> list[Breadcrumb]:
    """Return the path from the root down to a folder, folder included.

    Example: for Docs/Reports/Q3 -> [Docs, Reports, Q3]

    Raises:
        NotFoundError: If the folder does not exist.
    """
    get_folder_or_404(folder_id)
    return collect_breadcrumbs(folder_id)


def get_folder_content(
    folder_id: int,
    user_id: int | None,
    *,
    sort_by: str | None = None,
    sort_order: str = 'asc',
) -> FolderContent:
    """List a folder's direct children for a caller.

    Args:
        folder_id: Folder to list.
        user_id: Caller, or None for anonymous.
        sort_by: Sort field ('name', 'order', 'created_at', 'updated_at').
        sort_order: 'asc' or 'desc'.

    Returns:
        FolderContent with breadcrumbs, path, capability-annotated
        subfolders and files, and totals.

    Raises:
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the caller has no access.
        BadRequestError: If the sort arguments are invalid.
    """
    folder = get_folder(folder_id, user_id)
    breadcrumbs = collect_breadcrumbs(folder.pk)

    subfolders = folder_entries(
        order_by_sort(folder.children.all(), sort_by, sort_order),
        user_id,
    )
    files = file_entries(
        order_by_sort(folder.files.all(), sort_by, sort_order),
        user_id,
    )
    return FolderContent(
        folder=FolderEntry(
            folder=folder,
            capabilities=get_capabilities(folder, user_id),
        ),
        breadcrumbs=breadcrumbs,
        path=breadcrumbs_path(breadcrumbs),
        subfolders=subfolders,
        files=files,
        total_subfolders=len(subfolders),
        total_files=len(files),
    )
