"""Recursive duplication of folders and files.

Clones are owned by the caller, whoever owned the source. Each stored
object is copied to a fresh key so the clone and the source never share
bytes. A folder clone runs depth-first without a spanning transaction:
an item that fails is logged and skipped, and everything cloned before
it stays.
"""

import logging
from dataclasses import dataclass, field
from typing import final

from django.db import transaction

from server.apps.library.infrastructure.metadata import generate_storage_key
from server.apps.library.infrastructure.storage import get_storage
from server.apps.library.logic.access_control import require_access
from server.apps.library.logic.queries import (
    clean_name,
    get_file_or_404,
    get_folder_or_404,
    get_target_folder,
)
from server.apps.library.logic.slugs import apply_public_flag
from server.apps.library.logic.types import (
    UNSET,
    FileCloneResult,
    FolderCloneResult,
)
from server.apps.library.models import File, Folder

logger = logging.getLogger(__name__)


def _copy_name(name: str) -> str:
    return f'{name} (Copy)'


@final
@dataclass
class _CloneContext:
    """State shared by every level of one folder clone."""

    user_id: int
    include_files: bool
    include_subfolders: bool
    # Folders created by this clone; never used as sources
    created_folder_ids: set[int] = field(default_factory=set)
    files_count: int = 0
    subfolders_count: int = 0


def _copy_file(
    source: File,
    folder: Folder | None,
    name: str,
    user_id: int,
) -> File:
    """Copy the stored object and create the clone's record."""
    storage = get_storage()
    storage_key = storage.copy_object(
        source.storage_key,
        generate_storage_key(user_id, source.storage_key),
    )

    try:
        with transaction.atomic():
            clone = File(
                owner_id=user_id,
                folder=folder,
                name=name,
                original_name=source.original_name,
                description=source.description,
                file=storage_key,
                mime_type=source.mime_type,
                size_bytes=source.size_bytes,
                extension=source.extension,
                order=source.order,
            )
            apply_public_flag(clone, source.is_public)
            clone.save()
    except Exception:
        logger.exception(
            'Database transaction failed, rolling back copied object: %s',
            storage_key,
        )
        storage.rollback_upload(storage_key)
        raise

    logger.info('File cloned: ID=%d -> ID=%d', source.pk, clone.pk)
    return clone


def _create_folder_copy(
    source: Folder,
    parent: Folder | None,
    name: str,
    context: _CloneContext,
) -> Folder:
    clone = Folder(
        owner_id=context.user_id,
        parent=parent,
        name=name,
        description=source.description,
        order=source.order,
    )
    apply_public_flag(clone, source.is_public)
    clone.save()
    context.created_folder_ids.add(clone.pk)
    return clone


def _clone_contents(
    source: Folder,
    clone: Folder,
    context: _CloneContext,
) -> None:
    """Clone the files and subfolders of ``source`` into ``clone``."""
    if context.include_files:
        for source_file in list(source.files.all()):
            try:
                require_access(source_file, context.user_id)
                _copy_file(
                    source_file,
                    clone,
                    _copy_name(source_file.name),
                    context.user_id,
                )
            except Exception:
                logger.exception(
                    'Failed to clone file %d into folder %d',
                    source_file.pk,
                    clone.pk,
                )
            else:
                context.files_count += 1

    if not context.include_subfolders:
        return

    for child in list(source.children.all()):
        if child.pk in context.created_folder_ids:
            continue
        try:
            require_access(child, context.user_id)
            child_clone = _create_folder_copy(
                child,
                clone,
                _copy_name(child.name),
                context,
            )
        except Exception:
            logger.exception(
                'Failed to clone subfolder %d into folder %d',
                child.pk,
                clone.pk,
            )
            continue
        context.subfolders_count += 1
        _clone_contents(child, child_clone, context)


def clone_folder(  # noqa: WPS211
    folder_id: int,
    user_id: int,
    *,
    new_name: str | None = None,
    parent_id=UNSET,
    include_files: bool = True,
    include_subfolders: bool = True,
) -> FolderCloneResult:
    """Clone a folder, by default with all of its files and subfolders.

    Example: cloning 'Docs' (2 files, 'Reports' with 1 file) gives
    'Docs (Copy)' with cloned_files_count=3, cloned_subfolders_count=1.

    Args:
        folder_id: Source folder; the caller needs read access.
        user_id: Caller, who owns every created folder and file.
        new_name: Name of the top clone; '<source> (Copy)' if omitted.
        parent_id: Parent of the top clone (None for the root); defaults
            to the source's parent. Must be owned by the caller.
        include_files: Clone contained files.
        include_subfolders: Recurse into subfolders.

    Returns:
        FolderCloneResult with the top clone and subtree-wide counts.

    Raises:
        NotFoundError: If the source or target parent does not exist.
        ForbiddenError: If the caller can't read the source or doesn't own
            the target parent.
        BadRequestError: If ``new_name`` is blank.
    """
    source = get_folder_or_404(folder_id)
    require_access(source, user_id)

    target_parent_id = source.parent_id if parent_id is UNSET else parent_id
    parent = get_target_folder(
        target_parent_id,
        user_id,
        'Invalid target folder',
    )
    name = clean_name(new_name) if new_name else _copy_name(source.name)

    context = _CloneContext(
        user_id=user_id,
        include_files=include_files,
        include_subfolders=include_subfolders,
    )
    clone = _create_folder_copy(source, parent, name, context)
    _clone_contents(source, clone, context)

    logger.info(
        'Folder cloned: ID=%d -> ID=%d files=%d subfolders=%d',
        folder_id,
        clone.pk,
        context.files_count,
        context.subfolders_count,
    )
    return FolderCloneResult(
        cloned_folder=clone,
        cloned_files_count=context.files_count,
        cloned_subfolders_count=context.subfolders_count,
    )


def clone_file(
    file_id: int,
    user_id: int,
    *,
    new_name: str | None = None,
    folder_id=UNSET,
) -> FileCloneResult:
    """Clone a single file.

    Args:
        file_id: Source file; the caller needs read access.
        user_id: Caller, who owns the clone.
        new_name: Name of the clone; '<source> (Copy)' if omitted.
        folder_id: Target folder (None for the root); defaults to the
            source's folder. Must be owned by the caller.

    Returns:
        FileCloneResult with the created file.

    Raises:
        NotFoundError: If the source or target folder does not exist.
        ForbiddenError: If the caller can't read the source or doesn't own
            the target folder.
    """
    source = get_file_or_404(file_id)
    require_access(source, user_id)

    target_folder_id = source.folder_id if folder_id is UNSET else folder_id
    folder = get_target_folder(
        target_folder_id,
        user_id,
        'Invalid target folder',
    )
    name = clean_name(new_name) if new_name else _copy_name(source.name)
    return FileCloneResult(
        cloned_file=_copy_file(source, folder, name, user_id),
    )
