"""Business logic for file operations."""

import logging
from datetime import timedelta
from typing import BinaryIO, Final

from django.conf import settings
from django.core.files.base import File as DjangoFile
from django.db import transaction
from django.utils import timezone

from server.apps.library.infrastructure.metadata import (
    detect_mime_type,
    generate_storage_key,
    get_file_extension,
    get_file_size,
    validate_storage_key,
    validate_upload,
)
from server.apps.library.infrastructure.storage import get_storage
from server.apps.library.logic.access_control import (
    require_access,
    require_owner,
)
from server.apps.library.logic.queries import (
    clean_name,
    get_file_or_404,
    get_target_folder,
)
from server.apps.library.logic.slugs import apply_public_flag
from server.apps.library.logic.types import UNSET, DownloadInfo
from server.apps.library.models import File, PermissionRole

logger = logging.getLogger(__name__)

_UPLOAD_FOLDER_DENIED: Final = (
    "You don't have permission to upload to this folder"
)


def create_file(  # noqa: WPS211
    owner_id: int,
    *,
    name: str,
    original_name: str,
    storage_key: str,
    mime_type: str,
    size_bytes: int,
    extension: str = '',
    folder_id: int | None = None,
    description: str | None = None,
    is_public: bool = False,
    order: int = 0,
) -> File:
    """Register an already stored object as a file owned by the caller.

    Args:
        owner_id: Caller, who becomes the owner.
        name: Display name.
        original_name: Client supplied filename.
        storage_key: Key of the stored bytes ('{owner_id}/...').
        mime_type: MIME type of the content.
        size_bytes: Size of the content.
        extension: Extension without dot; derived from original_name if
            empty.
        folder_id: Containing folder ID, or None for the root.
        description: Optional description.
        is_public: Publish the file right away (mints a slug).
        order: Display order among siblings.

    Returns:
        Created File instance.

    Raises:
        BadRequestError: If the name is blank or the key is foreign.
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
    """
    cleaned_name = clean_name(name)
    validate_storage_key(owner_id, storage_key)
    folder = get_target_folder(folder_id, owner_id, _UPLOAD_FOLDER_DENIED)

    file_instance = File(
        owner_id=owner_id,
        folder=folder,
        name=cleaned_name,
        original_name=original_name,
        description=description,
        file=storage_key,
        mime_type=mime_type,
        size_bytes=size_bytes,
        extension=extension or get_file_extension(original_name),
        order=order,
    )
    apply_public_flag(file_instance, is_public)
    file_instance.save()
    logger.info(
        'File record created in database: %s (ID: %d)',
        storage_key,
        file_instance.pk,
    )
    return file_instance


def upload_file(  # noqa: WPS211
    owner_id: int,
    file_obj: BinaryIO | DjangoFile,
    *,
    original_name: str,
    name: str | None = None,
    folder_id: int | None = None,
    description: str | None = None,
    mime_type: str | None = None,
    is_public: bool = False,
    order: int = 0,
) -> File:
    """Upload content to storage and create the file record.

    Transaction safety: upload to storage first, then create the DB
    record. If the DB transaction fails, the uploaded object is deleted
    from storage (rollback).

    Args:
        owner_id: Caller, who becomes the owner.
        file_obj: File-like object to upload.
        original_name: Client supplied filename.
        name: Display name; defaults to the sanitized original name.
        folder_id: Containing folder ID, or None for the root.
        description: Optional description.
        mime_type: Declared MIME type; detected from the name if omitted.
        is_public: Publish the file right away.
        order: Display order among siblings.

    Returns:
        Created File instance.

    Raises:
        BadRequestError: If extension, type or size is not allowed.
        NotFoundError: If the folder does not exist.
        ForbiddenError: If the folder belongs to someone else.
        Exception: If upload or DB operation fails.
    """
    mime_type = mime_type or detect_mime_type(original_name)
    size_bytes = get_file_size(file_obj)
    validate_upload(
        original_name,
        mime_type,
        size_bytes,
        getattr(settings, 'LIBRARY_MAX_UPLOAD_BYTES', 50 * 1024 * 1024),
    )
    display_name = clean_name(name or original_name)
    # Fail before touching storage
    get_target_folder(folder_id, owner_id, _UPLOAD_FOLDER_DENIED)

    storage = get_storage()
    storage_key = generate_storage_key(owner_id, original_name)
    saved_name = storage.save(storage_key, file_obj)

    try:
        with transaction.atomic():
            return create_file(
                owner_id,
                name=display_name,
                original_name=original_name,
                storage_key=saved_name,
                mime_type=mime_type,
                size_bytes=size_bytes,
                folder_id=folder_id,
                description=description,
                is_public=is_public,
                order=order,
            )
    except Exception:
        logger.exception(
            'Database transaction failed, rolling back storage upload: %s',
            saved_name,
        )
        storage.rollback_upload(saved_name)
        raise


def get_file(file_id: int, user_id: int | None) -> File:
    """Fetch a file the caller may read.

    Raises:
        NotFoundError: If the file does not exist.
        ForbiddenError: If the caller has no access.
    """
    file_instance = get_file_or_404(file_id)
    require_access(file_instance, user_id)
    return file_instance


def update_file(  # noqa: WPS211
    file_id: int,
    user_id: int,
    *,
    name=UNSET,
    description=UNSET,
    order=UNSET,
    is_public=UNSET,
    folder_id=UNSET,
) -> File:
    """Update file fields; only the passed keyword arguments change.

    Editors may rename, describe and reorder. Publishing and moving are
    reserved to the owner.

    Returns:
        Updated File instance.

    Raises:
        NotFoundError: If the file or target folder does not exist.
        ForbiddenError: If the caller lacks EDITOR or ownership.
        BadRequestError: On a blank name.
    """
    file_instance = get_file_or_404(file_id)
    require_access(file_instance, user_id, PermissionRole.EDITOR)

    if is_public is not UNSET and is_public != file_instance.is_public:
        require_owner(file_instance, user_id)
    cleaned_name = clean_name(name) if name is not UNSET else UNSET

    # Move and field changes commit together
    with transaction.atomic():
        if folder_id is not UNSET and folder_id != file_instance.folder_id:
            file_instance = move_file(file_id, folder_id, user_id)

        update_fields: list[str] = []
        if cleaned_name is not UNSET:
            file_instance.name = cleaned_name
            update_fields.append('name')
        if description is not UNSET:
            file_instance.description = description
            update_fields.append('description')
        if order is not UNSET:
            file_instance.order = order
            update_fields.append('order')
        if is_public is not UNSET:
            update_fields.extend(apply_public_flag(file_instance, is_public))

        if update_fields:
            update_fields.append('updated_at')
            file_instance.save(update_fields=update_fields)
    if update_fields:
        logger.info('File updated: ID=%d fields=%s', file_id, update_fields)
    return file_instance


def move_file(file_id: int, folder_id: int | None, user_id: int) -> File:
    """Move a file into another folder of the caller, or to the root.

    Raises:
        NotFoundError: If the file or the folder does not exist.
        ForbiddenError: If the caller owns neither.
    """
    file_instance = get_file_or_404(file_id)
    require_owner(file_instance, user_id)

    file_instance.folder = get_target_folder(
        folder_id,
        user_id,
        'Invalid target folder',
    )
    file_instance.save(update_fields=['folder', 'updated_at'])
    logger.info('File moved: ID=%d folder=%s', file_id, folder_id)
    return file_instance


def delete_file(file_id: int, user_id: int) -> bool:
    """Delete a file record and, best-effort, its stored object.

    Args:
        file_id: File to delete.
        user_id: Caller, who must own the file.

    Returns:
        True if the stored object was deleted too, False if it was left
        behind as an orphan.

    Raises:
        NotFoundError: If the file does not exist.
        ForbiddenError: If the caller doesn't own the file.
    """
    file_instance = get_file_or_404(file_id)
    require_owner(file_instance, user_id)

    storage_name = file_instance.storage_key
    logger.info('Deleting file: ID=%d, path=%s', file_id, storage_name)
    storage_deleted = get_storage().discard(storage_name)

    with transaction.atomic():
        file_instance.delete()
    logger.info('File record deleted from database: ID=%d', file_id)
    return storage_deleted


def build_download_info(file_instance: File) -> DownloadInfo:
    """Sign a time-limited download URL for a file.

    Args:
        file_instance: File to download; access is not checked here.

    Returns:
        DownloadInfo with the URL and its expiry.
    """
    expire = getattr(settings, 'LIBRARY_DOWNLOAD_URL_EXPIRE', 3600)
    url = get_storage().url(file_instance.storage_key, expire=expire)
    return DownloadInfo(
        url=url,
        file_name=file_instance.name,
        mime_type=file_instance.mime_type,
        size_bytes=file_instance.size_bytes,
        expires_at=timezone.now() + timedelta(seconds=expire),
    )


def get_file_download_info(file_id: int, user_id: int | None) -> DownloadInfo:
    """Return download information for a file the caller may read.

    Raises:
        NotFoundError: If the file does not exist.
        ForbiddenError: If the caller has no access.
    """
    return build_download_info(get_file(file_id, user_id))


def open_file(file_id: int, user_id: int | None) -> DjangoFile:
    """Open a file's stored content for reading.

    Returns:
        Readable file handle; the caller closes it.

    Raises:
        NotFoundError: If the file does not exist.
        ForbiddenError: If the caller has no access.
    """
    file_instance = get_file(file_id, user_id)
    return get_storage().open(file_instance.storage_key, 'rb')
