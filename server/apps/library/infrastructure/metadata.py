"""Metadata extraction and validation utilities for uploads."""

import mimetypes
import re
import uuid
from pathlib import Path
from typing import BinaryIO, Final

from django.core.files.base import File as DjangoFile

from server.apps.library.exceptions import BadRequestError

ALLOWED_EXTENSIONS: Final = frozenset((
    # Images
    'jpg', 'jpeg', 'png', 'gif', 'webp', 'svg',
    # Documents
    'pdf', 'doc', 'docx', 'xls', 'xlsx', 'ppt', 'pptx', 'txt', 'csv',
    # Archives
    'zip', 'rar', '7z',
    # Videos
    'mp4', 'avi', 'mov', 'mkv',
    # Audio
    'mp3', 'wav', 'flac',
))

ALLOWED_MIME_TYPES: Final = frozenset((
    # Images
    'image/jpeg',
    'image/png',
    'image/gif',
    'image/webp',
    'image/svg+xml',
    # Documents
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.ms-powerpoint',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    'text/plain',
    'text/csv',
    # Archives
    'application/zip',
    'application/x-rar-compressed',
    'application/x-7z-compressed',
    # Videos
    'video/mp4',
    'video/x-msvideo',
    'video/quicktime',
    'video/x-matroska',
    # Audio
    'audio/mpeg',
    'audio/wav',
    'audio/x-wav',
    'audio/flac',
))

_UNSAFE_NAME_CHARS: Final = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_DOT_SEGMENTS: Final = frozenset(('.', '..'))


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from filename extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return 'application/octet-stream'
    return mime_type


def get_file_extension(filename: str) -> str:
    """Get file extension from filename.

    Args:
        filename: Filename (e.g., 'document.pdf').

    Returns:
        Extension without dot, lowercase (e.g., 'pdf').
        Returns empty string if no extension.
    """
    extension = Path(filename).suffix
    return extension.lstrip('.').lower()


def get_file_size(file_obj: BinaryIO | DjangoFile) -> int:
    """Get file size from file object.

    Args:
        file_obj: File-like object.

    Returns:
        File size in bytes.
    """
    if hasattr(file_obj, 'size'):
        return file_obj.size
    file_size = len(file_obj.read())
    file_obj.seek(0)
    return file_size


def sanitize_name(name: str) -> str:
    """Strip characters that are unsafe in folder and file names.

    Example: 'a<b>/../c.txt' -> 'ab..c.txt'

    Args:
        name: User supplied name.

    Returns:
        Name without control characters or path separators. A bare
        '.' or '..' becomes empty.
    """
    cleaned = _UNSAFE_NAME_CHARS.sub('', name).strip()
    if cleaned in _DOT_SEGMENTS:
        return ''
    return cleaned


def generate_storage_key(owner_id: int, filename: str) -> str:
    """Generate a fresh storage key for an owner's object.

    Example: (7, 'Report.PDF') -> '7/3f2a...9c.pdf'

    Args:
        owner_id: Owner's user ID.
        filename: Name used only for its extension.

    Returns:
        Key of the form '{owner_id}/{random hex}.{ext}'.
    """
    extension = get_file_extension(filename)
    suffix = f'.{extension}' if extension else ''
    return f'{owner_id}/{uuid.uuid4().hex}{suffix}'


def validate_storage_key(owner_id: int, storage_key: str) -> None:
    """Validate storage key follows owner isolation rules.

    Args:
        owner_id: Owner's user ID.
        storage_key: Proposed storage key.

    Raises:
        BadRequestError: If key doesn't start with owner_id or is invalid.
    """
    path_parts = Path(storage_key).parts if storage_key else ()
    if not path_parts:
        raise BadRequestError('Storage key cannot be empty')

    try:
        key_owner_id = int(path_parts[0])
    except ValueError as error:
        raise BadRequestError(
            'Storage key must start with owner ID',
        ) from error

    if key_owner_id != owner_id:
        raise BadRequestError(
            f'Storage key owner ID ({key_owner_id}) does not match '
            f'owner ({owner_id})',
        )


def validate_upload(
    original_name: str,
    mime_type: str,
    size_bytes: int,
    max_size_bytes: int,
) -> None:
    """Validate an upload before it reaches storage.

    Args:
        original_name: Client supplied filename.
        mime_type: Detected or declared MIME type.
        size_bytes: Upload size in bytes.
        max_size_bytes: Configured upload limit.

    Raises:
        BadRequestError: If extension, type or size is not allowed.
    """
    extension = get_file_extension(original_name)
    if extension not in ALLOWED_EXTENSIONS:
        raise BadRequestError(
            f'File extension not allowed: {extension or "(none)"}',
        )

    if mime_type not in ALLOWED_MIME_TYPES:
        raise BadRequestError(f'File type not allowed: {mime_type}')

    if size_bytes > max_size_bytes:
        raise BadRequestError(
            f'File too large: {size_bytes} bytes '
            f'(maximum {max_size_bytes} bytes)',
        )
