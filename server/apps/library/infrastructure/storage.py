"""Custom storage backend for S3-compatible storage."""

import logging
from typing import Any, final, override

from django.core.files.storage import default_storage
from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


@final
class FileStorage(S3Storage):
    """Custom S3 storage backend for library files.

    Extends django-storages S3Storage with:
    - Transaction rollback support for failed DB operations
    - Server-side copies for cloning
    - Best-effort deletes that never raise
    - Enhanced error logging
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage key for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the key.

        Returns:
            Actual storage key used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded file: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload file to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file from S3 with error handling and logging.

        Args:
            name: Storage key of file to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting file from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted file: %s', name)
        except Exception:
            logger.exception('Failed to delete file from storage: %s', name)
            raise

    def discard(self, name: str) -> bool:
        """Delete a stored object, tolerating failure.

        Used after (or instead of) database deletes: the database stays
        authoritative and a failed storage delete only leaves an orphan
        for ``purge_orphaned_objects`` to collect.

        Args:
            name: Storage key of file to delete.

        Returns:
            True if the object was deleted, False if deletion failed.
        """
        try:
            self.delete(name)
        except Exception:
            logger.exception(
                'Failed to delete file from storage (orphaned): %s',
                name,
            )
            return False
        return True

    def rollback_upload(self, name: str) -> None:
        """Delete uploaded file for DB transaction rollback.

        This method is called when a database transaction fails after
        a file has been successfully uploaded or copied to S3.

        Args:
            name: Storage key of file to delete.
        """
        logger.warning('Rolling back upload, deleting file: %s', name)
        if self.discard(name):
            logger.info('Successfully rolled back file upload: %s', name)

    def copy_object(self, source: str, destination: str) -> str:
        """Copy an object to a new key with a server-side copy.

        Args:
            source: Source storage key.
            destination: Destination storage key.

        Returns:
            The destination key.

        Raises:
            Exception: If the copy fails.
        """
        try:
            logger.info('Copying file: %s -> %s', source, destination)
            copy_source = {
                'Bucket': self.bucket_name,
                'Key': source,
            }
            self.bucket.copy(copy_source, destination)
            logger.info('Copied file: %s -> %s', source, destination)
        except Exception:
            logger.exception('Copy failed: %s -> %s', source, destination)
            raise
        return destination


def get_storage() -> FileStorage:
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]
