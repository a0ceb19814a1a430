"""Shared fixtures for library app tests."""

from collections.abc import Callable

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws

from server.apps.library.infrastructure.metadata import (
    detect_mime_type,
    generate_storage_key,
)
from server.apps.library.infrastructure.storage import get_storage
from server.apps.library.logic.file_operations import create_file
from server.apps.library.models import File, Folder

User = get_user_model()


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for sharing tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
        first_name='Other',
        last_name='User',
    )


@pytest.fixture
def third_user(db):
    """Create third test user for batch tests.

    Returns:
        Third user instance.
    """
    return User.objects.create_user(
        username='thirduser',
        password='testpass123',
        email='third@example.com',
    )


@pytest.fixture
def mock_s3(settings):
    """Mock S3 service with library bucket.

    Re-assigning STORAGES makes Django rebuild the default storage, so
    its boto3 connection is created inside the mock.

    Yields:
        boto3 S3 resource with library bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket='library')

        settings.STORAGES = {**settings.STORAGES}

        yield conn


@pytest.fixture
def bucket_keys(mock_s3) -> Callable[[], set[str]]:
    """List the keys currently stored in the library bucket.

    Returns:
        Function returning the set of object keys.
    """
    def factory() -> set[str]:
        return {
            stored.key for stored in mock_s3.Bucket('library').objects.all()
        }
    return factory


@pytest.fixture
def make_file(mock_s3) -> Callable[..., File]:
    """Store content and register it as a file.

    Returns:
        Factory ``(owner, name, folder=None, content=..., is_public=False)``.
    """
    def factory(
        owner,
        name: str = 'report.pdf',
        folder: Folder | None = None,
        content: bytes = b'test file content',
        is_public: bool = False,
    ) -> File:
        storage_key = get_storage().save(
            generate_storage_key(owner.id, name),
            ContentFile(content),
        )
        return create_file(
            owner.id,
            name=name,
            original_name=name,
            storage_key=storage_key,
            mime_type=detect_mime_type(name),
            size_bytes=len(content),
            folder_id=folder.id if folder else None,
            is_public=is_public,
        )
    return factory


@pytest.fixture
def sample_file_content():
    """Sample file content for testing.

    Returns:
        ContentFile with test data.
    """
    return ContentFile(b'test file content', name='notes.txt')
