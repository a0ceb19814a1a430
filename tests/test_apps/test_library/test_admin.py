"""Tests for library admin pages."""

import pytest
from django.urls import reverse

from server.apps.library.admin import _format_bytes
from server.apps.library.logic.folder_operations import create_folder
from server.apps.library.logic.permission_operations import grant_permission
from server.apps.library.models import ResourceKind


def test_format_bytes():
    """Test human-readable sizes."""
    assert _format_bytes(512) == '512 B'
    assert _format_bytes(1536) == '1.5 KB'
    assert _format_bytes(5 * 1024 * 1024) == '5.0 MB'
    assert _format_bytes(2 * 1024 * 1024 * 1024) == '2.0 GB'


@pytest.mark.django_db
class TestLibraryAdmin:
    """Tests for Folder and File admin pages."""

    def test_folder_changelist(self, admin_client, user):
        """Test folders are listed."""
        create_folder(user.id, 'Quarterly')

        response = admin_client.get(reverse('admin:library_folder_changelist'))

        assert response.status_code == 200
        assert 'Quarterly' in response.content.decode()

    def test_folder_change_with_grants(self, admin_client, user, other_user):
        """Test the change page renders permission inlines."""
        folder = create_folder(user.id, 'Docs')
        grant_permission(ResourceKind.FOLDER, folder.id, other_user.id)

        response = admin_client.get(
            reverse('admin:library_folder_change', args=[folder.id]),
        )

        assert response.status_code == 200
        assert 'otheruser' in response.content.decode()

    def test_file_changelist(self, admin_client, user, make_file):
        """Test files are listed with a readable size."""
        make_file(user, 'report.pdf', content=b'x' * 2048)

        response = admin_client.get(reverse('admin:library_file_changelist'))

        assert response.status_code == 200
        content = response.content.decode()
        assert 'report.pdf' in content
        assert '2.0 KB' in content
