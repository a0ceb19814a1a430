"""Tests for library listing, stats and search."""

import pytest

from server.apps.library.exceptions import BadRequestError
from server.apps.library.logic.folder_operations import create_folder
from server.apps.library.logic.library_operations import (
    get_library_stats,
    get_user_library,
    search_library,
)
from server.apps.library.logic.permission_operations import grant_permission
from server.apps.library.models import PermissionRole, ResourceKind


@pytest.mark.django_db
class TestLibraryStats:
    """Tests for get_library_stats."""

    def test_empty_library(self, user):
        """Test a new user has zeroes everywhere."""
        stats = get_library_stats(user.id)

        assert stats.total_folders == 0
        assert stats.total_files == 0
        assert stats.total_size_bytes == 0

    def test_counts_own_resources(self, user, other_user, make_file):
        """Test only owned resources are counted."""
        create_folder(user.id, 'Docs', is_public=True)
        make_file(user, 'a.pdf', content=b'12345')
        make_file(user, 'b.pdf', content=b'123', is_public=True)
        theirs = make_file(other_user, 'c.pdf')
        grant_permission(ResourceKind.FILE, theirs.id, user.id)

        stats = get_library_stats(user.id)

        assert stats.total_folders == 1
        assert stats.total_files == 2
        assert stats.total_size_bytes == 8
        assert stats.public_folders == 1
        assert stats.public_files == 1


@pytest.mark.django_db
class TestUserLibrary:
    """Tests for get_user_library."""

    def test_owned_and_granted(self, user, other_user, make_file):
        """Test granted resources appear with the grantee's role."""
        create_folder(user.id, 'Mine')
        theirs = create_folder(other_user.id, 'Theirs')
        create_folder(other_user.id, 'Hidden')
        grant_permission(
            ResourceKind.FOLDER,
            theirs.id,
            user.id,
            PermissionRole.EDITOR,
        )
        make_file(user, 'mine.pdf')

        library = get_user_library(user.id)

        entries = {entry.folder.name: entry for entry in library.folders}
        assert set(entries) == {'Mine', 'Theirs'}
        assert entries['Mine'].capabilities.is_owner
        assert entries['Theirs'].capabilities.user_role == (
            PermissionRole.EDITOR
        )
        assert library.folders_meta.total == 2
        assert [entry.file.name for entry in library.files] == ['mine.pdf']
        assert library.stats.total_folders == 1

    def test_newest_first_pagination(self, user):
        """Test folders are paginated newest first."""
        for name in ('First', 'Second', 'Third'):
            create_folder(user.id, name)

        library = get_user_library(user.id, folders_page=1, folders_limit=2)

        assert [entry.folder.name for entry in library.folders] == [
            'Third',
            'Second',
        ]
        assert library.folders_meta.total == 3
        assert library.folders_meta.total_pages == 2


@pytest.mark.django_db
class TestSearchLibrary:
    """Tests for search_library."""

    def test_case_insensitive_match(self, user, make_file):
        """Test folders and files are matched by name."""
        create_folder(user.id, 'Quarterly Reports')
        create_folder(user.id, 'Photos')
        make_file(user, 'report-q3.pdf')

        result = search_library(user.id, 'REPORT')

        assert [folder.name for folder in result.folders] == [
            'Quarterly Reports',
        ]
        assert [found.name for found in result.files] == ['report-q3.pdf']
        assert result.total_folders == 1
        assert result.total_files == 1

    def test_search_kind_filter(self, user, make_file):
        """Test kind='file' skips folders."""
        create_folder(user.id, 'Reports')
        make_file(user, 'report.pdf')

        result = search_library(user.id, 'report', kind='file')

        assert result.folders == []
        assert result.total_folders == 0
        assert result.total_files == 1

    def test_search_only_own(self, user, other_user, make_file):
        """Test other users' resources never match."""
        theirs = make_file(other_user, 'report.pdf')
        grant_permission(ResourceKind.FILE, theirs.id, user.id)

        result = search_library(user.id, 'report')

        assert result.total_files == 0

    def test_search_public_and_folder_filters(self, user, make_file):
        """Test is_public and folder_id narrow the results."""
        folder = create_folder(user.id, 'Docs')
        make_file(user, 'report-a.pdf', folder=folder, is_public=True)
        make_file(user, 'report-b.pdf', folder=folder)
        make_file(user, 'report-c.pdf', is_public=True)

        result = search_library(
            user.id,
            'report',
            folder_id=folder.id,
            is_public=True,
        )

        assert [found.name for found in result.files] == ['report-a.pdf']

    def test_invalid_kind(self, user):
        """Test unknown kinds are rejected."""
        with pytest.raises(BadRequestError, match='Invalid search type'):
            search_library(user.id, 'x', kind='album')
